import aio_pika
from aio_pika.abc import AbstractRobustChannel, AbstractRobustConnection

from taskgate.core.config import rabbitmq_logger


class RabbitMQ:
    """
    RabbitMQ connection handle.

    Created and closed by the process entry point and handed to publishers
    and consumers; nothing connects on import.
    """

    def __init__(self, url: str):
        self.url = url
        self._connection: AbstractRobustConnection | None = None

    @property
    def is_connected(self) -> bool:
        return self._connection is not None and not self._connection.is_closed

    async def connect(self) -> AbstractRobustConnection:
        if not self.is_connected:
            self._connection = await aio_pika.connect_robust(self.url)
            rabbitmq_logger.info("RabbitMQ connection established.")
        return self._connection  # type: ignore[return-value]

    async def channel(self) -> AbstractRobustChannel:
        connection = await self.connect()
        return await connection.channel()  # type: ignore[return-value]

    async def close(self) -> None:
        if self._connection is not None:
            await self._connection.close()
            self._connection = None
            rabbitmq_logger.info("RabbitMQ connection closed.")
