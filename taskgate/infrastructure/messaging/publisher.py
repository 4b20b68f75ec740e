import json
from typing import Any
from uuid import UUID

import aio_pika
from aio_pika.abc import AbstractChannel

from taskgate.core.config import rabbitmq_logger
from taskgate.infrastructure.messaging.connection import RabbitMQ
from taskgate.infrastructure.messaging.queues import RetryPolicy


async def publish_event(
    channel: AbstractChannel,
    queue_name: str,
    event: dict[str, Any],
    headers: dict[str, Any] | None = None,
) -> None:
    """
    Publishes an event message to the specified queue.

    Args:
        channel (AbstractChannel): Open channel to publish on.
        queue_name (str): The name of the queue to publish the event to.
        event (dict[str, Any]): The event data, serialized to JSON.
        headers (dict[str, Any], optional): Additional message headers.
    """
    await channel.declare_queue(queue_name, durable=True)

    message = aio_pika.Message(
        body=json.dumps(event).encode(),
        headers=headers or {},
        content_type="application/json",
        delivery_mode=aio_pika.DeliveryMode.PERSISTENT,
    )

    await channel.default_exchange.publish(message, routing_key=queue_name)


class RabbitMQWorkQueue:
    """Work queue backed by a durable RabbitMQ queue."""

    def __init__(self, rabbitmq: RabbitMQ, queue_name: str):
        self.rabbitmq = rabbitmq
        self.queue_name = queue_name
        self._channel: AbstractChannel | None = None

    async def _get_channel(self) -> AbstractChannel:
        if self._channel is None or self._channel.is_closed:
            self._channel = await self.rabbitmq.channel()
        return self._channel

    async def enqueue(self, job_id: UUID, payload: Any, policy: RetryPolicy) -> None:
        channel = await self._get_channel()
        await publish_event(
            channel,
            self.queue_name,
            {"job_id": str(job_id), "payload": payload},
            headers={
                "x-job-id": str(job_id),
                "x-max-attempts": policy.max_attempts,
            },
        )
        rabbitmq_logger.info(f"Enqueued job {job_id} on {self.queue_name}")
