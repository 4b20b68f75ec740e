import json
from typing import Any, Awaitable, Callable

import aio_pika
from aio_pika.abc import AbstractChannel

from taskgate.core.config import rabbitmq_logger


async def process_message(
    message: aio_pika.IncomingMessage,
    handler: Callable[[dict[str, Any]], Awaitable[Any]],
    channel: AbstractChannel,
    retry_queues: list[dict[str, Any]] | None = None,
    dead_letter_queue: str | None = None,
) -> None:
    """
    Processes an incoming RabbitMQ message with a given handler, supporting retry and dead-letter queues.

    Args:
        message (aio_pika.IncomingMessage): The incoming message to process.
        handler (Callable[[dict[str, Any]], Awaitable[Any]]): The async function to handle the decoded body.
        channel (AbstractChannel): The channel used to republish failed messages.
        retry_queues (list[dict[str, Any]], optional): Retry queue configurations, each with 'name' and 'ttl' keys, used in order.
        dead_letter_queue (str, optional): The queue for messages that exhausted their attempts.

    Behavior:
        - A handler that returns normally acknowledges the message.
        - On failure the attempt count (``x-retry-attempt``) is compared with
          the message's ``x-max-attempts`` header, falling back to one attempt
          per retry queue plus the first delivery.
        - While attempts remain, the message is republished to the next retry
          queue, whose TTL dead-letters it back into the main queue.
        - Otherwise it is published to the dead letter queue with the last
          error and its original queue recorded in the headers.
        - The failed delivery itself is always rejected without requeueing.
    """
    async with message.process(ignore_processed=True):
        try:
            event = json.loads(message.body.decode())
            await handler(event)
        except Exception as e:
            rabbitmq_logger.error(f"Error in handler: {e}")
            headers = dict(message.headers or {})
            attempt = int(headers.get("x-retry-attempt", 0))  # type: ignore[arg-type]
            max_attempts = int(
                headers.get("x-max-attempts", len(retry_queues or []) + 1)  # type: ignore[arg-type]
            )
            next_queue: str | None = None

            if retry_queues and attempt + 1 < max_attempts:
                next_queue = retry_queues[min(attempt, len(retry_queues) - 1)]["name"]
                rabbitmq_logger.info(
                    f"Retrying message via {next_queue} "
                    f"(attempt {attempt + 2} of {max_attempts})"
                )

            if next_queue:
                headers["x-retry-attempt"] = attempt + 1
                await channel.default_exchange.publish(
                    aio_pika.Message(
                        body=message.body,
                        content_type=message.content_type,
                        delivery_mode=aio_pika.DeliveryMode.PERSISTENT,
                        headers=headers,
                    ),
                    routing_key=next_queue,
                )

            elif dead_letter_queue:
                headers["x-error-message"] = str(e)
                if dead_letter_queue.endswith("_dead"):
                    headers["x-original-queue"] = dead_letter_queue[: -len("_dead")]

                await channel.default_exchange.publish(
                    aio_pika.Message(
                        body=message.body,
                        content_type=message.content_type,
                        delivery_mode=aio_pika.DeliveryMode.PERSISTENT,
                        headers=headers,
                    ),
                    routing_key=dead_letter_queue,
                )
                rabbitmq_logger.warning(
                    f"Message dead-lettered to {dead_letter_queue} "
                    f"after {attempt + 1} attempt(s)"
                )
            else:
                rabbitmq_logger.warning(
                    f"Message discarded after {attempt + 1} attempt(s)"
                )

            await message.reject(requeue=False)
