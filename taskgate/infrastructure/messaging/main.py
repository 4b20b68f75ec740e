"""
Job worker for TaskGate.

Standalone Usage:
    python -m taskgate.infrastructure.messaging.main

The API process can also run the consumers itself (``ENABLE_CONSUMERS``).
"""

import asyncio
import signal
from functools import partial

from aio_pika.abc import AbstractChannel

from taskgate.apps.jobs.services import JobExecutor
from taskgate.core.config import Settings, rabbitmq_logger, settings
from taskgate.core.db import Database
from taskgate.core.db.crud import JobDB
from taskgate.infrastructure.messaging.connection import RabbitMQ
from taskgate.infrastructure.messaging.consumer import process_message
from taskgate.infrastructure.messaging.queues import (
    QueueConfig,
    RetryPolicy,
    build_queue_config,
)


def get_queue_configs(settings: Settings, executor: JobExecutor) -> list[QueueConfig]:
    return [
        build_queue_config(
            settings.JOB_QUEUE_NAME,
            executor.handle,
            RetryPolicy.from_settings(settings),
        )
    ]


async def start_consumers(
    rabbitmq: RabbitMQ,
    queue_configs: list[QueueConfig],
    prefetch_count: int,
) -> AbstractChannel:
    """
    Declare the main, retry and dead-letter queues of every config and register
    a consumer on each main queue.

    The channel QoS caps unacknowledged deliveries at ``prefetch_count``, which
    bounds how many jobs run concurrently in this process.

    Returns:
        AbstractChannel: The consuming channel; closing it stops the consumers.
    """
    channel = await rabbitmq.channel()
    await channel.set_qos(prefetch_count=prefetch_count)

    for q in queue_configs:
        queue = await channel.declare_queue(q.name, durable=True)

        if retries := q.retry_queues:
            for retry in retries:
                await channel.declare_queue(
                    retry.name,
                    durable=True,
                    arguments={
                        "x-message-ttl": retry.ttl,
                        "x-dead-letter-exchange": "",
                        "x-dead-letter-routing-key": q.name,
                    },
                )

        if dead := q.dead_letter_queue:
            await channel.declare_queue(dead, durable=True)

        await queue.consume(  # type: ignore[arg-type]
            partial(
                process_message,
                handler=q.handler,
                channel=channel,
                retry_queues=(
                    [retry_queue.model_dump() for retry_queue in q.retry_queues]
                    if q.retry_queues
                    else None
                ),
                dead_letter_queue=q.dead_letter_queue,
            ),
            no_ack=False,
        )
        rabbitmq_logger.info(f"Consumer registered on {q.name}")

    return channel


async def main() -> None:
    """
    Main entry point for standalone job execution.

    Connects the database and RabbitMQ, starts the job consumers and runs
    until SIGINT or SIGTERM.
    """
    shutdown_event = asyncio.Event()

    def handle_shutdown(signum, frame):
        rabbitmq_logger.info(f"Received signal {signum}, initiating shutdown...")
        shutdown_event.set()

    signal.signal(signal.SIGINT, handle_shutdown)
    signal.signal(signal.SIGTERM, handle_shutdown)

    rabbitmq_logger.info("Starting standalone job worker...")

    database = Database(settings.DATABASE_URL, echo=settings.DEBUG)
    rabbitmq = RabbitMQ(settings.RABBITMQ_URL)

    try:
        await database.init()
        rabbitmq_logger.info("Database initialized successfully.")

        executor = JobExecutor.from_settings(settings, JobDB(), database.session_factory)
        await start_consumers(
            rabbitmq,
            get_queue_configs(settings, executor),
            prefetch_count=settings.JOB_WORKER_CONCURRENCY,
        )
        rabbitmq_logger.info("Job consumers started. Waiting for messages...")

        await shutdown_event.wait()

    except Exception as e:
        rabbitmq_logger.exception(f"Messaging error: {e}")
        raise

    finally:
        rabbitmq_logger.info("Shutting down job worker...")
        await rabbitmq.close()
        await database.dispose()
        rabbitmq_logger.info("Job worker shutdown complete.")


if __name__ == "__main__":
    asyncio.run(main())
