"""
Test suite for the RabbitMQ publisher and work queue.

Run tests:
    pytest tests/infrastructure/messaging/test_publisher.py -v
"""

import json
from unittest.mock import AsyncMock, MagicMock
from uuid import uuid4

import aio_pika
import pytest

from taskgate.infrastructure.messaging.publisher import (
    RabbitMQWorkQueue,
    publish_event,
)
from taskgate.infrastructure.messaging.queues import RetryPolicy


def make_channel():
    channel = AsyncMock(spec=aio_pika.Channel)
    channel.default_exchange = AsyncMock()
    channel.is_closed = False
    return channel


class TestPublishEvent:
    @pytest.mark.asyncio
    async def test_declares_durable_queue_and_publishes(self):
        channel = make_channel()

        await publish_event(channel, "jobs", {"job_id": "j-1"}, {"x-job-id": "j-1"})

        channel.declare_queue.assert_awaited_once_with("jobs", durable=True)
        call = channel.default_exchange.publish.call_args
        message = call.args[0]
        assert call.kwargs["routing_key"] == "jobs"
        assert json.loads(message.body) == {"job_id": "j-1"}
        assert message.headers == {"x-job-id": "j-1"}
        assert message.delivery_mode == aio_pika.DeliveryMode.PERSISTENT
        assert message.content_type == "application/json"


class TestRabbitMQWorkQueue:
    @pytest.mark.asyncio
    async def test_enqueue_sends_job_and_policy_headers(self):
        channel = make_channel()
        rabbitmq = MagicMock()
        rabbitmq.channel = AsyncMock(return_value=channel)
        queue = RabbitMQWorkQueue(rabbitmq, "jobs")
        job_id = uuid4()

        await queue.enqueue(job_id, {"task": "resize"}, RetryPolicy(max_attempts=4))

        message = channel.default_exchange.publish.call_args.args[0]
        assert json.loads(message.body) == {
            "job_id": str(job_id),
            "payload": {"task": "resize"},
        }
        assert message.headers["x-job-id"] == str(job_id)
        assert message.headers["x-max-attempts"] == 4

    @pytest.mark.asyncio
    async def test_channel_is_reused(self):
        channel = make_channel()
        rabbitmq = MagicMock()
        rabbitmq.channel = AsyncMock(return_value=channel)
        queue = RabbitMQWorkQueue(rabbitmq, "jobs")

        await queue.enqueue(uuid4(), {}, RetryPolicy())
        await queue.enqueue(uuid4(), {}, RetryPolicy())

        rabbitmq.channel.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_closed_channel_is_replaced(self):
        closed, fresh = make_channel(), make_channel()
        rabbitmq = MagicMock()
        rabbitmq.channel = AsyncMock(side_effect=[closed, fresh])
        queue = RabbitMQWorkQueue(rabbitmq, "jobs")

        await queue.enqueue(uuid4(), {}, RetryPolicy())
        closed.is_closed = True
        await queue.enqueue(uuid4(), {}, RetryPolicy())

        fresh.default_exchange.publish.assert_awaited_once()
