import pytest
from pydantic import ValidationError

from taskgate.infrastructure.messaging.queues import (
    QueueConfig,
    RetryPolicy,
    build_queue_config,
)


async def handler(event):
    return None


class TestRetryPolicy:
    def test_defaults(self):
        policy = RetryPolicy()

        assert policy.max_attempts == 3
        assert policy.backoff_delay_ms == 2000
        assert policy.remove_on_fail is False

    def test_exponential_delays(self):
        assert RetryPolicy().retry_delays() == [2000, 4000]
        assert RetryPolicy(max_attempts=4, backoff_delay_ms=500).retry_delays() == [
            500,
            1000,
            2000,
        ]

    def test_single_attempt_has_no_retries(self):
        assert RetryPolicy(max_attempts=1).retry_delays() == []

    def test_rejects_zero_attempts(self):
        with pytest.raises(ValidationError):
            RetryPolicy(max_attempts=0)

    def test_from_settings(self):
        from taskgate.core.config import settings

        policy = RetryPolicy.from_settings(settings)

        assert policy.max_attempts == settings.JOB_MAX_ATTEMPTS
        assert policy.backoff_delay_ms == settings.JOB_BACKOFF_DELAY_MS


class TestBuildQueueConfig:
    def test_default_topology(self):
        config = build_queue_config("jobs", handler, RetryPolicy())

        assert config.name == "jobs"
        assert [(q.name, q.ttl) for q in config.retry_queues] == [
            ("jobs_retry_1", 2000),
            ("jobs_retry_2", 4000),
        ]
        assert config.dead_letter_queue == "jobs_dead"

    def test_no_retries(self):
        config = build_queue_config("jobs", handler, RetryPolicy(max_attempts=1))

        assert config.retry_queues is None

    def test_remove_on_fail_drops_dead_letter_queue(self):
        config = build_queue_config(
            "jobs", handler, RetryPolicy(remove_on_fail=True)
        )

        assert config.dead_letter_queue is None


def test_queue_config_rejects_empty_retry_list():
    with pytest.raises(ValidationError):
        QueueConfig(name="jobs", handler=handler, retry_queues=[])
