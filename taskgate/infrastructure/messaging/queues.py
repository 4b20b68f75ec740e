from typing import Annotated, Any, Awaitable, Callable

from pydantic import BaseModel, Field, model_validator

from taskgate.core.config import Settings


class RetryPolicy(BaseModel):
    """
    Retry policy attached to every enqueued work item.

    Attempts are spaced exponentially: the n-th retry waits
    ``backoff_delay_ms * 2 ** (n - 1)`` milliseconds. Successful items are
    acknowledged and discarded; items that exhaust ``max_attempts`` are parked
    in the dead letter queue.
    """

    max_attempts: Annotated[int, Field(ge=1)] = 3
    backoff_delay_ms: Annotated[int, Field(gt=0)] = 2000
    remove_on_fail: bool = False

    def retry_delays(self) -> list[int]:
        return [self.backoff_delay_ms * 2**i for i in range(self.max_attempts - 1)]

    @classmethod
    def from_settings(cls, settings: Settings) -> "RetryPolicy":
        return cls(
            max_attempts=settings.JOB_MAX_ATTEMPTS,
            backoff_delay_ms=settings.JOB_BACKOFF_DELAY_MS,
        )


class RetryQueue(BaseModel):
    name: Annotated[str, Field(description="Name of the retry queue")]
    ttl: Annotated[int, Field(gt=0, description="Time to live in milliseconds")]


class QueueConfig(BaseModel):
    name: Annotated[str, Field(description="Name of the main queue")]
    handler: Annotated[
        Callable[[dict[str, Any]], Awaitable[Any]],
        Field(description="Coroutine function handling decoded messages"),
    ]
    retry_queues: Annotated[
        list[RetryQueue] | None,
        Field(description="Retry queues with TTLs, used in order"),
    ] = None
    dead_letter_queue: Annotated[
        str | None, Field(description="Name of the dead letter queue")
    ] = None

    @model_validator(mode="after")
    def check_retry_configuration(self) -> "QueueConfig":
        if self.retry_queues is not None and len(self.retry_queues) == 0:
            raise ValueError("'retry_queues' must contain at least one entry.")
        return self


def build_queue_config(
    name: str,
    handler: Callable[[dict[str, Any]], Awaitable[Any]],
    policy: RetryPolicy,
) -> QueueConfig:
    """
    Derive the queue topology for a retry policy.

    One retry queue per retry (``<name>_retry_<n>``) whose TTL is the backoff
    for that retry; expired messages dead-letter back into ``name``. Failed
    items are parked in ``<name>_dead`` unless the policy discards them.
    """
    retry_queues = [
        RetryQueue(name=f"{name}_retry_{index}", ttl=delay)
        for index, delay in enumerate(policy.retry_delays(), start=1)
    ]
    return QueueConfig(
        name=name,
        handler=handler,
        retry_queues=retry_queues or None,
        dead_letter_queue=None if policy.remove_on_fail else f"{name}_dead",
    )
