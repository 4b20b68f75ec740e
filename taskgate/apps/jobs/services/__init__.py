from taskgate.apps.jobs.services.executor import JobExecutor, simulate_execution
from taskgate.apps.jobs.services.submission import JobSubmissionService, WorkQueue

__all__ = [
    "JobExecutor",
    "JobSubmissionService",
    "WorkQueue",
    "simulate_execution",
]
