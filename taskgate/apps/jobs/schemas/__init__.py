from taskgate.apps.jobs.schemas.job import JobResponse, JobSubmit

__all__ = ["JobResponse", "JobSubmit"]
