from taskgate.apps.jobs.routers.job import router as job_router

__all__ = ["job_router"]
