from taskgate.apps.projects.routers.project import router as project_router

__all__ = ["project_router"]
