from taskgate.apps.projects.services.project import ProjectService

__all__ = ["ProjectService"]
