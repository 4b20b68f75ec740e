from taskgate.core.db.models.user import User
from taskgate.core.db.models.otp import OTPChallenge
from taskgate.core.db.models.job import Job
from taskgate.core.db.models.project import Project, ProjectMember

__all__ = [
    "Job",
    "OTPChallenge",
    "Project",
    "ProjectMember",
    "User",
]
