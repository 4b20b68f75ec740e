from enum import Enum


class OTPStatus(str, Enum):
    """Lifecycle status of an OTP challenge."""

    PENDING = "PENDING"
    USED = "USED"
    EXPIRED = "EXPIRED"
    BLOCKED = "BLOCKED"  # failed-attempt cap reached


class JobStatus(str, Enum):
    """Lifecycle status of a submitted job."""

    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class ProjectRole(str, Enum):
    """Role of a member within a project."""

    OWNER = "owner"
    COLLABORATOR = "collaborator"
    VIEWER = "viewer"
