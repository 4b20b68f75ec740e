from taskgate.core.db.crud.base import BaseDB
from taskgate.core.db.crud.job import JobDB
from taskgate.core.db.crud.otp import OTPChallengeDB
from taskgate.core.db.crud.project import ProjectDB
from taskgate.core.db.crud.user import UserDB

__all__ = [
    "BaseDB",
    "JobDB",
    "OTPChallengeDB",
    "ProjectDB",
    "UserDB",
]
