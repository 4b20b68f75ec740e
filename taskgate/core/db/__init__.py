from taskgate.core.db.config import Base, Database

__all__ = [
    "Base",
    "Database",
]
