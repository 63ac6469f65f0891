from .base import DatabaseSessionManager, Base, StartupError
from .models import (
    AccountRecord,
    BookmarkRecord,
    MessageRecord,
    PermissionRecord,
)

__all__ = [
    "DatabaseSessionManager",
    "Base",
    "StartupError",
    "AccountRecord",
    "BookmarkRecord",
    "MessageRecord",
    "PermissionRecord",
]
