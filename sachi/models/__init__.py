"""SQLAlchemy models."""

from sachi.models.session import UserSession
from sachi.models.setting import Setting
from sachi.models.user import User

__all__ = [
    "User",
    "UserSession",
    "Setting",
]
