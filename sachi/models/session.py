"""Login session model."""

from sqlalchemy import Column, DateTime, ForeignKey, Index, Integer, Text, func

from sachi.database import Base


class UserSession(Base):
    """Opaque session token issued on login, valid until expires_at."""

    __tablename__ = "sessions"
    __table_args__ = (
        Index("idx_sessions_token", "session_token"),
        Index("idx_sessions_expires_at", "expires_at"),
        Index("idx_sessions_user_id", "user_id"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    session_token = Column(Text, unique=True, nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
