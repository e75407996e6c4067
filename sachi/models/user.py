"""User model."""

from sqlalchemy import Column, Index, Integer, Text

from sachi.database import Base
from sachi.models.mixins import TimestampMixin


class User(Base, TimestampMixin):
    """User account, in the modern column layout.

    Databases created by older releases may store the display name in a
    ``username`` column and have no ``company`` column; the store adapts to
    that at runtime, this model only describes what fresh databases get.
    """

    __tablename__ = "users"
    __table_args__ = (Index("idx_users_email", "email"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(Text, nullable=False)
    email = Column(Text, unique=True, nullable=False)
    company = Column(Text, nullable=True)
    password_hash = Column(Text, nullable=False)
