"""Application key/value settings model."""

from sqlalchemy import Column, Integer, Text

from sachi.database import Base
from sachi.models.mixins import TimestampMixin


class Setting(Base, TimestampMixin):
    __tablename__ = "settings"

    id = Column(Integer, primary_key=True, autoincrement=True)
    key = Column(Text, unique=True, nullable=False)
    value = Column(Text, nullable=True)
