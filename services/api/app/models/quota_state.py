"""Key-value rows backing the anonymous usage store."""

from datetime import datetime

from sqlalchemy import String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.database.base import Base, updated_at_column


class QuotaState(Base):
    """
    One serialized quota record per anonymous client key.

    `value` holds the JSON text exactly as written; it is validated on
    read, never trusted.
    """

    __tablename__ = "quota_states"

    key: Mapped[str] = mapped_column(String(255), primary_key=True)
    value: Mapped[str] = mapped_column(Text, nullable=False)

    updated_at: Mapped[datetime] = updated_at_column()
