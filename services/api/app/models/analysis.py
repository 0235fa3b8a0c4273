from datetime import datetime
from typing import TYPE_CHECKING
from uuid import uuid4

from sqlalchemy import ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database.base import Base, JSONVariant, created_at_column, updated_at_column

if TYPE_CHECKING:
    from app.models.user import User


class Analysis(Base):
    """
    AI-generated breakdown of one YouTube video.

    Access: owner via user_id; anonymous analyses have no owner.
    """

    __tablename__ = "analyses"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid4()),
    )
    user_id: Mapped[str | None] = mapped_column(
        String(36),
        ForeignKey("users.id", ondelete="CASCADE"),
        index=True,
        nullable=True,
    )

    # Video
    video_url: Mapped[str] = mapped_column(Text, nullable=False)
    video_id: Mapped[str] = mapped_column(String(32), index=True, nullable=False)
    title: Mapped[str | None] = mapped_column(String(500), nullable=True)
    duration: Mapped[int | None] = mapped_column(Integer, nullable=True)  # seconds
    transcript: Mapped[str] = mapped_column(Text, nullable=False)

    # Structured result
    summary: Mapped[str] = mapped_column(Text, nullable=False)
    key_insights: Mapped[list[str]] = mapped_column(JSONVariant, default=list, nullable=False)
    action_steps: Mapped[list[str]] = mapped_column(JSONVariant, default=list, nullable=False)
    examples: Mapped[list[str]] = mapped_column(JSONVariant, default=list, nullable=False)

    created_at: Mapped[datetime] = created_at_column()
    updated_at: Mapped[datetime] = updated_at_column()

    user: Mapped["User | None"] = relationship(back_populates="analyses")
