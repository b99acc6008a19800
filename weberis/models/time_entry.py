"""Tracked working time."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, Integer, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from weberis.models.base import Base, TimestampMixin


class TimeEntry(Base, TimestampMixin):
    """One block of work by one user.

    A running timer is an entry without ``end_time``; each user has at most
    one of those.
    """

    __tablename__ = "time_entries"
    __table_args__ = (Index("idx_time_entries_user_start", "user_id", "start_time"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    task_id: Mapped[int | None] = mapped_column(ForeignKey("tasks.id", ondelete="SET NULL"), index=True)
    project_id: Mapped[int | None] = mapped_column(ForeignKey("projects.id", ondelete="SET NULL"), index=True)
    business_id: Mapped[int | None] = mapped_column(ForeignKey("businesses.id", ondelete="SET NULL"), index=True)
    description: Mapped[str | None] = mapped_column(Text)
    start_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    end_time: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    # Seconds; NULL while the timer runs.
    duration: Mapped[int | None] = mapped_column(Integer)
    is_billable: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    user = relationship("User")
    task = relationship("Task")
    project = relationship("Project")
    business = relationship("Business")

    @property
    def is_running(self) -> bool:
        return self.end_time is None
