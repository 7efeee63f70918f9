from datetime import datetime, date
from sqlalchemy import Integer, String, Text, Float, Boolean, DateTime, Date, func
from sqlalchemy.orm import Mapped, mapped_column

from offtime.db.base import Base


class SessionNote(Base):
    """One completed offline session. Sparse: older days may have none."""

    __tablename__ = "session_notes"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    day: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    started_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    duration_minutes: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    goal_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    mood: Mapped[str | None] = mapped_column(String(32), nullable=True)
    # JSON-encoded list[str]
    activities: Mapped[str | None] = mapped_column(Text, nullable=True)
    goal_achieved: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    note: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
