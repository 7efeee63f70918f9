from datetime import datetime, date
from sqlalchemy import Integer, Float, DateTime, Date, func
from sqlalchemy.orm import Mapped, mapped_column

from offtime.db.base import Base


class DayStat(Base):
    """Raw per-day offline totals as reported by the tracking client."""

    __tablename__ = "day_stats"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    day: Mapped[date] = mapped_column(Date, nullable=False, unique=True, index=True)
    offline_minutes: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    # Explicit count when the client knows it; NULL falls back to estimation.
    session_count: Mapped[int | None] = mapped_column(Integer, nullable=True)
    xp_earned: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    achievements_unlocked: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    streak_day: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), onupdate=func.now(), nullable=True
    )
