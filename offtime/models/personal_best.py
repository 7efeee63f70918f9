"""
PersonalBest — durable copy of the Personal Best Tracker's table.

One row per category (unique). Rows are overwritten when a record is
superseded; the previous value is kept on the row but no history is logged.
"""
from datetime import datetime, date
from sqlalchemy import Integer, String, Float, DateTime, Date, func
from sqlalchemy.orm import Mapped, mapped_column

from offtime.db.base import Base


class PersonalBest(Base):
    __tablename__ = "personal_bests"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    category: Mapped[str] = mapped_column(String(32), nullable=False, unique=True)
    record_id: Mapped[str] = mapped_column(String(64), nullable=False)
    value: Mapped[float] = mapped_column(Float, nullable=False)
    unit: Mapped[str] = mapped_column(String(16), nullable=False)
    achieved_on: Mapped[date] = mapped_column(Date, nullable=False)
    previous_value: Mapped[float | None] = mapped_column(Float, nullable=True)
    previous_achieved_on: Mapped[date | None] = mapped_column(Date, nullable=True)
    improvement: Mapped[float | None] = mapped_column(Float, nullable=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )
