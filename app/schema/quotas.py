from __future__ import annotations

import datetime

from sqlalchemy import DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database import Base


class QuotaRecordRow(Base):
  __tablename__ = "quota_records"

  user_id: Mapped[str] = mapped_column(String, primary_key=True)
  category: Mapped[str] = mapped_column(String, primary_key=True)
  period_start: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), nullable=False)
  used: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
  # -1 means unlimited.
  limit: Mapped[int] = mapped_column("quota_limit", Integer, nullable=False)
