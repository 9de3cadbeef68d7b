from __future__ import annotations

import datetime

from sqlalchemy import DateTime, Index, Integer, String, Text, func
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database import Base


class GenerationJob(Base):
  __tablename__ = "generation_jobs"
  __table_args__ = (Index("ix_generation_jobs_category_state_created", "category", "state", "created_at"),)

  job_id: Mapped[str] = mapped_column(String, primary_key=True)
  user_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
  category: Mapped[str] = mapped_column(String, nullable=False)
  payload: Mapped[dict] = mapped_column(JSONB, nullable=False)
  state: Mapped[str] = mapped_column(String, nullable=False, index=True)
  attempt: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
  max_attempts: Mapped[int] = mapped_column(Integer, nullable=False)
  progress: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
  result: Mapped[str | None] = mapped_column(String, nullable=True)
  failure_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
  quota_charged: Mapped[bool] = mapped_column(nullable=False, default=False)
  created_at: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
  updated_at: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
  started_at: Mapped[datetime.datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
  completed_at: Mapped[datetime.datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
