from __future__ import annotations

import datetime

from sqlalchemy import DateTime, ForeignKey, String, UniqueConstraint, func
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database import Base
from app.schema.jobs import GenerationJob  # noqa: F401
from app.schema.quotas import QuotaRecordRow  # noqa: F401


class UserProfile(Base):
  __tablename__ = "user_profiles"

  user_id: Mapped[str] = mapped_column(String, primary_key=True)
  language: Mapped[str] = mapped_column(String, nullable=False, default="vi")
  plan: Mapped[str] = mapped_column(String, nullable=False, default="free")
  created_at: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())


class DeviceToken(Base):
  __tablename__ = "device_tokens"
  __table_args__ = (UniqueConstraint("token", name="ux_device_tokens_token"),)

  id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
  user_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
  token: Mapped[str] = mapped_column(String, nullable=False)
  platform: Mapped[str] = mapped_column(String, nullable=False, default="android")
  created_at: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())


class GenerationArtifact(Base):
  __tablename__ = "generation_artifacts"

  artifact_id: Mapped[str] = mapped_column(String, primary_key=True)
  job_id: Mapped[str] = mapped_column(ForeignKey("generation_jobs.job_id", ondelete="CASCADE"), nullable=False, unique=True)
  user_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
  category: Mapped[str] = mapped_column(String, nullable=False)
  provider: Mapped[str] = mapped_column(String, nullable=False)
  fallback_used: Mapped[bool] = mapped_column(nullable=False, default=False)
  content: Mapped[dict] = mapped_column(JSONB, nullable=False)
  created_at: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
