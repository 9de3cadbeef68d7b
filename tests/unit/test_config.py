from __future__ import annotations

import pytest

from app.config import get_settings


@pytest.fixture(autouse=True)
def _fresh_settings():
  get_settings.cache_clear()
  yield
  get_settings.cache_clear()


def test_defaults(monkeypatch):
  for name in ("GIGAFIT_AI_PROVIDER", "GIGAFIT_JOB_MAX_ATTEMPTS", "GIGAFIT_DEFAULT_LANGUAGE", "GIGAFIT_INBODY_SCAN_CONCURRENCY", "GIGAFIT_PUSH_NOTIFICATIONS_ENABLED"):
    monkeypatch.delenv(name, raising=False)

  settings = get_settings()

  assert settings.default_ai_provider == "openai"
  assert settings.job_max_attempts == 3
  assert settings.default_language == "vi"
  assert settings.concurrency_for("inbody-scan") == 5
  assert settings.concurrency_for("workout") == 3
  assert settings.quota_period_days == 30


def test_rejects_unknown_provider(monkeypatch):
  monkeypatch.setenv("GIGAFIT_AI_PROVIDER", "llama")

  with pytest.raises(ValueError):
    get_settings()


def test_rejects_wildcard_origins(monkeypatch):
  monkeypatch.setenv("GIGAFIT_ALLOWED_ORIGINS", "*")

  with pytest.raises(ValueError):
    get_settings()


def test_push_requires_firebase_project(monkeypatch):
  monkeypatch.setenv("GIGAFIT_PUSH_NOTIFICATIONS_ENABLED", "true")
  monkeypatch.delenv("FIREBASE_PROJECT_ID", raising=False)

  with pytest.raises(ValueError):
    get_settings()
