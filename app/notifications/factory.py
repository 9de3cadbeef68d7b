"""Factory helpers for notification services."""

from __future__ import annotations

from app.config import Settings
from app.core.firebase import firebase_ready
from app.notifications.device_token_repo import DeviceTokenRepository, InMemoryDeviceTokenRepository, PostgresDeviceTokenRepository
from app.notifications.dispatcher import NotificationDispatcher
from app.notifications.push_sender import FcmPushSender, NullPushSender
from app.storage.profiles_repo import UserProfileRepository


def build_device_token_repo(settings: Settings) -> DeviceTokenRepository:
  # Persist device tokens only when Postgres is configured.
  if settings.pg_dsn:
    return PostgresDeviceTokenRepository()
  return InMemoryDeviceTokenRepository()


def build_notification_dispatcher(settings: Settings, *, profiles: UserProfileRepository, device_tokens: DeviceTokenRepository | None = None) -> NotificationDispatcher:
  """Construct a notification dispatcher based on environment configuration."""
  # Push is disabled by default to avoid accidental delivery in dev/test.
  if settings.push_notifications_enabled and firebase_ready():
    push_sender = FcmPushSender()
  else:
    push_sender = NullPushSender()

  return NotificationDispatcher(push_sender=push_sender, device_tokens=device_tokens or build_device_token_repo(settings), profiles=profiles, default_language=settings.default_language)
