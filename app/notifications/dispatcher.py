"""Completion and failure notifications for generation jobs."""

from __future__ import annotations

import logging

from starlette.concurrency import run_in_threadpool

from app.notifications.contracts import GenerationNotification, NotificationOutcome, NotificationProviderError, PushMessage, PushSender
from app.notifications.device_token_repo import DeviceTokenRepository
from app.notifications.templates import render_notification
from app.storage.profiles_repo import UserProfileRepository

logger = logging.getLogger(__name__)


class NotificationDispatcher:
  """Builds localized generation notifications and pushes them to the user's devices.

  Delivery is best-effort: every failure is logged and swallowed so a notification
  problem can never change the outcome of the job that triggered it.
  """

  def __init__(self, *, push_sender: PushSender, device_tokens: DeviceTokenRepository, profiles: UserProfileRepository, default_language: str = "vi") -> None:
    self._push_sender = push_sender
    self._device_tokens = device_tokens
    self._profiles = profiles
    self._default_language = default_language

  async def notify_complete(self, *, user_id: str, job_id: str, category: str, artifact_ref: str) -> GenerationNotification:
    return await self._notify(user_id=user_id, job_id=job_id, category=category, outcome="complete", artifact_ref=artifact_ref)

  async def notify_error(self, *, user_id: str, job_id: str, category: str, error_summary: str) -> GenerationNotification:
    return await self._notify(user_id=user_id, job_id=job_id, category=category, outcome="error", error_summary=error_summary)

  async def _notify(self, *, user_id: str, job_id: str, category: str, outcome: NotificationOutcome, artifact_ref: str | None = None, error_summary: str | None = None) -> GenerationNotification:
    language = await self._language_for(user_id)
    title, body = render_notification(outcome=outcome, category=category, language=language, default_language=self._default_language)
    notification = GenerationNotification(user_id=user_id, category=category, outcome=outcome, job_id=job_id, title=title, body=body, artifact_ref=artifact_ref, error_summary=error_summary)
    await self._deliver(notification)
    return notification

  async def _language_for(self, user_id: str) -> str | None:
    try:
      profile = await self._profiles.get(user_id)
    except Exception as exc:  # noqa: BLE001
      logger.warning("Profile lookup failed user_id=%s error=%s; using default language", user_id, exc)
      return None
    return profile.language if profile else None

  async def _deliver(self, notification: GenerationNotification) -> None:
    try:
      tokens = [entry.token for entry in await self._device_tokens.list_for_user(notification.user_id)]
    except Exception as exc:  # noqa: BLE001
      logger.error("Device token lookup failed user_id=%s error=%s", notification.user_id, exc, exc_info=True)
      return

    if not tokens:
      logger.info("No devices registered user_id=%s job_id=%s outcome=%s", notification.user_id, notification.job_id, notification.outcome)
      return

    message = PushMessage(tokens=tokens, title=notification.title, body=notification.body, data=notification.data())
    try:
      result = await run_in_threadpool(self._push_sender.send, message)
    except NotificationProviderError as exc:
      logger.error("Push notification delivery failed (provider error): %s", exc)
      return
    except Exception as exc:  # noqa: BLE001
      logger.error("Push notification delivery failed: %s", exc, exc_info=True)
      return

    logger.info("Push sent user_id=%s job_id=%s outcome=%s success=%d failure=%d", notification.user_id, notification.job_id, notification.outcome, result.success_count, result.failure_count)
    if result.invalid_tokens:
      # Remove invalid tokens immediately to prevent repeated failed sends.
      try:
        await self._device_tokens.delete_tokens(result.invalid_tokens)
      except Exception as exc:  # noqa: BLE001
        logger.error("Failed deleting invalid device tokens count=%d error=%s", len(result.invalid_tokens), exc, exc_info=True)
