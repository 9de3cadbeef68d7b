from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest

from app.notifications.contracts import NotificationProviderError, PushResult
from app.notifications.device_token_repo import DeviceTokenEntry, InMemoryDeviceTokenRepository
from app.notifications.dispatcher import NotificationDispatcher
from app.notifications.templates import TEMPLATES, render_notification, resolve_language
from app.schema.generation import GenerationCategory
from app.storage.profiles_repo import InMemoryUserProfileRepository, UserProfileEntry


def test_every_category_outcome_and_language_has_a_template():
  for category in GenerationCategory:
    for outcome in ("complete", "error"):
      for language in ("en", "vi"):
        template = TEMPLATES[(outcome, category.value, language)]
        assert template.title and template.body


@pytest.mark.parametrize("language, expected", [("en", "en"), ("vi-VN", "vi"), ("fr", "vi"), (None, "vi"), ("", "vi")])
def test_resolve_language_falls_back_to_default(language, expected):
  assert resolve_language(language, "vi") == expected


def test_unknown_category_uses_generic_text():
  title, body = render_notification(outcome="complete", category="posture-check", language="en", default_language="vi")
  assert title == "Your result is ready"
  assert body


@pytest.mark.anyio
async def test_notify_complete_uses_profile_language(notifier, push_sender, user):
  notification = await notifier.notify_complete(user_id=user, job_id="job-1", category="meal", artifact_ref="artifact-1")

  assert notification.outcome == "complete"
  assert notification.title == "Meal plan ready"
  message = push_sender.messages[0]
  assert message.tokens == ["device-token-1"]
  assert message.data == {"notificationCategory": "generation_complete", "generationType": "meal", "jobId": "job-1", "planId": "artifact-1"}


@pytest.mark.anyio
async def test_unsupported_profile_language_uses_default(repositories, notifier, push_sender):
  await repositories.profiles.upsert(UserProfileEntry(user_id="u-fr", language="fr", plan="free"))
  await repositories.device_tokens.upsert(DeviceTokenEntry(user_id="u-fr", token="fr-token"))

  notification = await notifier.notify_error(user_id="u-fr", job_id="job-2", category="workout", error_summary="provider_timeout")

  assert notification.title == TEMPLATES[("error", "workout", "vi")].title
  assert push_sender.messages[0].data["error"] == "provider_timeout"


@pytest.mark.anyio
async def test_user_without_devices_still_gets_event(notifier, push_sender):
  notification = await notifier.notify_error(user_id="nobody", job_id="job-3", category="body-photo", error_summary="malformed_response")

  assert notification.error_summary == "malformed_response"
  assert push_sender.messages == []


@pytest.mark.anyio
async def test_provider_errors_are_swallowed():
  sender = MagicMock()
  sender.send.side_effect = NotificationProviderError("FCM multicast failed")
  tokens = InMemoryDeviceTokenRepository()
  await tokens.upsert(DeviceTokenEntry(user_id="u1", token="t1"))
  dispatcher = NotificationDispatcher(push_sender=sender, device_tokens=tokens, profiles=InMemoryUserProfileRepository())

  notification = await dispatcher.notify_complete(user_id="u1", job_id="job-4", category="workout", artifact_ref="a1")

  assert notification.title == TEMPLATES[("complete", "workout", "vi")].title
  sender.send.assert_called_once()


@pytest.mark.anyio
async def test_profile_lookup_failure_falls_back_to_default_language():
  profiles = MagicMock()
  profiles.get = AsyncMock(side_effect=RuntimeError("db down"))
  dispatcher = NotificationDispatcher(push_sender=MagicMock(), device_tokens=InMemoryDeviceTokenRepository(), profiles=profiles, default_language="en")

  notification = await dispatcher.notify_complete(user_id="u1", job_id="job-5", category="inbody-scan", artifact_ref="a1")

  assert notification.title == "InBody scan analyzed"


@pytest.mark.anyio
async def test_invalid_tokens_are_removed():
  tokens = InMemoryDeviceTokenRepository()
  await tokens.upsert(DeviceTokenEntry(user_id="u1", token="stale"))
  await tokens.upsert(DeviceTokenEntry(user_id="u1", token="fresh"))
  sender = MagicMock()
  sender.send.return_value = PushResult(success_count=1, failure_count=1, invalid_tokens=["stale"])
  dispatcher = NotificationDispatcher(push_sender=sender, device_tokens=tokens, profiles=InMemoryUserProfileRepository())

  await dispatcher.notify_complete(user_id="u1", job_id="job-6", category="meal", artifact_ref="a1")

  assert [entry.token for entry in await tokens.list_for_user("u1")] == ["fresh"]
