from __future__ import annotations

from types import SimpleNamespace

import pytest
from firebase_admin import exceptions as firebase_exceptions
from firebase_admin import messaging

from app.notifications.contracts import NotificationProviderError, PushMessage
from app.notifications.push_sender import FCM_MULTICAST_LIMIT, FcmPushSender, NullPushSender


def _message(count: int) -> PushMessage:
  return PushMessage(tokens=[f"token-{index}" for index in range(count)], title="Meal plan ready", body="Tap to view", data={"jobId": "job-1"})


def test_fcm_sender_chunks_tokens_and_collects_unregistered(monkeypatch):
  batches: list[list[str]] = []

  def _send_each_for_multicast(multicast, dry_run=False, app=None):
    batches.append(list(multicast.tokens))
    responses = []
    for token in multicast.tokens:
      if token == "token-3":
        responses.append(SimpleNamespace(success=False, exception=messaging.UnregisteredError("gone")))
      else:
        responses.append(SimpleNamespace(success=True, exception=None))
    failures = sum(1 for response in responses if not response.success)
    return SimpleNamespace(success_count=len(responses) - failures, failure_count=failures, responses=responses)

  monkeypatch.setattr("app.notifications.push_sender.messaging.send_each_for_multicast", _send_each_for_multicast)

  result = FcmPushSender().send(_message(FCM_MULTICAST_LIMIT + 2))

  assert [len(batch) for batch in batches] == [FCM_MULTICAST_LIMIT, 2]
  assert result.success_count == FCM_MULTICAST_LIMIT + 1
  assert result.failure_count == 1
  assert result.invalid_tokens == ["token-3"]


def test_fcm_sender_wraps_firebase_errors(monkeypatch):
  def _raise(multicast, dry_run=False, app=None):
    raise firebase_exceptions.UnavailableError("fcm unavailable")

  monkeypatch.setattr("app.notifications.push_sender.messaging.send_each_for_multicast", _raise)

  with pytest.raises(NotificationProviderError):
    FcmPushSender().send(_message(1))


def test_null_sender_drops_messages():
  result = NullPushSender().send(_message(3))

  assert result.success_count == 0
  assert result.invalid_tokens == []
