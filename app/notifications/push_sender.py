"""Push notification delivery implementations."""

from __future__ import annotations

import logging

from firebase_admin import exceptions as firebase_exceptions
from firebase_admin import messaging

from app.notifications.contracts import NotificationProviderError, PushMessage, PushResult, PushSender

logger = logging.getLogger(__name__)

# FCM rejects multicast batches larger than this.
FCM_MULTICAST_LIMIT = 500


class FcmPushSender(PushSender):
  """`firebase-admin` backed multicast sender."""

  def __init__(self, *, app: object | None = None, dry_run: bool = False) -> None:
    self._app = app
    self._dry_run = dry_run

  def send(self, message: PushMessage) -> PushResult:
    """Send to every token in chunks, collecting tokens FCM no longer recognizes."""
    success = 0
    failure = 0
    invalid: list[str] = []

    for start in range(0, len(message.tokens), FCM_MULTICAST_LIMIT):
      chunk = message.tokens[start : start + FCM_MULTICAST_LIMIT]
      multicast = messaging.MulticastMessage(tokens=chunk, notification=messaging.Notification(title=message.title, body=message.body), data=message.data)
      try:
        batch = messaging.send_each_for_multicast(multicast, dry_run=self._dry_run, app=self._app)
      except firebase_exceptions.FirebaseError as exc:
        raise NotificationProviderError(f"FCM multicast failed: {exc}") from exc

      success += batch.success_count
      failure += batch.failure_count
      for token, response in zip(chunk, batch.responses, strict=True):
        if not response.success and isinstance(response.exception, messaging.UnregisteredError | messaging.SenderIdMismatchError):
          invalid.append(token)

    if failure:
      logger.warning("FCM multicast partial failure success=%d failure=%d invalid=%d", success, failure, len(invalid))
    return PushResult(success_count=success, failure_count=failure, invalid_tokens=invalid)


class NullPushSender(PushSender):
  """No-op push sender used when push notifications are disabled or unconfigured."""

  def send(self, message: PushMessage) -> PushResult:
    """Drop the notification while recording a debug log."""
    logger.debug("Push notifications disabled; dropping push tokens=%d title=%s", len(message.tokens), message.title)
    return PushResult()
