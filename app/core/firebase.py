import logging
from pathlib import Path

import firebase_admin
from firebase_admin import credentials

from app.config import Settings

logger = logging.getLogger(__name__)


def firebase_ready() -> bool:
  """True once a default Firebase app exists in this process."""
  return bool(firebase_admin._apps)


def initialize_firebase(settings: Settings) -> bool:
  """Set up the default Firebase app for FCM; returns whether push can be delivered."""
  if firebase_ready():
    return True

  if not settings.firebase_project_id:
    logger.warning("Push enabled without FIREBASE_PROJECT_ID; notifications will be dropped.")
    return False

  options = {"projectId": settings.firebase_project_id}
  key_path = settings.firebase_service_account_json_path
  try:
    if key_path:
      if not Path(key_path).is_file():
        logger.error("Firebase service account file not found path=%s", key_path)
        return False
      firebase_admin.initialize_app(credentials.Certificate(key_path), options)
    else:
      # Application Default Credentials on Cloud Run and GKE.
      firebase_admin.initialize_app(options=options)
  except (ValueError, OSError) as exc:
    logger.error("Firebase initialization failed project=%s error=%s", settings.firebase_project_id, exc)
    return False

  logger.info("Firebase initialized project=%s", settings.firebase_project_id)
  return True
