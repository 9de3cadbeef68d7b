"""Localized titles and bodies for generation notifications."""

from __future__ import annotations

from dataclasses import dataclass

from app.notifications.contracts import NotificationOutcome

SUPPORTED_LANGUAGES = ("en", "vi")


@dataclass(frozen=True)
class NotificationTemplate:
  title: str
  body: str


_GENERIC: dict[tuple[NotificationOutcome, str], NotificationTemplate] = {
  ("complete", "en"): NotificationTemplate(title="Your result is ready", body="Open GigaFit to see it."),
  ("complete", "vi"): NotificationTemplate(title="Kết quả của bạn đã sẵn sàng", body="Mở GigaFit để xem."),
  ("error", "en"): NotificationTemplate(title="Generation failed", body="Please try again in a moment."),
  ("error", "vi"): NotificationTemplate(title="Tạo kết quả thất bại", body="Vui lòng thử lại sau ít phút."),
}

TEMPLATES: dict[tuple[NotificationOutcome, str, str], NotificationTemplate] = {
  ("complete", "workout", "en"): NotificationTemplate(title="Workout plan ready", body="Open GigaFit to review your personalized workout plan."),
  ("complete", "workout", "vi"): NotificationTemplate(title="Kế hoạch tập luyện đã sẵn sàng", body="Mở GigaFit để xem kế hoạch tập luyện cá nhân hóa của bạn."),
  ("complete", "meal", "en"): NotificationTemplate(title="Meal plan ready", body="Tap to view your weekly meals and macro breakdown."),
  ("complete", "meal", "vi"): NotificationTemplate(title="Kế hoạch ăn uống đã hoàn tất", body="Chạm để xem thực đơn và macro chi tiết của bạn."),
  ("complete", "inbody-scan", "en"): NotificationTemplate(title="InBody scan analyzed", body="See the latest metrics and insights from your scan."),
  ("complete", "inbody-scan", "vi"): NotificationTemplate(title="Báo cáo InBody đã được phân tích", body="Xem số liệu và nhận xét mới nhất từ báo cáo của bạn."),
  ("complete", "body-photo", "en"): NotificationTemplate(title="Body analysis ready", body="Open the app to review your updated body insights."),
  ("complete", "body-photo", "vi"): NotificationTemplate(title="Phân tích ảnh cơ thể đã sẵn sàng", body="Mở ứng dụng để xem các nhận xét mới nhất về cơ thể."),
  ("error", "workout", "en"): NotificationTemplate(title="Workout plan failed", body="Please try again or contact support if the issue persists."),
  ("error", "workout", "vi"): NotificationTemplate(title="Tạo kế hoạch tập luyện thất bại", body="Vui lòng thử lại hoặc liên hệ hỗ trợ nếu lỗi tiếp tục."),
  ("error", "meal", "en"): NotificationTemplate(title="Meal plan failed", body="Please try generating again in a moment."),
  ("error", "meal", "vi"): NotificationTemplate(title="Tạo kế hoạch ăn uống thất bại", body="Vui lòng thử tạo lại sau ít phút."),
  ("error", "inbody-scan", "en"): NotificationTemplate(title="InBody scan failed", body="Upload the scan again so we can finish the analysis."),
  ("error", "inbody-scan", "vi"): NotificationTemplate(title="Phân tích InBody thất bại", body="Tải lại báo cáo để chúng tôi tiếp tục phân tích."),
  ("error", "body-photo", "en"): NotificationTemplate(title="Body analysis failed", body="Please try uploading another photo."),
  ("error", "body-photo", "vi"): NotificationTemplate(title="Phân tích ảnh cơ thể thất bại", body="Vui lòng thử tải lên ảnh khác."),
}


def resolve_language(language: str | None, default_language: str) -> str:
  normalized = (language or "").strip().lower()[:2]
  if normalized in SUPPORTED_LANGUAGES:
    return normalized
  return default_language if default_language in SUPPORTED_LANGUAGES else "en"


def render_notification(*, outcome: NotificationOutcome, category: str, language: str | None, default_language: str) -> tuple[str, str]:
  """Return (title, body); unknown languages use the default, unknown categories a generic text."""
  lang = resolve_language(language, default_language)
  template = TEMPLATES.get((outcome, category, lang)) or _GENERIC[(outcome, lang)]
  return template.title, template.body
