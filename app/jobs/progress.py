"""Progress milestones and status messages for generation jobs."""

from __future__ import annotations

STARTED = 10
GENERATING = 50
FINALIZING = 90
COMPLETED = 100


def clamp_progress(current: int, requested: int) -> int:
  """Progress only moves forward and stays within 0..100."""
  return max(current, min(max(requested, 0), COMPLETED))


def progress_message(progress: int) -> str:
  if progress >= FINALIZING:
    return "Finalizing plan..."
  if progress >= GENERATING:
    return "Generating exercises..."
  if progress >= STARTED:
    return "Analyzing your profile..."
  return "Starting generation..."
