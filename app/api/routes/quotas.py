from __future__ import annotations

from fastapi import APIRouter, Depends

from app.api.deps import get_generation_service
from app.api.models import QuotaUsage
from app.services.generations import GenerationService

router = APIRouter()


@router.get("/{user_id}", response_model=dict[str, QuotaUsage])
async def get_quota_stats(user_id: str, service: GenerationService = Depends(get_generation_service)) -> dict[str, QuotaUsage]:  # noqa: B008
  """Return used, limit and remaining generations per category for the current period."""
  stats = await service.quota_stats(user_id)
  return {category: QuotaUsage(**usage) for category, usage in stats.items()}
