from __future__ import annotations

from fastapi import APIRouter, Depends

from app.api.deps import get_generation_service
from app.api.models import UserResponse, UserUpsertRequest
from app.schema.generation import SubscriptionPlan
from app.services.generations import GenerationService

router = APIRouter()


@router.put("/{user_id}", response_model=UserResponse)
async def upsert_user(user_id: str, request: UserUpsertRequest, service: GenerationService = Depends(get_generation_service)) -> UserResponse:  # noqa: B008
  """Create or update a profile; the plan sets the user's quota limits."""
  entry = await service.register_user(user_id, language=request.language, plan=request.plan)
  return UserResponse(user_id=entry.user_id, language=entry.language, plan=SubscriptionPlan(entry.plan))
