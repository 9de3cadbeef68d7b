from __future__ import annotations

from fastapi import APIRouter, Depends, Query, status

from app.ai.schemas import GenerationResult
from app.api.deps import get_generation_service
from app.api.models import ActiveJobResponse, GenerationSubmitRequest, JobCreateResponse, JobStatusResponse
from app.services.generations import GenerationService

router = APIRouter()


@router.post("", response_model=JobCreateResponse, status_code=status.HTTP_202_ACCEPTED)
async def submit_generation(request: GenerationSubmitRequest, service: GenerationService = Depends(get_generation_service)) -> JobCreateResponse:  # noqa: B008
  """Admit a generation request and queue it for background processing."""
  job_id = await service.submit(request.user_id, request.category, request.payload)
  return JobCreateResponse(job_id=job_id)


@router.get("", response_model=list[ActiveJobResponse])
async def list_active_generations(user_id: str = Query(min_length=1, max_length=128), service: GenerationService = Depends(get_generation_service)) -> list[ActiveJobResponse]:  # noqa: B008
  """List a user's queued and active jobs with progress messages."""
  records = await service.active_jobs(user_id)
  return [ActiveJobResponse.from_record(record) for record in records]


@router.get("/{job_id}", response_model=JobStatusResponse)
async def get_generation_status(job_id: str, service: GenerationService = Depends(get_generation_service)) -> JobStatusResponse:  # noqa: B008
  """Return the current state of a generation job."""
  record = await service.status(job_id)
  return JobStatusResponse.from_record(record)


@router.get("/{job_id}/artifact", response_model=GenerationResult)
async def get_generation_artifact(job_id: str, service: GenerationService = Depends(get_generation_service)) -> GenerationResult:  # noqa: B008
  """Return the validated artifact of a completed job, tagged by category."""
  return await service.artifact(job_id)
