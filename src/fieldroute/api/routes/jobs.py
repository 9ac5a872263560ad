"""Optimization job status endpoints."""

from __future__ import annotations

from fastapi import APIRouter, status

from ...schemas.jobs import JobStatusResponse
from ..deps import JobManagerDep

router = APIRouter(prefix="/jobs", tags=["jobs"])


@router.get(
    "/{job_id}",
    response_model=JobStatusResponse,
    response_model_exclude_none=True,
    status_code=status.HTTP_200_OK,
)
def get_job(job_id: str, manager: JobManagerDep) -> JobStatusResponse:
    return manager.get_status(job_id)
