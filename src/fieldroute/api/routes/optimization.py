"""Route optimization endpoints."""

from __future__ import annotations

from fastapi import APIRouter, BackgroundTasks, status

from ...config import settings
from ...schemas.jobs import AsyncOptimizeAccepted
from ...schemas.routing import CalculateRequest, CalculateResponse, OptimizeRequest, OptimizeResponse
from ...services.routing.service import calculate_route, optimize_routes
from ..deps import JobManagerDep, ProviderDep, StoreDep

router = APIRouter(tags=["routing"])


@router.post("/optimize", response_model=OptimizeResponse, status_code=status.HTTP_200_OK)
def optimize(payload: OptimizeRequest, store: StoreDep, provider: ProviderDep) -> OptimizeResponse:
    return optimize_routes(payload, store=store, provider=provider)


@router.post("/optimize/async", response_model=AsyncOptimizeAccepted, status_code=status.HTTP_200_OK)
def optimize_async(
    payload: OptimizeRequest, manager: JobManagerDep, background_tasks: BackgroundTasks
) -> AsyncOptimizeAccepted:
    accepted = manager.enqueue(payload)
    if settings.job_autostart:
        background_tasks.add_task(manager.process_job, accepted.job_id)
    return accepted


@router.post("/calculate", response_model=CalculateResponse, status_code=status.HTTP_200_OK)
def calculate(payload: CalculateRequest, store: StoreDep, provider: ProviderDep) -> CalculateResponse:
    return calculate_route(payload, store=store, provider=provider)
