"""FastAPI dependencies; tests override these with in-memory doubles."""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends

from ..persistence import get_store
from ..persistence.base import RouteStore
from ..services.jobs.manager import JobManager
from ..services.travel import get_travel_provider
from ..services.travel.provider import TravelTimeProvider
from ..services.work_estimates.service import WorkEstimateService


def get_route_store() -> RouteStore:
    return get_store()


def get_provider() -> TravelTimeProvider:
    return get_travel_provider()


StoreDep = Annotated[RouteStore, Depends(get_route_store)]
ProviderDep = Annotated[TravelTimeProvider, Depends(get_provider)]


def get_job_manager(store: StoreDep, provider: ProviderDep) -> JobManager:
    return JobManager(store, provider)


def get_work_estimate_service(store: StoreDep) -> WorkEstimateService:
    return WorkEstimateService(store)


JobManagerDep = Annotated[JobManager, Depends(get_job_manager)]
WorkEstimateServiceDep = Annotated[WorkEstimateService, Depends(get_work_estimate_service)]
