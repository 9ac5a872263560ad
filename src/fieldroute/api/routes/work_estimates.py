"""Work estimate endpoints."""

from __future__ import annotations

from fastapi import APIRouter, status

from ...schemas.work_estimates import (
    BulkUpsertRequest,
    BulkUpsertResponse,
    DateEstimatesResponse,
    DeleteResponse,
    EstimateResponse,
    UpsertResponse,
    WorkEstimateUpsert,
)
from ..deps import WorkEstimateServiceDep

router = APIRouter(prefix="/work-estimates", tags=["work-estimates"])


@router.get("/ticket/{ticket_id}", response_model=EstimateResponse, status_code=status.HTTP_200_OK)
def get_by_ticket(ticket_id: str, service: WorkEstimateServiceDep) -> EstimateResponse:
    return EstimateResponse(estimate=service.get_by_ticket(ticket_id))


@router.get("/date/{date}", response_model=DateEstimatesResponse, status_code=status.HTTP_200_OK)
def get_by_date(date: str, service: WorkEstimateServiceDep) -> DateEstimatesResponse:
    return DateEstimatesResponse(date=date, estimates=service.get_by_date(date))


@router.post("", response_model=UpsertResponse, status_code=status.HTTP_200_OK)
def upsert(payload: WorkEstimateUpsert, service: WorkEstimateServiceDep) -> UpsertResponse:
    estimate, is_new = service.upsert(payload)
    return UpsertResponse(estimate=estimate, is_new=is_new)


@router.post("/bulk", response_model=BulkUpsertResponse, status_code=status.HTTP_200_OK)
def bulk_upsert(payload: BulkUpsertRequest, service: WorkEstimateServiceDep) -> BulkUpsertResponse:
    return service.bulk_upsert(payload.estimates)


@router.delete("/ticket/{ticket_id}", response_model=DeleteResponse, status_code=status.HTTP_200_OK)
def delete_by_ticket(ticket_id: str, service: WorkEstimateServiceDep) -> DeleteResponse:
    return DeleteResponse(message=service.delete_by_ticket(ticket_id))
