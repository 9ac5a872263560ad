"""Supabase-backed store for tickets, estimates and optimization jobs."""

from __future__ import annotations

import logging
from datetime import date, datetime, timezone
from typing import Any, Optional, Sequence

from supabase import Client

from ..errors import StorageError
from ..models.domain import Appointment, Garage, JobStatus, OptimizationJob, Ticket, WorkEstimate
from .base import RouteStore

logger = logging.getLogger(__name__)

GARAGES_TABLE = "fleet_garages"
TICKETS_TABLE = "main_tickets"
ESTIMATES_TABLE = "child_ticket_work_estimates"
JOBS_TABLE = "main_route_optimization_jobs"

_TICKET_COLUMNS = """
    id,
    ticket_code,
    main_sites (name, latitude, longitude, address_detail),
    main_appointments (appointment_date, appointment_time_start, appointment_time_end, appointment_type),
    ref_ticket_work_types (name)
"""
# Inner join so that the date filter applies to the parent rows.
_TICKET_COLUMNS_BY_DATE = _TICKET_COLUMNS.replace("main_appointments (", "main_appointments!inner (")

UNIQUE_VIOLATION = "23505"


def _parse_timestamp(value: Any) -> Optional[datetime]:
    if not value:
        return None
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value).replace("Z", "+00:00"))


def _parse_date(value: Any) -> Optional[date]:
    if not value:
        return None
    return date.fromisoformat(str(value)[:10])


def _first(value: Any) -> Optional[dict]:
    """Embedded relations come back as an object or a one-element list."""
    if isinstance(value, list):
        return value[0] if value else None
    return value


def _trim_time(value: Any) -> Optional[str]:
    # Postgres `time` columns serialize as HH:MM:SS.
    if not value:
        return None
    return str(value)[:5]


def _row_to_ticket(row: dict) -> Ticket:
    site = _first(row.get("main_sites")) or {}
    appointment_row = _first(row.get("main_appointments"))
    work_type = _first(row.get("ref_ticket_work_types")) or {}
    appointment = None
    if appointment_row:
        appointment = Appointment(
            date=_parse_date(appointment_row.get("appointment_date")),
            time_start=_trim_time(appointment_row.get("appointment_time_start")),
            time_end=_trim_time(appointment_row.get("appointment_time_end")),
            type=appointment_row.get("appointment_type"),
        )
    return Ticket(
        ticket_id=row["id"],
        ticket_code=row.get("ticket_code"),
        site_name=site.get("name"),
        address=site.get("address_detail"),
        work_type_name=work_type.get("name"),
        latitude=site.get("latitude"),
        longitude=site.get("longitude"),
        appointment=appointment,
    )


def _row_to_estimate(row: dict) -> WorkEstimate:
    return WorkEstimate(
        id=row["id"],
        ticket_id=row["ticket_id"],
        estimated_minutes=int(row["estimated_minutes"]),
        notes=row.get("notes"),
        created_at=_parse_timestamp(row.get("created_at")),
        updated_at=_parse_timestamp(row.get("updated_at")),
    )


def _row_to_job(row: dict) -> OptimizationJob:
    payload = row.get("request_payload") or {}
    error = None
    if row.get("error_message"):
        error = {"code": row.get("error_code") or "internal_error", "message": row["error_message"]}
    return OptimizationJob(
        id=row["id"],
        status=JobStatus(row["status"]),
        garage_id=payload.get("garage_id", ""),
        date=payload.get("date", ""),
        input_params=payload,
        result=row.get("result_payload"),
        error=error,
        created_at=_parse_timestamp(row.get("created_at")),
        started_at=_parse_timestamp(row.get("started_at")),
        completed_at=_parse_timestamp(row.get("completed_at")),
        claimed_by=row.get("claimed_by"),
    )


class SupabaseRouteStore(RouteStore):
    def __init__(self, client: Client) -> None:
        self.client = client

    def _execute(self, query, action: str):
        try:
            return query.execute()
        except Exception as exc:
            logger.error(f"Supabase {action} failed: {exc}")
            raise StorageError(f"Failed to {action}") from exc

    # Garages / tickets

    def get_active_garage(self, garage_id: str) -> Optional[Garage]:
        response = self._execute(
            self.client.table(GARAGES_TABLE)
            .select("id, name, latitude, longitude, radius_meters, is_active")
            .eq("id", garage_id)
            .eq("is_active", True)
            .limit(1),
            "load garage",
        )
        rows = response.data or []
        if not rows:
            return None
        row = rows[0]
        return Garage(
            id=row["id"],
            name=row.get("name") or "",
            latitude=float(row["latitude"]),
            longitude=float(row["longitude"]),
            radius_meters=row.get("radius_meters"),
            is_active=bool(row.get("is_active", True)),
        )

    def get_tickets(self, ticket_ids: Sequence[str]) -> list[Ticket]:
        if not ticket_ids:
            return []
        response = self._execute(
            self.client.table(TICKETS_TABLE).select(_TICKET_COLUMNS).in_("id", list(dict.fromkeys(ticket_ids))),
            "load tickets",
        )
        return [_row_to_ticket(row) for row in response.data or []]

    def get_tickets_for_date(self, service_date: date) -> list[Ticket]:
        response = self._execute(
            self.client.table(TICKETS_TABLE)
            .select(_TICKET_COLUMNS_BY_DATE)
            .eq("main_appointments.appointment_date", service_date.isoformat()),
            "load tickets for date",
        )
        return [_row_to_ticket(row) for row in response.data or []]

    def existing_ticket_ids(self, ticket_ids) -> set[str]:
        ids = list(dict.fromkeys(ticket_ids))
        if not ids:
            return set()
        response = self._execute(
            self.client.table(TICKETS_TABLE).select("id").in_("id", ids),
            "check tickets",
        )
        return {row["id"] for row in response.data or []}

    # Work estimates

    def get_estimate(self, ticket_id: str) -> Optional[WorkEstimate]:
        response = self._execute(
            self.client.table(ESTIMATES_TABLE).select("*").eq("ticket_id", ticket_id).limit(1),
            "load work estimate",
        )
        rows = response.data or []
        return _row_to_estimate(rows[0]) if rows else None

    def get_estimates(self, ticket_ids: Sequence[str]) -> dict[str, WorkEstimate]:
        if not ticket_ids:
            return {}
        response = self._execute(
            self.client.table(ESTIMATES_TABLE).select("*").in_("ticket_id", list(dict.fromkeys(ticket_ids))),
            "load work estimates",
        )
        estimates = (_row_to_estimate(row) for row in response.data or [])
        return {estimate.ticket_id: estimate for estimate in estimates}

    def _update_estimate(self, ticket_id: str, estimated_minutes: int, notes: Optional[str]) -> WorkEstimate:
        response = self._execute(
            self.client.table(ESTIMATES_TABLE)
            .update({
                "estimated_minutes": estimated_minutes,
                "notes": notes,
                "updated_at": datetime.now(timezone.utc).isoformat(),
            })
            .eq("ticket_id", ticket_id),
            "update work estimate",
        )
        return _row_to_estimate(response.data[0])

    def upsert_estimate(
        self, ticket_id: str, estimated_minutes: int, notes: Optional[str]
    ) -> tuple[WorkEstimate, bool]:
        if self.get_estimate(ticket_id) is not None:
            return self._update_estimate(ticket_id, estimated_minutes, notes), False
        try:
            response = (
                self.client.table(ESTIMATES_TABLE)
                .insert({"ticket_id": ticket_id, "estimated_minutes": estimated_minutes, "notes": notes})
                .execute()
            )
        except Exception as exc:
            # A concurrent writer created the row between our read and insert.
            if getattr(exc, "code", None) == UNIQUE_VIOLATION:
                return self._update_estimate(ticket_id, estimated_minutes, notes), False
            logger.error(f"Supabase insert work estimate failed: {exc}")
            raise StorageError("Failed to insert work estimate") from exc
        return _row_to_estimate(response.data[0]), True

    def delete_estimate(self, ticket_id: str) -> bool:
        response = self._execute(
            self.client.table(ESTIMATES_TABLE).delete().eq("ticket_id", ticket_id),
            "delete work estimate",
        )
        return bool(response.data)

    # Jobs

    def insert_job(self, job: OptimizationJob) -> OptimizationJob:
        response = self._execute(
            self.client.table(JOBS_TABLE).insert({
                "id": job.id,
                "status": job.status.value,
                "request_payload": job.input_params,
            }),
            "create optimization job",
        )
        return _row_to_job(response.data[0])

    def get_job(self, job_id: str) -> Optional[OptimizationJob]:
        response = self._execute(
            self.client.table(JOBS_TABLE).select("*").eq("id", job_id).limit(1),
            "load optimization job",
        )
        rows = response.data or []
        return _row_to_job(rows[0]) if rows else None

    def claim_job(self, job_id: str, worker_id: str, now: datetime) -> bool:
        response = self._execute(
            self.client.table(JOBS_TABLE)
            .update({
                "status": JobStatus.PROCESSING.value,
                "started_at": now.isoformat(),
                "claimed_by": worker_id,
            })
            .eq("id", job_id)
            .eq("status", JobStatus.PENDING.value),
            "claim optimization job",
        )
        return bool(response.data)

    def complete_job(self, job_id: str, worker_id: str, result: dict, now: datetime) -> bool:
        response = self._execute(
            self.client.table(JOBS_TABLE)
            .update({
                "status": JobStatus.COMPLETED.value,
                "result_payload": result,
                "completed_at": now.isoformat(),
            })
            .eq("id", job_id)
            .eq("status", JobStatus.PROCESSING.value)
            .eq("claimed_by", worker_id),
            "complete optimization job",
        )
        return bool(response.data)

    def fail_job(self, job_id: str, worker_id: Optional[str], error: dict, now: datetime) -> bool:
        query = (
            self.client.table(JOBS_TABLE)
            .update({
                "status": JobStatus.FAILED.value,
                "error_code": error.get("code"),
                "error_message": error.get("message"),
                "completed_at": now.isoformat(),
            })
            .eq("id", job_id)
            .eq("status", JobStatus.PROCESSING.value)
        )
        if worker_id is not None:
            query = query.eq("claimed_by", worker_id)
        response = self._execute(query, "fail optimization job")
        return bool(response.data)

    def list_pending_job_ids(self, limit: int) -> list[str]:
        response = self._execute(
            self.client.table(JOBS_TABLE)
            .select("id")
            .eq("status", JobStatus.PENDING.value)
            .order("created_at")
            .limit(limit),
            "list pending jobs",
        )
        return [row["id"] for row in response.data or []]

    def list_stale_job_ids(self, started_before: datetime) -> list[str]:
        response = self._execute(
            self.client.table(JOBS_TABLE)
            .select("id")
            .eq("status", JobStatus.PROCESSING.value)
            .lt("started_at", started_before.isoformat()),
            "list stale jobs",
        )
        return [row["id"] for row in response.data or []]

    def health(self) -> dict:
        try:
            self.client.table(JOBS_TABLE).select("id").limit(1).execute()
        except Exception as exc:
            return {"backend": "supabase", "connected": False, "error": str(exc)}
        return {"backend": "supabase", "connected": True}
