"""Thread-safe in-process store used for local development and tests."""

from __future__ import annotations

import threading
import uuid
from copy import deepcopy
from dataclasses import replace
from datetime import date, datetime, timezone
from typing import Optional, Sequence

from ..models.domain import Garage, JobStatus, OptimizationJob, Ticket, WorkEstimate
from .base import RouteStore


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class InMemoryRouteStore(RouteStore):
    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._garages: dict[str, Garage] = {}
        self._tickets: dict[str, Ticket] = {}
        self._estimates: dict[str, WorkEstimate] = {}
        self._jobs: dict[str, OptimizationJob] = {}

    # Seeding helpers

    def add_garage(self, garage: Garage) -> Garage:
        with self._lock:
            self._garages[garage.id] = garage
        return garage

    def add_ticket(self, ticket: Ticket) -> Ticket:
        with self._lock:
            self._tickets[ticket.ticket_id] = ticket
        return ticket

    # Garages / tickets

    def get_active_garage(self, garage_id: str) -> Optional[Garage]:
        with self._lock:
            garage = self._garages.get(garage_id)
        if garage is None or not garage.is_active:
            return None
        return garage

    def get_tickets(self, ticket_ids: Sequence[str]) -> list[Ticket]:
        with self._lock:
            return [self._tickets[tid] for tid in dict.fromkeys(ticket_ids) if tid in self._tickets]

    def get_tickets_for_date(self, service_date: date) -> list[Ticket]:
        with self._lock:
            tickets = list(self._tickets.values())
        return [
            ticket
            for ticket in tickets
            if ticket.appointment is not None and ticket.appointment.date == service_date
        ]

    # Work estimates

    def get_estimate(self, ticket_id: str) -> Optional[WorkEstimate]:
        with self._lock:
            return self._estimates.get(ticket_id)

    def get_estimates(self, ticket_ids: Sequence[str]) -> dict[str, WorkEstimate]:
        with self._lock:
            return {tid: self._estimates[tid] for tid in ticket_ids if tid in self._estimates}

    def upsert_estimate(
        self, ticket_id: str, estimated_minutes: int, notes: Optional[str]
    ) -> tuple[WorkEstimate, bool]:
        now = _utcnow()
        with self._lock:
            existing = self._estimates.get(ticket_id)
            if existing is not None:
                updated = replace(existing, estimated_minutes=estimated_minutes, notes=notes, updated_at=now)
                self._estimates[ticket_id] = updated
                return updated, False
            created = WorkEstimate(
                id=str(uuid.uuid4()),
                ticket_id=ticket_id,
                estimated_minutes=estimated_minutes,
                notes=notes,
                created_at=now,
                updated_at=now,
            )
            self._estimates[ticket_id] = created
            return created, True

    def delete_estimate(self, ticket_id: str) -> bool:
        with self._lock:
            return self._estimates.pop(ticket_id, None) is not None

    # Jobs

    def insert_job(self, job: OptimizationJob) -> OptimizationJob:
        with self._lock:
            stored = replace(job, created_at=job.created_at or _utcnow())
            self._jobs[stored.id] = stored
            return deepcopy(stored)

    def get_job(self, job_id: str) -> Optional[OptimizationJob]:
        with self._lock:
            job = self._jobs.get(job_id)
            return deepcopy(job) if job is not None else None

    def claim_job(self, job_id: str, worker_id: str, now: datetime) -> bool:
        with self._lock:
            job = self._jobs.get(job_id)
            if job is None or job.status is not JobStatus.PENDING:
                return False
            job.status = JobStatus.PROCESSING
            job.claimed_by = worker_id
            job.started_at = now
            return True

    def complete_job(self, job_id: str, worker_id: str, result: dict, now: datetime) -> bool:
        with self._lock:
            job = self._jobs.get(job_id)
            if job is None or job.status is not JobStatus.PROCESSING or job.claimed_by != worker_id:
                return False
            job.status = JobStatus.COMPLETED
            job.result = deepcopy(result)
            job.completed_at = now
            return True

    def fail_job(self, job_id: str, worker_id: Optional[str], error: dict, now: datetime) -> bool:
        with self._lock:
            job = self._jobs.get(job_id)
            if job is None or job.status is not JobStatus.PROCESSING:
                return False
            if worker_id is not None and job.claimed_by != worker_id:
                return False
            job.status = JobStatus.FAILED
            job.error = dict(error)
            job.completed_at = now
            return True

    def list_pending_job_ids(self, limit: int) -> list[str]:
        with self._lock:
            pending = [job for job in self._jobs.values() if job.status is JobStatus.PENDING]
        pending.sort(key=lambda job: (job.created_at or _utcnow(), job.id))
        return [job.id for job in pending[:limit]]

    def list_stale_job_ids(self, started_before: datetime) -> list[str]:
        with self._lock:
            return [
                job.id
                for job in self._jobs.values()
                if job.status is JobStatus.PROCESSING
                and job.started_at is not None
                and job.started_at < started_before
            ]
