"""Storage contract for garages, tickets, work estimates and optimization jobs."""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import date, datetime
from typing import Iterable, Optional, Sequence

from ..models.domain import Garage, OptimizationJob, Ticket, WorkEstimate


class RouteStore(ABC):
    """Contract for storage backends.

    Garages and tickets are read-only here; they are owned by other services.
    Job rows are only mutated through the conditional transition methods so
    that each job moves ``pending -> processing -> completed|failed`` once.
    """

    # Garages / tickets

    @abstractmethod
    def get_active_garage(self, garage_id: str) -> Optional[Garage]:
        raise NotImplementedError

    @abstractmethod
    def get_tickets(self, ticket_ids: Sequence[str]) -> list[Ticket]:
        """Return the tickets that exist, in no particular order."""
        raise NotImplementedError

    @abstractmethod
    def get_tickets_for_date(self, service_date: date) -> list[Ticket]:
        raise NotImplementedError

    def existing_ticket_ids(self, ticket_ids: Iterable[str]) -> set[str]:
        return {ticket.ticket_id for ticket in self.get_tickets(list(ticket_ids))}

    # Work estimates

    @abstractmethod
    def get_estimate(self, ticket_id: str) -> Optional[WorkEstimate]:
        raise NotImplementedError

    @abstractmethod
    def get_estimates(self, ticket_ids: Sequence[str]) -> dict[str, WorkEstimate]:
        raise NotImplementedError

    @abstractmethod
    def upsert_estimate(
        self, ticket_id: str, estimated_minutes: int, notes: Optional[str]
    ) -> tuple[WorkEstimate, bool]:
        """Create or update the ticket's estimate; the flag is True on create."""
        raise NotImplementedError

    @abstractmethod
    def delete_estimate(self, ticket_id: str) -> bool:
        """Delete the ticket's estimate; returns whether a row existed."""
        raise NotImplementedError

    # Jobs

    @abstractmethod
    def insert_job(self, job: OptimizationJob) -> OptimizationJob:
        raise NotImplementedError

    @abstractmethod
    def get_job(self, job_id: str) -> Optional[OptimizationJob]:
        raise NotImplementedError

    @abstractmethod
    def claim_job(self, job_id: str, worker_id: str, now: datetime) -> bool:
        """Move a pending job to processing. False if it was not pending."""
        raise NotImplementedError

    @abstractmethod
    def complete_job(self, job_id: str, worker_id: str, result: dict, now: datetime) -> bool:
        raise NotImplementedError

    @abstractmethod
    def fail_job(self, job_id: str, worker_id: Optional[str], error: dict, now: datetime) -> bool:
        """Mark a processing job failed.

        With ``worker_id`` set the write only applies to the claiming worker.
        ``None`` is reserved for the stale-job reaper.
        """
        raise NotImplementedError

    @abstractmethod
    def list_pending_job_ids(self, limit: int) -> list[str]:
        """Oldest pending jobs first."""
        raise NotImplementedError

    @abstractmethod
    def list_stale_job_ids(self, started_before: datetime) -> list[str]:
        raise NotImplementedError

    def health(self) -> dict:
        return {"backend": type(self).__name__, "connected": True}
