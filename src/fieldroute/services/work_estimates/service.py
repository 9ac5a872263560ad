"""Per-ticket work duration estimates."""

from __future__ import annotations

import logging
from typing import Any, Optional

from ...config import settings
from ...errors import NotFound, ValidationError
from ...models.domain import WorkEstimate
from ...persistence.base import RouteStore
from ...schemas.common import is_uuid, parse_calendar_date, parse_model, require_uuid
from ...schemas.work_estimates import (
    BulkUpsertError,
    BulkUpsertResponse,
    TicketEstimateModel,
    WorkEstimateModel,
    WorkEstimateUpsert,
)

logger = logging.getLogger(__name__)


def estimate_to_model(estimate: WorkEstimate) -> WorkEstimateModel:
    return WorkEstimateModel(**estimate.to_dict())


def _minutes_error(value: Any) -> Optional[str]:
    low, high = settings.min_estimated_minutes, settings.max_estimated_minutes
    if value is None:
        return "estimated_minutes is required"
    if isinstance(value, bool) or not isinstance(value, int) or not low <= value <= high:
        return f"estimated_minutes must be between {low} and {high}"
    return None


def _item_error(item: Any) -> Optional[str]:
    """Reason a bulk item is invalid, checked without touching storage."""
    if not isinstance(item, dict):
        return "item must be an object"
    ticket_id = item.get("ticket_id")
    if not ticket_id:
        return "ticket_id is required"
    if not is_uuid(ticket_id):
        return "invalid ticket_id"
    notes = item.get("notes")
    if notes is not None and not isinstance(notes, str):
        return "notes must be a string"
    return _minutes_error(item.get("estimated_minutes"))


class WorkEstimateService:
    def __init__(self, store: RouteStore) -> None:
        self.store = store

    def upsert(self, payload: Any) -> tuple[WorkEstimateModel, bool]:
        """Create or replace the ticket's estimate.

        Out-of-range minutes are rejected, never clamped.
        """
        if isinstance(payload, dict):
            error = _item_error(payload)
            if error:
                raise ValidationError(error)
        request = parse_model(WorkEstimateUpsert, payload)
        if not self.store.existing_ticket_ids([request.ticket_id]):
            raise NotFound(f"Ticket {request.ticket_id} not found")
        estimate, is_new = self.store.upsert_estimate(request.ticket_id, request.estimated_minutes, request.notes)
        logger.info(
            f"{'Created' if is_new else 'Updated'} work estimate for ticket {request.ticket_id}: "
            f"{request.estimated_minutes} min"
        )
        return estimate_to_model(estimate), is_new

    def bulk_upsert(self, items: Any) -> BulkUpsertResponse:
        """Upsert up to ``bulk_upsert_limit`` estimates; bad items are reported, not fatal."""
        limit = settings.bulk_upsert_limit
        if not isinstance(items, list) or not items:
            raise ValidationError("estimates must be a non-empty list")
        if len(items) > limit:
            raise ValidationError(f"At most {limit} estimates per request (got {len(items)})")

        errors: list[BulkUpsertError] = []
        valid: list[tuple[int, dict]] = []
        for index, item in enumerate(items):
            reason = _item_error(item)
            if reason:
                ticket_id = item.get("ticket_id") if isinstance(item, dict) else None
                errors.append(BulkUpsertError(
                    index=index,
                    ticket_id=ticket_id if isinstance(ticket_id, str) else None,
                    reason=reason,
                ))
            else:
                valid.append((index, item))

        existing = self.store.existing_ticket_ids(item["ticket_id"] for _, item in valid)
        created = updated = 0
        for index, item in valid:
            if item["ticket_id"] not in existing:
                errors.append(BulkUpsertError(index=index, ticket_id=item["ticket_id"], reason="not found"))
                continue
            _, is_new = self.store.upsert_estimate(item["ticket_id"], item["estimated_minutes"], item.get("notes"))
            if is_new:
                created += 1
            else:
                updated += 1

        errors.sort(key=lambda error: error.index)
        logger.info(f"Bulk upsert: {created} created, {updated} updated, {len(errors)} errors")
        return BulkUpsertResponse(created=created, updated=updated, errors=errors)

    def get_by_ticket(self, ticket_id: str) -> WorkEstimateModel:
        require_uuid(ticket_id, "ticket_id")
        estimate = self.store.get_estimate(ticket_id)
        if estimate is None:
            raise NotFound(f"No work estimate for ticket {ticket_id}")
        return estimate_to_model(estimate)

    def get_by_date(self, value: str) -> list[TicketEstimateModel]:
        service_date = parse_calendar_date(value)
        tickets = sorted(self.store.get_tickets_for_date(service_date), key=lambda ticket: ticket.ticket_id)
        estimates = self.store.get_estimates([ticket.ticket_id for ticket in tickets])
        return [
            TicketEstimateModel(
                ticket_id=ticket.ticket_id,
                ticket_code=ticket.ticket_code,
                site_name=ticket.site_name,
                work_type_name=ticket.work_type_name,
                appointment_time_start=ticket.appointment.time_start if ticket.appointment else None,
                appointment_time_end=ticket.appointment.time_end if ticket.appointment else None,
                work_estimate=estimate_to_model(estimates[ticket.ticket_id]) if ticket.ticket_id in estimates else None,
            )
            for ticket in tickets
        ]

    def delete_by_ticket(self, ticket_id: str) -> str:
        """Idempotent: deleting a missing estimate succeeds the same way."""
        require_uuid(ticket_id, "ticket_id")
        existed = self.store.delete_estimate(ticket_id)
        logger.debug(f"Deleted work estimate for ticket {ticket_id} (existed={existed})")
        return "Work estimate deleted"
