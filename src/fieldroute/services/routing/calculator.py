"""Timing for a user-fixed visit order."""

from __future__ import annotations

import logging
from typing import Any

from ...config import settings
from ...persistence.base import RouteStore
from ...schemas.common import parse_model
from ...schemas.routing import CalculateRequest, CalculateResponse
from ..travel.provider import TravelTimeProvider
from .models import Leg, SkippedTicket, Stop
from .optimizer import build_summary, resolve_garage, route_to_model
from .timeline import build_route

logger = logging.getLogger(__name__)


class RouteCalculator:
    """Compute arrival times and totals without reordering the stops."""

    def __init__(self, store: RouteStore, provider: TravelTimeProvider) -> None:
        self.store = store
        self.provider = provider

    def calculate(self, payload: Any) -> CalculateResponse:
        request = parse_model(CalculateRequest, payload)
        start_time = request.start_time or settings.default_start_time
        garage = resolve_garage(self.store, request.garage_id)

        # A ticket may be visited more than once; only the lookups are deduplicated.
        unique_ids = list(dict.fromkeys(request.ticket_ids))
        found = {ticket.ticket_id: ticket for ticket in self.store.get_tickets(unique_ids)}
        skipped = [SkippedTicket(ticket_id=tid, reason="not_found") for tid in unique_ids if tid not in found]
        if skipped:
            logger.warning(f"Calculate skipping unknown tickets: {', '.join(item.ticket_id for item in skipped)}")

        estimates = self.store.get_estimates([tid for tid in unique_ids if tid in found])
        stops = [
            Stop(
                ticket=found[tid],
                estimated_minutes=estimates[tid].estimated_minutes if tid in estimates else 0,
                estimate_missing=tid not in estimates,
            )
            for tid in request.ticket_ids
            if tid in found
        ]

        # One matrix node for the garage and for each distinct located ticket.
        points = [(garage.latitude, garage.longitude)]
        node_of: dict[str, int] = {}
        for stop in stops:
            if stop.location is not None and stop.ticket_id not in node_of:
                node_of[stop.ticket_id] = len(points)
                points.append(stop.location)
        matrix = self.provider.matrix(points) if len(points) > 1 else None

        legs: list[Leg] = []
        position = 0
        for stop in stops:
            node = node_of.get(stop.ticket_id)
            if node is None:
                # Without coordinates the vehicle is assumed to stay where it was.
                legs.append(Leg(seconds=settings.unlocated_stop_travel_minutes * 60.0, meters=0.0, estimated=True))
                continue
            legs.append(Leg(seconds=matrix.durations[position][node], meters=matrix.distances[position][node]))
            position = node

        return_leg = None
        if matrix is not None and position != 0:
            return_leg = Leg(seconds=matrix.durations[position][0], meters=matrix.distances[position][0])

        route = build_route(1, stops, legs, return_leg, start_time)
        return CalculateResponse(
            route=route_to_model(route),
            summary=build_summary(garage, [route], start_time, skipped),
        )
