"""Multi-route optimization for a garage's daily tickets."""

from __future__ import annotations

import logging
from dataclasses import asdict
from datetime import date, datetime
from typing import Any, Optional, Sequence

from ...config import settings
from ...errors import NotFound, ValidationError
from ...models.domain import Garage, Ticket
from ...persistence.base import RouteStore
from ...schemas.common import parse_model
from ...schemas.routing import (
    BalanceMetricsModel,
    OptimizeRequest,
    OptimizeResponse,
    RouteModel,
    RouteSummaryModel,
    SkippedTicketModel,
    StartLocationModel,
)
from ..travel.provider import TravelMatrix, TravelTimeProvider
from .clustering import balance_metrics, partition_stops
from .models import BalanceMetrics, Leg, PlannedRoute, SkippedTicket, Stop
from .sequencing import sequence_stops
from .solver import solve_vrp
from .timeline import build_route, format_minutes, parse_hhmm

logger = logging.getLogger(__name__)


def route_to_model(route: PlannedRoute) -> RouteModel:
    return RouteModel(stop_count=route.stop_count, **asdict(route))


def build_summary(
    garage: Garage,
    routes: Sequence[PlannedRoute],
    start_time: str,
    skipped: Sequence[SkippedTicket] = (),
    balance_mode: Optional[str] = None,
    balance: Optional[BalanceMetrics] = None,
) -> RouteSummaryModel:
    end_minutes = max((parse_hhmm(route.end_time) for route in routes), default=parse_hhmm(start_time))
    return RouteSummaryModel(
        total_routes=len(routes),
        total_stops=sum(route.stop_count for route in routes),
        total_distance=round(sum(route.distance_meters for route in routes), 1),
        total_duration=round(sum(route.duration_minutes for route in routes), 1),
        total_travel_minutes=round(sum(route.travel_minutes for route in routes), 1),
        total_work_minutes=round(sum(route.work_minutes for route in routes), 1),
        start_time=format_minutes(parse_hhmm(start_time)),
        end_time=format_minutes(end_minutes),
        overtime_stops=sum(route.overtime_stops for route in routes),
        start_location=StartLocationModel(
            garage_id=garage.id,
            name=garage.name,
            latitude=garage.latitude,
            longitude=garage.longitude,
        ),
        skipped=[SkippedTicketModel(**asdict(item)) for item in skipped],
        balance_mode=balance_mode,
        balance=BalanceMetricsModel(**asdict(balance)) if balance is not None else None,
    )


def resolve_garage(store: RouteStore, garage_id: str) -> Garage:
    garage = store.get_active_garage(garage_id)
    if garage is None:
        raise NotFound(f"Garage {garage_id} not found or inactive")
    return garage


def departure_at(service_date: Optional[date], start_time: str) -> Optional[datetime]:
    if service_date is None:
        return None
    minutes = parse_hhmm(start_time)
    return datetime(service_date.year, service_date.month, service_date.day, minutes // 60, minutes % 60)


class RouteOptimizer:
    """Resolve stops, partition them into routes and order each route."""

    def __init__(
        self,
        store: RouteStore,
        provider: TravelTimeProvider,
        *,
        strategy: str | None = None,
        two_opt: bool | None = None,
    ) -> None:
        self.store = store
        self.provider = provider
        self.strategy = strategy or settings.optimizer_strategy
        self.two_opt = settings.optimizer_two_opt if two_opt is None else two_opt

    def _candidate_tickets(
        self, request: OptimizeRequest, service_date: date
    ) -> tuple[list[Ticket], list[SkippedTicket]]:
        if not request.ticket_ids:
            tickets = self.store.get_tickets_for_date(service_date)
            return sorted(tickets, key=lambda ticket: ticket.ticket_id), []
        requested = list(dict.fromkeys(request.ticket_ids))
        found = {ticket.ticket_id: ticket for ticket in self.store.get_tickets(requested)}
        skipped = [SkippedTicket(ticket_id=tid, reason="not_found") for tid in requested if tid not in found]
        return [found[tid] for tid in requested if tid in found], skipped

    def resolve_stops(
        self, request: OptimizeRequest, service_date: date
    ) -> tuple[list[Stop], list[SkippedTicket]]:
        tickets, skipped = self._candidate_tickets(request, service_date)
        estimates = self.store.get_estimates([ticket.ticket_id for ticket in tickets])
        stops: list[Stop] = []
        for ticket in tickets:
            if not ticket.has_location:
                skipped.append(SkippedTicket(ticket_id=ticket.ticket_id, reason="no_location"))
            elif ticket.ticket_id not in estimates:
                skipped.append(SkippedTicket(ticket_id=ticket.ticket_id, reason="no_estimate"))
            else:
                stops.append(Stop(ticket=ticket, estimated_minutes=estimates[ticket.ticket_id].estimated_minutes))
        if skipped:
            logger.warning(
                f"Skipping {len(skipped)} tickets for {service_date}: "
                + ", ".join(f"{item.ticket_id} ({item.reason})" for item in skipped)
            )
        return stops, skipped

    def _greedy_groups(
        self, stops: Sequence[Stop], matrix: TravelMatrix, garage: Garage, request: OptimizeRequest
    ) -> list[list[int]]:
        index_of = {stop.ticket_id: position for position, stop in enumerate(stops, start=1)}
        ids = {position: stop.ticket_id for position, stop in enumerate(stops, start=1)}
        groups = partition_stops(
            stops,
            max_per_route=request.max_per_route,
            origin=(garage.latitude, garage.longitude),
            mode=request.balance_mode,
        )
        return [
            sequence_stops([index_of[stop.ticket_id] for stop in group], matrix.durations, ids, improve=self.two_opt)
            for group in groups
        ]

    def _plan_groups(
        self, stops: Sequence[Stop], matrix: TravelMatrix, garage: Garage, request: OptimizeRequest
    ) -> list[list[int]]:
        if self.strategy == "ortools":
            groups = solve_vrp(matrix.durations, max_per_route=request.max_per_route)
            if groups is not None:
                return groups
            logger.warning("Falling back to greedy sequencing")
        return self._greedy_groups(stops, matrix, garage, request)

    def optimize(self, payload: Any) -> OptimizeResponse:
        request = parse_model(OptimizeRequest, payload)
        service_date = date.fromisoformat(request.date)
        start_time = request.start_time or settings.default_start_time

        garage = resolve_garage(self.store, request.garage_id)
        stops, skipped = self.resolve_stops(request, service_date)

        if not stops:
            logger.info(f"No routable tickets for garage {garage.id} on {service_date}")
            return OptimizeResponse(
                routes=[],
                summary=build_summary(garage, [], start_time, skipped, request.balance_mode),
            )
        if len(stops) > settings.max_stops_per_request:
            raise ValidationError(
                f"Too many stops: {len(stops)} (maximum {settings.max_stops_per_request} per request)"
            )

        points = [(garage.latitude, garage.longitude), *(stop.location for stop in stops)]
        matrix = self.provider.matrix(points, departure_at(service_date, start_time))
        groups = self._plan_groups(stops, matrix, garage, request)

        routes: list[PlannedRoute] = []
        for number, order in enumerate(groups, start=1):
            legs = []
            previous = 0
            for node in order:
                legs.append(Leg(seconds=matrix.durations[previous][node], meters=matrix.distances[previous][node]))
                previous = node
            return_leg = Leg(seconds=matrix.durations[previous][0], meters=matrix.distances[previous][0])
            routes.append(
                build_route(number, [stops[node - 1] for node in order], legs, return_leg, start_time)
            )

        balance = None
        if len(groups) > 1:
            balance = balance_metrics([[stops[node - 1] for node in order] for order in groups])

        logger.info(
            f"Optimized {len(stops)} stops into {len(routes)} routes for garage {garage.id} on {service_date}"
        )
        return OptimizeResponse(
            routes=[route_to_model(route) for route in routes],
            summary=build_summary(garage, routes, start_time, skipped, request.balance_mode, balance),
        )
