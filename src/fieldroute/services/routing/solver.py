"""OR-Tools VRP solver integration."""

from __future__ import annotations

import logging
import math
from typing import Sequence

from ortools.constraint_solver import pywrapcp, routing_enums_pb2

from ...config import settings

logger = logging.getLogger(__name__)


def _vehicle_count(stop_count: int, max_per_route: int | None) -> int:
    if not max_per_route:
        return 1
    return max(1, math.ceil(stop_count / max_per_route))


def solve_vrp(
    durations: Sequence[Sequence[float]],
    *,
    max_per_route: int | None,
    time_limit_seconds: int | None = None,
) -> list[list[int]] | None:
    """Capacitated VRP over a duration matrix whose node 0 is the garage.

    Each stop has demand 1 and every vehicle has capacity ``max_per_route``,
    so no route can exceed the ceiling. Returns the visiting order per
    non-empty vehicle as matrix indices, or ``None`` when the solver finds no
    assignment within its time limit.
    """
    node_count = len(durations)
    if node_count < 2:
        return []
    stop_count = node_count - 1
    vehicle_count = _vehicle_count(stop_count, max_per_route)
    capacity = max_per_route or stop_count

    cost_matrix = [[int(round(value)) for value in row] for row in durations]
    manager = pywrapcp.RoutingIndexManager(node_count, vehicle_count, 0)
    routing = pywrapcp.RoutingModel(manager)

    def duration_callback(from_index: int, to_index: int) -> int:
        from_node = manager.IndexToNode(from_index)
        to_node = manager.IndexToNode(to_index)
        return cost_matrix[from_node][to_node]

    transit_callback_index = routing.RegisterTransitCallback(duration_callback)
    routing.SetArcCostEvaluatorOfAllVehicles(transit_callback_index)

    demand_evaluator = lambda index: 0 if manager.IndexToNode(index) == 0 else 1
    demand_callback_index = routing.RegisterUnaryTransitCallback(demand_evaluator)
    routing.AddDimensionWithVehicleCapacity(
        demand_callback_index,
        0,
        [capacity] * vehicle_count,
        True,
        "Capacity",
    )

    search_parameters = pywrapcp.DefaultRoutingSearchParameters()
    search_parameters.first_solution_strategy = getattr(
        routing_enums_pb2.FirstSolutionStrategy, settings.solver_first_solution_strategy
    )
    search_parameters.local_search_metaheuristic = getattr(
        routing_enums_pb2.LocalSearchMetaheuristic, settings.solver_local_search_metaheuristic
    )
    search_parameters.time_limit.FromSeconds(time_limit_seconds or settings.solver_time_limit_seconds)

    assignment = routing.SolveWithParameters(search_parameters)
    if not assignment:
        logger.warning(f"OR-Tools found no solution for {stop_count} stops and {vehicle_count} vehicles")
        return None

    routes: list[list[int]] = []
    for vehicle_id in range(vehicle_count):
        index = routing.Start(vehicle_id)
        order: list[int] = []
        while not routing.IsEnd(index):
            node = manager.IndexToNode(index)
            if node != 0:
                order.append(node)
            index = assignment.Value(routing.NextVar(index))
        if order:
            routes.append(order)
    return routes
