"""Split stops into per-vehicle groups with a hard stop ceiling.

Groups start from a k-means geographic clustering with
``k = ceil(n / max_per_route)``. The ceiling is then enforced by moving
outliers to the nearest group with room, and an optional workload pass
evens out the minutes of work per route:

* ``geography`` keeps the clustering and only enforces the ceiling.
* ``workload`` repacks every stop with first-fit-decreasing on minutes.
* ``balanced`` moves stops from the busiest to the lightest route until the
  coefficient of variation drops to the target, preferring stops close to
  the receiving group.

Groups are returned nearest-first relative to the origin.
"""

from __future__ import annotations

import logging
import math
from typing import Sequence

import numpy as np
from sklearn.cluster import KMeans

from ...config import settings
from ..geospatial import centroid, haversine_km, to_cartesian_km
from .models import BalanceMetrics, Stop

logger = logging.getLogger(__name__)

MAX_BALANCE_ITERATIONS = 100
# Distance at which a candidate move earns the full distance penalty.
DISTANCE_PENALTY_KM = 100.0
IMPROVEMENT_WEIGHT = 0.7
DISTANCE_WEIGHT = 0.3


def _group_center(group: Sequence[Stop]) -> tuple[float, float] | None:
    if not group:
        return None
    return centroid([stop.location for stop in group])


def _workload(group: Sequence[Stop]) -> float:
    return float(sum(stop.estimated_minutes for stop in group))


def balance_metrics(groups: Sequence[Sequence[Stop]], target_cv: float | None = None) -> BalanceMetrics:
    """Coefficient of variation of per-route work minutes, in percent."""
    target = settings.balance_target_cv if target_cv is None else target_cv
    workloads = [_workload(group) for group in groups]
    if not workloads:
        return BalanceMetrics(coefficient_of_variation=0.0, is_balanced=True)
    values = np.asarray(workloads, dtype=float)
    mean = float(values.mean())
    std = float(values.std())
    cv = (std / mean) * 100.0 if mean > 0 else 0.0
    return BalanceMetrics(
        coefficient_of_variation=round(cv, 1),
        is_balanced=cv <= target,
        workloads=workloads,
        mean_workload=round(mean),
        standard_deviation=round(std),
    )


def enforce_max_per_route(groups: Sequence[Sequence[Stop]], max_per_route: int) -> list[list[Stop]]:
    result = [list(group) for group in groups]
    index = 0
    while index < len(result):
        while len(result[index]) > max_per_route:
            source_center = _group_center(result[index])
            best_target = -1
            best_distance = math.inf
            for j, candidate in enumerate(result):
                if j == index or len(candidate) >= max_per_route:
                    continue
                target_center = _group_center(candidate)
                distance = 0.0 if target_center is None else haversine_km(*source_center, *target_center)
                if distance < best_distance:
                    best_distance = distance
                    best_target = j
            if best_target == -1:
                result.append([])
                best_target = len(result) - 1

            furthest = max(
                range(len(result[index])),
                key=lambda k: (haversine_km(*result[index][k].location, *source_center), -k),
            )
            result[best_target].append(result[index].pop(furthest))
        index += 1
    return [group for group in result if group]


def balance_by_workload(groups: Sequence[Sequence[Stop]], max_per_route: int) -> list[list[Stop]]:
    """First-fit-decreasing: heaviest stop first, into the lightest route with room."""
    stops = [stop for group in groups for stop in group]
    route_count = max(len(groups), math.ceil(len(stops) / max_per_route))
    ordered = sorted(stops, key=lambda stop: (-stop.estimated_minutes, stop.ticket_id))

    routes: list[list[Stop]] = [[] for _ in range(route_count)]
    loads = [0.0] * route_count
    for stop in ordered:
        best = min(
            (i for i in range(route_count) if len(routes[i]) < max_per_route),
            key=lambda i: (loads[i], i),
        )
        routes[best].append(stop)
        loads[best] += stop.estimated_minutes
    return [route for route in routes if route]


def _best_move(source: Sequence[Stop], target: Sequence[Stop], source_load: float, target_load: float) -> int | None:
    target_center = _group_center(target)
    current_gap = source_load - target_load
    best_index = None
    best_score = -math.inf
    for i, stop in enumerate(source):
        minutes = stop.estimated_minutes
        if minutes <= 0:
            continue
        new_gap = abs((source_load - minutes) - (target_load + minutes))
        if new_gap >= current_gap:
            continue
        improvement = (current_gap - new_gap) / current_gap
        distance = 0.0 if target_center is None else haversine_km(*stop.location, *target_center)
        penalty = min(distance / DISTANCE_PENALTY_KM, 1.0)
        score = improvement * IMPROVEMENT_WEIGHT - penalty * DISTANCE_WEIGHT
        if score > best_score:
            best_score = score
            best_index = i
    return best_index


def balance_hybrid(
    groups: Sequence[Sequence[Stop]], max_per_route: int, target_cv: float | None = None
) -> list[list[Stop]]:
    result = enforce_max_per_route(groups, max_per_route)
    if len(result) <= 1:
        return result

    for _ in range(MAX_BALANCE_ITERATIONS):
        if balance_metrics(result, target_cv).is_balanced:
            break
        loads = [_workload(group) for group in result]
        heaviest = loads.index(max(loads))
        lightest = -1
        for i, load in enumerate(loads):
            if i == heaviest or len(result[i]) >= max_per_route:
                continue
            if lightest == -1 or load < loads[lightest]:
                lightest = i
        if lightest == -1 or len(result[heaviest]) <= 1:
            break
        move = _best_move(result[heaviest], result[lightest], loads[heaviest], loads[lightest])
        if move is None:
            break
        result[lightest].append(result[heaviest].pop(move))

    return [group for group in result if group]


def balance_groups(
    groups: Sequence[Sequence[Stop]], max_per_route: int, mode: str, target_cv: float | None = None
) -> list[list[Stop]]:
    if mode == "workload":
        return balance_by_workload(groups, max_per_route)
    if mode == "geography":
        return enforce_max_per_route(groups, max_per_route)
    return balance_hybrid(groups, max_per_route, target_cv)


def sort_by_origin_distance(groups: Sequence[Sequence[Stop]], origin: tuple[float, float]) -> list[list[Stop]]:
    def key(group: Sequence[Stop]) -> tuple[float, str]:
        center = _group_center(group)
        return haversine_km(*origin, *center), min(stop.ticket_id for stop in group)

    return sorted((list(group) for group in groups if group), key=key)


def partition_stops(
    stops: Sequence[Stop],
    *,
    max_per_route: int | None,
    origin: tuple[float, float],
    mode: str = "balanced",
    target_cv: float | None = None,
    random_state: int = 0,
) -> list[list[Stop]]:
    """Split located stops into groups of at most ``max_per_route``."""
    ordered = sorted(stops, key=lambda stop: stop.ticket_id)
    if not ordered:
        return []
    if max_per_route is None or len(ordered) <= max_per_route:
        return [ordered]

    cluster_count = math.ceil(len(ordered) / max_per_route)
    coordinates = to_cartesian_km([stop.location for stop in ordered])
    kmeans = KMeans(n_clusters=cluster_count, random_state=random_state, n_init="auto")
    labels = kmeans.fit_predict(coordinates)

    groups: list[list[Stop]] = [[] for _ in range(cluster_count)]
    for stop, label in zip(ordered, labels):
        groups[int(label)].append(stop)
    groups = [group for group in groups if group]

    balanced = balance_groups(groups, max_per_route, mode, target_cv)
    logger.info(
        f"Partitioned {len(ordered)} stops into {len(balanced)} routes "
        f"(max {max_per_route} per route, mode={mode})"
    )
    return sort_by_origin_distance(balanced, origin)
