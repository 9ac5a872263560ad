"""Visit ordering within a single route.

Orders are lists of matrix indices; index 0 is the garage. Costs are
travel seconds and include the return leg to the garage.
"""

from __future__ import annotations

from typing import Mapping, Sequence

IMPROVEMENT_EPSILON = 1e-9
MAX_TWO_OPT_PASSES = 200


def route_cost(order: Sequence[int], durations: Sequence[Sequence[float]], depot: int = 0) -> float:
    path = [depot, *order, depot]
    return sum(durations[path[k]][path[k + 1]] for k in range(len(path) - 1))


def nearest_neighbor_order(
    nodes: Sequence[int],
    durations: Sequence[Sequence[float]],
    ids: Mapping[int, str],
    depot: int = 0,
) -> list[int]:
    """Greedy construction from the garage; equal travel times fall back to id order."""
    remaining = set(nodes)
    order: list[int] = []
    current = depot
    while remaining:
        nxt = min(remaining, key=lambda node: (durations[current][node], ids[node]))
        order.append(nxt)
        remaining.remove(nxt)
        current = nxt
    return order


def _prefix_costs(path: Sequence[int], durations: Sequence[Sequence[float]]) -> tuple[list[float], list[float]]:
    forward = [0.0]
    backward = [0.0]
    for k in range(len(path) - 1):
        forward.append(forward[-1] + durations[path[k]][path[k + 1]])
        backward.append(backward[-1] + durations[path[k + 1]][path[k]])
    return forward, backward


def two_opt(order: Sequence[int], durations: Sequence[Sequence[float]], depot: int = 0) -> list[int]:
    """Segment reversal until no strictly improving move remains.

    Handles asymmetric matrices: the reversed segment is re-costed in the
    opposite direction using prefix sums, so each move is evaluated in O(1).
    """
    path = [depot, *order, depot]
    if len(order) < 2:
        return list(order)

    for _ in range(MAX_TWO_OPT_PASSES):
        forward, backward = _prefix_costs(path, durations)
        improved = False
        last = len(path) - 2
        for i in range(1, last):
            for j in range(i + 1, last + 1):
                before = (
                    durations[path[i - 1]][path[i]]
                    + durations[path[j]][path[j + 1]]
                    + forward[j] - forward[i]
                )
                after = (
                    durations[path[i - 1]][path[j]]
                    + durations[path[i]][path[j + 1]]
                    + backward[j] - backward[i]
                )
                if after < before - IMPROVEMENT_EPSILON:
                    path[i:j + 1] = reversed(path[i:j + 1])
                    improved = True
                    break
            if improved:
                break
        if not improved:
            break
    return path[1:-1]


def sequence_stops(
    nodes: Sequence[int],
    durations: Sequence[Sequence[float]],
    ids: Mapping[int, str],
    *,
    improve: bool = True,
    depot: int = 0,
) -> list[int]:
    order = nearest_neighbor_order(nodes, durations, ids, depot)
    if improve:
        order = two_opt(order, durations, depot)
    return order
