"""Routing orchestration service."""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from typing import Any

from ...config import settings
from ...errors import RequestTimeout
from ...persistence.base import RouteStore
from ...schemas.routing import CalculateResponse, OptimizeResponse
from ..travel.provider import TravelTimeProvider
from .calculator import RouteCalculator
from .optimizer import RouteOptimizer

logger = logging.getLogger(__name__)

# Abandoned computations keep running on these threads until they finish.
_EXECUTOR = ThreadPoolExecutor(max_workers=settings.sync_optimize_max_workers, thread_name_prefix="optimize")


def optimize_routes(
    payload: Any,
    *,
    store: RouteStore,
    provider: TravelTimeProvider,
    timeout_seconds: float | None = None,
) -> OptimizeResponse:
    """Run the optimizer for a caller that waits on the result.

    Raises RequestTimeout when the optimizer takes longer than the sync
    budget; callers expecting long runs should use the job queue instead.
    """
    timeout = timeout_seconds if timeout_seconds is not None else settings.sync_optimize_timeout_seconds
    optimizer = RouteOptimizer(store, provider)
    future = _EXECUTOR.submit(optimizer.optimize, payload)
    try:
        return future.result(timeout=timeout)
    except FutureTimeoutError as exc:
        future.cancel()
        logger.warning(f"Synchronous optimization exceeded {timeout:.0f}s; use the async endpoint instead")
        raise RequestTimeout(
            f"Optimization did not finish within {timeout:.0f} seconds. Use /optimize/async for large requests."
        ) from exc


def calculate_route(payload: Any, *, store: RouteStore, provider: TravelTimeProvider) -> CalculateResponse:
    return RouteCalculator(store, provider).calculate(payload)
