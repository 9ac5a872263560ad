"""HTTP client for the OSRM table service."""

from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from datetime import datetime
from typing import Optional, Sequence

import httpx

from ...config import settings
from ...errors import ProviderError
from ..geospatial import haversine_km
from .provider import Point, TravelMatrix, TravelTimeProvider

logger = logging.getLogger(__name__)

# Shared by every client in the process so that concurrent optimizations
# cannot exceed the provider's rate budget together.
_REQUEST_SLOTS = threading.BoundedSemaphore(settings.provider_max_concurrency)

RETRYABLE_STATUS = {429, 500, 502, 503, 504}


class OSRMClient(TravelTimeProvider):
    name = "osrm"

    def __init__(
        self,
        base_url: str | None = None,
        profile: str | None = None,
        timeout: float | None = None,
        max_retries: int | None = None,
        backoff_seconds: float | None = None,
        max_coordinates_per_request: int | None = None,
        max_parallel_requests: int | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.base_url = (base_url or settings.osrm_base_url or "").rstrip("/")
        if not self.base_url:
            raise ValueError("OSRM base URL is not configured.")
        self.profile = profile or settings.osrm_profile
        self.timeout = timeout if timeout is not None else settings.osrm_timeout_seconds
        self.max_retries = max_retries if max_retries is not None else settings.osrm_max_retries
        self.backoff_seconds = backoff_seconds if backoff_seconds is not None else settings.osrm_backoff_seconds
        self.max_coordinates_per_request = max_coordinates_per_request or settings.osrm_max_coordinates_per_request
        self.max_parallel_requests = max_parallel_requests or settings.provider_max_concurrency
        self._transport = transport

    def _get_client(self) -> httpx.Client:
        """Create a per-call HTTP client; httpx clients are not shared across threads."""
        return httpx.Client(
            timeout=httpx.Timeout(self.timeout, connect=10.0),
            limits=httpx.Limits(max_connections=1, max_keepalive_connections=0),
            transport=self._transport,
        )

    def _wait(self, attempt: int) -> None:
        wait_time = self.backoff_seconds * (2 ** (attempt - 1))
        if wait_time > 0:
            time.sleep(wait_time)

    def _table_single_request(
        self,
        coordinates: Sequence[Point],
        sources: Sequence[int] | None = None,
        destinations: Sequence[int] | None = None,
    ) -> dict:
        """Make a single OSRM table request, retrying transient failures."""
        coordinate_str = ";".join(f"{lon},{lat}" for lat, lon in coordinates)
        params = {"annotations": "duration,distance"}
        if sources is not None:
            params["sources"] = ";".join(str(i) for i in sources)
        if destinations is not None:
            params["destinations"] = ";".join(str(i) for i in destinations)
        url = f"{self.base_url}/table/v1/{self.profile}/{coordinate_str}"

        client = self._get_client()
        try:
            attempt = 0
            while True:
                try:
                    with _REQUEST_SLOTS:
                        response = client.get(url, params=params)
                    response.raise_for_status()
                    data = response.json()
                    if data.get("code", "Ok") != "Ok":
                        raise ProviderError(f"OSRM table request failed: {data.get('message', data.get('code'))}")
                    if "durations" not in data or "distances" not in data:
                        raise ProviderError("OSRM response missing durations/distances.")
                    return data
                except httpx.HTTPStatusError as e:
                    status_code = e.response.status_code
                    if status_code not in RETRYABLE_STATUS:
                        raise ProviderError(f"OSRM rejected request with HTTP {status_code}") from e
                    attempt += 1
                    if attempt > self.max_retries:
                        raise ProviderError(
                            f"OSRM request failed with HTTP {status_code} after {self.max_retries} retries"
                        ) from e
                    logger.debug(f"OSRM HTTP {status_code}, retrying (attempt {attempt}/{self.max_retries})")
                    self._wait(attempt)
                except httpx.TimeoutException as e:
                    attempt += 1
                    if attempt > self.max_retries:
                        logger.warning(f"OSRM request timed out after {self.max_retries} retries: {e}")
                        raise ProviderError("OSRM request timed out") from e
                    logger.debug(f"OSRM request timeout, retrying (attempt {attempt}/{self.max_retries})")
                    self._wait(attempt)
                except httpx.TransportError as e:
                    attempt += 1
                    if attempt > self.max_retries:
                        raise ProviderError(f"Failed to connect to OSRM service at {self.base_url}: {e}") from e
                    logger.debug(f"OSRM network error, retrying (attempt {attempt}/{self.max_retries}): {e}")
                    self._wait(attempt)
                except ValueError as e:
                    raise ProviderError(f"OSRM returned an unreadable response: {e}") from e
        finally:
            client.close()

    def _chunked_table(self, coordinates: Sequence[Point]) -> tuple[list[list], list[list]]:
        """Assemble a full matrix from source/destination chunk pairs fetched in parallel."""
        started = time.time()
        chunk_size = max(1, self.max_coordinates_per_request // 2)
        chunk_ranges = [
            (start, min(start + chunk_size, len(coordinates)))
            for start in range(0, len(coordinates), chunk_size)
        ]
        n = len(coordinates)
        durations: list[list] = [[None] * n for _ in range(n)]
        distances: list[list] = [[None] * n for _ in range(n)]

        requests = [(src, dst) for src in chunk_ranges for dst in chunk_ranges]
        logger.info(
            f"Chunking OSRM table request: {n} coordinates into {len(requests)} requests "
            f"(max {self.max_parallel_requests} concurrent)"
        )

        def fetch(src: tuple[int, int], dst: tuple[int, int]) -> tuple[tuple[int, int], tuple[int, int], dict]:
            src_coords = list(coordinates[src[0]:src[1]])
            dst_coords = list(coordinates[dst[0]:dst[1]])
            result = self._table_single_request(
                src_coords + dst_coords,
                sources=range(len(src_coords)),
                destinations=range(len(src_coords), len(src_coords) + len(dst_coords)),
            )
            return src, dst, result

        with ThreadPoolExecutor(max_workers=self.max_parallel_requests) as executor:
            futures = [executor.submit(fetch, src, dst) for src, dst in requests]
            # A failed chunk fails the whole matrix; the retry budget is already spent.
            for future in as_completed(futures):
                (src_start, _), (dst_start, _), result = future.result()
                for i, row in enumerate(result["durations"]):
                    for j, value in enumerate(row):
                        durations[src_start + i][dst_start + j] = value
                        distances[src_start + i][dst_start + j] = result["distances"][i][j]

        logger.info(f"Completed OSRM chunked table in {time.time() - started:.2f}s")
        return durations, distances

    def table(self, coordinates: Sequence[Point]) -> dict:
        """Raw durations/distances for ``(lat, lon)`` coordinates, chunking large requests."""
        if len(coordinates) < 2:
            raise ValueError("At least two coordinates are required for OSRM table.")
        if len(coordinates) <= self.max_coordinates_per_request:
            data = self._table_single_request(coordinates)
            return {"durations": data["durations"], "distances": data["distances"]}
        durations, distances = self._chunked_table(coordinates)
        return {"durations": durations, "distances": distances}

    def matrix(self, points: Sequence[Point], departure: Optional[datetime] = None) -> TravelMatrix:
        # OSRM has no traffic model; the departure time does not change the result.
        if len(points) < 2:
            return TravelMatrix(durations=[[0.0] * len(points)], distances=[[0.0] * len(points)])
        data = self.table(points)
        durations = data["durations"]
        distances = data["distances"]
        unreachable = 0
        for i in range(len(points)):
            for j in range(len(points)):
                if durations[i][j] is None or distances[i][j] is None:
                    unreachable += 1
                    km = haversine_km(*points[i], *points[j])
                    distances[i][j] = km * 1000.0
                    durations[i][j] = km / settings.haversine_speed_kmh * 3600.0
        if unreachable:
            logger.warning(f"OSRM returned {unreachable} unreachable pairs; using great-circle estimates for them")
        return TravelMatrix(
            durations=[[float(value) for value in row] for row in durations],
            distances=[[float(value) for value in row] for row in distances],
        )

    def check_health(self) -> bool:
        """Probe OSRM with a minimal two-point table request."""
        try:
            self._table_single_request([(52.517037, 13.388860), (52.496891, 13.385983)])
        except ProviderError:
            return False
        return True
