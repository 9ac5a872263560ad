"""Asynchronous optimization jobs.

The jobs table is the queue: ``enqueue`` writes a pending row, any worker
may claim it with a conditional update, and only the claiming worker may
write the terminal state. A job that raises is always marked failed.
"""

from __future__ import annotations

import logging
import os
import socket
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Optional

from ...config import settings
from ...errors import InternalError, NotFound, RouteEngineError
from ...models.domain import JobStatus, OptimizationJob
from ...persistence.base import RouteStore
from ...schemas.common import parse_model, require_uuid
from ...schemas.jobs import AsyncOptimizeAccepted, JobErrorModel, JobStatusResponse
from ...schemas.routing import OptimizeRequest
from ..routing.optimizer import RouteOptimizer
from ..travel.provider import TravelTimeProvider

logger = logging.getLogger(__name__)

PROGRESS = {
    JobStatus.PENDING: 10,
    JobStatus.PROCESSING: 50,
    JobStatus.COMPLETED: 100,
    JobStatus.FAILED: 100,
}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _isoformat(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def default_worker_id() -> str:
    return f"{socket.gethostname()}:{os.getpid()}:{uuid.uuid4().hex[:8]}"


class JobManager:
    def __init__(
        self,
        store: RouteStore,
        provider: TravelTimeProvider,
        *,
        poll_url_prefix: str | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.store = store
        self.provider = provider
        self.poll_url_prefix = poll_url_prefix if poll_url_prefix is not None else f"{settings.api_prefix}/jobs"
        self.clock = clock

    def poll_url(self, job_id: str) -> str:
        return f"{self.poll_url_prefix}/{job_id}"

    def enqueue(self, payload: Any) -> AsyncOptimizeAccepted:
        """Validate like the synchronous path, then persist a pending job."""
        request = parse_model(OptimizeRequest, payload)
        # No separate worker may be running, so stuck jobs are cleared here too.
        self.reap_stale()
        params = request.model_dump(exclude_none=True)
        job = self.store.insert_job(
            OptimizationJob(
                id=str(uuid.uuid4()),
                status=JobStatus.PENDING,
                garage_id=request.garage_id,
                date=request.date,
                input_params=params,
                created_at=self.clock(),
            )
        )
        logger.info(f"Queued optimization job {job.id} for garage {job.garage_id} on {job.date}")
        return AsyncOptimizeAccepted(job_id=job.id, status="pending", poll_url=self.poll_url(job.id))

    def process_job(self, job_id: str, worker_id: str | None = None) -> bool:
        """Claim and run one job. Returns False when another worker owns it."""
        worker_id = worker_id or default_worker_id()
        if not self.store.claim_job(job_id, worker_id, self.clock()):
            logger.debug(f"Job {job_id} not claimable by {worker_id}")
            return False

        logger.info(f"Worker {worker_id} processing job {job_id}")
        # Everything after the claim, including loading the job and writing
        # the result, ends in a terminal state.
        try:
            job = self.store.get_job(job_id)
            if job is None:
                raise NotFound(f"Job {job_id} disappeared after being claimed")
            result = RouteOptimizer(self.store, self.provider).optimize(job.input_params)
            completed = self.store.complete_job(job_id, worker_id, result.model_dump(mode="json"), self.clock())
        except RouteEngineError as exc:
            logger.warning(f"Job {job_id} failed: {exc.code}: {exc.message}")
            self._fail(job_id, worker_id, exc)
            return True
        except Exception as exc:
            logger.exception(f"Job {job_id} crashed: {exc}")
            self._fail(job_id, worker_id, InternalError(f"Unexpected error: {exc}"))
            return True

        if not completed:
            logger.warning(f"Job {job_id} was no longer owned by {worker_id} at completion")
        else:
            logger.info(f"Job {job_id} completed with {result.summary.total_stops} stops")
        return True

    def _fail(self, job_id: str, worker_id: str, error: RouteEngineError) -> None:
        try:
            recorded = self.store.fail_job(job_id, worker_id, error.to_dict(), self.clock())
        except Exception as exc:
            # Left in processing; reap_stale fails it once it is old enough.
            logger.exception(f"Could not record failure of job {job_id}: {exc}")
            return
        if not recorded:
            logger.warning(f"Job {job_id} was no longer owned by {worker_id} when recording failure")

    def run_pending(self, limit: int | None = None, worker_id: str | None = None) -> int:
        """Process up to ``limit`` pending jobs, oldest first. Returns how many ran."""
        worker_id = worker_id or default_worker_id()
        self.reap_stale()
        processed = 0
        for job_id in self.store.list_pending_job_ids(limit or settings.worker_batch_size):
            if self.process_job(job_id, worker_id):
                processed += 1
        return processed

    def reap_stale(self, older_than_seconds: int | None = None) -> list[str]:
        """Fail jobs stuck in processing, e.g. after a worker crash."""
        max_age = older_than_seconds if older_than_seconds is not None else settings.job_stale_after_seconds
        now = self.clock()
        cutoff = now - timedelta(seconds=max_age)
        reaped = []
        for job_id in self.store.list_stale_job_ids(cutoff):
            error = {"code": "worker_timeout", "message": f"Job exceeded {max_age}s in processing"}
            if self.store.fail_job(job_id, None, error, now):
                reaped.append(job_id)
        if reaped:
            logger.warning(f"Marked {len(reaped)} stale jobs as failed: {', '.join(reaped)}")
        return reaped

    def get_status(self, job_id: str) -> JobStatusResponse:
        require_uuid(job_id, "job_id")
        job = self.store.get_job(job_id)
        if job is None:
            raise NotFound(f"Job {job_id} not found")
        return JobStatusResponse(
            id=job.id,
            status=job.status.value,
            progress=PROGRESS[job.status],
            garage_id=job.garage_id,
            date=job.date,
            created_at=_isoformat(job.created_at),
            started_at=_isoformat(job.started_at),
            completed_at=_isoformat(job.completed_at),
            result=job.result if job.status is JobStatus.COMPLETED else None,
            error=JobErrorModel(**job.error) if job.status is JobStatus.FAILED and job.error else None,
        )
