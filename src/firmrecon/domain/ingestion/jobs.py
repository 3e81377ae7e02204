"""Detached ingestion jobs, persisted in the key-value store so callers can poll them."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Final

from firmrecon.domain.model import IngestJob, JobStatus, utcnow

if TYPE_CHECKING:
    from uuid import UUID

    from firmrecon.domain.ports import KeyValueStore

    from .batch import IngestBatchResult

log = logging.getLogger(__name__)

JOB_TTL_SECONDS: Final[int] = 7 * 24 * 60 * 60

type BatchCallable = Callable[[], IngestBatchResult]


def job_key(job_id: UUID | str) -> str:
    return f"ingest:job:{job_id}"


@dataclass(slots=True)
class IngestJobStore:
    store: KeyValueStore
    ttl_seconds: int = JOB_TTL_SECONDS

    def save(self, job: IngestJob) -> None:
        self.store.set(job_key(job.id), job.to_dict(), ttl_seconds=self.ttl_seconds)

    def get(self, job_id: UUID | str) -> IngestJob | None:
        payload = self.store.get(job_key(job_id))
        return IngestJob.from_dict(payload) if isinstance(payload, dict) else None


def execute_job(jobs: IngestJobStore, job: IngestJob, run_batch: BatchCallable) -> IngestJob:
    """Run ``run_batch`` for ``job`` and persist every status transition."""

    job.status = JobStatus.RUNNING
    job.started_at = utcnow()
    jobs.save(job)
    try:
        result = run_batch()
    except Exception as exc:
        log.exception("Ingest job %s failed", job.id)
        job.status = JobStatus.FAILED
        job.error = str(exc)
    else:
        job.result = result.to_dict()
        job.status = JobStatus.ALREADY_RUNNING if result.already_running else JobStatus.SUCCEEDED
    job.finished_at = utcnow()
    jobs.save(job)
    return job


def start_job(
    jobs: IngestJobStore,
    job: IngestJob,
    run_batch: BatchCallable,
    *,
    detach: bool = True,
) -> threading.Thread | None:
    """Queue ``job`` and run it on a daemon thread, or inline when ``detach`` is false."""

    jobs.save(job)
    if not detach:
        execute_job(jobs, job, run_batch)
        return None
    worker = threading.Thread(
        target=execute_job,
        args=(jobs, job, run_batch),
        name=f"ingest-job-{job.id}",
        daemon=True,
    )
    worker.start()
    return worker
