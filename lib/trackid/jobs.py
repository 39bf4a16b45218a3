"""
Background job registry.

One registry per process, injected into the drivers and the HTTP app. At
most one job per kind runs at a time. Cancellation is cooperative: drivers
check `job.cancel_requested` between top-level items.
"""
from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Optional

from cachetools import TTLCache

from lib.trackid.cache_manager import new_job_history_cache

logger = logging.getLogger(__name__)

RECONCILE_JOB = "reconcile"
DUPLICATE_REMOVAL_JOB = "duplicate_removal"


class JobState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    COMPLETE = "complete"
    CANCELLED = "cancelled"
    ERROR = "error"


class JobError(RuntimeError):
    pass


class JobAlreadyRunningError(JobError):
    def __init__(self, job: "Job"):
        super().__init__(f"A {job.kind} job is already running")
        self.job = job


class NoRunningJobError(JobError):
    def __init__(self, kind: str):
        super().__init__(f"No running {kind} job")
        self.kind = kind


def _now_ms() -> int:
    return int(time.time() * 1000)


@dataclass
class Job:
    kind: str
    status: JobState = JobState.RUNNING
    total: int = 0
    processed: int = 0
    removed: int = 0
    errors: int = 0
    freed_bytes: int = 0
    current_item: Optional[str] = None
    started_at: int = field(default_factory=_now_ms)
    completed_at: Optional[int] = None
    error_message: Optional[str] = None
    result: Any = None
    _cancel: threading.Event = field(default_factory=threading.Event, repr=False)

    def request_cancel(self) -> None:
        self._cancel.set()

    @property
    def cancel_requested(self) -> bool:
        return self._cancel.is_set()

    @property
    def duration_ms(self) -> Optional[int]:
        if self.completed_at is None:
            return None
        return self.completed_at - self.started_at

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind,
            "status": self.status.value,
            "total": self.total,
            "processed": self.processed,
            "removed": self.removed,
            "errors": self.errors,
            "freed_bytes": self.freed_bytes,
            "current_item": self.current_item,
            "started_at": self.started_at,
            "completed_at": self.completed_at,
            "error_message": self.error_message,
        }


class JobRegistry:
    """Tracks the current (or most recently finished) job per kind."""

    def __init__(self, history_ttl_s: float | None = None) -> None:
        self._lock = threading.Lock()
        self._running: Dict[str, Job] = {}
        self._finished: TTLCache = new_job_history_cache(history_ttl_s)

    def start(self, kind: str) -> Job:
        with self._lock:
            current = self._running.get(kind)
            if current is not None:
                raise JobAlreadyRunningError(current)
            job = Job(kind=kind)
            self._running[kind] = job
            self._finished.pop(kind, None)
        logger.info(f"[jobs] start kind={kind}")
        return job

    def get(self, kind: str) -> Optional[Job]:
        with self._lock:
            return self._running.get(kind) or self._finished.get(kind)

    def status(self, kind: str) -> JobState:
        job = self.get(kind)
        return job.status if job else JobState.IDLE

    def is_running(self, kind: str) -> bool:
        with self._lock:
            return kind in self._running

    def cancel(self, kind: str) -> Job:
        with self._lock:
            job = self._running.get(kind)
        if job is None:
            raise NoRunningJobError(kind)
        job.request_cancel()
        logger.info(f"[jobs] cancel requested kind={kind}")
        return job

    def complete(self, job: Job, result: Any = None) -> Job:
        job.result = result
        job.current_item = None
        job.status = JobState.CANCELLED if job.cancel_requested else JobState.COMPLETE
        self._finish(job)
        return job

    def fail(self, job: Job, exc: BaseException) -> Job:
        job.current_item = None
        job.status = JobState.ERROR
        job.error_message = str(exc)
        self._finish(job)
        return job

    def _finish(self, job: Job) -> None:
        job.completed_at = _now_ms()
        with self._lock:
            if self._running.get(job.kind) is job:
                del self._running[job.kind]
            self._finished[job.kind] = job
        logger.info(
            f"[jobs] finish kind={job.kind} status={job.status.value} "
            f"processed={job.processed} errors={job.errors} duration_ms={job.duration_ms}"
        )

    def run(self, kind: str, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Job:
        """Start a job, call fn(*args, job=job, **kwargs), and record the outcome."""
        job = self.start(kind)
        return self.execute(job, fn, *args, **kwargs)

    def execute(self, job: Job, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Job:
        """Run fn for an already started job (used by background tasks)."""
        try:
            result = fn(*args, job=job, **kwargs)
        except Exception as e:
            logger.exception(f"[jobs] {job.kind} job failed: {e}")
            return self.fail(job, e)
        return self.complete(job, result)
