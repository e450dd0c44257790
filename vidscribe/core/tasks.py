"""
In-memory background tasks.

Private-video flows can spend minutes downloading and waiting for Gemini
to process the upload. Mobile clients drop connections that long, so the
async endpoints hand the work to a TaskRegistry and return a task id the
client polls instead.

Tasks live in process memory. A restart loses them, and finished tasks
are dropped after the retention window.
"""

import asyncio
import logging
import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Optional

from .errors import PipelineError, TaskConflictError, TaskNotFoundError

logger = logging.getLogger(__name__)

TASK_RETENTION_SECONDS = 30 * 60

# progress percent (0-100), human-readable message
ProgressReporter = Callable[[int, str], None]
TaskWork = Callable[[ProgressReporter], Awaitable[Any]]


def ignore_progress(progress: int, message: str) -> None:
    """Reporter for flows that run inside a request."""


class TaskStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class TaskRecord:
    """Where a background task is, and what it produced."""

    id: str
    type: str
    status: TaskStatus = TaskStatus.PENDING
    progress: int = 0
    progress_message: str = "Task created, waiting to run"
    result: Any = None
    error: Optional[dict[str, Any]] = None
    created_at: float = field(default_factory=time.time)
    updated_at: float = field(default_factory=time.time)
    completed_at: Optional[float] = None

    @property
    def is_finished(self) -> bool:
        return self.status in (TaskStatus.COMPLETED, TaskStatus.FAILED)


class TaskRegistry:
    """
    Runs coroutines as asyncio tasks and keeps their outcome.

    Work is a coroutine function that takes a progress reporter. Whatever
    it returns becomes the task result. A PipelineError is recorded with
    its stage and details; anything else is logged and recorded as an
    internal error, the same split the HTTP error handlers make.
    """

    def __init__(
        self,
        retention_seconds: float = TASK_RETENTION_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._retention = retention_seconds
        self._clock = clock
        self._records: dict[str, TaskRecord] = {}
        self._running: dict[str, asyncio.Task] = {}

    def submit(self, task_type: str, work: TaskWork) -> TaskRecord:
        """Start work in the background. Must be called from a running loop."""
        self.cleanup()

        now = self._clock()
        record = TaskRecord(
            id=f"task_{uuid.uuid4().hex}",
            type=task_type,
            created_at=now,
            updated_at=now,
        )
        self._records[record.id] = record

        runner = asyncio.create_task(self._run(record, work), name=record.id)
        self._running[record.id] = runner
        runner.add_done_callback(lambda _: self._running.pop(record.id, None))

        logger.info("Task created", extra={"task_id": record.id, "task_type": task_type})
        return record

    def get(self, task_id: str) -> TaskRecord:
        self.cleanup()
        record = self._records.get(task_id)
        if record is None:
            raise TaskNotFoundError("Task not found", details={"task_id": task_id})
        return record

    def cancel(self, task_id: str) -> TaskRecord:
        """
        Cancel a task that hasn't started, or forget one that has finished.

        A processing task may be halfway through a download or an upload,
        so it can't be cancelled.
        """
        record = self.get(task_id)

        if record.status is TaskStatus.PROCESSING:
            raise TaskConflictError(
                "Cannot cancel a task that is currently processing",
                details={"task_id": task_id},
            )

        if record.is_finished:
            del self._records[task_id]
            logger.info("Finished task discarded", extra={"task_id": task_id})
            return record

        runner = self._running.get(task_id)
        if runner is not None:
            runner.cancel()
        self._finish(record, TaskStatus.FAILED, error={
            "error": "Task cancelled by user",
            "stage": "cancelled",
            "details": None,
        })
        return record

    def cleanup(self) -> int:
        """Drop finished tasks older than the retention window."""
        cutoff = self._clock() - self._retention
        expired = [
            task_id for task_id, record in self._records.items()
            if record.completed_at is not None and record.completed_at < cutoff
        ]
        for task_id in expired:
            del self._records[task_id]

        if expired:
            logger.info("Cleaned up finished tasks", extra={"count": len(expired)})
        return len(expired)

    async def join(self, task_id: str) -> TaskRecord:
        """Wait until a task is finished."""
        runner = self._running.get(task_id)
        if runner is not None:
            await asyncio.wait([runner])
        return self.get(task_id)

    async def shutdown(self) -> None:
        """Cancel everything still running and wait for it to stop."""
        runners = list(self._running.values())
        for runner in runners:
            runner.cancel()
        if runners:
            await asyncio.wait(runners)
            logger.info("Cancelled background tasks", extra={"count": len(runners)})

    # -- internals --------------------------------------------------------

    async def _run(self, record: TaskRecord, work: TaskWork) -> None:
        if record.is_finished:
            return

        record.status = TaskStatus.PROCESSING
        record.progress_message = "Task started"
        record.updated_at = self._clock()

        def report(progress: int, message: str) -> None:
            if record.is_finished:
                return
            record.progress = max(0, min(100, progress))
            record.progress_message = message
            record.updated_at = self._clock()
            logger.debug(
                "Task progress",
                extra={"task_id": record.id, "progress": record.progress, "progress_message": message}
            )

        try:
            result = await work(report)
        except asyncio.CancelledError:
            self._finish(record, TaskStatus.FAILED, error={
                "error": "Task cancelled",
                "stage": "cancelled",
                "details": None,
            })
            raise
        except PipelineError as e:
            logger.warning(
                "Task failed",
                extra={"task_id": record.id, "stage": e.stage, "error": e.message}
            )
            self._finish(record, TaskStatus.FAILED, error={
                "error": e.message,
                "stage": e.stage,
                "details": e.details,
            })
        except Exception as e:
            logger.error(
                "Task failed unexpectedly",
                extra={"task_id": record.id, "error": str(e)},
                exc_info=e,
            )
            self._finish(record, TaskStatus.FAILED, error={
                "error": "Internal server error. Please contact support if this persists.",
                "stage": "internal",
                "details": None,
            })
        else:
            record.result = result
            record.progress = 100
            self._finish(record, TaskStatus.COMPLETED, message="Task completed")

    def _finish(
        self,
        record: TaskRecord,
        status: TaskStatus,
        error: Optional[dict[str, Any]] = None,
        message: Optional[str] = None,
    ) -> None:
        if record.is_finished:
            return
        now = self._clock()
        record.status = status
        record.error = error
        record.progress_message = message or (error or {}).get("error", record.progress_message)
        record.updated_at = now
        record.completed_at = now
        logger.info("Task finished", extra={"task_id": record.id, "status": status.value})
