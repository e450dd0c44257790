"""
Background task endpoints.

The async variants of the generation endpoints answer 202 with a task id
straight away. Clients poll GET /api/v1/tasks/{task_id} until the status
is completed or failed; the result holds the same body the synchronous
endpoint would have returned, and the error holds the same error body.
"""

import logging

from fastapi import APIRouter, status

from ...core.tasks import TaskRegistry, TaskWork
from ..dependencies import TaskRegistryDep
from ..schemas import TaskAccepted, TaskStatusResponse

logger = logging.getLogger(__name__)

router = APIRouter()

ASYNC_RESPONSES = {
    status.HTTP_202_ACCEPTED: {"description": "Task created; poll the status URL"},
}


def submit_task(tasks: TaskRegistry, task_type: str, work: TaskWork) -> TaskAccepted:
    record = tasks.submit(task_type, work)
    return TaskAccepted(
        task_id=record.id,
        status=record.status.value,
        status_url=f"/api/v1/tasks/{record.id}",
    )


@router.get(
    "/{task_id}",
    response_model=TaskStatusResponse,
    summary="Check a background task",
    responses={404: {"description": "Unknown task, or finished more than 30 minutes ago"}},
)
async def get_task(task_id: str, tasks: TaskRegistryDep) -> TaskStatusResponse:
    return TaskStatusResponse.from_record(tasks.get(task_id))


@router.delete(
    "/{task_id}",
    response_model=TaskStatusResponse,
    summary="Cancel a pending task or discard a finished one",
    responses={
        404: {"description": "Unknown task"},
        409: {"description": "The task is processing and can't be cancelled"},
    },
)
async def cancel_task(task_id: str, tasks: TaskRegistryDep) -> TaskStatusResponse:
    record = tasks.cancel(task_id)
    logger.info("Task cancel requested", extra={"task_id": task_id, "status": record.status.value})
    return TaskStatusResponse.from_record(record)
