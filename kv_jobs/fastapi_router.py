"""FastAPI router exposing queue administration over HTTP."""

import logging
from typing import Any, Callable, Dict, List, Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Query
from pydantic import BaseModel

from kv_jobs.errors import InvalidScheduleError, JobNotFoundError
from kv_jobs.scheduler import Scheduler
from kv_jobs.service import QueueService
from kv_jobs.worker import Worker


logger = logging.getLogger(__name__)


class DispatchJobRequest(BaseModel):
    """Request model for dispatching a job."""

    type: str
    payload: Dict[str, Any] = {}
    queue: Optional[str] = None
    delay: int = 0
    retries: Optional[int] = None
    timeout: Optional[int] = None


class DispatchJobResponse(BaseModel):
    """Response model for dispatching a job."""

    job_id: str


class ScheduleJobRequest(BaseModel):
    """Request model for scheduling a job ("now" dispatches immediately)."""

    type: str
    payload: Dict[str, Any] = {}
    queue: Optional[str] = None
    schedule: str = "now"


class ScheduleJobResponse(BaseModel):
    success: bool
    job_id: Optional[str] = None
    schedule_id: Optional[str] = None
    next_run: Optional[str] = None


class JobResponse(BaseModel):
    """Response model for job details."""

    id: str
    type: str
    payload: Dict[str, Any]
    queue: str
    attempts: int
    max_retries: int
    timeout: int
    status: str
    created_at: Optional[str] = None
    available_at: Optional[str] = None
    started_at: Optional[str] = None
    completed_at: Optional[str] = None
    failed_at: Optional[str] = None
    cancelled_at: Optional[str] = None
    error: Optional[str] = None


class ActionResponse(BaseModel):
    success: bool
    message: Optional[str] = None
    count: Optional[int] = None


class WorkerStatusResponse(BaseModel):
    running: bool
    queue: str


def create_queue_router(
    service_factory: Callable[[], QueueService],
    worker_factory: Optional[Callable[[], Worker]] = None,
    scheduler_factory: Optional[Callable[[], Scheduler]] = None,
    auth_token: Optional[str] = None,
) -> APIRouter:
    """
    Create FastAPI router for queue administration.

    Args:
        service_factory: Callable that returns a QueueService instance
        worker_factory: Callable that returns the Worker controlled by the
            start/stop endpoints
        scheduler_factory: Callable that returns a Scheduler instance
        auth_token: Optional auth token required by mutating endpoints

    Returns:
        APIRouter instance
    """
    router = APIRouter(prefix="/queue")

    async def get_service() -> QueueService:
        """Dependency to get QueueService instance."""
        return service_factory()

    async def verify_auth_token(
        x_kv_jobs_token: Optional[str] = Header(None, alias="X-Kv-Jobs-Token")
    ) -> None:
        """Verify auth token if configured."""
        if auth_token:
            if not x_kv_jobs_token or x_kv_jobs_token != auth_token:
                raise HTTPException(
                    status_code=401, detail="Invalid or missing auth token"
                )

    def get_worker() -> Worker:
        if worker_factory is None:
            raise HTTPException(status_code=501, detail="Worker control not enabled")
        return worker_factory()

    def get_scheduler(service: QueueService) -> Scheduler:
        if scheduler_factory is not None:
            return scheduler_factory()
        return Scheduler(service)

    @router.post("/dispatch", response_model=DispatchJobResponse)
    async def dispatch_job(
        request: DispatchJobRequest,
        service: QueueService = Depends(get_service),
        _: None = Depends(verify_auth_token),
    ):
        """Dispatch a new job."""
        try:
            job_id = await service.dispatch(
                request.type,
                request.payload,
                queue=request.queue,
                delay=request.delay,
                retries=request.retries,
                timeout=request.timeout,
            )
            return DispatchJobResponse(job_id=job_id)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e)) from e
        except Exception as e:
            logger.exception("Error dispatching job")
            raise HTTPException(status_code=500, detail="Internal server error") from e

    @router.get("/jobs/{job_id}", response_model=JobResponse)
    async def get_job(
        job_id: str,
        service: QueueService = Depends(get_service),
    ):
        """Get job details by ID."""
        try:
            job = await service.get_job(job_id)
            return JobResponse(**job.to_dict())
        except JobNotFoundError as e:
            raise HTTPException(status_code=404, detail=str(e)) from e
        except Exception as e:
            logger.exception("Error getting job")
            raise HTTPException(status_code=500, detail="Internal server error") from e

    @router.get("/stats")
    async def get_stats(service: QueueService = Depends(get_service)):
        """Per-queue job counts plus the failed-jobs total."""
        try:
            return await service.get_queue_stats()
        except Exception as e:
            logger.exception("Error computing queue stats")
            raise HTTPException(status_code=500, detail="Internal server error") from e

    @router.get("/failed", response_model=List[JobResponse])
    async def list_failed(
        limit: int = Query(50, ge=1, le=1000),
        service: QueueService = Depends(get_service),
    ):
        """List the most recently failed jobs."""
        jobs = await service.list_failed_jobs(limit=limit)
        return [JobResponse(**job.to_dict()) for job in jobs]

    @router.post("/jobs/{job_id}/retry", response_model=ActionResponse)
    async def retry_job(
        job_id: str,
        service: QueueService = Depends(get_service),
        _: None = Depends(verify_auth_token),
    ):
        """Re-queue a failed job."""
        if not await service.retry_job(job_id):
            raise HTTPException(
                status_code=409, detail=f"Job {job_id} is not in failed state"
            )
        return ActionResponse(success=True, message="Job queued for retry")

    @router.post("/jobs/{job_id}/cancel", response_model=ActionResponse)
    async def cancel_job(
        job_id: str,
        service: QueueService = Depends(get_service),
        _: None = Depends(verify_auth_token),
    ):
        """Cancel a job that has not completed."""
        if not await service.cancel_job(job_id):
            raise HTTPException(
                status_code=409, detail=f"Job {job_id} cannot be cancelled"
            )
        return ActionResponse(success=True, message="Job cancelled")

    @router.post("/retry-failed", response_model=ActionResponse)
    async def retry_failed_jobs(
        service: QueueService = Depends(get_service),
        _: None = Depends(verify_auth_token),
    ):
        """Re-queue every failed job."""
        count = await service.retry_failed_jobs()
        return ActionResponse(
            success=True, message=f"{count} jobs queued for retry", count=count
        )

    @router.delete("/clear", response_model=ActionResponse)
    async def clear_queues(
        service: QueueService = Depends(get_service),
        _: None = Depends(verify_auth_token),
    ):
        """Empty all queue lists."""
        count = await service.clear_queues()
        return ActionResponse(success=True, message="Queues cleared", count=count)

    @router.post("/schedule", response_model=ScheduleJobResponse)
    async def schedule_job(
        request: ScheduleJobRequest,
        service: QueueService = Depends(get_service),
        _: None = Depends(verify_auth_token),
    ):
        """Dispatch now or create a recurring schedule."""
        if request.schedule == "now":
            job_id = await service.dispatch(
                request.type, request.payload, queue=request.queue
            )
            return ScheduleJobResponse(success=True, job_id=job_id)

        try:
            entry = await get_scheduler(service).schedule(
                request.type, request.payload, request.schedule, queue=request.queue
            )
        except InvalidScheduleError as e:
            raise HTTPException(status_code=400, detail=str(e)) from e

        return ScheduleJobResponse(
            success=True,
            schedule_id=entry.id,
            next_run=entry.next_run.isoformat(),
        )

    @router.post("/start", response_model=ActionResponse)
    async def start_worker(_: None = Depends(verify_auth_token)):
        """Start the background worker."""
        worker = get_worker()
        started = await worker.start()
        return ActionResponse(
            success=started,
            message="Worker started" if started else "Worker already running",
        )

    @router.post("/stop", response_model=ActionResponse)
    async def stop_worker(_: None = Depends(verify_auth_token)):
        """
        Ask the background worker to stop after its current job.

        Returns without waiting for that job; poll GET /queue/worker until
        ``running`` is false.
        """
        worker = get_worker()
        stopped = await worker.stop(wait=False)
        return ActionResponse(
            success=stopped,
            message="Worker stopping" if stopped else "Worker not running",
        )

    @router.get("/worker", response_model=WorkerStatusResponse)
    async def worker_status():
        worker = get_worker()
        return WorkerStatusResponse(running=worker.is_running, queue=worker.queue)

    return router
