"""Example FastAPI application exposing the kv_jobs admin routes."""

import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI

from kv_jobs import QueueConfig, QueueService, Scheduler, Worker, create_default_registry
from kv_jobs.fastapi_router import create_queue_router
from kv_jobs.worker_main import create_kv_store, load_handlers, setup_logging

setup_logging()
logger = logging.getLogger(__name__)

config = QueueConfig.from_env()
registry = create_default_registry(config)
load_handlers(registry, "examples.handlers")

service: QueueService | None = None
worker: Worker | None = None
db_pool = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Open the store on startup, stop the worker and close the pool on shutdown."""
    global service, worker, db_pool

    kv, db_pool = await create_kv_store(config, logger)
    service = QueueService(config, kv, registry, logger)
    worker = Worker(service)
    await worker.start()
    logger.info("Worker started on queue %s", config.default_queue)

    yield

    await worker.stop()
    if db_pool:
        await db_pool.close()


def get_service() -> QueueService:
    if service is None:
        raise RuntimeError("Application not initialized")
    return service


def get_worker() -> Worker:
    if worker is None:
        raise RuntimeError("Application not initialized")
    return worker


app = FastAPI(
    title="kv_jobs example",
    description="Queue administration over HTTP",
    version="0.1.0",
    lifespan=lifespan,
)

app.include_router(
    create_queue_router(
        get_service,
        worker_factory=get_worker,
        scheduler_factory=lambda: Scheduler(get_service()),
        auth_token=config.auth_token,
    )
)


@app.get("/health")
async def health_check():
    return {"status": "healthy", "worker_running": worker.is_running if worker else False}


if __name__ == "__main__":
    uvicorn.run("examples.app:app", host="0.0.0.0", port=8000)
