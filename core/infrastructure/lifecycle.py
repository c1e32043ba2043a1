import asyncio
import contextlib
import os
import sys
from contextlib import asynccontextmanager

from fastapi import FastAPI
import structlog

from adapters.meta.client import close_meta_http_client
from core.infrastructure.http_client import init_http_client, close_http_client
from core.metadata import SERVICE_NAME, VERSION
from services.campaign.progress_store import progress_store, remove_expired_jobs

logger = structlog.get_logger(__name__)

STARTUP_BANNER = """
╔══════════════════════════════════════════════╗
║  {service} v{version}
║  Python {python} | env: {env} | {log_level}
╚══════════════════════════════════════════════╝"""

SHUTDOWN_BANNER = """
╔══════════════════════════════════════════════╗
║  {service} v{version} shutting down
╚══════════════════════════════════════════════╝"""


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_http_client()
    logger.info("HTTP client initialized", component="http")

    cleanup_task = asyncio.create_task(remove_expired_jobs(progress_store))
    logger.info("Job cleanup scheduled", component="jobs")

    environment = os.getenv("ENVIRONMENT", "local")
    log_level = os.getenv("LOG_LEVEL", "INFO").upper()
    python_version = sys.version.split()[0]

    print(
        STARTUP_BANNER.format(
            service=SERVICE_NAME,
            version=VERSION,
            python=python_version,
            env=environment,
            log_level=log_level,
        )
    )
    logger.info(
        "Service started",
        service=SERVICE_NAME,
        version=VERSION,
        python=python_version,
        environment=environment,
        log_level=log_level,
    )
    try:
        yield
    finally:
        print(SHUTDOWN_BANNER.format(service=SERVICE_NAME, version=VERSION))
        logger.info("Service shutting down", service=SERVICE_NAME, version=VERSION)
        cleanup_task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await cleanup_task
        await close_http_client()
        await close_meta_http_client()
        logger.info("HTTP clients closed", component="http")
