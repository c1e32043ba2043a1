import asyncio
from datetime import datetime, timedelta, timezone
from typing import Dict, Optional, Protocol

import structlog

from config.campaign_config import CampaignConfig
from core.models.pipeline import PipelineProgress

logger = structlog.get_logger(__name__)

CLEANUP_INTERVAL_SECONDS = 300


class ProgressSink(Protocol):
    async def publish(self, snapshot: PipelineProgress) -> None:
        ...


class InMemoryProgressStore:
    """Latest pipeline snapshot per job id, dropped once it goes stale."""

    def __init__(self, ttl: Optional[timedelta] = None):
        self.ttl = ttl or timedelta(minutes=CampaignConfig.JOB_TTL_MINUTES)
        self._jobs: Dict[str, PipelineProgress] = {}

    async def publish(self, snapshot: PipelineProgress) -> None:
        # Copy so later mutation by the pipeline does not leak into stored state
        self._jobs[snapshot.job_id] = snapshot.model_copy(deep=True)

    def get(self, job_id: str) -> Optional[PipelineProgress]:
        snapshot = self._jobs.get(job_id)
        if snapshot is None:
            return None
        if self._expired(snapshot, datetime.now(timezone.utc)):
            del self._jobs[job_id]
            return None
        return snapshot

    def remove_expired(self) -> int:
        now = datetime.now(timezone.utc)
        expired = [job_id for job_id, snapshot in self._jobs.items() if self._expired(snapshot, now)]
        for job_id in expired:
            del self._jobs[job_id]
            logger.info("campaign_job_expired", job_id=job_id)
        return len(expired)

    def _expired(self, snapshot: PipelineProgress, now: datetime) -> bool:
        return now - snapshot.updated_at > self.ttl

    def clear(self) -> None:
        self._jobs.clear()

    def __len__(self) -> int:
        return len(self._jobs)


async def remove_expired_jobs(store: "InMemoryProgressStore") -> None:
    while True:
        store.remove_expired()
        await asyncio.sleep(CLEANUP_INTERVAL_SECONDS)


progress_store = InMemoryProgressStore()
