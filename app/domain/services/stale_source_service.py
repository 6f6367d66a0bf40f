"""Fails sources stuck in ``processing`` because the engine never called back."""

import logging
from datetime import datetime, timedelta, timezone
from typing import List, Optional

from app.domain.models.source import Source
from app.domain.repositories.notebook_repository import SourceRepository
from app.domain.source_state import SourceStatus
from app.infrastructure.monitoring.logging_setup import log_source_transition

logger = logging.getLogger(__name__)


class StaleSourceService:
    """Sweep for sources whose callback never arrived.

    Disabled when ``stale_after_minutes`` is None. Sources the engine is
    still working on are indistinguishable from lost ones, so the threshold
    should comfortably exceed the engine's slowest job.
    """

    def __init__(self, source_repo: SourceRepository, stale_after_minutes: Optional[int] = None):
        self.source_repo = source_repo
        self.stale_after_minutes = stale_after_minutes

    @property
    def enabled(self) -> bool:
        return bool(self.stale_after_minutes and self.stale_after_minutes > 0)

    async def fail_stale_sources(self, now: Optional[datetime] = None) -> List[Source]:
        """Move every ``processing`` source older than the threshold to ``failed``."""
        if not self.enabled:
            logger.info("Stale source sweep disabled (SOURCE_STALE_AFTER_MINUTES unset)")
            return []

        cutoff = (now or datetime.now(timezone.utc)) - timedelta(minutes=self.stale_after_minutes)
        failed = await self.source_repo.fail_stale(cutoff)

        for source in failed:
            log_source_transition(
                logger,
                source.id,
                SourceStatus.PROCESSING,
                SourceStatus.FAILED,
                "sweep",
                extra_data={"cutoff": cutoff.isoformat()},
            )
        logger.info(f"Stale source sweep failed {len(failed)} source(s)", extra={"cutoff": cutoff.isoformat()})
        return failed
