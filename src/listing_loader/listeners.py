"""Job lifecycle listeners.

The runner notifies every registered listener synchronously, in registration
order. ``JobListener`` implements each hook as a no-op so listeners only
override what they care about.
"""

from collections.abc import Sequence
from typing import Any

from listing_loader.logging import get_logger
from listing_loader.models import JobOutcome, SkipPhase

logger = get_logger(__name__)


class JobListener:
    """Base listener; every hook does nothing."""

    def on_job_start(self, job_id: int, start_position: int) -> None:
        pass

    def on_skip(self, phase: SkipPhase, error: Exception, item: Any) -> None:
        pass

    def on_chunk_committed(self, size: int, position: int) -> None:
        pass

    def on_chunk_rolled_back(self, error: Exception, items: Sequence[Any]) -> None:
        pass

    def on_job_end(self, outcome: JobOutcome) -> None:
        pass


class LoggingJobListener(JobListener):
    """Reports job progress through structlog."""

    def on_job_start(self, job_id: int, start_position: int) -> None:
        logger.info("job_started", job_id=job_id, start_position=start_position)

    def on_skip(self, phase: SkipPhase, error: Exception, item: Any) -> None:
        logger.error(
            "item_skipped",
            phase=phase.value,
            error=str(error),
            error_code=getattr(error, "error_code", type(error).__name__),
        )

    def on_chunk_committed(self, size: int, position: int) -> None:
        logger.info("chunk_committed", size=size, position=position)

    def on_chunk_rolled_back(self, error: Exception, items: Sequence[Any]) -> None:
        logger.warning("chunk_rolled_back", error=str(error), size=len(items))

    def on_job_end(self, outcome: JobOutcome) -> None:
        log = logger.info if outcome.succeeded else logger.error
        log(
            "job_finished",
            status=outcome.status.value,
            read=outcome.read_count,
            filtered=outcome.filtered_count,
            written=outcome.written_count,
            skipped=outcome.skip_count,
            position=outcome.position,
            failure_kind=outcome.failure_kind.value if outcome.failure_kind else None,
            error=outcome.error_message,
        )
