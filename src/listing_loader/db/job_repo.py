"""Job repository: job executions, checkpoints and restart points."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any, NamedTuple

from listing_loader.db.row_mappers import ConnectionGetter
from listing_loader.logging import get_logger
from listing_loader.models import JobOutcome, JobStatus

logger = get_logger(__name__)


class RestartPoint(NamedTuple):
    """Where a restarted run picks up: the execution it continues and its offset."""

    job_id: int
    position: int


class JobRepository:
    """Database operations for job execution tracking."""

    def __init__(self, get_connection: ConnectionGetter) -> None:
        self._get_connection = get_connection

    async def create_job_execution(
        self,
        input_file: str,
        *,
        start_position: int = 0,
        restarted_from: int | None = None,
    ) -> int:
        """Create a new job execution record.

        Returns:
            The ID of the new execution.
        """
        conn = await self._get_connection()
        cursor = await conn.execute(
            """
            INSERT INTO job_executions
                (input_file, started_at, status, start_position, position, restarted_from)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            (
                input_file,
                datetime.now(UTC).isoformat(),
                JobStatus.RUNNING.value,
                start_position,
                start_position,
                restarted_from,
            ),
        )
        await conn.commit()
        return cursor.lastrowid  # type: ignore[return-value]

    async def save_checkpoint(
        self,
        job_id: int,
        *,
        position: int,
        read_count: int,
        filtered_count: int,
        written_count: int,
        skip_count: int,
    ) -> None:
        """Record progress. Joins the open chunk transaction; does not commit."""
        conn = await self._get_connection()
        await conn.execute(
            """
            UPDATE job_executions
            SET position = ?, read_count = ?, filtered_count = ?,
                written_count = ?, skip_count = ?
            WHERE id = ?
            """,
            (position, read_count, filtered_count, written_count, skip_count, job_id),
        )

    async def complete_job_execution(self, job_id: int, outcome: JobOutcome) -> None:
        """Mark a job execution as done or failed and store its final counts."""
        conn = await self._get_connection()
        now = datetime.now(UTC).isoformat()
        cursor = await conn.execute(
            "SELECT started_at FROM job_executions WHERE id = ?", (job_id,)
        )
        row = await cursor.fetchone()
        duration = None
        if row:
            started = datetime.fromisoformat(row["started_at"])
            duration = (datetime.fromisoformat(now) - started).total_seconds()

        await conn.execute(
            """
            UPDATE job_executions
            SET completed_at = ?, status = ?, position = ?, read_count = ?,
                filtered_count = ?, written_count = ?, skip_count = ?,
                failure_kind = ?, error_message = ?, duration_seconds = ?
            WHERE id = ?
            """,
            (
                now,
                outcome.status.value,
                outcome.position,
                outcome.read_count,
                outcome.filtered_count,
                outcome.written_count,
                outcome.skip_count,
                outcome.failure_kind.value if outcome.failure_kind else None,
                outcome.error_message,
                duration,
                job_id,
            ),
        )
        await conn.commit()

    async def find_restart_point(self, input_file: str) -> RestartPoint | None:
        """Find where to resume loading ``input_file``.

        Only the most recent execution for the file counts: if it did not
        finish, its committed position is the restart offset.

        Returns:
            The restart point, or None when the last execution finished or
            the file was never loaded.
        """
        conn = await self._get_connection()
        cursor = await conn.execute(
            """
            SELECT id, status, position FROM job_executions
            WHERE input_file = ?
            ORDER BY id DESC LIMIT 1
            """,
            (input_file,),
        )
        row = await cursor.fetchone()
        if row is None or row["status"] == JobStatus.DONE.value:
            return None
        logger.info(
            "restart_point_found",
            previous_job_id=row["id"],
            previous_status=row["status"],
            position=row["position"],
        )
        return RestartPoint(job_id=row["id"], position=row["position"])

    async def get_job_execution(self, job_id: int) -> dict[str, Any] | None:
        """Get a job execution row as a dict, or None if it does not exist."""
        conn = await self._get_connection()
        cursor = await conn.execute("SELECT * FROM job_executions WHERE id = ?", (job_id,))
        row = await cursor.fetchone()
        if row is None:
            return None
        return dict(row)
