"""Chunked, skip-tolerant pipeline runner.

Items are read and transformed one at a time and collected into chunks of
``commit_interval`` listings. Each chunk is resolved inside one transaction
together with the restart checkpoint. When resolution fails, the chunk is
rolled back, the lookup cache is cleared, the failing item is skipped and the
remaining items are retried one transaction each.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from enum import StrEnum
from typing import Any

from listing_loader.cache import LookupCache
from listing_loader.db.ports import CheckpointStore, TransactionManager
from listing_loader.errors import (
    DuplicateKeyError,
    FormatError,
    NotOpenError,
    ResolutionError,
    SkipLimitExceededError,
    ValidationError,
)
from listing_loader.listeners import JobListener
from listing_loader.logging import get_logger
from listing_loader.models import FailureKind, JobOutcome, JobStatus, Listing, SkipPhase
from listing_loader.reader import StreamingRecordReader
from listing_loader.resolver import EntityResolver
from listing_loader.transform import RecordTransformer

logger = get_logger(__name__)

WRITE_ERRORS = (ResolutionError, DuplicateKeyError)


class RunnerState(StrEnum):
    """Where the runner is in its read/commit cycle."""

    IDLE = "idle"
    READING = "reading"
    CHUNK_OPEN = "chunk_open"
    COMMITTING = "committing"
    SKIPPING_ITEM = "skipping_item"
    ROLLING_BACK = "rolling_back"
    DONE = "done"
    FAILED = "failed"


@dataclass(frozen=True)
class ChunkItem:
    """A transformed listing together with the raw record it came from."""

    raw: dict[str, Any]
    listing: Listing


class ChunkedPipelineRunner:
    """Drives reader → transformer → resolver in committed chunks."""

    def __init__(
        self,
        reader: StreamingRecordReader,
        transformer: RecordTransformer,
        resolver: EntityResolver,
        transactions: TransactionManager,
        checkpoints: CheckpointStore,
        cache: LookupCache,
        *,
        commit_interval: int = 2500,
        skip_limit: int = 5000,
        listeners: Iterable[JobListener] = (),
    ) -> None:
        if commit_interval < 1:
            raise ValueError("commit_interval must be at least 1")
        if skip_limit < 0:
            raise ValueError("skip_limit must not be negative")
        self._reader = reader
        self._transformer = transformer
        self._resolver = resolver
        self._transactions = transactions
        self._checkpoints = checkpoints
        self._cache = cache
        self.commit_interval = commit_interval
        self.skip_limit = skip_limit
        self._listeners = list(listeners)
        self._state = RunnerState.IDLE
        self._reset_counts()

    @property
    def state(self) -> RunnerState:
        return self._state

    def _reset_counts(self) -> None:
        self._start_position = 0
        self._position = 0
        self._filtered = 0
        self._written = 0
        self._skipped = 0

    async def run(self, job_id: int) -> JobOutcome:
        """Process the reader to the end of its input.

        Args:
            job_id: Job execution the checkpoints are written against.

        Returns:
            The outcome; ``FAILED`` outcomes carry the failure kind.
        """
        self._reset_counts()
        self._start_position = self._reader.read_count
        self._position = self._start_position
        for listener in self._listeners:
            listener.on_job_start(job_id, self._start_position)

        try:
            await self._process(job_id)
        except SkipLimitExceededError as e:
            outcome = self._finish(FailureKind.SKIP_LIMIT_EXCEEDED, e)
        except NotOpenError as e:
            outcome = self._finish(FailureKind.READER_NOT_OPEN, e)
        except FormatError as e:
            outcome = self._finish(FailureKind.READER_ERROR, e)
        except BaseException:
            self._state = RunnerState.FAILED
            raise
        else:
            outcome = self._finish()

        for listener in self._listeners:
            listener.on_job_end(outcome)
        return outcome

    async def _process(self, job_id: int) -> None:
        exhausted = False
        while not exhausted:
            items, exhausted = self._fill_chunk()
            # Chunks holding only filtered or skipped elements still move the checkpoint
            if items or self._reader.read_count > self._position:
                await self._write_chunk(job_id, items)

    def _fill_chunk(self) -> tuple[list[ChunkItem], bool]:
        """Read until the chunk is full or the input ends.

        Returns:
            The chunk items and whether the input is exhausted.
        """
        self._state = RunnerState.READING
        items: list[ChunkItem] = []
        while len(items) < self.commit_interval:
            try:
                raw = self._reader.read()
            except FormatError as e:
                if not e.recoverable:
                    raise
                self._skip(SkipPhase.READ, e, e.item)
                continue
            if raw is None:
                return items, True

            try:
                listing = self._transformer.transform(raw)
            except ValidationError as e:
                self._skip(SkipPhase.TRANSFORM, e, raw)
                continue
            if listing is None:
                self._filtered += 1
                continue

            items.append(ChunkItem(raw=raw, listing=listing))
            self._state = RunnerState.CHUNK_OPEN
        return items, False

    async def _write_chunk(self, job_id: int, items: Sequence[ChunkItem]) -> None:
        position = self._reader.read_count
        self._state = RunnerState.COMMITTING
        current: ChunkItem | None = None
        try:
            async with self._transactions.transaction():
                for current in items:
                    await self._resolver.resolve(current.listing)
                await self._save_checkpoint(job_id, position, written=len(items))
        except WRITE_ERRORS as e:
            if current is None:
                raise
            await self._recover_chunk(job_id, items, current, e, position)
            return

        self._written += len(items)
        self._position = position
        for listener in self._listeners:
            listener.on_chunk_committed(len(items), position)

    async def _recover_chunk(
        self,
        job_id: int,
        items: Sequence[ChunkItem],
        failed: ChunkItem,
        error: Exception,
        position: int,
    ) -> None:
        """Skip the failing item and write the rest one transaction each."""
        self._rolled_back(error, [item.raw for item in items])
        self._skip(SkipPhase.WRITE, error, failed.raw)

        logger.debug("retrying_chunk_items", count=len(items) - 1, position=position)
        for item in items:
            if item is failed:
                continue
            self._state = RunnerState.COMMITTING
            try:
                async with self._transactions.transaction():
                    await self._resolver.resolve(item.listing)
            except WRITE_ERRORS as e:
                self._rolled_back(e, [item.raw])
                self._skip(SkipPhase.WRITE, e, item.raw)
                continue
            self._written += 1

        self._state = RunnerState.COMMITTING
        async with self._transactions.transaction():
            await self._save_checkpoint(job_id, position, written=0)
        self._position = position
        for listener in self._listeners:
            listener.on_chunk_committed(len(items), position)

    def _rolled_back(self, error: Exception, raw_items: Sequence[Any]) -> None:
        """Invalidate everything looked up under the failed transaction."""
        self._state = RunnerState.ROLLING_BACK
        self._cache.clear()
        for listener in self._listeners:
            listener.on_chunk_rolled_back(error, raw_items)

    def _skip(self, phase: SkipPhase, error: Exception, item: Any) -> None:
        """Record a skipped item.

        Raises:
            SkipLimitExceededError: If this skip would exceed the limit; the
                item is not recorded.
        """
        self._state = RunnerState.SKIPPING_ITEM
        if self._skipped + 1 > self.skip_limit:
            raise SkipLimitExceededError(self.skip_limit, self._skipped + 1)
        self._skipped += 1
        for listener in self._listeners:
            listener.on_skip(phase, error, item)

    async def _save_checkpoint(self, job_id: int, position: int, *, written: int) -> None:
        await self._checkpoints.save_checkpoint(
            job_id,
            position=position,
            read_count=position - self._start_position,
            filtered_count=self._filtered,
            written_count=self._written + written,
            skip_count=self._skipped,
        )

    def _finish(
        self, failure_kind: FailureKind | None = None, error: Exception | None = None
    ) -> JobOutcome:
        if failure_kind is None:
            self._state = RunnerState.DONE
            status = JobStatus.DONE
        else:
            self._state = RunnerState.FAILED
            status = JobStatus.FAILED
        return JobOutcome(
            status=status,
            read_count=self._reader.read_count - self._start_position,
            filtered_count=self._filtered,
            written_count=self._written,
            skip_count=self._skipped,
            position=self._position,
            failure_kind=failure_kind,
            error_message=str(error) if error is not None else None,
        )
