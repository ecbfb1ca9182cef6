"""Job wiring: builds the pipeline from settings and runs it against storage."""

from __future__ import annotations

from collections.abc import Iterable

import aiosqlite

from listing_loader.cache import LookupCache
from listing_loader.config import Settings
from listing_loader.db import ListingStorage
from listing_loader.errors import FormatError
from listing_loader.listeners import JobListener, LoggingJobListener
from listing_loader.logging import get_logger, job_context
from listing_loader.models import FailureKind, JobOutcome, JobStatus
from listing_loader.reader import StreamingRecordReader
from listing_loader.resolver import EntityResolver
from listing_loader.runner import ChunkedPipelineRunner
from listing_loader.skip_sink import JsonFileSkipSink
from listing_loader.transform import RecordTransformer

logger = get_logger(__name__)


def build_runner(
    settings: Settings,
    storage: ListingStorage,
    reader: StreamingRecordReader,
    cache: LookupCache,
    *,
    listeners: Iterable[JobListener] = (),
) -> ChunkedPipelineRunner:
    """Compose the pipeline components for one run."""
    resolver = EntityResolver(storage.addresses, storage.properties, storage.schools, cache)
    return ChunkedPipelineRunner(
        reader,
        RecordTransformer(settings.listing_type),
        resolver,
        storage,
        storage.jobs,
        cache,
        commit_interval=settings.commit_interval,
        skip_limit=settings.skip_limit,
        listeners=listeners,
    )


async def run_job(
    settings: Settings, *, restart: bool = False, cache: LookupCache | None = None
) -> JobOutcome:
    """Load the configured input file into the configured database.

    Args:
        settings: Job parameters.
        restart: Resume from the last unfinished execution for the same input
            file, if there is one.
        cache: Lookup cache to use; a new one sized from settings by default.

    Returns:
        The outcome of the run, also recorded as a job execution.

    Raises:
        ValueError: If no input file is configured.
        FileNotFoundError: If the input file does not exist.
    """
    input_path = settings.require_input_file()
    if not input_path.is_file():
        raise FileNotFoundError(f"Input file not found: {input_path}")
    input_file = str(input_path)

    if cache is None:
        cache = LookupCache(maxsize=settings.lookup_cache_size)

    storage = ListingStorage(settings.database_path)
    reader = StreamingRecordReader(input_path, buffer_size=settings.read_buffer_size)
    try:
        await storage.initialize()

        start_at = 0
        restarted_from = None
        if restart:
            point = await storage.jobs.find_restart_point(input_file)
            if point is not None:
                start_at, restarted_from = point.position, point.job_id

        job_id = await storage.jobs.create_job_execution(
            input_file, start_position=start_at, restarted_from=restarted_from
        )
        with job_context(job_id, input_file), JsonFileSkipSink(settings.skip_file) as sink:
            try:
                reader.open(start_at=start_at)
            except FormatError as e:
                logger.error("input_not_an_array", error=str(e))
                outcome = JobOutcome(
                    status=JobStatus.FAILED,
                    position=start_at,
                    failure_kind=FailureKind.READER_ERROR,
                    error_message=str(e),
                )
            else:
                runner = build_runner(
                    settings, storage, reader, cache, listeners=[LoggingJobListener(), sink]
                )
                outcome = await runner.run(job_id)
            logger.info("lookup_cache_stats", **cache.stats())

        await storage.jobs.complete_job_execution(job_id, outcome)
        return outcome
    finally:
        reader.close()
        try:
            await storage.close()
        except aiosqlite.Error:
            logger.warning(
                "storage_close_failed", database_path=settings.database_path, exc_info=True
            )
