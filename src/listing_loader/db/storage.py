"""SQLite storage for listings, schools and job executions."""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path

import aiosqlite

from listing_loader.db.address_repo import AddressRepository
from listing_loader.db.job_repo import JobRepository
from listing_loader.db.property_repo import PropertyRepository
from listing_loader.db.school_repo import SchoolRepository
from listing_loader.logging import get_logger

logger = get_logger(__name__)

SCHEMA = (
    # Address reference data, consumed read-only by the pipeline
    """
    CREATE TABLE IF NOT EXISTS gnaf_address_detail (
        address_detail_pid TEXT PRIMARY KEY,
        address TEXT NOT NULL,
        state TEXT,
        post_code TEXT,
        locality TEXT
    )
    """,
    """
    CREATE INDEX IF NOT EXISTS idx_gnaf_address_locality
    ON gnaf_address_detail(locality, state)
    """,
    """
    CREATE TABLE IF NOT EXISTS gnaf_street_locality (
        street_locality_pid TEXT PRIMARY KEY,
        street_desc TEXT NOT NULL,
        state TEXT,
        post_code TEXT,
        locality TEXT
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS property_details (
        prop_dtls_id INTEGER PRIMARY KEY AUTOINCREMENT,
        gnaf_addr_dtl_pid TEXT,
        as_at TEXT NOT NULL,
        address TEXT,
        state TEXT,
        post_code TEXT,
        locality TEXT,
        property_type TEXT,
        bedrooms INTEGER,
        bathrooms INTEGER,
        car_spots INTEGER,
        land_size_desc TEXT,
        bldg_size_desc TEXT,
        council_area TEXT,
        lot_plan TEXT,
        price_desc TEXT,
        price_estimate_from INTEGER,
        price_estimate_to INTEGER,
        price_estimate_confidence TEXT,
        sale_method TEXT,
        sold_date TEXT,
        avail_for_lease TEXT,
        available_now INTEGER NOT NULL DEFAULT 0,
        year_built TEXT,
        block_code TEXT,
        created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
        updated_at TEXT,
        CHECK (
            gnaf_addr_dtl_pid IS NULL
            OR (address IS NULL AND state IS NULL AND post_code IS NULL AND locality IS NULL)
        )
    )
    """,
    """
    CREATE UNIQUE INDEX IF NOT EXISTS uq_property_pid_as_at
    ON property_details(gnaf_addr_dtl_pid, as_at)
    WHERE gnaf_addr_dtl_pid IS NOT NULL
    """,
    """
    CREATE UNIQUE INDEX IF NOT EXISTS uq_property_address_as_at
    ON property_details(address, state, post_code, locality, as_at)
    WHERE gnaf_addr_dtl_pid IS NULL
    """,
    """
    CREATE TABLE IF NOT EXISTS comparable_properties (
        prop_compared_id INTEGER NOT NULL REFERENCES property_details(prop_dtls_id),
        comparable_prop_id INTEGER NOT NULL REFERENCES property_details(prop_dtls_id),
        comparison_type TEXT NOT NULL,
        compared_on TEXT NOT NULL,
        UNIQUE(prop_compared_id, comparable_prop_id, comparison_type, compared_on)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS schools (
        school_id INTEGER PRIMARY KEY AUTOINCREMENT,
        name TEXT,
        website TEXT,
        type TEXT,
        sector TEXT,
        gnaf_street_locality_pid TEXT,
        UNIQUE(name, type, sector)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS schools_near_props (
        prop_dtls_id INTEGER NOT NULL REFERENCES property_details(prop_dtls_id),
        school_id INTEGER NOT NULL REFERENCES schools(school_id),
        distance_desc TEXT,
        UNIQUE(prop_dtls_id, school_id)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS property_sale_rent_hist (
        prop_dtls_id INTEGER NOT NULL REFERENCES property_details(prop_dtls_id),
        event_year INTEGER NOT NULL,
        event_month INTEGER NOT NULL,
        event_type TEXT NOT NULL,
        price_desc TEXT,
        UNIQUE(prop_dtls_id, event_year, event_month, event_type)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS data_acquisition (
        gnaf_addr_dtl_pid TEXT,
        url TEXT,
        acquired_on TEXT NOT NULL,
        prop_dtls_id INTEGER NOT NULL REFERENCES property_details(prop_dtls_id)
    )
    """,
    # Listings without a URL still acquire a property at most once per date
    """
    CREATE UNIQUE INDEX IF NOT EXISTS uq_data_acquisition
    ON data_acquisition(COALESCE(url, ''), acquired_on, prop_dtls_id)
    """,
    # Job executions for observability and restart
    """
    CREATE TABLE IF NOT EXISTS job_executions (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        input_file TEXT NOT NULL,
        started_at TEXT NOT NULL,
        completed_at TEXT,
        status TEXT NOT NULL DEFAULT 'running',
        start_position INTEGER NOT NULL DEFAULT 0,
        position INTEGER NOT NULL DEFAULT 0,
        read_count INTEGER NOT NULL DEFAULT 0,
        filtered_count INTEGER NOT NULL DEFAULT 0,
        written_count INTEGER NOT NULL DEFAULT 0,
        skip_count INTEGER NOT NULL DEFAULT 0,
        restarted_from INTEGER REFERENCES job_executions(id),
        failure_kind TEXT,
        error_message TEXT,
        duration_seconds REAL
    )
    """,
    """
    CREATE INDEX IF NOT EXISTS idx_job_executions_input
    ON job_executions(input_file, id)
    """,
)


class ListingStorage:
    """SQLite-based storage for loaded listings."""

    def __init__(self, db_path: str) -> None:
        """Initialize storage with database path.

        Args:
            db_path: Path to SQLite database file, or ":memory:" for in-memory.
        """
        self.db_path = db_path
        self._conn: aiosqlite.Connection | None = None
        self._ensure_directory()
        self.addresses = AddressRepository(self._get_connection)
        self.properties = PropertyRepository(self._get_connection)
        self.schools = SchoolRepository(self._get_connection)
        self.jobs = JobRepository(self._get_connection)

    def _ensure_directory(self) -> None:
        """Ensure the directory for the database exists."""
        if self.db_path != ":memory:":
            path = Path(self.db_path)
            path.parent.mkdir(parents=True, exist_ok=True)

    async def _get_connection(self) -> aiosqlite.Connection:
        """Get or create the database connection."""
        if self._conn is None:
            self._conn = await aiosqlite.connect(self.db_path)
            self._conn.row_factory = aiosqlite.Row
            await self._conn.execute("PRAGMA journal_mode=WAL")
            await self._conn.execute("PRAGMA busy_timeout=5000")
            await self._conn.execute("PRAGMA synchronous=NORMAL")
            await self._conn.execute("PRAGMA foreign_keys=ON")
        return self._conn

    async def close(self) -> None:
        """Close the database connection."""
        if self._conn is not None:
            await self._conn.close()
            self._conn = None

    async def initialize(self) -> None:
        """Initialize the database schema."""
        conn = await self._get_connection()
        for statement in SCHEMA:
            await conn.execute(statement)
        await conn.commit()
        logger.debug("schema_initialized", db_path=self.db_path)

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[None]:
        """Run a block of writes as one unit.

        Commits when the block exits normally and rolls back when it raises;
        the exception is re-raised after the rollback.
        """
        conn = await self._get_connection()
        try:
            yield
        except BaseException:
            await conn.rollback()
            raise
        await conn.commit()
