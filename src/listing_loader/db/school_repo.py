"""School repository: schools and their distance to properties."""

from __future__ import annotations

from listing_loader.db.row_mappers import (
    ConnectionGetter,
    execute,
    fetch_scalar,
    insert_returning_id,
)
from listing_loader.models import School


class SchoolRepository:
    """Database operations for schools. Writes join the caller's transaction."""

    def __init__(self, get_connection: ConnectionGetter) -> None:
        self._get_connection = get_connection

    async def add_school(self, school: School, street_locality_pid: str | None) -> int:
        """Insert a school and return its generated id."""
        conn = await self._get_connection()
        return await insert_returning_id(
            conn,
            """
            INSERT INTO schools (name, website, type, sector, gnaf_street_locality_pid)
            VALUES (?, ?, ?, ?, ?)
            """,
            (school.name, school.website, school.school_type, school.sector, street_locality_pid),
        )

    async def find_school_id(
        self, name: str | None, school_type: str | None, sector: str | None
    ) -> int | None:
        """Return the id of the school with this (name, type, sector), or None."""
        conn = await self._get_connection()
        school_id: int | None = await fetch_scalar(
            conn,
            """
            SELECT school_id FROM schools
            WHERE name IS ? AND type IS ? AND sector IS ?
            ORDER BY school_id
            LIMIT 1
            """,
            (name, school_type, sector),
        )
        return school_id

    async def add_school_distance(
        self, property_id: int, school_id: int, distance: str | None
    ) -> None:
        """Record a school's distance from a property."""
        conn = await self._get_connection()
        await execute(
            conn,
            """
            INSERT INTO schools_near_props (prop_dtls_id, school_id, distance_desc)
            VALUES (?, ?, ?)
            """,
            (property_id, school_id, distance),
        )

    async def get_school_count(self) -> int:
        """Total number of stored schools."""
        conn = await self._get_connection()
        count: int = await fetch_scalar(conn, "SELECT COUNT(*) FROM schools", ()) or 0
        return count
