"""Property repository: property observations, comparables, history, audit."""

from __future__ import annotations

from datetime import date

from listing_loader.db.row_mappers import (
    ConnectionGetter,
    build_property_insert,
    date_to_db,
    execute,
    fetch_scalar,
    insert_returning_id,
    property_attribute_columns,
)
from listing_loader.logging import get_logger
from listing_loader.models import ComparisonType, Event, PropertyRecord

logger = get_logger(__name__)

SELECT_PROPERTY_BY_ADDRESS_PID = """
    SELECT prop_dtls_id
    FROM property_details
    WHERE gnaf_addr_dtl_pid = ?
      AND as_at = ?
"""

SELECT_PROPERTY_BY_ADDRESS = """
    SELECT prop_dtls_id
    FROM property_details
    WHERE gnaf_addr_dtl_pid IS NULL
      AND address IS ?
      AND state IS ?
      AND (post_code IS NULL OR post_code IS ?)
      AND locality IS ?
      AND as_at = ?
    ORDER BY prop_dtls_id
    LIMIT 1
"""


class PropertyRepository:
    """Database operations for property rows.

    Nothing here commits: every write joins the caller's open transaction.
    """

    def __init__(self, get_connection: ConnectionGetter) -> None:
        self._get_connection = get_connection

    async def add_property(
        self, record: PropertyRecord, address_pid: str | None, as_at: date
    ) -> int:
        """Insert a property observation.

        Args:
            record: Property attributes.
            address_pid: Resolved AddressPID; when set, the denormalized
                address columns are left NULL.
            as_at: Observation date.

        Returns:
            The generated property id.
        """
        columns, values = build_property_insert(record, address_pid, as_at)
        placeholders = ", ".join("?" for _ in columns)
        conn = await self._get_connection()
        property_id = await insert_returning_id(
            conn,
            f"INSERT INTO property_details ({', '.join(columns)}) VALUES ({placeholders})",
            values,
        )
        logger.debug("property_added", property_id=property_id, address_pid=address_pid)
        return property_id

    async def update_property(self, property_id: int, record: PropertyRecord) -> int:
        """Update the mutable attributes of an existing property.

        Identity columns (AddressPID, address fields, as-of date) are never
        changed.

        Returns:
            Number of rows affected.
        """
        attributes = property_attribute_columns(record)
        set_clauses = ", ".join(f"{column} = ?" for column in attributes)
        values = [*attributes.values(), property_id]
        conn = await self._get_connection()
        cursor = await execute(
            conn,
            f"""
            UPDATE property_details
            SET {set_clauses}, updated_at = CURRENT_TIMESTAMP
            WHERE prop_dtls_id = ?
            """,
            values,
        )
        return cursor.rowcount

    async def find_property_id_by_address_pid(
        self, address_pid: str | None, as_at: date
    ) -> int | None:
        """Return the id of the property observed at ``as_at`` for an AddressPID."""
        if address_pid is None:
            return None
        conn = await self._get_connection()
        property_id: int | None = await fetch_scalar(
            conn, SELECT_PROPERTY_BY_ADDRESS_PID, (address_pid, date_to_db(as_at))
        )
        return property_id

    async def find_property_id_by_address(
        self,
        address: str | None,
        state: str | None,
        post_code: str | None,
        locality: str | None,
        as_at: date,
    ) -> int | None:
        """Return the id of the unlinked property observed at ``as_at`` for an address."""
        if not any((address, state, post_code, locality)):
            logger.debug("property_lookup_without_address")
            return None
        conn = await self._get_connection()
        property_id: int | None = await fetch_scalar(
            conn,
            SELECT_PROPERTY_BY_ADDRESS,
            (address, state, post_code, locality, date_to_db(as_at)),
        )
        return property_id

    async def add_comparable_property(
        self,
        property_id: int,
        comparable_id: int,
        comparison_type: ComparisonType,
        compared_on: date,
    ) -> None:
        """Associate a comparable property with the listed property."""
        conn = await self._get_connection()
        await execute(
            conn,
            """
            INSERT INTO comparable_properties
                (prop_compared_id, comparable_prop_id, comparison_type, compared_on)
            VALUES (?, ?, ?, ?)
            """,
            (property_id, comparable_id, comparison_type.value, date_to_db(compared_on)),
        )

    async def add_event(self, property_id: int, event: Event, event_type: str) -> None:
        """Record a rent/sale history event with its normalized type."""
        conn = await self._get_connection()
        await execute(
            conn,
            """
            INSERT INTO property_sale_rent_hist
                (prop_dtls_id, event_year, event_month, event_type, price_desc)
            VALUES (?, ?, ?, ?, ?)
            """,
            (property_id, event.year, event.month, event_type, event.price_desc),
        )

    async def add_data_acquisition(
        self, address_pid: str | None, url: str | None, acquired_on: date, property_id: int
    ) -> None:
        """Record where and when the details for a property were acquired."""
        conn = await self._get_connection()
        await execute(
            conn,
            """
            INSERT INTO data_acquisition (gnaf_addr_dtl_pid, url, acquired_on, prop_dtls_id)
            VALUES (?, ?, ?, ?)
            """,
            (address_pid, url, date_to_db(acquired_on), property_id),
        )

    async def get_property_count(self) -> int:
        """Total number of stored property rows."""
        conn = await self._get_connection()
        count: int = await fetch_scalar(conn, "SELECT COUNT(*) FROM property_details", ()) or 0
        return count
