"""Shared row-mapping and statement helpers for database modules."""

from __future__ import annotations

from collections.abc import Callable, Coroutine, Sequence
from datetime import date
from typing import Any

import aiosqlite

from listing_loader.errors import DuplicateKeyError, ResolutionError
from listing_loader.models import PropertyRecord

ConnectionGetter = Callable[[], Coroutine[Any, Any, aiosqlite.Connection]]


def date_to_db(value: date | None) -> str | None:
    """Dates are stored as ISO-8601 text."""
    return value.isoformat() if value is not None else None


def property_attribute_columns(record: PropertyRecord) -> dict[str, Any]:
    """Mutable (non-identity) property columns, keyed by column name."""
    return {
        "property_type": record.property_type,
        "bedrooms": record.bedrooms,
        "bathrooms": record.bathrooms,
        "car_spots": record.car_spots,
        "land_size_desc": record.land_size_desc,
        "bldg_size_desc": record.building_size_desc,
        "council_area": record.council_area,
        "lot_plan": record.lot_plan,
        "price_desc": record.price_desc,
        "price_estimate_from": record.price_estimate_from,
        "price_estimate_to": record.price_estimate_to,
        "price_estimate_confidence": record.price_estimate_confidence,
        "sale_method": record.sale_method,
        "sold_date": date_to_db(record.sold_date),
        "avail_for_lease": date_to_db(record.available_for_lease_date),
        "available_now": int(record.available_now),
        "year_built": record.year_built,
        "block_code": record.block_code,
    }


def build_property_insert(
    record: PropertyRecord, address_pid: str | None, as_at: date
) -> tuple[list[str], list[Any]]:
    """Build column names and values for a property insert.

    A row linked to an AddressPID does not also carry the denormalized
    address columns.
    """
    linked = address_pid is not None
    columns: dict[str, Any] = {
        "gnaf_addr_dtl_pid": address_pid,
        "as_at": date_to_db(as_at),
        "state": None if linked else record.state,
        "post_code": None if linked else record.post_code,
        "locality": None if linked else record.locality,
        "address": None if linked else record.address,
        **property_attribute_columns(record),
    }
    return list(columns), list(columns.values())


def _translate(e: aiosqlite.Error, sql: str) -> Exception:
    statement = " ".join(sql.split())[:80]
    if isinstance(e, aiosqlite.IntegrityError) and "UNIQUE constraint failed" in str(e):
        return DuplicateKeyError(f"{e} [{statement}]")
    return ResolutionError(f"{type(e).__name__}: {e} [{statement}]")


async def execute(
    conn: aiosqlite.Connection, sql: str, params: Sequence[Any] = ()
) -> aiosqlite.Cursor:
    """Execute a statement, mapping SQLite failures to loader errors.

    Raises:
        DuplicateKeyError: On a unique constraint violation.
        ResolutionError: On any other database error.
    """
    try:
        return await conn.execute(sql, params)
    except aiosqlite.Error as e:
        raise _translate(e, sql) from e


async def insert_returning_id(
    conn: aiosqlite.Connection, sql: str, params: Sequence[Any]
) -> int:
    """Execute an insert and return the generated row id.

    Raises:
        ResolutionError: If the insert did not produce an id.
    """
    cursor = await execute(conn, sql, params)
    row_id = cursor.lastrowid
    if not row_id:
        raise ResolutionError(f"Insert produced no generated id: {' '.join(sql.split())[:80]}")
    return row_id


async def fetch_scalar(
    conn: aiosqlite.Connection, sql: str, params: Sequence[Any]
) -> Any | None:
    """Return the first column of the first row, or None if there is no row."""
    cursor = await execute(conn, sql, params)
    row = await cursor.fetchone()
    await cursor.close()
    if row is None:
        return None
    return row[0]
