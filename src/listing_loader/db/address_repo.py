"""Address reference lookups (AddressPID and street-locality PID)."""

from __future__ import annotations

from collections.abc import Iterable

from listing_loader.db.row_mappers import ConnectionGetter, execute
from listing_loader.logging import get_logger

logger = get_logger(__name__)

SELECT_ADDRESS_DETAIL_PID = """
    SELECT address_detail_pid
    FROM gnaf_address_detail
    WHERE address LIKE UPPER(?) || '%' ESCAPE '\\'
      AND state = ?
      AND (post_code IS NULL OR post_code = ?)
      AND locality = UPPER(?)
    LIMIT 2
"""

SELECT_STREET_LOCALITY_PID = """
    SELECT street_locality_pid
    FROM gnaf_street_locality
    WHERE state = ?
      AND (post_code IS NULL OR post_code = ?)
      AND locality = UPPER(?)
      AND street_desc = UPPER(?)
    LIMIT 2
"""


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class AddressRepository:
    """Lookups against the address reference tables.

    The pipeline only reads these tables; ``add_address_details`` and
    ``add_street_localities`` exist to load reference rows.
    """

    def __init__(self, get_connection: ConnectionGetter) -> None:
        self._get_connection = get_connection

    async def find_address_detail_pid(
        self,
        address: str | None,
        state: str | None,
        post_code: str | None,
        locality: str | None,
    ) -> str | None:
        """Return the AddressPID whose address starts with ``address``.

        Returns None when nothing matches, or when the prefix matches more than
        one address (no precise match).
        """
        if address is None:
            return None
        conn = await self._get_connection()
        cursor = await execute(
            conn,
            SELECT_ADDRESS_DETAIL_PID,
            (_escape_like(address), state, post_code, locality),
        )
        rows = await cursor.fetchall()
        if len(rows) != 1:
            logger.debug(
                "address_pid_not_matched",
                address=address,
                state=state,
                post_code=post_code,
                locality=locality,
                candidates=len(rows),
            )
            return None
        pid: str = rows[0][0]
        return pid

    async def find_street_locality_pid(
        self,
        street: str | None,
        state: str | None,
        post_code: str | None,
        locality: str | None,
    ) -> str | None:
        """Return the street-locality PID for a street in a locality, or None."""
        conn = await self._get_connection()
        cursor = await execute(
            conn, SELECT_STREET_LOCALITY_PID, (state, post_code, locality, street)
        )
        rows = await cursor.fetchall()
        if len(rows) != 1:
            logger.debug(
                "street_locality_not_matched",
                street=street,
                state=state,
                post_code=post_code,
                locality=locality,
                candidates=len(rows),
            )
            return None
        pid: str = rows[0][0]
        return pid

    async def add_address_details(
        self, rows: Iterable[tuple[str, str, str | None, str | None, str | None]]
    ) -> None:
        """Load reference addresses: (pid, address, state, post_code, locality).

        Address and locality are stored upper-case, as matched.
        """
        conn = await self._get_connection()
        await conn.executemany(
            """
            INSERT OR REPLACE INTO gnaf_address_detail
                (address_detail_pid, address, state, post_code, locality)
            VALUES (?, UPPER(?), ?, ?, UPPER(?))
            """,
            list(rows),
        )
        await conn.commit()

    async def add_street_localities(
        self, rows: Iterable[tuple[str, str, str | None, str | None, str | None]]
    ) -> None:
        """Load reference streets: (pid, street_desc, state, post_code, locality).

        Street and locality are stored upper-case, as matched.
        """
        conn = await self._get_connection()
        await conn.executemany(
            """
            INSERT OR REPLACE INTO gnaf_street_locality
                (street_locality_pid, street_desc, state, post_code, locality)
            VALUES (?, UPPER(?), ?, ?, UPPER(?))
            """,
            list(rows),
        )
        await conn.commit()
