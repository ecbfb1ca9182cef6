"""Storage ports the pipeline core depends on.

Every operation may raise ``ResolutionError`` for a generic storage failure.
Inserts into tables with a natural-key constraint raise ``DuplicateKeyError``
on conflict, which callers treat as a no-op where documented.
"""

from contextlib import AbstractAsyncContextManager
from datetime import date
from typing import Protocol

from listing_loader.models import ComparisonType, Event, PropertyRecord, School


class AddressAuthority(Protocol):
    """Read-only lookups against the address reference dataset."""

    async def find_address_detail_pid(
        self,
        address: str | None,
        state: str | None,
        post_code: str | None,
        locality: str | None,
    ) -> str | None:
        """Resolve an address (prefix match) to its AddressPID, or None."""
        ...

    async def find_street_locality_pid(
        self,
        street: str | None,
        state: str | None,
        post_code: str | None,
        locality: str | None,
    ) -> str | None:
        """Resolve a street within a locality to its street-locality PID, or None."""
        ...


class PropertyStore(Protocol):
    """Property rows and the associations hanging off them."""

    async def add_property(
        self, record: PropertyRecord, address_pid: str | None, as_at: date
    ) -> int:
        """Insert a property observation and return its generated id."""
        ...

    async def update_property(self, property_id: int, record: PropertyRecord) -> int:
        """Update mutable attributes of an existing row; returns rows affected."""
        ...

    async def find_property_id_by_address_pid(
        self, address_pid: str | None, as_at: date
    ) -> int | None: ...

    async def find_property_id_by_address(
        self,
        address: str | None,
        state: str | None,
        post_code: str | None,
        locality: str | None,
        as_at: date,
    ) -> int | None: ...

    async def add_comparable_property(
        self,
        property_id: int,
        comparable_id: int,
        comparison_type: ComparisonType,
        compared_on: date,
    ) -> None: ...

    async def add_event(self, property_id: int, event: Event, event_type: str) -> None: ...

    async def add_data_acquisition(
        self, address_pid: str | None, url: str | None, acquired_on: date, property_id: int
    ) -> None: ...


class SchoolStore(Protocol):
    """Schools and their distance to properties."""

    async def add_school(self, school: School, street_locality_pid: str | None) -> int: ...

    async def find_school_id(
        self, name: str | None, school_type: str | None, sector: str | None
    ) -> int | None: ...

    async def add_school_distance(
        self, property_id: int, school_id: int, distance: str | None
    ) -> None: ...


class TransactionManager(Protocol):
    """Unit of durability for a chunk."""

    def transaction(self) -> AbstractAsyncContextManager[None]:
        """Commit on normal exit, roll back if the block raises."""
        ...


class CheckpointStore(Protocol):
    """Restart bookkeeping written inside each chunk transaction."""

    async def save_checkpoint(
        self,
        job_id: int,
        *,
        position: int,
        read_count: int,
        filtered_count: int,
        written_count: int,
        skip_count: int,
    ) -> None: ...
