"""Find-or-create resolution of a listing into stored entities.

A listing resolves to one subject property row plus its comparables, nearby
schools, history events and a data-acquisition audit row. Lookups go through
the shared ``LookupCache``; writes go straight to the stores and join whatever
transaction the caller has open.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from datetime import date
from typing import Any, TypeVar

from listing_loader.cache import MISSING, LookupCache, LookupKey, LookupKind
from listing_loader.db.ports import AddressAuthority, PropertyStore, SchoolStore
from listing_loader.errors import DuplicateKeyError, ResolutionError
from listing_loader.logging import get_logger
from listing_loader.models import (
    EVENT_TYPE_ALIASES,
    ComparableProperty,
    ComparisonType,
    Event,
    Listing,
    PropertyRecord,
    School,
)

logger = get_logger(__name__)

T = TypeVar("T")


def normalize_event_type(raw: str) -> str:
    """Map a raw history event type onto the stored vocabulary.

    ``rent`` and ``rentalCampaign`` become ``rented``; ``sold`` stays ``sold``.
    Unknown types pass through unchanged.
    """
    normalized = EVENT_TYPE_ALIASES.get(raw)
    if normalized is None:
        logger.warning("unknown_event_type", event_type=raw)
        return raw
    return normalized.value


async def ignore_duplicate(write: Awaitable[None], what: str, **context: Any) -> bool:
    """Await an association insert, treating a duplicate key as a no-op.

    Returns:
        True if the row was inserted, False if it already existed.
    """
    try:
        await write
    except DuplicateKeyError as e:
        logger.warning("duplicate_ignored", what=what, error=str(e), **context)
        return False
    return True


class EntityResolver:
    """Resolves listings against the address authority and entity stores."""

    def __init__(
        self,
        addresses: AddressAuthority,
        properties: PropertyStore,
        schools: SchoolStore,
        cache: LookupCache,
    ) -> None:
        self._addresses = addresses
        self._properties = properties
        self._schools = schools
        self._cache = cache

    async def resolve(self, listing: Listing) -> int:
        """Persist a listing and return the subject property id.

        Raises:
            ResolutionError: If the listing has no crawl date, or a store fails.
            DuplicateKeyError: If a natural-key conflict cannot be resolved by
                re-querying.
        """
        as_at = listing.crawl_date
        if as_at is None:
            raise ResolutionError(f"Listing has no crawl date: {listing.url}")

        details = listing.property_details
        address_pid = details.address_pid
        if address_pid is None:
            address_pid = await self._find_address_pid(details)

        property_id = await self._find_property_id(details, address_pid, as_at)
        if property_id is not None:
            await self._properties.update_property(property_id, details)
        else:
            if address_pid is None and not details.has_address:
                # Nothing identifies the row, so every load inserts it again
                logger.warning("property_without_identity", url=listing.url, as_at=str(as_at))
            property_id = await self._add_property(details, address_pid, as_at, update=True)

        for comparison_type, comparables in details.comparables():
            for comparable in comparables:
                await self._add_comparable(property_id, comparable, comparison_type, as_at)

        for school in details.nearby_schools:
            await self._add_nearby_school(property_id, school)

        for event in details.history:
            await self._add_event(property_id, event)

        await ignore_duplicate(
            self._properties.add_data_acquisition(address_pid, listing.url, as_at, property_id),
            "data_acquisition",
            property_id=property_id,
            url=listing.url,
        )

        logger.debug(
            "listing_resolved",
            property_id=property_id,
            address_pid=address_pid,
            url=listing.url,
        )
        return property_id

    async def _cached(
        self,
        key: LookupKey,
        lookup: Callable[[], Awaitable[T | None]],
        *,
        cache_none: bool,
    ) -> T | None:
        """Read-through the lookup cache.

        Args:
            key: Cache key for this lookup.
            lookup: Performs the store query on a miss.
            cache_none: Whether a "not found" result is cached too.
        """
        value = self._cache.get(key)
        if value is not MISSING:
            cached: T | None = value
            return cached
        result = await lookup()
        if result is not None or cache_none:
            self._cache.put(key, result)
        return result

    async def _find_address_pid(self, record: PropertyRecord) -> str | None:
        if record.address is None:
            return None
        key = LookupKey(LookupKind.ADDRESS_PID, record.address_key)
        return await self._cached(
            key,
            lambda: self._addresses.find_address_detail_pid(*record.address_key),
            cache_none=True,
        )

    async def _find_property_id(
        self, record: PropertyRecord, address_pid: str | None, as_at: date
    ) -> int | None:
        if address_pid is not None:
            key = LookupKey(LookupKind.PROPERTY_BY_ADDRESS_PID, (address_pid, as_at))
            return await self._cached(
                key,
                lambda: self._properties.find_property_id_by_address_pid(address_pid, as_at),
                cache_none=False,
            )
        key = LookupKey(LookupKind.PROPERTY_BY_ADDRESS, (*record.address_key, as_at))
        return await self._cached(
            key,
            lambda: self._properties.find_property_id_by_address(*record.address_key, as_at),
            cache_none=False,
        )

    async def _add_property(
        self, record: PropertyRecord, address_pid: str | None, as_at: date, *, update: bool
    ) -> int:
        """Insert a property; on a natural-key conflict fall back to the stored row."""
        try:
            return await self._properties.add_property(record, address_pid, as_at)
        except DuplicateKeyError:
            if address_pid is not None:
                existing = await self._properties.find_property_id_by_address_pid(
                    address_pid, as_at
                )
            else:
                existing = await self._properties.find_property_id_by_address(
                    *record.address_key, as_at
                )
            if existing is None:
                raise
            logger.info("property_insert_conflict", property_id=existing, address_pid=address_pid)
            if update:
                await self._properties.update_property(existing, record)
            return existing

    async def _add_comparable(
        self,
        property_id: int,
        comparable: ComparableProperty,
        comparison_type: ComparisonType,
        compared_on: date,
    ) -> None:
        address_pid = await self._find_address_pid(comparable)
        if address_pid is None and not comparable.has_address:
            logger.warning(
                "comparable_without_address",
                property_id=property_id,
                comparison_type=comparison_type.value,
            )
            return

        comparable_id = await self._find_property_id(comparable, address_pid, compared_on)
        if comparable_id is None:
            comparable_id = await self._add_property(
                comparable, address_pid, compared_on, update=False
            )

        await ignore_duplicate(
            self._properties.add_comparable_property(
                property_id, comparable_id, comparison_type, compared_on
            ),
            "comparable_property",
            property_id=property_id,
            comparable_id=comparable_id,
        )

    async def _find_school_id(self, school: School) -> int | None:
        key = LookupKey(LookupKind.SCHOOL_ID, school.natural_key)
        return await self._cached(
            key, lambda: self._schools.find_school_id(*school.natural_key), cache_none=False
        )

    async def _add_nearby_school(self, property_id: int, school: School) -> None:
        school_id = await self._find_school_id(school)
        if school_id is None:
            street_locality_pid = await self._cached(
                LookupKey(
                    LookupKind.STREET_LOCALITY_PID,
                    (school.street, school.state, school.post_code, school.locality),
                ),
                lambda: self._addresses.find_street_locality_pid(
                    school.street, school.state, school.post_code, school.locality
                ),
                cache_none=True,
            )
            try:
                school_id = await self._schools.add_school(school, street_locality_pid)
            except DuplicateKeyError:
                school_id = await self._schools.find_school_id(*school.natural_key)
                if school_id is None:
                    raise
                logger.info("school_insert_conflict", school_id=school_id, name=school.name)
            self._cache.put(LookupKey(LookupKind.SCHOOL_ID, school.natural_key), school_id)

        await ignore_duplicate(
            self._schools.add_school_distance(property_id, school_id, school.distance),
            "school_distance",
            property_id=property_id,
            school_id=school_id,
        )

    async def _add_event(self, property_id: int, event: Event) -> None:
        if event.year is None or event.month is None or event.event_type is None:
            logger.warning(
                "incomplete_event_ignored",
                property_id=property_id,
                year=event.year,
                month=event.month,
                event_type=event.event_type,
            )
            return
        event_type = normalize_event_type(event.event_type)
        await ignore_duplicate(
            self._properties.add_event(property_id, event, event_type),
            "event",
            property_id=property_id,
            year=event.year,
            month=event.month,
            event_type=event_type,
        )
