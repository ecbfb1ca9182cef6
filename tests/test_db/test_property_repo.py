"""Tests for the property repository."""

from datetime import date

import pytest

from listing_loader.db import ListingStorage
from listing_loader.errors import DuplicateKeyError
from listing_loader.models import ComparisonType, Event, PropertyRecord

AS_AT = date(2017, 6, 1)


def unlinked(**overrides: object) -> PropertyRecord:
    fields: dict[str, object] = {
        "address": "1 Smith Street",
        "state": "VIC",
        "post_code": "3065",
        "locality": "Fitzroy",
    }
    fields.update(overrides)
    return PropertyRecord(**fields)  # type: ignore[arg-type]


class TestAddProperty:
    @pytest.mark.asyncio
    async def test_linked_property_omits_address_columns(self, storage: ListingStorage) -> None:
        record = unlinked(bedrooms=3, price_estimate_from=500000, available_now=True)
        property_id = await storage.properties.add_property(record, "GAVIC1", AS_AT)

        conn = await storage._get_connection()
        cursor = await conn.execute(
            "SELECT * FROM property_details WHERE prop_dtls_id = ?", (property_id,)
        )
        row = await cursor.fetchone()
        assert row["gnaf_addr_dtl_pid"] == "GAVIC1"
        assert row["as_at"] == "2017-06-01"
        assert row["address"] is None
        assert row["locality"] is None
        assert row["bedrooms"] == 3
        assert row["price_estimate_from"] == 500000
        assert row["available_now"] == 1

    @pytest.mark.asyncio
    async def test_unlinked_property_keeps_address_columns(self, storage: ListingStorage) -> None:
        property_id = await storage.properties.add_property(unlinked(), None, AS_AT)

        conn = await storage._get_connection()
        cursor = await conn.execute(
            "SELECT address, state, post_code, locality FROM property_details "
            "WHERE prop_dtls_id = ?",
            (property_id,),
        )
        row = await cursor.fetchone()
        assert tuple(row) == ("1 Smith Street", "VIC", "3065", "Fitzroy")

    @pytest.mark.asyncio
    async def test_generated_ids_increase(self, storage: ListingStorage) -> None:
        first = await storage.properties.add_property(PropertyRecord(), "GAVIC1", AS_AT)
        second = await storage.properties.add_property(PropertyRecord(), "GAVIC2", AS_AT)
        assert second > first

    @pytest.mark.asyncio
    async def test_duplicate_pid_and_date(self, storage: ListingStorage) -> None:
        await storage.properties.add_property(PropertyRecord(), "GAVIC1", AS_AT)
        with pytest.raises(DuplicateKeyError):
            await storage.properties.add_property(PropertyRecord(), "GAVIC1", AS_AT)

    @pytest.mark.asyncio
    async def test_duplicate_address_and_date(self, storage: ListingStorage) -> None:
        await storage.properties.add_property(unlinked(), None, AS_AT)
        with pytest.raises(DuplicateKeyError):
            await storage.properties.add_property(unlinked(bedrooms=2), None, AS_AT)


class TestUpdateProperty:
    @pytest.mark.asyncio
    async def test_updates_mutable_attributes(self, storage: ListingStorage) -> None:
        property_id = await storage.properties.add_property(unlinked(bedrooms=2), None, AS_AT)
        rows = await storage.properties.update_property(
            property_id,
            unlinked(address="somewhere else", bedrooms=3, sale_method="Auction"),
        )
        assert rows == 1

        conn = await storage._get_connection()
        cursor = await conn.execute(
            "SELECT address, bedrooms, sale_method, updated_at FROM property_details "
            "WHERE prop_dtls_id = ?",
            (property_id,),
        )
        row = await cursor.fetchone()
        assert row["address"] == "1 Smith Street"
        assert row["bedrooms"] == 3
        assert row["sale_method"] == "Auction"
        assert row["updated_at"] is not None

    @pytest.mark.asyncio
    async def test_unknown_id(self, storage: ListingStorage) -> None:
        assert await storage.properties.update_property(999, PropertyRecord()) == 0


class TestFindProperty:
    @pytest.mark.asyncio
    async def test_by_address_pid(self, storage: ListingStorage) -> None:
        property_id = await storage.properties.add_property(PropertyRecord(), "GAVIC1", AS_AT)
        found = await storage.properties.find_property_id_by_address_pid("GAVIC1", AS_AT)
        assert found == property_id

    @pytest.mark.asyncio
    async def test_by_address_pid_other_date(self, storage: ListingStorage) -> None:
        await storage.properties.add_property(PropertyRecord(), "GAVIC1", AS_AT)
        found = await storage.properties.find_property_id_by_address_pid(
            "GAVIC1", date(2017, 7, 1)
        )
        assert found is None

    @pytest.mark.asyncio
    async def test_by_address(self, storage: ListingStorage) -> None:
        property_id = await storage.properties.add_property(unlinked(), None, AS_AT)
        found = await storage.properties.find_property_id_by_address(
            "1 Smith Street", "VIC", "3065", "Fitzroy", AS_AT
        )
        assert found == property_id

    @pytest.mark.asyncio
    async def test_by_address_with_null_fields(self, storage: ListingStorage) -> None:
        record = unlinked(post_code=None, state=None)
        property_id = await storage.properties.add_property(record, None, AS_AT)
        found = await storage.properties.find_property_id_by_address(
            "1 Smith Street", None, None, "Fitzroy", AS_AT
        )
        assert found == property_id

    @pytest.mark.asyncio
    async def test_by_address_ignores_linked_rows(self, storage: ListingStorage) -> None:
        await storage.properties.add_property(unlinked(), "GAVIC1", AS_AT)
        found = await storage.properties.find_property_id_by_address(
            "1 Smith Street", "VIC", "3065", "Fitzroy", AS_AT
        )
        assert found is None

    @pytest.mark.asyncio
    async def test_without_any_address(self, storage: ListingStorage) -> None:
        await storage.properties.add_property(PropertyRecord(), None, AS_AT)
        found = await storage.properties.find_property_id_by_address(None, None, None, None, AS_AT)
        assert found is None


class TestAssociations:
    @pytest.mark.asyncio
    async def test_comparable_duplicate(self, storage: ListingStorage) -> None:
        subject = await storage.properties.add_property(PropertyRecord(), "GAVIC1", AS_AT)
        comparable = await storage.properties.add_property(PropertyRecord(), "GAVIC2", AS_AT)
        await storage.properties.add_comparable_property(
            subject, comparable, ComparisonType.SOLD, AS_AT
        )
        await storage.properties.add_comparable_property(
            subject, comparable, ComparisonType.FOR_SALE, AS_AT
        )
        with pytest.raises(DuplicateKeyError):
            await storage.properties.add_comparable_property(
                subject, comparable, ComparisonType.SOLD, AS_AT
            )

    @pytest.mark.asyncio
    async def test_event_stored_with_normalized_type(self, storage: ListingStorage) -> None:
        subject = await storage.properties.add_property(PropertyRecord(), "GAVIC1", AS_AT)
        event = Event(year=2015, month=3, event_type="rentalCampaign", price_desc="$450 pw")
        await storage.properties.add_event(subject, event, "rented")

        conn = await storage._get_connection()
        cursor = await conn.execute("SELECT * FROM property_sale_rent_hist")
        row = await cursor.fetchone()
        assert (row["event_year"], row["event_month"], row["event_type"]) == (2015, 3, "rented")
        assert row["price_desc"] == "$450 pw"

        with pytest.raises(DuplicateKeyError):
            await storage.properties.add_event(subject, event, "rented")

    @pytest.mark.asyncio
    async def test_data_acquisition_without_pid(self, storage: ListingStorage) -> None:
        subject = await storage.properties.add_property(unlinked(), None, AS_AT)
        await storage.properties.add_data_acquisition(None, "https://example.com/1", AS_AT, subject)
        with pytest.raises(DuplicateKeyError):
            await storage.properties.add_data_acquisition(
                None, "https://example.com/1", AS_AT, subject
            )

    @pytest.mark.asyncio
    async def test_data_acquisition_without_url(self, storage: ListingStorage) -> None:
        subject = await storage.properties.add_property(unlinked(), None, AS_AT)
        await storage.properties.add_data_acquisition(None, None, AS_AT, subject)
        with pytest.raises(DuplicateKeyError):
            await storage.properties.add_data_acquisition(None, None, AS_AT, subject)
        await storage.properties.add_data_acquisition(None, None, date(2017, 7, 1), subject)
