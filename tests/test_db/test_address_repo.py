"""Tests for address reference lookups."""

import pytest

from listing_loader.db import ListingStorage


@pytest.fixture
async def seeded(storage: ListingStorage) -> ListingStorage:
    await storage.addresses.add_address_details(
        [
            ("GAVIC411711441", "1 Smith Street", "VIC", "3065", "Fitzroy"),
            ("GAVIC411711442", "12 Smith Street", "VIC", "3065", "Fitzroy"),
            ("GAVIC411711443", "12 Smith Street", "VIC", "3066", "Collingwood"),
            ("GAVIC411711444", "5 Gore Street", "VIC", None, "Fitzroy"),
            ("GAVIC411711445", "100% Lane", "VIC", "3065", "Fitzroy"),
        ]
    )
    await storage.addresses.add_street_localities(
        [
            ("VIC1953", "Fergie Street", "VIC", "3068", "Fitzroy North"),
            ("VIC1954", "Brunswick Street", "VIC", None, "Fitzroy"),
        ]
    )
    return storage


class TestFindAddressDetailPid:
    @pytest.mark.asyncio
    async def test_exact_address(self, seeded: ListingStorage) -> None:
        pid = await seeded.addresses.find_address_detail_pid(
            "1 Smith Street", "VIC", "3065", "Fitzroy"
        )
        assert pid == "GAVIC411711441"

    @pytest.mark.asyncio
    async def test_case_insensitive(self, seeded: ListingStorage) -> None:
        pid = await seeded.addresses.find_address_detail_pid(
            "12 smith street", "VIC", "3066", "collingwood"
        )
        assert pid == "GAVIC411711443"

    @pytest.mark.asyncio
    async def test_prefix_match(self, seeded: ListingStorage) -> None:
        pid = await seeded.addresses.find_address_detail_pid("12 Smith", "VIC", "3065", "Fitzroy")
        assert pid == "GAVIC411711442"

    @pytest.mark.asyncio
    async def test_ambiguous_prefix(self, seeded: ListingStorage) -> None:
        """'1' prefixes both '1 Smith Street' and '12 Smith Street' in Fitzroy."""
        pid = await seeded.addresses.find_address_detail_pid("1", "VIC", "3065", "Fitzroy")
        assert pid is None

    @pytest.mark.asyncio
    async def test_reference_without_post_code_matches_any(self, seeded: ListingStorage) -> None:
        pid = await seeded.addresses.find_address_detail_pid(
            "5 Gore Street", "VIC", "3065", "Fitzroy"
        )
        assert pid == "GAVIC411711444"

    @pytest.mark.asyncio
    async def test_wildcards_are_literal(self, seeded: ListingStorage) -> None:
        assert (
            await seeded.addresses.find_address_detail_pid("100% Lane", "VIC", "3065", "Fitzroy")
            == "GAVIC411711445"
        )
        assert (
            await seeded.addresses.find_address_detail_pid("_ Smith", "VIC", "3065", "Fitzroy")
            is None
        )

    @pytest.mark.asyncio
    async def test_no_match(self, seeded: ListingStorage) -> None:
        pid = await seeded.addresses.find_address_detail_pid(
            "1 Smith Street", "NSW", "3065", "Fitzroy"
        )
        assert pid is None

    @pytest.mark.asyncio
    async def test_no_address(self, seeded: ListingStorage) -> None:
        pid = await seeded.addresses.find_address_detail_pid(None, "VIC", "3065", "Fitzroy")
        assert pid is None


class TestFindStreetLocalityPid:
    @pytest.mark.asyncio
    async def test_match(self, seeded: ListingStorage) -> None:
        pid = await seeded.addresses.find_street_locality_pid(
            "Fergie Street", "VIC", "3068", "Fitzroy North"
        )
        assert pid == "VIC1953"

    @pytest.mark.asyncio
    async def test_reference_without_post_code(self, seeded: ListingStorage) -> None:
        pid = await seeded.addresses.find_street_locality_pid(
            "Brunswick Street", "VIC", "3065", "Fitzroy"
        )
        assert pid == "VIC1954"

    @pytest.mark.asyncio
    async def test_street_must_match_exactly(self, seeded: ListingStorage) -> None:
        pid = await seeded.addresses.find_street_locality_pid(
            "Fergie", "VIC", "3068", "Fitzroy North"
        )
        assert pid is None

    @pytest.mark.asyncio
    async def test_null_street(self, seeded: ListingStorage) -> None:
        pid = await seeded.addresses.find_street_locality_pid(
            None, "VIC", "3068", "Fitzroy North"
        )
        assert pid is None
