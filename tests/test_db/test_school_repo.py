"""Tests for the school repository."""

from datetime import date

import pytest

from listing_loader.db import ListingStorage
from listing_loader.errors import DuplicateKeyError
from listing_loader.models import PropertyRecord, School

SCHOOL = School(
    name="Fitzroy Primary School",
    school_type="Primary",
    sector="Government",
    website="http://fitzroyps.vic.edu.au",
    distance="0.6km",
)


class TestSchools:
    @pytest.mark.asyncio
    async def test_add_and_find(self, storage: ListingStorage) -> None:
        school_id = await storage.schools.add_school(SCHOOL, "VIC1953")
        found = await storage.schools.find_school_id(
            "Fitzroy Primary School", "Primary", "Government"
        )
        assert found == school_id

        conn = await storage._get_connection()
        cursor = await conn.execute("SELECT * FROM schools WHERE school_id = ?", (school_id,))
        row = await cursor.fetchone()
        assert row["website"] == "http://fitzroyps.vic.edu.au"
        assert row["gnaf_street_locality_pid"] == "VIC1953"

    @pytest.mark.asyncio
    async def test_find_requires_all_key_parts(self, storage: ListingStorage) -> None:
        await storage.schools.add_school(SCHOOL, None)
        found = await storage.schools.find_school_id(
            "Fitzroy Primary School", "Secondary", "Government"
        )
        assert found is None

    @pytest.mark.asyncio
    async def test_find_with_null_key_parts(self, storage: ListingStorage) -> None:
        school = School(name="Fitzroy Community School")
        school_id = await storage.schools.add_school(school, None)
        assert await storage.schools.find_school_id("Fitzroy Community School", None, None) == (
            school_id
        )

    @pytest.mark.asyncio
    async def test_duplicate_natural_key(self, storage: ListingStorage) -> None:
        await storage.schools.add_school(SCHOOL, None)
        with pytest.raises(DuplicateKeyError):
            await storage.schools.add_school(SCHOOL, "VIC1953")
        assert await storage.schools.get_school_count() == 1


class TestSchoolDistance:
    @pytest.mark.asyncio
    async def test_distance_once_per_property(self, storage: ListingStorage) -> None:
        property_id = await storage.properties.add_property(
            PropertyRecord(), "GAVIC1", date(2017, 6, 1)
        )
        school_id = await storage.schools.add_school(SCHOOL, None)
        await storage.schools.add_school_distance(property_id, school_id, "0.6km")
        with pytest.raises(DuplicateKeyError):
            await storage.schools.add_school_distance(property_id, school_id, "0.7km")

        conn = await storage._get_connection()
        cursor = await conn.execute("SELECT distance_desc FROM schools_near_props")
        rows = await cursor.fetchall()
        assert [row["distance_desc"] for row in rows] == ["0.6km"]
