"""Map raw listing records to ``Listing`` models.

Pure mapping: no I/O. Records of another kind are filtered (``None``), not
rejected; records of the right kind with the wrong shape raise
``ValidationError``.
"""

from collections.abc import Mapping
from typing import Any

import pydantic

from listing_loader.config import DEFAULT_LISTING_TYPE
from listing_loader.errors import ValidationError
from listing_loader.models import ComparableProperty, Event, Listing, PropertyDetails, School
from listing_loader.parsing import (
    MEDIUM_DATE_FORMAT,
    SHORT_DATE_FORMAT,
    SHORT_DATE_TIME_FORMAT,
    get_object_list,
    get_section,
    parse_date,
    parse_datetime,
    parse_integer,
    parse_lease_availability,
    parse_text,
    parse_year_month,
)

TYPE_FIELD = "_type"

_COMPARABLE_SECTIONS = {
    "for_sale_properties": "comparables_for_sale",
    "for_rent_properties": "comparables_for_rent",
    "sold_properties": "comparables_sold",
}


class RecordTransformer:
    """Converts raw records whose ``_type`` matches ``listing_type`` into listings."""

    def __init__(self, listing_type: str = DEFAULT_LISTING_TYPE) -> None:
        self.listing_type = listing_type

    def transform(self, record: Any) -> Listing | None:
        """Map one raw record.

        Args:
            record: A decoded JSON value.

        Returns:
            The listing, or None if the record is not a listing record.

        Raises:
            ValidationError: If the record is not an object or a field cannot be
                parsed.
        """
        if not isinstance(record, Mapping):
            raise ValidationError("item is not a valid JSON object")

        record_type = record.get(TYPE_FIELD)
        if record_type is None or str(record_type) != self.listing_type:
            return None

        try:
            return self._build_listing(record)
        except pydantic.ValidationError as e:
            raise ValidationError(f"Invalid listing: {e}") from e

    def _build_listing(self, node: Mapping[str, Any]) -> Listing:
        return Listing(
            listing_type=self.listing_type,
            url=parse_text(node, "url"),
            crawl_date=parse_date(node, "crawl_date", SHORT_DATE_FORMAT),
            crawl_datetime=parse_datetime(node, "crawl_datetime", SHORT_DATE_TIME_FORMAT),
            input_address=parse_text(node, "input_address"),
            cached_page_id=parse_text(node, "_cached_page_id"),
            property_details=self._build_property_details(node),
        )

    def _build_property_details(self, node: Mapping[str, Any]) -> PropertyDetails:
        fields: dict[str, Any] = {
            "address_pid": parse_text(node, "addr_id"),
            "address": parse_text(node, "address"),
            "state": parse_text(node, "state"),
            "post_code": parse_text(node, "postcode"),
            "locality": parse_text(node, "suburb"),
            # The feed's estimation fields are labelled the other way round
            # from how they are stored; kept exactly as received.
            "price_estimate_from": parse_integer(node, "price_estimation_to"),
            "price_estimate_to": parse_integer(node, "price_estimation_from"),
            "price_estimate_confidence": parse_text(node, "price_estimation_confidence"),
        }

        about = get_section(node, "about")
        if about is not None:
            fields.update(
                bedrooms=parse_integer(about, "Bedrooms"),
                bathrooms=parse_integer(about, "Bathrooms"),
                car_spots=parse_integer(about, "Car"),
                council_area=parse_text(about, "Council area"),
                block_code=parse_text(about, "Section/Block"),
                year_built=parse_text(about, "Year built"),
                building_size_desc=parse_text(about, "Building area"),
                land_size_desc=parse_text(about, "Land size"),
                lot_plan=parse_text(about, "Lot/Plan"),
                property_type=parse_text(about, "Property type"),
            )

        fields["nearby_schools"] = tuple(
            _build_school(school) for school in get_object_list(node, "schools")
        )

        comparables = get_section(node, "comparable_properties")
        if comparables is not None:
            for section, attribute in _COMPARABLE_SECTIONS.items():
                fields[attribute] = tuple(
                    _build_comparable(item) for item in get_object_list(comparables, section)
                )

        fields["history"] = tuple(_build_event(event) for event in get_object_list(node, "history"))

        return PropertyDetails(**fields)


def _build_school(node: Mapping[str, Any]) -> School:
    return School(
        name=parse_text(node, "name"),
        school_type=parse_text(node, "school_type"),
        website=parse_text(node, "website"),
        sector=parse_text(node, "sector"),
        locality=parse_text(node, "suburb"),
        state=parse_text(node, "state"),
        street=parse_text(node, "street"),
        post_code=parse_text(node, "postcode"),
        distance=parse_text(node, "distance"),
    )


def _build_comparable(node: Mapping[str, Any]) -> ComparableProperty:
    lease_date, available_now = parse_lease_availability(node, "date_available")
    return ComparableProperty(
        sold_date=parse_date(node, "sold_date", MEDIUM_DATE_FORMAT),
        bedrooms=parse_integer(node, "bedrooms"),
        bathrooms=parse_integer(node, "bathrooms"),
        car_spots=parse_integer(node, "garages"),
        price_desc=parse_text(node, "price"),
        locality=parse_text(node, "suburb"),
        state=parse_text(node, "state"),
        post_code=parse_text(node, "postcode"),
        address=parse_text(node, "address"),
        sale_method=parse_text(node, "authority_type"),
        available_for_lease_date=lease_date,
        available_now=available_now,
    )


def _build_event(node: Mapping[str, Any]) -> Event:
    year_month = parse_year_month(node, "date")
    year, month = year_month if year_month else (None, None)
    return Event(
        year=year,
        month=month,
        event_type=parse_text(node, "rent_or_sold"),
        price_desc=parse_text(node, "price"),
        agency=parse_text(node, "agency"),
    )
