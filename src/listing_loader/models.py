"""Pydantic models for listings, properties, schools and job outcomes."""

from datetime import date, datetime
from enum import StrEnum
from typing import Final, Self

from pydantic import BaseModel, ConfigDict, Field, model_validator


class ComparisonType(StrEnum):
    """How a comparable property relates to the listed property."""

    FOR_SALE = "for sale"
    FOR_RENT = "for rent"
    SOLD = "sold"


class EventType(StrEnum):
    """Normalized historical event types."""

    RENTED = "rented"
    SOLD = "sold"


EVENT_TYPE_ALIASES: Final[dict[str, EventType]] = {
    "rent": EventType.RENTED,
    "rentalCampaign": EventType.RENTED,
    "sold": EventType.SOLD,
}


class SkipPhase(StrEnum):
    """Pipeline phase in which an item was skipped."""

    READ = "read"
    TRANSFORM = "transform"
    WRITE = "write"


class JobStatus(StrEnum):
    """Lifecycle of a job execution."""

    RUNNING = "running"
    DONE = "done"
    FAILED = "failed"


class FailureKind(StrEnum):
    """Why a job execution failed, for operator triage."""

    SKIP_LIMIT_EXCEEDED = "skip_limit_exceeded"
    READER_ERROR = "reader_error"
    READER_NOT_OPEN = "reader_not_open"


class School(BaseModel):
    """A school listed as near a property."""

    model_config = ConfigDict(frozen=True)

    name: str | None = None
    school_type: str | None = None
    sector: str | None = None
    website: str | None = None
    street: str | None = None
    locality: str | None = None
    state: str | None = None
    post_code: str | None = None
    distance: str | None = None

    @property
    def natural_key(self) -> tuple[str | None, str | None, str | None]:
        """(name, type, sector) - at most one stored school per key."""
        return (self.name, self.school_type, self.sector)


class Event(BaseModel):
    """A historical rent/sale event for a property."""

    model_config = ConfigDict(frozen=True)

    year: int | None = None
    month: int | None = Field(default=None, ge=1, le=12)
    event_type: str | None = None
    price_desc: str | None = None
    agency: str | None = None

    @model_validator(mode="after")
    def check_year_month(self) -> Self:
        """Year and month are parsed together, so both or neither are set."""
        if (self.year is None) != (self.month is None):
            raise ValueError("Both year and month must be provided, or neither")
        return self


class PropertyRecord(BaseModel):
    """Attributes shared by listed and comparable properties."""

    model_config = ConfigDict(frozen=True)

    # Identity
    address_pid: str | None = None
    address: str | None = None
    state: str | None = None
    post_code: str | None = None
    locality: str | None = None

    # Physical attributes
    property_type: str | None = None
    bedrooms: int | None = None
    bathrooms: int | None = None
    car_spots: int | None = None
    land_size_desc: str | None = None
    building_size_desc: str | None = None
    year_built: str | None = None
    council_area: str | None = None
    block_code: str | None = None
    lot_plan: str | None = None

    # Price
    price_desc: str | None = None
    price_estimate_from: int | None = None
    price_estimate_to: int | None = None
    price_estimate_confidence: str | None = None

    # Sale / lease
    sale_method: str | None = None
    sold_date: date | None = None
    available_for_lease_date: date | None = None
    available_now: bool = False

    @property
    def address_key(self) -> tuple[str | None, str | None, str | None, str | None]:
        """Denormalized address identity: (address, state, post code, locality)."""
        return (self.address, self.state, self.post_code, self.locality)

    @property
    def has_address(self) -> bool:
        """Whether any denormalized address field is populated."""
        return any(part for part in self.address_key)


class ComparableProperty(PropertyRecord):
    """A property referenced by a listing as comparable (for sale, for rent, sold)."""


class PropertyDetails(PropertyRecord):
    """The listed property plus everything the listing says about its surroundings."""

    comparables_for_sale: tuple[ComparableProperty, ...] = ()
    comparables_for_rent: tuple[ComparableProperty, ...] = ()
    comparables_sold: tuple[ComparableProperty, ...] = ()
    nearby_schools: tuple[School, ...] = ()
    history: tuple[Event, ...] = ()

    def comparables(self) -> list[tuple[ComparisonType, tuple[ComparableProperty, ...]]]:
        """Comparable collections paired with their comparison type."""
        return [
            (ComparisonType.FOR_SALE, self.comparables_for_sale),
            (ComparisonType.FOR_RENT, self.comparables_for_rent),
            (ComparisonType.SOLD, self.comparables_sold),
        ]


class Listing(BaseModel):
    """One parsed input record."""

    model_config = ConfigDict(frozen=True)

    listing_type: str
    url: str | None = None
    crawl_date: date | None = None
    crawl_datetime: datetime | None = None
    input_address: str | None = None
    cached_page_id: str | None = None
    property_details: PropertyDetails = Field(default_factory=PropertyDetails)


class JobOutcome(BaseModel):
    """Final report of a pipeline run."""

    model_config = ConfigDict(frozen=True)

    status: JobStatus
    read_count: int = Field(default=0, ge=0, description="Elements read during this run")
    filtered_count: int = Field(default=0, ge=0)
    written_count: int = Field(default=0, ge=0)
    skip_count: int = Field(default=0, ge=0)
    position: int = Field(default=0, ge=0, description="Committed element count for restart")
    failure_kind: FailureKind | None = None
    error_message: str | None = None

    @property
    def succeeded(self) -> bool:
        """True only when the run reached Done."""
        return self.status is JobStatus.DONE

    @model_validator(mode="after")
    def check_failure_kind(self) -> Self:
        """A failure kind is present exactly when the run failed."""
        if (self.status is JobStatus.FAILED) != (self.failure_kind is not None):
            raise ValueError("failure_kind must be set if and only if status is failed")
        return self
