"""Database storage for loaded listings."""

from listing_loader.db.job_repo import RestartPoint
from listing_loader.db.storage import ListingStorage

__all__ = ["ListingStorage", "RestartPoint"]
