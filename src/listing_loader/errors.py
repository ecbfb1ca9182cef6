"""Domain errors raised by the loader.

Every error carries an ``error_code`` so operators can tell failure kinds apart
in logs and job execution records without parsing messages.
"""

from typing import Any


class ListingLoaderError(Exception):
    """Base class for loader failures."""

    error_code = "LOADER_ERROR"


class FormatError(ListingLoaderError):
    """Malformed input structure at the read layer.

    ``recoverable`` is True when the offending element was fully consumed and
    the reader can continue with the next one (e.g. a non-object array
    element). A syntax error in the middle of the document is not recoverable.
    """

    error_code = "FORMAT_ERROR"

    def __init__(self, message: str, *, recoverable: bool = False, item: Any = None) -> None:
        super().__init__(message)
        self.recoverable = recoverable
        self.item = item


class ValidationError(ListingLoaderError):
    """A structurally valid record that does not have the expected shape."""

    error_code = "VALIDATION_ERROR"

    def __init__(self, message: str, *, field: str | None = None) -> None:
        super().__init__(message)
        self.field = field


class NotOpenError(ListingLoaderError):
    """Reader used before open() or after close()."""

    error_code = "READER_NOT_OPEN"


class ResolutionError(ListingLoaderError):
    """A storage port failed while resolving a listing."""

    error_code = "RESOLUTION_ERROR"


class DuplicateKeyError(ListingLoaderError):
    """A unique constraint rejected an insert."""

    error_code = "DUPLICATE_KEY"


class SkipLimitExceededError(ListingLoaderError):
    """The cumulative skip count would exceed the configured limit."""

    error_code = "SKIP_LIMIT_EXCEEDED"

    def __init__(self, skip_limit: int, skip_count: int) -> None:
        super().__init__(
            f"Skip limit of {skip_limit} exceeded after {skip_count} skipped items"
        )
        self.skip_limit = skip_limit
        self.skip_count = skip_count
