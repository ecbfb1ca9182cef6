"""Forward-only, restartable reader for a JSON array of objects.

The input is decoded incrementally: text is pulled from the file in blocks of
``buffer_size`` characters and elements are decoded one at a time with
``json.JSONDecoder.raw_decode``, so memory use is bounded by the largest single
element rather than the file size. While an element is incomplete the refill
size doubles, keeping the cost of decoding it linear in its length. Restart is
count-based: array elements are not fixed width, so reopening at an offset
re-reads and discards that many elements.
"""

import json
import os
import re
from pathlib import Path
from types import TracebackType
from typing import Any, Final, Self, TextIO

from listing_loader.errors import FormatError, NotOpenError
from listing_loader.logging import get_logger

logger = get_logger(__name__)

DEFAULT_BUFFER_SIZE: Final = 64 * 1024

# A decode error followed by nothing but a partial literal or number is cut off
# by the end of the buffer; at end of input it marks a truncated document.
_PARTIAL_TOKEN: Final = re.compile(r"[\w.+-]*")

_WHITESPACE: Final = re.compile(r"[ \t\n\r]*")

_NUMBER_TAIL: Final = re.compile(r"[0-9.eE+-]*")

_END: Final = object()


class StreamingRecordReader:
    """Reads object elements from a top-level JSON array, one per call."""

    def __init__(
        self, source: str | Path | None = None, *, buffer_size: int = DEFAULT_BUFFER_SIZE
    ) -> None:
        """Initialize the reader.

        Args:
            source: Path to the JSON document. May also be given to ``open()``.
            buffer_size: Characters read from the file per buffer refill.
        """
        if buffer_size < 1:
            raise ValueError("buffer_size must be positive")
        self._source = Path(source) if source is not None else None
        self._buffer_size = buffer_size
        self._decoder = json.JSONDecoder()
        self._file: TextIO | None = None
        self._reset_state()

    def _reset_state(self) -> None:
        self._buffer = ""
        self._pos = 0
        self._eof = False
        self._exhausted = False
        self._expect_comma = False
        self._read_count = 0

    @property
    def source(self) -> Path | None:
        """The input document."""
        return self._source

    @property
    def read_count(self) -> int:
        """Number of array elements consumed, including any restart offset."""
        return self._read_count

    @property
    def is_open(self) -> bool:
        """Whether ``read()`` may be called."""
        return self._file is not None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def open(self, source: str | Path | None = None, *, start_at: int = 0) -> None:
        """Open the document and position the reader after ``start_at`` elements.

        Args:
            source: Path to read; overrides the one given to the constructor.
            start_at: Number of already-consumed elements to skip.

        Raises:
            FileNotFoundError: If the source does not exist.
            PermissionError: If the source is not a readable file.
            FormatError: If the document does not start with an array.
        """
        if source is not None:
            self._source = Path(source)
        if self._source is None:
            raise ValueError("Input source must be set")
        if start_at < 0:
            raise ValueError("start_at must not be negative")
        if self._file is not None:
            self.close()

        path = self._source
        if not path.exists():
            raise FileNotFoundError(f"Input resource must exist: {path}")
        if not path.is_file() or not os.access(path, os.R_OK):
            raise PermissionError(f"Input resource must be readable: {path}")

        self._reset_state()
        # utf-8-sig strips a leading byte order mark if present
        self._file = path.open(encoding="utf-8-sig")
        try:
            if self._peek() != "[":
                raise FormatError("Expected array of objects")
            self._pos += 1
            self._skip_elements(start_at)
        except BaseException:
            self.close()
            raise

        logger.debug("reader_opened", source=str(path), start_at=start_at)

    def _skip_elements(self, count: int) -> None:
        for _ in range(count):
            if self._next_value() is _END:
                logger.warning(
                    "restart_offset_beyond_input",
                    requested=count,
                    available=self._read_count,
                )
                return

    def close(self) -> None:
        """Close the underlying file. Safe to call more than once."""
        if self._file is None:
            return
        try:
            self._file.close()
        except OSError:
            logger.warning("reader_close_failed", source=str(self._source), exc_info=True)
        finally:
            self._file = None
            self._buffer = ""
            self._pos = 0

    def __enter__(self) -> Self:
        if not self.is_open:
            self.open()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Reading
    # ------------------------------------------------------------------

    def read(self) -> dict[str, Any] | None:
        """Return the next object element, or None at end of stream.

        Raises:
            NotOpenError: If called before ``open()`` or after ``close()``.
            FormatError: If the next element is not an object (recoverable, the
                element has been consumed) or the document is malformed.
        """
        if self._file is None:
            raise NotOpenError("Reader must be open before it can be read")

        value = self._next_value()
        if value is _END:
            return None
        if not isinstance(value, dict):
            raise FormatError(
                f"Unexpected {type(value).__name__} at element {self._read_count}; "
                "expected an object",
                recoverable=True,
                item=value,
            )
        return value

    def _next_value(self) -> Any:
        if self._exhausted:
            return _END

        char = self._peek()
        if char is None:
            return self._end_truncated("end of input before closing bracket")
        if char == "]":
            self._pos += 1
            self._exhausted = True
            logger.debug("no_more_elements", read_count=self._read_count)
            return _END
        if self._expect_comma:
            if char != ",":
                raise self._syntax_error(f"Expected ',' or ']' but found {char!r}")
            self._pos += 1
            if self._peek() is None:
                return self._end_truncated("end of input after element separator")

        value = self._decode()
        if value is _END:
            return _END
        self._expect_comma = True
        self._read_count += 1
        return value

    def _decode(self) -> Any:
        # Refills double while one element stays incomplete, so a large element
        # is re-scanned a logarithmic number of times rather than once per block.
        block = self._buffer_size
        while True:
            try:
                value, end = self._decoder.raw_decode(self._buffer, self._pos)
            except json.JSONDecodeError as e:
                if not self._is_incomplete(e):
                    raise self._syntax_error(f"{e.msg} at element {self._read_count + 1}") from e
                if self._fill(block):
                    block *= 2
                    continue
                return self._end_truncated(e.msg)

            # A number at the end of the buffer may have more digits to come
            if _NUMBER_TAIL.fullmatch(self._buffer, end) and self._fill(block):
                block *= 2
                continue
            self._pos = end
            return value

    def _is_incomplete(self, error: json.JSONDecodeError) -> bool:
        """Whether the element may simply continue in the next block."""
        if error.msg.startswith("Unterminated string"):
            return True
        tail = self._buffer[error.pos :].rstrip()
        return _PARTIAL_TOKEN.fullmatch(tail) is not None

    def _peek(self) -> str | None:
        """Skip whitespace and return the next character, or None at end of input."""
        while True:
            self._pos = _WHITESPACE.match(self._buffer, self._pos).end()  # type: ignore[union-attr]
            if self._pos < len(self._buffer):
                return self._buffer[self._pos]
            if not self._fill():
                return None

    def _fill(self, size: int | None = None) -> bool:
        """Append up to ``size`` more characters of input, dropping consumed text.

        Returns:
            False at end of input.
        """
        if self._eof or self._file is None:
            return False
        try:
            data = self._file.read(size or self._buffer_size)
        except UnicodeDecodeError as e:
            raise self._syntax_error(f"Input is not valid UTF-8: {e.reason}") from e
        if not data:
            self._eof = True
            return False
        self._buffer = self._buffer[self._pos :] + data
        self._pos = 0
        return True

    def _end_truncated(self, detail: str) -> Any:
        logger.warning(
            "input_truncated",
            source=str(self._source),
            detail=detail,
            read_count=self._read_count,
        )
        self._exhausted = True
        return _END

    def _syntax_error(self, message: str) -> FormatError:
        self._exhausted = True
        return FormatError(message, recoverable=False)
