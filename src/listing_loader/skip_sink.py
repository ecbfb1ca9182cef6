"""Skip log: every skipped item written to a JSON array file."""

from __future__ import annotations

import contextlib
import json
from pathlib import Path
from types import TracebackType
from typing import IO, Any, Self

from listing_loader.listeners import JobListener
from listing_loader.logging import get_logger
from listing_loader.models import SkipPhase

logger = get_logger(__name__)


class JsonFileSkipSink(JobListener):
    """Appends skipped items to a pretty-printed JSON array.

    Each element is ``{"phase": ..., "error": ..., "item": ...}`` where ``item``
    is the raw input record. The array is closed by ``close()``; a file left
    without its closing bracket means the process died mid-run.
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self._file: IO[str] | None = None
        self._count = 0

    @property
    def count(self) -> int:
        """Number of entries written so far."""
        return self._count

    def open(self) -> None:
        """Create (or truncate) the skip file and start the array."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._file = self.path.open("w", encoding="utf-8")
        self._file.write("[")
        self._count = 0

    def write(self, phase: SkipPhase, error: Exception, item: Any) -> None:
        """Append one entry. Failures are logged, never raised."""
        if self._file is None:
            logger.warning("skip_sink_not_open", path=str(self.path), phase=phase.value)
            return
        entry = {"phase": phase.value, "error": str(error), "item": item}
        try:
            text = json.dumps(entry, indent=2, ensure_ascii=False, default=str)
            separator = ",\n" if self._count else "\n"
            self._file.write(separator + _indent(text))
            self._file.flush()
        except (OSError, TypeError, ValueError) as e:
            logger.warning("skip_entry_write_failed", path=str(self.path), error=str(e))
            return
        self._count += 1

    def on_skip(self, phase: SkipPhase, error: Exception, item: Any) -> None:
        self.write(phase, error, item)

    def close(self) -> None:
        """Finish the array and close the file. Safe to call more than once."""
        if self._file is None:
            return
        file, self._file = self._file, None
        try:
            file.write("\n]\n" if self._count else "]\n")
            file.close()
        except OSError as e:
            logger.warning("skip_sink_close_failed", path=str(self.path), error=str(e))
            with contextlib.suppress(OSError):
                file.close()
            return
        logger.debug("skip_sink_closed", path=str(self.path), entries=self._count)

    def __enter__(self) -> Self:
        self.open()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()


def _indent(text: str) -> str:
    return "\n".join("  " + line for line in text.splitlines())
