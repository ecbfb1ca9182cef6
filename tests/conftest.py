"""Shared pytest fixtures."""

import gc
import json
import os
import sys
import threading
from collections.abc import AsyncGenerator, Callable
from pathlib import Path
from typing import Any

import pytest
import pytest_asyncio
from hypothesis import HealthCheck, settings

from listing_loader.config import DEFAULT_LISTING_TYPE, Settings
from listing_loader.db import ListingStorage


def pytest_configure(config: pytest.Config) -> None:
    """Force line-buffered stdout when piped."""
    if hasattr(sys.stdout, "reconfigure") and not sys.stdout.isatty():
        sys.stdout.reconfigure(line_buffering=True)
    if hasattr(sys.stderr, "reconfigure") and not sys.stderr.isatty():
        sys.stderr.reconfigure(line_buffering=True)


# Hypothesis settings profiles for different environments
settings.register_profile("fast", max_examples=10)
settings.register_profile(
    "ci",
    max_examples=200,
    suppress_health_check=[HealthCheck.too_slow],
)
settings.load_profile(os.getenv("HYPOTHESIS_PROFILE", "fast"))


@pytest.fixture(autouse=True)
def _isolate_settings_from_dotenv(monkeypatch: pytest.MonkeyPatch) -> None:
    """Prevent a local .env file or LISTING_LOADER_* variables leaking into tests."""
    monkeypatch.setattr(
        Settings,
        "model_config",
        {**Settings.model_config, "env_file": None},
    )
    for name in list(os.environ):
        if name.startswith("LISTING_LOADER_"):
            monkeypatch.delenv(name)


@pytest.fixture(autouse=True)
def _cleanup_aiosqlite_threads():
    """Safety net: detect and stop leaked aiosqlite worker threads.

    aiosqlite creates a non-daemon worker thread per connection. If a test
    leaks a connection, the thread prevents clean process exit.
    """
    yield

    from aiosqlite.core import Connection

    leaked = False
    gc.collect()
    for obj in gc.get_objects():
        if isinstance(obj, Connection) and obj._connection is not None:
            leaked = True
            obj.stop()

    for thread in threading.enumerate():
        if "_connection_worker_thread" in (thread.name or "") and thread.is_alive():
            leaked = True
            thread.join(timeout=1.0)

    if leaked:
        import warnings

        warnings.warn(
            "Test leaked aiosqlite connection(s); add 'await storage.close()' to fixture teardown",
            ResourceWarning,
            stacklevel=1,
        )


@pytest_asyncio.fixture
async def storage() -> AsyncGenerator[ListingStorage, None]:
    """Initialized in-memory storage."""
    s = ListingStorage(":memory:")
    await s.initialize()
    yield s
    await s.close()


@pytest.fixture
def make_record() -> Callable[..., dict[str, Any]]:
    """Factory for raw listing records with auto-incrementing identities.

    Each record gets its own AddressPID and URL unless overridden. Pass a key
    with value ``None`` to drop it from the record.
    """
    _counter = 0

    def _make(**overrides: Any) -> dict[str, Any]:
        nonlocal _counter
        _counter += 1
        record: dict[str, Any] = {
            "_type": DEFAULT_LISTING_TYPE,
            "url": f"https://example.com/property/{_counter}",
            "crawl_date": "2017-06-01",
            "crawl_datetime": "2017-06-01 10:15:00",
            "input_address": f"{_counter} Smith Street, Fitzroy VIC 3065",
            "_cached_page_id": f"page-{_counter}",
            "addr_id": f"GAVIC{_counter:09d}",
            "price_estimation_from": "650000",
            "price_estimation_to": "500000",
            "price_estimation_confidence": "High",
            "about": {
                "Bedrooms": "3",
                "Bathrooms": "2",
                "Car": "1",
                "Property type": "House",
                "Land size": "450 m²",
                "Year built": "1920",
            },
        }
        for key, value in overrides.items():
            if value is None:
                record.pop(key, None)
            else:
                record[key] = value
        return record

    return _make


@pytest.fixture
def write_input(tmp_path: Path) -> Callable[..., Path]:
    """Write records (or raw text) to a JSON input file and return its path."""

    def _write(records: list[Any] | str, name: str = "listings.json") -> Path:
        path = tmp_path / name
        text = records if isinstance(records, str) else json.dumps(records, indent=2)
        path.write_text(text, encoding="utf-8")
        return path

    return _write


@pytest.fixture
def make_settings(tmp_path: Path) -> Callable[..., Settings]:
    """Settings pointing at temporary files."""

    def _make(**overrides: Any) -> Settings:
        defaults: dict[str, Any] = {
            "database_path": str(tmp_path / "listings.db"),
            "skip_file": str(tmp_path / "skipped.json"),
        }
        defaults.update(overrides)
        return Settings(**defaults)

    return _make
