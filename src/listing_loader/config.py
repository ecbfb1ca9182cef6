"""Job configuration using pydantic-settings."""

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_LISTING_TYPE = "RealEstateSoldHistoryItem"


class Settings(BaseSettings):
    """Job parameters loaded from environment variables.

    Loaded once before the pipeline starts and treated as immutable for the
    duration of the run.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="LISTING_LOADER_",
        extra="ignore",
        frozen=True,
    )

    # Input / output
    input_file: str = Field(
        default="",
        description="Path to the JSON array of scraped listing records",
    )
    skip_file: str = Field(
        default="data/skipped.json",
        description="Where skipped records are written (JSON array)",
    )

    # Database
    database_path: str = Field(default="data/listings.db")

    # Chunking and fault tolerance
    commit_interval: int = Field(
        default=2500,
        ge=1,
        description="Number of listings written per transaction",
    )
    skip_limit: int = Field(
        default=5000,
        ge=0,
        description="Maximum number of skipped records before the job fails",
    )

    # Record selection
    listing_type: str = Field(
        default=DEFAULT_LISTING_TYPE,
        description="Value of the _type discriminator that identifies listing records",
    )

    # Tuning
    lookup_cache_size: int = Field(
        default=100_000,
        ge=0,
        description="Maximum cached address/school lookups (0 for unbounded)",
    )
    read_buffer_size: int = Field(
        default=64 * 1024,
        ge=1024,
        description="Characters read from the input file per buffer refill",
    )

    # Logging
    json_logs: bool = Field(default=False, description="Emit JSON log lines")

    def require_input_file(self) -> Path:
        """Return the configured input file, failing if none was given."""
        if not self.input_file:
            raise ValueError("input_file must be set (LISTING_LOADER_INPUT_FILE or CLI argument)")
        return Path(self.input_file)
