"""
ProcTrace Configuration Module.

Centralizes all configuration settings using Pydantic Settings.
Requires Python 3.11+.
"""

from functools import lru_cache
from pathlib import Path

from dotenv import load_dotenv
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Load .env file into os.environ at module import time
# This ensures nested BaseSettings classes can read the values
_env_file = Path(__file__).parent.parent / ".env"
if _env_file.exists():
    load_dotenv(_env_file)
else:
    # Try current working directory
    load_dotenv()


def _split_csv(v: str | list[str]) -> list[str]:
    if isinstance(v, str):
        return [p.strip() for p in v.split(",") if p.strip()]
    return v


class ExtractorSettings(BaseSettings):
    """Command-text extraction settings."""

    model_config = SettingsConfigDict(env_prefix="EXTRACTOR_")

    arg_map_file: Path = Field(default=Path("argMap.txt"), description="Argument map rules file")
    output_file: Path = Field(default=Path("storedprocs.csv"), description="CSV results file")
    default_glob: str = Field(default="*.cs", description="Glob selecting pass-1 files")
    corpus_glob: str = Field(default="*.cs", description="Glob selecting files for passes 2 and 3")
    source_encoding: str = Field(default="utf-8")
    max_propagation_rounds: int = Field(default=1, ge=1, le=10)

    # Property assigned inside `new T { ... }` initializers that carries the command text
    initializer_property: str = Field(default="CommandText")

    ignore_dirs: list[str] = Field(
        default=["obj", "bin", ".git", ".vs"],
        description="Directory names skipped during corpus discovery",
    )
    skip_receivers: list[str] = Field(
        default=["CommandType"],
        description="Member-access receivers never reported as command text",
    )
    strip_tokens: list[str] = Field(
        default=["[", "]", "dbo."],
        description="Decorations removed from command text on output",
    )

    @field_validator("ignore_dirs", "skip_receivers", "strip_tokens", mode="before")
    @classmethod
    def parse_list(cls, v: str | list[str]) -> list[str]:
        """Parse list settings from comma-separated string or list."""
        return _split_csv(v)


class LoggingSettings(BaseSettings):
    """Logging configuration settings."""

    model_config = SettingsConfigDict(env_prefix="LOG_")

    level: str = Field(default="INFO")
    format: str = Field(default="console")  # "json" or "console"


class Settings(BaseSettings):
    """Main application settings aggregating all sub-settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application metadata
    app_name: str = Field(default="ProcTrace")
    app_version: str = Field(default="0.1.0")
    environment: str = Field(default="development")

    # Sub-settings
    extractor: ExtractorSettings = Field(default_factory=ExtractorSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Get cached application settings.

    Returns singleton instance of Settings for performance.
    """
    return Settings()
