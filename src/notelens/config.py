"""Configuration for notelens.

settings come from (highest wins) constructor kwargs, NOTELENS_* environment
variables, then an optional notelens.yaml in the working directory. the core
never reads settings on its own - services get a layout and a mode passed in,
only the store/cli build a Settings object.
"""

import logging
import re
from functools import lru_cache

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    YamlConfigSettingsSource,
)

from notelens.models.filters import OrTextMode

logger = logging.getLogger(__name__)

# schema names get concatenated into sql, so they're held to plain identifiers
_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


class WarehouseLayout(BaseModel):
    """Where the warehouse tables live.

    notes_schema holds the raw notes tables (notes, note_comments, users),
    dwh_schema holds the precomputed datamarts.
    """

    model_config = ConfigDict(frozen=True)

    notes_schema: str = "main"
    dwh_schema: str = "dwh"

    @field_validator("notes_schema", "dwh_schema")
    @classmethod
    def _check_identifier(cls, value: str) -> str:
        if not _IDENTIFIER.match(value):
            raise ValueError(f"schema name must be a plain identifier, got {value!r}")
        return value

    def table(self, name: str) -> str:
        return f"{self.notes_schema}.{name}"

    def datamart(self, name: str) -> str:
        return f"{self.dwh_schema}.{name}"


class Settings(BaseSettings):
    """Runtime settings."""

    model_config = SettingsConfigDict(
        env_prefix="NOTELENS_",
        yaml_file="notelens.yaml",
        extra="ignore",
    )

    database_path: str | None = Field(
        default=None, description="DuckDB file with the warehouse; None for in-memory."
    )
    notes_schema: str = "main"
    dwh_schema: str = "dwh"
    log_level: str = "WARNING"
    # drop a malformed bbox instead of rejecting the request
    lenient_bbox: bool = False
    or_text_mode: OrTextMode = OrTextMode.ANCHORED

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return (init_settings, env_settings, YamlConfigSettingsSource(settings_cls))

    @field_validator("log_level")
    @classmethod
    def _check_log_level(cls, value: str) -> str:
        level = value.upper()
        if level not in logging.getLevelNamesMapping():
            raise ValueError(f"unknown log level: {value}")
        return level

    @property
    def layout(self) -> WarehouseLayout:
        return WarehouseLayout(notes_schema=self.notes_schema, dwh_schema=self.dwh_schema)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return the process-wide settings, loaded once."""
    settings = Settings()
    logger.debug(
        "Settings loaded (database=%s, or_text_mode=%s, lenient_bbox=%s)",
        settings.database_path or ":memory:",
        settings.or_text_mode.value,
        settings.lenient_bbox,
    )
    return settings
