"""Configuration for Zotexon."""

from enum import Enum
from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

ZOTERO_API_URL = "https://api.zotero.org"


class ExportFormat(str, Enum):
    """Export formats accepted by the Zotero items endpoint."""

    BIBLATEX = "biblatex"
    BIBTEX = "bibtex"


class ZotexonConfig(BaseSettings):
    """Zotexon configuration, loaded from environment variables and ``.env``.

    Command-line flags are passed as init arguments and win over the
    environment.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    zotero_api_key: str = ""
    zotero_user_id: str | None = None
    zotero_api_url: str = ZOTERO_API_URL

    zotexon_file: Path | None = None
    zotexon_interval: int | None = Field(default=None, ge=0)
    zotexon_format: ExportFormat = ExportFormat.BIBLATEX

    # Zotero caps `limit` at 100
    page_size: int = Field(default=25, ge=1, le=100)
    request_timeout: float = 30.0

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    @field_validator("zotero_user_id", "zotexon_file", mode="before")
    @classmethod
    def blank_is_unset(cls, value):
        # `ZOTERO_USER_ID=` in a .env file means "not set", not an empty id
        if isinstance(value, str) and not value.strip():
            return None
        return value

    def missing_required(self) -> list[str]:
        """Return the CLI flags for required settings that have no value."""
        missing = []
        if not self.zotero_api_key:
            missing.append("--api-key")
        if self.zotexon_file is None:
            missing.append("--file")
        return missing
