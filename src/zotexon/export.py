"""Write Zotero library exports to a local file."""

import logging
from enum import Enum
from pathlib import Path
from typing import Optional

from pydantic import AliasChoices, BaseModel, Field, ValidationError

from zotexon import __version__
from zotexon.cancellation import CancellationToken
from zotexon.client import ZoteroClient
from zotexon.config import ExportFormat
from zotexon.errors import ExportFileError
from zotexon.scheduler import run_periodically

logger = logging.getLogger(__name__)

HEADER_PREFIX = "% *** THIS FILE WAS AUTO-GENERATED BY ZOTEXON - DO NOT EDIT ***"
# Written by releases that still carried the old "zotex" name
LEGACY_HEADER_PREFIX = "% *** THIS FILE WAS AUTO-GENERATED BY ZOTEX - DO NOT EDIT ***"
LEGACY_VERSION_PREFIX = "Last-Modified-Version:"


class ExportOutcome(str, Enum):
    """Result of one or more export runs."""

    CHANGES = "changes"
    NO_CHANGES = "no_changes"


class FileMetadata(BaseModel):
    """Metadata stored in the first line of an export file."""

    zotexon_version: str = Field(
        default="unknown",
        validation_alias=AliasChoices("zotexon_version", "zotex_version"),
    )
    library_version: int
    format: ExportFormat = ExportFormat.BIBLATEX

    def to_line(self) -> str:
        return f"{HEADER_PREFIX} {self.model_dump_json()}"

    @classmethod
    def from_line(cls, line: str) -> Optional["FileMetadata"]:
        """Parse a header line, returning None if it is not one of ours.

        Headers of the old "zotex" releases are accepted too: the JSON form
        and the bare ``Last-Modified-Version: N`` form, which only ever held
        BibLaTeX exports.
        """
        line = line.strip()
        for prefix in (HEADER_PREFIX, LEGACY_HEADER_PREFIX):
            if line.startswith(prefix):
                payload = line[len(prefix):].strip()
                break
        else:
            return None

        if payload.startswith(LEGACY_VERSION_PREFIX):
            version = payload[len(LEGACY_VERSION_PREFIX):].strip()
            if not version.isdigit():
                return None
            return cls(library_version=int(version))
        try:
            return cls.model_validate_json(payload)
        except ValidationError:
            return None


class FileExporter:
    """Exports a Zotero library into a single BibLaTeX/BibTeX file."""

    def __init__(self, client: ZoteroClient, file_path: Path, export_format: ExportFormat):
        self.client = client
        self.file_path = Path(file_path)
        self.export_format = export_format

    @classmethod
    def create(
        cls,
        client: ZoteroClient,
        file_path: Path,
        export_format: ExportFormat = ExportFormat.BIBLATEX,
    ) -> "FileExporter":
        """Create an exporter after checking that ``file_path`` is writable.

        The file is created if missing; existing content is kept.
        """
        file_path = Path(file_path)
        try:
            with open(file_path, "a+", encoding="utf-8"):
                pass
        except OSError as e:
            raise ExportFileError(file_path, "Cannot open export file") from e
        return cls(client, file_path, export_format)

    def export(
        self,
        interval: Optional[int] = None,
        cancel: Optional[CancellationToken] = None,
    ) -> ExportOutcome:
        """Export once, or every ``interval`` seconds until ``cancel`` fires."""
        if not interval:
            logger.info("Starting one-time export")
            return self.export_once(cancel)

        logger.info("Starting periodic export every %d seconds", interval)
        outcomes = set()

        def _run():
            outcomes.add(self.export_once(cancel))

        run_periodically(_run, interval, cancel or CancellationToken())
        if ExportOutcome.CHANGES in outcomes:
            return ExportOutcome.CHANGES
        return ExportOutcome.NO_CHANGES

    def export_once(self, cancel: Optional[CancellationToken] = None) -> ExportOutcome:
        """Fetch the library and rewrite the file if the library changed.

        A cancelled fetch raises ``ExportCancelled`` and leaves the file as it was.
        """
        header = self.read_header()
        since_version = None
        if header is None:
            logger.info("No existing export found, performing full fetch")
        elif header.format != self.export_format:
            logger.info(
                "Existing export is in %s format, performing full %s fetch",
                header.format.value,
                self.export_format.value,
            )
        else:
            logger.info("Found existing export with version %d", header.library_version)
            since_version = header.library_version

        result = self.client.fetch_items(
            self.export_format, since_version=since_version, cancel=cancel
        )
        if result is None:
            logger.info("File '%s' is up to date with the Zotero library", self.file_path)
            return ExportOutcome.NO_CHANGES

        metadata = FileMetadata(
            zotexon_version=__version__,
            library_version=result.library_version,
            format=self.export_format,
        )
        try:
            self.file_path.write_text(f"{metadata.to_line()}\n{result.text}", encoding="utf-8")
        except OSError as e:
            raise ExportFileError(self.file_path, "Cannot write export file") from e

        logger.info(
            "Wrote library export with version %d to file '%s'",
            result.library_version,
            self.file_path,
        )
        return ExportOutcome.CHANGES

    def read_header(self) -> Optional[FileMetadata]:
        """Return the metadata of the existing export, if any."""
        try:
            with open(self.file_path, encoding="utf-8") as f:
                first_line = f.readline()
        except (OSError, UnicodeDecodeError):
            return None
        return FileMetadata.from_line(first_line)
