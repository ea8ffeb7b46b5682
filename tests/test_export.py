"""Tests for the file exporter."""

from unittest.mock import MagicMock, patch

import pytest

from zotexon import __version__
from zotexon.cancellation import CancellationToken
from zotexon.client import FetchResult
from zotexon.config import ExportFormat
from zotexon.errors import ExportFileError, UnexpectedStatusError
from zotexon.export import (
    HEADER_PREFIX,
    LEGACY_HEADER_PREFIX,
    ExportOutcome,
    FileExporter,
    FileMetadata,
)

from conftest import BIBLATEX_ENTRY


def _header(version=100, fmt=ExportFormat.BIBLATEX):
    return FileMetadata(
        zotexon_version="0.1.0", library_version=version, format=fmt
    ).to_line()


@pytest.fixture
def mock_client(fetch_result):
    client = MagicMock()
    client.fetch_items.return_value = fetch_result
    return client


class TestFileMetadata:
    def test_line_round_trip(self):
        line = _header(version=12345)
        assert line.startswith(HEADER_PREFIX)

        parsed = FileMetadata.from_line(line + "\n")
        assert parsed.library_version == 12345
        assert parsed.format is ExportFormat.BIBLATEX

    def test_reads_old_json_header(self):
        line = (
            f"{LEGACY_HEADER_PREFIX} "
            '{"zotex_version": "0.2.1", "library_version": 4711, "format": "bibtex"}'
        )

        parsed = FileMetadata.from_line(line)

        assert parsed.zotexon_version == "0.2.1"
        assert parsed.library_version == 4711
        assert parsed.format is ExportFormat.BIBTEX

    def test_reads_old_version_only_header(self):
        parsed = FileMetadata.from_line(f"{LEGACY_HEADER_PREFIX}Last-Modified-Version: 12345")

        assert parsed.library_version == 12345
        assert parsed.format is ExportFormat.BIBLATEX

    @pytest.mark.parametrize(
        "line",
        [
            "",
            "@article{smith2023,",
            "% some other comment",
            f"{HEADER_PREFIX} not json",
            f'{HEADER_PREFIX} {{"zotexon_version": "0.1.0", "format": "biblatex"}}',
            f'{HEADER_PREFIX} {{"zotexon_version": "0.1.0", "library_version": 1, "format": "ris"}}',
            f"{LEGACY_HEADER_PREFIX}Last-Modified-Version: soon",
        ],
    )
    def test_rejects_foreign_lines(self, line):
        assert FileMetadata.from_line(line) is None


class TestCreate:
    def test_creates_missing_file(self, mock_client, export_path):
        FileExporter.create(mock_client, export_path)
        assert export_path.exists()
        assert export_path.read_text() == ""

    def test_keeps_existing_content(self, mock_client, export_path):
        export_path.write_text("keep me")
        FileExporter.create(mock_client, export_path)
        assert export_path.read_text() == "keep me"

    def test_missing_directory(self, mock_client, tmp_path):
        with pytest.raises(ExportFileError) as exc_info:
            FileExporter.create(mock_client, tmp_path / "nope" / "library.bib")
        assert isinstance(exc_info.value.__cause__, OSError)


class TestExportOnce:
    def test_full_fetch_without_header(self, mock_client, export_path):
        exporter = FileExporter.create(mock_client, export_path)

        assert exporter.export_once() is ExportOutcome.CHANGES

        mock_client.fetch_items.assert_called_once_with(
            ExportFormat.BIBLATEX, since_version=None, cancel=None
        )
        first_line, body = export_path.read_text().split("\n", 1)
        assert body == BIBLATEX_ENTRY
        metadata = FileMetadata.from_line(first_line)
        assert metadata.library_version == 105
        assert metadata.zotexon_version == __version__

    def test_overwrites_foreign_content(self, mock_client, export_path):
        export_path.write_text("@misc{handwritten}\n" * 50)
        exporter = FileExporter.create(mock_client, export_path)

        exporter.export_once()

        mock_client.fetch_items.assert_called_once_with(
            ExportFormat.BIBLATEX, since_version=None, cancel=None
        )
        assert "handwritten" not in export_path.read_text()

    def test_conditional_fetch_with_header(self, mock_client, export_path):
        export_path.write_text(f"{_header(version=100)}\nold entries\n")
        exporter = FileExporter.create(mock_client, export_path)

        exporter.export_once()

        mock_client.fetch_items.assert_called_once_with(
            ExportFormat.BIBLATEX, since_version=100, cancel=None
        )
        assert FileMetadata.from_line(export_path.read_text().splitlines()[0]).library_version == 105

    def test_up_to_date_leaves_file_untouched(self, mock_client, export_path):
        original = f"{_header(version=105)}\n{BIBLATEX_ENTRY}"
        export_path.write_text(original)
        mock_client.fetch_items.return_value = None
        exporter = FileExporter.create(mock_client, export_path)

        assert exporter.export_once() is ExportOutcome.NO_CHANGES
        assert export_path.read_text() == original

    def test_format_change_forces_full_fetch(self, mock_client, export_path):
        export_path.write_text(f"{_header(fmt=ExportFormat.BIBLATEX)}\nold\n")
        exporter = FileExporter.create(mock_client, export_path, ExportFormat.BIBTEX)

        exporter.export_once()

        mock_client.fetch_items.assert_called_once_with(
            ExportFormat.BIBTEX, since_version=None, cancel=None
        )
        assert FileMetadata.from_line(export_path.read_text().splitlines()[0]).format is ExportFormat.BIBTEX

    def test_client_error_propagates(self, mock_client, export_path):
        export_path.write_text("previous")
        mock_client.fetch_items.side_effect = UnexpectedStatusError(500, "oops")
        exporter = FileExporter.create(mock_client, export_path)

        with pytest.raises(UnexpectedStatusError):
            exporter.export_once()
        assert export_path.read_text() == "previous"

    def test_write_failure(self, mock_client, export_path):
        exporter = FileExporter.create(mock_client, export_path)

        with patch("pathlib.Path.write_text", side_effect=PermissionError("read-only")):
            with pytest.raises(ExportFileError):
                exporter.export_once()


class TestExport:
    def test_without_interval_exports_once(self, mock_client, export_path):
        exporter = FileExporter.create(mock_client, export_path)

        assert exporter.export() is ExportOutcome.CHANGES
        assert mock_client.fetch_items.call_count == 1

    def test_zero_interval_exports_once(self, mock_client, export_path):
        exporter = FileExporter.create(mock_client, export_path)

        exporter.export(interval=0)
        assert mock_client.fetch_items.call_count == 1

    def test_periodic_until_stopped(self, mock_client, fetch_result, export_path):
        cancel = CancellationToken()
        results = [fetch_result, None, None]

        def fetch(*args, **kwargs):
            result = results.pop(0)
            if not results:
                cancel.cancel()
            return result

        mock_client.fetch_items.side_effect = fetch
        exporter = FileExporter.create(mock_client, export_path)

        assert exporter.export(interval=0.01, cancel=cancel) is ExportOutcome.CHANGES
        assert mock_client.fetch_items.call_count == 3
        # later runs ask only for changes since the written version
        assert mock_client.fetch_items.call_args.kwargs["since_version"] == 105

    def test_periodic_without_changes(self, mock_client, export_path):
        cancel = CancellationToken()
        export_path.write_text(f"{_header(version=105)}\n")

        def fetch(*args, **kwargs):
            cancel.cancel()
            return None

        mock_client.fetch_items.side_effect = fetch
        exporter = FileExporter.create(mock_client, export_path)

        assert exporter.export(interval=0.01, cancel=cancel) is ExportOutcome.NO_CHANGES

    def test_old_header_enables_conditional_fetch(self, mock_client, export_path):
        export_path.write_text(
            f"{LEGACY_HEADER_PREFIX} "
            '{"zotex_version": "0.2.1", "library_version": 90, "format": "biblatex"}\n'
            "old entries\n"
        )
        mock_client.fetch_items.return_value = None
        exporter = FileExporter.create(mock_client, export_path)

        assert exporter.export_once() is ExportOutcome.NO_CHANGES
        mock_client.fetch_items.assert_called_once_with(
            ExportFormat.BIBLATEX, since_version=90, cancel=None
        )
