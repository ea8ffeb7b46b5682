"""Zotexon: periodic export of a Zotero library to a BibLaTeX/BibTeX file."""

__version__ = "0.3.0"

from zotexon.config import ExportFormat, ZotexonConfig
from zotexon.errors import ZotexonError
from zotexon.export import ExportOutcome, FileExporter

__all__ = [
    "__version__",
    "ExportFormat",
    "ExportOutcome",
    "FileExporter",
    "ZotexonConfig",
    "ZotexonError",
]
