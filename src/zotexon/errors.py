"""Exceptions raised by Zotexon."""

from pathlib import Path


class ZotexonError(Exception):
    """Base class for all errors reported to the user."""


class ZoteroApiError(ZotexonError):
    """Something went wrong talking to the Zotero web API."""


class ZoteroConnectionError(ZoteroApiError):
    """The request never produced an HTTP response."""


class UnexpectedStatusError(ZoteroApiError):
    """The API answered with a status the client does not handle."""

    def __init__(self, status: int, body: str = ""):
        self.status = status
        self.body = body
        super().__init__(f"Unexpected response status {status} with body: {body!r}")


class InsufficientRightsError(ZoteroApiError):
    """The API key is valid but cannot read the user's library."""

    def __init__(self, username: str | None = None):
        self.username = username
        who = f" of user '{username}'" if username else ""
        super().__init__(f"API key has no read access to the library{who}")


class ExportFileError(ZotexonError):
    """The export file could not be opened, read or written."""

    def __init__(self, file_path: Path, message: str = "Error with file"):
        self.file_path = file_path
        super().__init__(f"{message} '{file_path}'")


class ExportCancelled(ZotexonError):
    """A stop was requested while an export was in progress."""

    def __init__(self, message: str = "Export cancelled"):
        super().__init__(message)
