"""Zotero web API client for library exports."""

import logging
from contextlib import nullcontext
from dataclasses import dataclass
from typing import Optional

import requests

from zotexon.cancellation import CancellationToken
from zotexon.config import ZOTERO_API_URL, ExportFormat
from zotexon.errors import (
    InsufficientRightsError,
    UnexpectedStatusError,
    ZoteroConnectionError,
)

logger = logging.getLogger(__name__)

API_VERSION = "3"


@dataclass
class FetchResult:
    """Library export returned by the API when something changed."""

    library_version: int
    text: str


def _parse_version(value: Optional[str]) -> int:
    try:
        return int(value) if value is not None else 0
    except ValueError:
        return 0


class ZoteroClient:
    """Thin wrapper around a ``requests`` session bound to one user library."""

    def __init__(
        self,
        api_key: str,
        user_id: str,
        base_url: str = ZOTERO_API_URL,
        page_size: int = 25,
        timeout: float = 30.0,
        session: Optional[requests.Session] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.user_url = f"{self.base_url}/users/{user_id}"
        self.page_size = page_size
        self.timeout = timeout
        self.session = session or _make_session(api_key)
        logger.debug("Client bound to user URL %s", self.user_url)

    @classmethod
    def from_api_key(
        cls,
        api_key: str,
        user_id: Optional[str] = None,
        base_url: str = ZOTERO_API_URL,
        page_size: int = 25,
        timeout: float = 30.0,
    ) -> "ZoteroClient":
        """Build a client, resolving the user id from the key if needed.

        Without an explicit ``user_id`` the key is checked against
        ``/keys/current``. The key must grant read access to the user's
        library, otherwise ``InsufficientRightsError`` is raised.
        """
        session = _make_session(api_key)
        if user_id is None:
            user_id = _validate_key(session, base_url.rstrip("/"), timeout)
        return cls(
            api_key,
            user_id,
            base_url=base_url,
            page_size=page_size,
            timeout=timeout,
            session=session,
        )

    def close(self):
        self.session.close()

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()

    def fetch_items(
        self,
        export_format: ExportFormat,
        since_version: Optional[int] = None,
        cancel: Optional[CancellationToken] = None,
    ) -> Optional[FetchResult]:
        """Fetch the whole library in ``export_format``.

        Follows ``Link: rel="next"`` pagination and concatenates the pages.
        Returns ``None`` when ``since_version`` is given and the library has
        not changed since (HTTP 304).

        With a ``cancel`` token every page request is interruptible: a
        cancellation aborts the fetch with ``ExportCancelled``, between pages
        or while waiting for a response.
        """
        headers = {}
        if since_version is not None:
            headers["If-Modified-Since-Version"] = str(since_version)

        url: Optional[str] = f"{self.user_url}/items"
        params: Optional[dict] = {"format": export_format.value, "limit": self.page_size}
        result: Optional[FetchResult] = None
        pages = 0

        while url:
            with cancel.interruptible() if cancel else nullcontext():
                response = self._get(url, params=params, headers=headers)
                # Exports are UTF-8 even when the Content-Type omits a charset
                response.encoding = "utf-8"
                text = response.text
            if response.status_code == requests.codes.not_modified:
                logger.debug("Library unchanged since version %s", since_version)
                return None
            if response.status_code != requests.codes.ok:
                raise UnexpectedStatusError(response.status_code, text)

            pages += 1
            if result is None:
                version = _parse_version(response.headers.get("Last-Modified-Version"))
                result = FetchResult(library_version=version, text=text)
            else:
                result.text += text

            # The next link already carries the query string
            url = response.links.get("next", {}).get("url")
            params = None

        logger.debug("Fetched %d page(s) at library version %d", pages, result.library_version)
        return result

    def _get(self, url: str, **kwargs) -> requests.Response:
        logger.debug("GET %s", url)
        try:
            return self.session.get(url, timeout=self.timeout, **kwargs)
        except requests.exceptions.RequestException as e:
            raise ZoteroConnectionError(f"Request to {url} failed: {e}") from e


def _make_session(api_key: str) -> requests.Session:
    session = requests.Session()
    session.headers.update(
        {
            "Zotero-API-Version": API_VERSION,
            "Zotero-API-Key": api_key,
        }
    )
    return session


def _validate_key(session: requests.Session, base_url: str, timeout: float) -> str:
    """Return the user id of the key behind ``session``."""
    url = f"{base_url}/keys/current"
    try:
        response = session.get(url, timeout=timeout)
    except requests.exceptions.RequestException as e:
        raise ZoteroConnectionError(f"Request to {url} failed: {e}") from e

    if response.status_code != requests.codes.ok:
        raise UnexpectedStatusError(response.status_code, response.text)

    try:
        key_info = response.json()
    except ValueError as e:
        raise UnexpectedStatusError(response.status_code, response.text) from e

    username = key_info.get("username")
    logger.info("Got a valid API key for user %s", username)

    can_read_library = key_info.get("access", {}).get("user", {}).get("library", False)
    if not can_read_library:
        logger.error("Key does not have access to library")
        raise InsufficientRightsError(username)

    return str(key_info["userID"])
