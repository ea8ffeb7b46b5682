"""Shared pytest fixtures for Zotexon tests."""

import logging

import pytest

from zotexon.client import FetchResult, ZoteroClient

API_URL = "https://api.zotero.org"
USER_ID = "13622011"
ITEMS_URL = f"{API_URL}/users/{USER_ID}/items"

BIBLATEX_ENTRY = """
@article{smith2023,
\ttitle = {A Study of Something Important},
\tauthor = {Smith, John and Doe, Jane},
\tdate = {2023-06},
\tjournaltitle = {Journal of Testing},
}
"""


@pytest.fixture(autouse=True)
def isolated_env(tmp_path, monkeypatch):
    """Keep real credentials and .env files out of the tests."""
    for var in (
        "ZOTERO_API_KEY",
        "ZOTERO_USER_ID",
        "ZOTERO_API_URL",
        "ZOTEXON_FILE",
        "ZOTEXON_INTERVAL",
        "ZOTEXON_FORMAT",
        "PAGE_SIZE",
        "REQUEST_TIMEOUT",
        "LOG_LEVEL",
    ):
        monkeypatch.delenv(var, raising=False)
    monkeypatch.chdir(tmp_path)
    yield
    for name in ("zotexon", "urllib3"):
        logging.getLogger(name).handlers.clear()


@pytest.fixture
def client():
    """Client bound to a known user, skipping the key lookup."""
    with ZoteroClient("secret-key", USER_ID, base_url=API_URL) as c:
        yield c


@pytest.fixture
def export_path(tmp_path):
    return tmp_path / "library.bib"


@pytest.fixture
def fetch_result():
    return FetchResult(library_version=105, text=BIBLATEX_ENTRY)
