"""Minimal Plex API client using standard library only."""

from __future__ import annotations

from http.client import HTTPException
import logging
from typing import Iterable
from urllib.error import HTTPError, URLError
from urllib.parse import urlencode
from urllib.request import Request, urlopen
import xml.etree.ElementTree as ET

from plex_report import __version__
from plex_report.models import LibraryItem, LibrarySection

LOGGER = logging.getLogger(__name__)

ITEM_TAGS = ("Video", "Directory")


class PlexError(RuntimeError):
    pass


class PlexClient:
    def __init__(
        self,
        base_url: str,
        token: str,
        timeout: int = 30,
        client_identifier: str = "plex-report",
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.timeout = timeout
        self.client_identifier = client_identifier

    def _request(
        self,
        path: str,
        params: Iterable[tuple[str, str]] | None = None,
    ) -> ET.Element:
        url = f"{self.base_url}{path}"
        if params:
            url = f"{url}?{urlencode(list(params), doseq=True)}"

        headers = {
            "X-Plex-Token": self.token,
            "X-Plex-Product": "Plex Report",
            "X-Plex-Version": __version__,
            "X-Plex-Client-Identifier": self.client_identifier,
            "Accept": "application/xml",
        }

        request = Request(url, headers=headers, method="GET")
        LOGGER.debug("GET %s", url)
        try:
            with urlopen(request, timeout=self.timeout) as response:
                data = response.read()
        except HTTPError as exc:
            body = exc.read().decode("utf-8", errors="replace") if exc.fp else ""
            raise PlexError(f"Plex API error {exc.code} for {url}: {body}") from exc
        except (URLError, OSError, HTTPException) as exc:
            raise PlexError(f"Plex API connection error for {url}: {exc}") from exc

        try:
            return ET.fromstring(data)
        except ET.ParseError as exc:
            snippet = data[:200].decode("utf-8", errors="replace")
            raise PlexError(f"Invalid Plex API response from {url}: {snippet}") from exc

    def get_sections(self) -> list[LibrarySection]:
        root = self._request("/library/sections")
        sections = []
        for entry in root.findall("Directory"):
            sections.append(
                LibrarySection(
                    key=entry.attrib.get("key", ""),
                    title=entry.attrib.get("title", ""),
                    type=entry.attrib.get("type", ""),
                )
            )
        return sections

    def get_section_items(self, section_key: str) -> list[LibraryItem]:
        root = self._request(f"/library/sections/{section_key}/all")
        return [_parse_item(entry) for entry in _item_entries(root)]

    def get_metadata(self, rating_key: str) -> LibraryItem:
        root = self._request(f"/library/metadata/{rating_key}")
        entries = _item_entries(root)
        if not entries:
            raise PlexError(f"No metadata returned for item {rating_key}")
        return _parse_item(entries[0])

    def get_children(self, rating_key: str) -> list[LibraryItem]:
        root = self._request(f"/library/metadata/{rating_key}/children")
        seasons = []
        for entry in root.findall("Directory"):
            if entry.attrib.get("type") != "season":
                continue
            seasons.append(_parse_item(entry))
        return seasons


def _item_entries(root: ET.Element) -> list[ET.Element]:
    return [entry for entry in root if entry.tag in ITEM_TAGS]


def _parse_item(entry: ET.Element) -> LibraryItem:
    return LibraryItem(
        rating_key=entry.attrib.get("ratingKey", ""),
        title=entry.attrib.get("title", ""),
        type=entry.attrib.get("type", ""),
        guid=entry.attrib.get("guid", ""),
        added_at=_parse_int(entry.attrib.get("addedAt")),
        updated_at=_parse_int(entry.attrib.get("updatedAt")),
        index=_parse_int(entry.attrib.get("index")),
        leaf_count=_parse_int(entry.attrib.get("leafCount")),
    )


def _parse_int(value: str | None) -> int | None:
    if not value:
        return None
    try:
        return int(value)
    except ValueError:
        return None
