"""Metadata provider clients: TheMovieDB, OMDb and TheTVDB."""

from __future__ import annotations

from http.client import HTTPException
import json
import logging
from typing import Any
from urllib.error import HTTPError, URLError
from urllib.parse import quote, urlencode
from urllib.request import Request, urlopen
import xml.etree.ElementTree as ET

from plex_report import __version__
from plex_report.models import EpisodeInfo, MovieDetails, MovieMetadata, SeriesMetadata

LOGGER = logging.getLogger(__name__)

TMDB_URL = "https://api.themoviedb.org/3"
OMDB_URL = "https://www.omdbapi.com/"
TVDB_URL = "https://thetvdb.com/api"


class MetadataError(RuntimeError):
    pass


class TMDBClient:
    def __init__(self, api_key: str, base_url: str = TMDB_URL, timeout: int = 30) -> None:
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    def lookup_primary(self, movie_id: str) -> MovieMetadata:
        params = urlencode({"api_key": self.api_key})
        url = f"{self.base_url}/movie/{quote(movie_id, safe='')}?{params}"
        data = _request_json(url, self.timeout, f"TMDB movie {movie_id}")
        if not isinstance(data, dict) or "id" not in data:
            raise MetadataError(f"Unexpected TMDB response for movie {movie_id}")
        return MovieMetadata(
            id=int(data["id"]),
            title=data.get("title") or "",
            poster_path=data.get("poster_path"),
            tagline=data.get("tagline"),
            overview=data.get("overview"),
            runtime=data.get("runtime"),
            imdb_id=data.get("imdb_id") or None,
        )


class OMDBClient:
    def __init__(self, api_key: str, base_url: str = OMDB_URL, timeout: int = 30) -> None:
        self.api_key = api_key
        self.base_url = base_url
        self.timeout = timeout

    def lookup_secondary(self, imdb_id: str) -> MovieDetails:
        params = urlencode({"i": imdb_id, "apikey": self.api_key})
        data = _request_json(f"{self.base_url}?{params}", self.timeout, f"OMDb title {imdb_id}")
        if not isinstance(data, dict):
            raise MetadataError(f"Unexpected OMDb response for {imdb_id}")
        if str(data.get("Response", "True")).lower() == "false":
            raise MetadataError(f"OMDb lookup failed for {imdb_id}: {data.get('Error', 'unknown error')}")
        return MovieDetails(
            year=data.get("Year"),
            rating=data.get("imdbRating"),
            votes=data.get("imdbVotes"),
            director=data.get("Director"),
            actors=data.get("Actors"),
            genre=data.get("Genre"),
            released=data.get("Released"),
            content_rating=data.get("Rated"),
        )


class TVDBClient:
    """Reads the full series record (series plus every episode) as XML."""

    def __init__(
        self,
        api_key: str,
        base_url: str = TVDB_URL,
        language: str = "en",
        timeout: int = 30,
    ) -> None:
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.language = language
        self.timeout = timeout

    def lookup_series(self, series_id: str) -> SeriesMetadata:
        url = f"{self.base_url}/{self.api_key}/series/{quote(series_id, safe='')}/all/{self.language}.xml"
        root = _request_xml(url, self.timeout, f"TVDB series {series_id}")
        series = root.find("Series")
        if series is None:
            raise MetadataError(f"No series record returned for {series_id}")

        episodes = []
        for entry in root.findall("Episode"):
            season = _parse_int(entry.findtext("SeasonNumber"))
            number = _parse_int(entry.findtext("EpisodeNumber"))
            if season is None or number is None:
                continue
            episodes.append(
                EpisodeInfo(
                    season_number=season,
                    episode_number=number,
                    name=entry.findtext("EpisodeName") or "",
                    overview=_text_or_none(entry.findtext("Overview")),
                    first_aired=_text_or_none(entry.findtext("FirstAired")),
                    dvd_episode_number=_parse_int(entry.findtext("DVD_episodenumber")),
                )
            )

        return SeriesMetadata(
            series_name=series.findtext("SeriesName") or "",
            network=_text_or_none(series.findtext("Network")),
            imdb_id=_text_or_none(series.findtext("IMDB_ID")),
            poster_path=_text_or_none(series.findtext("poster")),
            overview=_text_or_none(series.findtext("Overview")),
            episodes=tuple(episodes),
        )


def _fetch(url: str, timeout: int, accept: str, label: str) -> bytes:
    headers = {"Accept": accept, "User-Agent": f"plex-report/{__version__}"}
    request = Request(url, headers=headers, method="GET")
    LOGGER.debug("Fetching %s", label)
    try:
        with urlopen(request, timeout=timeout) as response:
            return response.read()
    except HTTPError as exc:
        raise MetadataError(f"Metadata API error {exc.code} for {label}") from exc
    except (URLError, OSError, HTTPException) as exc:
        raise MetadataError(f"Metadata API connection error for {label}: {exc}") from exc


def _request_json(url: str, timeout: int, label: str) -> Any:
    payload = _fetch(url, timeout, "application/json", label)
    try:
        return json.loads(payload.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        snippet = payload[:200].decode("utf-8", errors="replace")
        raise MetadataError(f"Invalid metadata response: {snippet}") from exc


def _request_xml(url: str, timeout: int, label: str) -> ET.Element:
    payload = _fetch(url, timeout, "application/xml", label)
    try:
        return ET.fromstring(payload)
    except ET.ParseError as exc:
        snippet = payload[:200].decode("utf-8", errors="replace")
        raise MetadataError(f"Invalid metadata response: {snippet}") from exc


def _parse_int(value: str | None) -> int | None:
    if not value:
        return None
    try:
        return int(float(value))
    except ValueError:
        return None


def _text_or_none(value: str | None) -> str | None:
    if value is None:
        return None
    value = value.strip()
    return value or None
