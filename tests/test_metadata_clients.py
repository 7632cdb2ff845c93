import datetime as dt
import io
import json
from http.client import IncompleteRead
from urllib.error import HTTPError, URLError

import pytest

import plex_report.metadata as metadata
from plex_report.detectors import NewMovieDetector
from plex_report.metadata import MetadataError, OMDBClient, TMDBClient, TVDBClient
from plex_report.models import LibraryItem, LibrarySection


class _FakeResponse:
    def __init__(self, payload: bytes):
        self._payload = payload

    def read(self) -> bytes:
        return self._payload

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        return False


def _respond(monkeypatch: pytest.MonkeyPatch, payload: bytes) -> list[str]:
    calls: list[str] = []

    def fake_urlopen(request, timeout=0):
        calls.append(request.full_url)
        return _FakeResponse(payload)

    monkeypatch.setattr(metadata, "urlopen", fake_urlopen)
    return calls


def test_tmdb_lookup_primary(monkeypatch: pytest.MonkeyPatch) -> None:
    body = {
        "id": 603,
        "title": "The Matrix",
        "poster_path": "/f89U3ADr1oiB1s9GkdPOEpXUk5H.jpg",
        "tagline": "Welcome to the Real World.",
        "overview": "Set in the 22nd century...",
        "runtime": 136,
        "imdb_id": "tt0133093",
    }
    calls = _respond(monkeypatch, json.dumps(body).encode("utf-8"))

    movie = TMDBClient("key123").lookup_primary("603")

    assert calls == ["https://api.themoviedb.org/3/movie/603?api_key=key123"]
    assert movie.id == 603
    assert movie.title == "The Matrix"
    assert movie.imdb_id == "tt0133093"
    assert movie.runtime == 136


def test_tmdb_unexpected_payload_raises(monkeypatch: pytest.MonkeyPatch) -> None:
    _respond(monkeypatch, b'{"status_code": 34, "status_message": "not found"}')

    with pytest.raises(MetadataError):
        TMDBClient("key").lookup_primary("1")


def test_omdb_lookup_secondary(monkeypatch: pytest.MonkeyPatch) -> None:
    body = {
        "Year": "1999",
        "Rated": "R",
        "Released": "31 Mar 1999",
        "Genre": "Action, Sci-Fi",
        "Director": "Lana Wachowski, Lilly Wachowski",
        "Actors": "Keanu Reeves, Laurence Fishburne",
        "imdbRating": "8.7",
        "imdbVotes": "2,000,000",
        "Response": "True",
    }
    calls = _respond(monkeypatch, json.dumps(body).encode("utf-8"))

    details = OMDBClient("abc").lookup_secondary("tt0133093")

    assert calls == ["https://www.omdbapi.com/?i=tt0133093&apikey=abc"]
    assert details.year == "1999"
    assert details.content_rating == "R"
    assert details.rating == "8.7"
    assert details.votes == "2,000,000"


def test_omdb_error_response_raises(monkeypatch: pytest.MonkeyPatch) -> None:
    _respond(monkeypatch, b'{"Response": "False", "Error": "Incorrect IMDb ID."}')

    with pytest.raises(MetadataError, match="Incorrect IMDb ID"):
        OMDBClient("abc").lookup_secondary("tt0")


def test_tvdb_lookup_series(monkeypatch: pytest.MonkeyPatch) -> None:
    xml = """<?xml version="1.0" encoding="UTF-8" ?>
<Data>
  <Series>
    <id>121361</id>
    <SeriesName>Game of Thrones</SeriesName>
    <Network>HBO</Network>
    <IMDB_ID>tt0944947</IMDB_ID>
    <poster>posters/121361-1.jpg</poster>
    <Overview>Seven noble families fight for control.</Overview>
  </Series>
  <Episode>
    <SeasonNumber>1</SeasonNumber>
    <EpisodeNumber>1</EpisodeNumber>
    <DVD_episodenumber>1.0</DVD_episodenumber>
    <EpisodeName>Winter Is Coming</EpisodeName>
    <FirstAired>2011-04-17</FirstAired>
    <Overview>Lord Ned Stark is troubled.</Overview>
  </Episode>
  <Episode>
    <SeasonNumber>1</SeasonNumber>
    <EpisodeNumber>2</EpisodeNumber>
    <DVD_episodenumber></DVD_episodenumber>
    <EpisodeName>The Kingsroad</EpisodeName>
    <FirstAired></FirstAired>
  </Episode>
  <Episode>
    <SeasonNumber></SeasonNumber>
    <EpisodeNumber>3</EpisodeNumber>
  </Episode>
</Data>
"""
    calls = _respond(monkeypatch, xml.encode("utf-8"))

    series = TVDBClient("KEY").lookup_series("121361")

    assert calls == ["https://thetvdb.com/api/KEY/series/121361/all/en.xml"]
    assert series.series_name == "Game of Thrones"
    assert series.network == "HBO"
    assert series.imdb_id == "tt0944947"
    assert series.poster_path == "posters/121361-1.jpg"
    assert len(series.episodes) == 2
    first, second = series.episodes
    assert (first.season_number, first.episode_number, first.dvd_episode_number) == (1, 1, 1)
    assert first.first_aired == "2011-04-17"
    assert second.dvd_episode_number is None
    assert second.first_aired is None


def test_tvdb_missing_series_raises(monkeypatch: pytest.MonkeyPatch) -> None:
    _respond(monkeypatch, b"<Data></Data>")

    with pytest.raises(MetadataError):
        TVDBClient("KEY").lookup_series("1")


def test_http_and_connection_errors_hide_api_keys(monkeypatch: pytest.MonkeyPatch) -> None:
    def not_found(request, timeout=0):
        raise HTTPError(request.full_url, 404, "Not Found", {}, io.BytesIO(b""))

    monkeypatch.setattr(metadata, "urlopen", not_found)
    with pytest.raises(MetadataError) as exc:
        TVDBClient("SECRETKEY").lookup_series("42")
    assert "404" in str(exc.value)
    assert "SECRETKEY" not in str(exc.value)

    def refused(request, timeout=0):
        raise URLError("connection refused")

    monkeypatch.setattr(metadata, "urlopen", refused)
    with pytest.raises(MetadataError) as exc:
        TMDBClient("SECRETKEY").lookup_primary("42")
    assert "SECRETKEY" not in str(exc.value)


def test_invalid_json_raises(monkeypatch: pytest.MonkeyPatch) -> None:
    _respond(monkeypatch, b"<html>oops</html>")

    with pytest.raises(MetadataError, match="Invalid metadata response"):
        OMDBClient("abc").lookup_secondary("tt1")


class _BrokenResponse(_FakeResponse):
    def __init__(self, error: Exception):
        super().__init__(b"")
        self._error = error

    def read(self) -> bytes:
        raise self._error


@pytest.mark.parametrize(
    "error",
    [IncompleteRead(b""), TimeoutError("timed out"), ConnectionResetError("reset by peer")],
)
def test_read_failures_raise_metadata_error(monkeypatch: pytest.MonkeyPatch, error: Exception) -> None:
    monkeypatch.setattr(metadata, "urlopen", lambda request, timeout=0: _BrokenResponse(error))

    with pytest.raises(MetadataError, match="connection error"):
        TMDBClient("key").lookup_primary("603")
    with pytest.raises(MetadataError, match="connection error"):
        TVDBClient("key").lookup_series("121361")


def test_truncated_responses_skip_movies_without_aborting_detection(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(metadata, "urlopen", lambda request, timeout=0: _BrokenResponse(IncompleteRead(b"")))
    now = dt.datetime(2026, 10, 19, 12, 0, tzinfo=dt.timezone.utc)
    added = int(now.timestamp()) - 60

    class _Library:
        def get_section_items(self, section_key):
            return [
                LibraryItem(rating_key="m1", title="One", type="movie", added_at=added),
                LibraryItem(rating_key="m2", title="Two", type="movie", added_at=added),
            ]

        def get_metadata(self, rating_key):
            return LibraryItem(rating_key=rating_key, title=rating_key, type="movie", guid=f"themoviedb://{rating_key[1:]}")

    detector = NewMovieDetector(_Library(), TMDBClient("key"), OMDBClient("key"), now)

    assert detector.detect([LibrarySection(key="1", title="Movies", type="movie")]) == []
