"""Detection of newly added movies, newly aired episodes and newly completed seasons.

Every rule uses the same rolling one-week window computed from the ``now`` handed
to the detector; nothing is remembered between runs.
"""

from __future__ import annotations

import datetime as dt
import logging
from dataclasses import dataclass, field

from plex_report.metadata import MetadataError, OMDBClient, TMDBClient, TVDBClient
from plex_report.models import (
    EpisodeInfo,
    EpisodeRecord,
    LibraryItem,
    LibrarySection,
    MovieRecord,
    SeasonRecord,
    SeriesMetadata,
    Skipped,
)
from plex_report.plex_client import PlexClient, PlexError
from plex_report.utils import added_within, date_from_timestamp, ensure_list, parse_date

LOGGER = logging.getLogger(__name__)

TMDB_IMAGE_URL = "https://image.tmdb.org/t/p/w154"
TVDB_IMAGE_URL = "http://thetvdb.com/banners/"
IMDB_TITLE_URL = "http://www.imdb.com/title/"

NEW_EPISODE_MAX_DAYS = 8
SHOW_UPDATED_MAX_DAYS = 7


def strip_guid(guid: str) -> str:
    """Return the foreign id of an agent guid: scheme prefix and ``?...`` suffix removed."""
    ref = guid.split("://", 1)[1] if "://" in guid else guid
    return ref.split("?", 1)[0]


def guid_scheme(guid: str) -> str:
    if "themoviedb" in guid:
        return "themoviedb"
    if "imdb" in guid:
        return "imdb"
    return guid.split("://", 1)[0] if "://" in guid else ""


def sections_of_type(sections: list[LibrarySection], kind: str) -> list[LibrarySection]:
    return [section for section in sections if section.type == kind]


class NewMovieDetector:
    def __init__(
        self,
        library: PlexClient,
        tmdb: TMDBClient,
        omdb: OMDBClient,
        now: dt.datetime,
        logger: logging.Logger | None = None,
        library_names: bool = False,
    ) -> None:
        self.library = library
        self.tmdb = tmdb
        self.omdb = omdb
        self.now = now
        self.logger = logger or LOGGER
        self.library_names = library_names

    def detect(self, sections: list[LibrarySection]) -> list[MovieRecord]:
        movies: list[MovieRecord] = []
        for section in sections_of_type(sections, "movie"):
            try:
                items = self.library.get_section_items(section.key)
            except PlexError as exc:
                self.logger.error("Failed to list movie library %s: %s", section.title, exc)
                continue
            for item in items:
                result = self.resolve(item, section)
                if isinstance(result, Skipped):
                    self.logger.debug("Skipping movie %s: %s", item.title, result.reason)
                    continue
                movies.append(result)
        return sorted(movies, key=lambda movie: movie.title)

    def resolve(self, item: LibraryItem, section: LibrarySection | None = None) -> MovieRecord | Skipped:
        if not added_within(item.added_at, self.now):
            return Skipped("not added this week")

        try:
            detail = self.library.get_metadata(item.rating_key)
        except PlexError as exc:
            return Skipped(f"library lookup failed: {exc}")

        guid = detail.guid
        if "local" in guid:
            return Skipped("local media without an agent match")
        scheme = guid_scheme(guid)
        if scheme == "imdb":
            # IMDB-agent movies are left out of the report; only TMDB ids are looked up.
            return Skipped(f"imdb agent id {strip_guid(guid)} is not resolved")
        if scheme != "themoviedb":
            self.logger.error("Movie %s using incompatible agent: %s", detail.title or item.title, guid)
            return Skipped("unsupported agent")

        movie_id = strip_guid(guid)
        try:
            movie = self.tmdb.lookup_primary(movie_id)
            if not movie.imdb_id:
                return Skipped(f"TMDB movie {movie_id} has no IMDB id")
            details = self.omdb.lookup_secondary(movie.imdb_id)
        except MetadataError as exc:
            return Skipped(f"metadata lookup failed: {exc}")

        self.logger.info("Reporting movie: %s", movie.title)
        return MovieRecord(
            id=movie.id,
            title=_display_name(movie.title, section, self.library_names),
            image=f"{TMDB_IMAGE_URL}{movie.poster_path or ''}",
            year=details.year,
            tagline=movie.tagline,
            synopsis=movie.overview,
            runtime=movie.runtime,
            imdb=f"{IMDB_TITLE_URL}{movie.imdb_id}",
            imdb_rating=details.rating,
            imdb_votes=details.votes,
            director=details.director,
            actors=details.actors,
            genre=details.genre,
            released=details.released,
            rating=details.content_rating,
        )


@dataclass
class NewTVContent:
    """Per-run accumulator keyed by show id, so each show yields at most one record of each kind."""

    episodes: dict[str, EpisodeRecord] = field(default_factory=dict)
    seasons: dict[str, SeasonRecord] = field(default_factory=dict)


class NewEpisodeDetector:
    def __init__(
        self,
        library: PlexClient,
        tvdb: TVDBClient,
        now: dt.datetime,
        logger: logging.Logger | None = None,
        library_names: bool = False,
    ) -> None:
        self.library = library
        self.tvdb = tvdb
        self.now = now
        self.logger = logger or LOGGER
        self.library_names = library_names

    def detect(self, sections: list[LibrarySection]) -> tuple[list[EpisodeRecord], list[SeasonRecord]]:
        found = NewTVContent()
        for section in sections_of_type(sections, "show"):
            try:
                shows = self.library.get_section_items(section.key)
            except PlexError as exc:
                self.logger.error("Failed to list TV library %s: %s", section.title, exc)
                continue
            for show in shows:
                result = self.process_show(show, found, section)
                if isinstance(result, Skipped):
                    self.logger.debug("Skipping show %s: %s", show.title, result.reason)

        episodes = sorted(found.episodes.values(), key=lambda record: record.series_name)
        seasons = sorted(found.seasons.values(), key=lambda record: record.series_name)
        return episodes, seasons

    def process_show(
        self,
        show: LibraryItem,
        found: NewTVContent,
        section: LibrarySection | None = None,
    ) -> Skipped | None:
        try:
            detail = self.library.get_metadata(show.rating_key)
        except PlexError as exc:
            return Skipped(f"library lookup failed: {exc}")
        if not added_within(detail.updated_at, self.now):
            return Skipped("not updated this week")

        show_id = strip_guid(detail.guid)
        if not show_id:
            return Skipped("no agent guid")

        try:
            series = self.tvdb.lookup_series(show_id)
        except MetadataError as exc:
            self.logger.error("Connection to TVDB failed while retrieving info for %s: %s", show.title, exc)
            return Skipped("series lookup failed")

        series_name = _display_name(series.series_name, section, self.library_names)
        today = self.now.date()
        updated_on = date_from_timestamp(detail.updated_at, self.now)
        seasons_checked = False
        for episode in sorted(series.episodes, key=_air_date_key, reverse=True):
            aired = parse_date(episode.first_aired)
            if aired is None:
                continue
            if 0 < (today - aired).days < NEW_EPISODE_MAX_DAYS:
                if show_id in found.episodes:
                    continue
                label = f"S{episode.season_number} E{episode.episode_number}"
                self.logger.info("Reporting %s %s", series_name, label)
                found.episodes[show_id] = EpisodeRecord(
                    id=show_id,
                    series_name=series_name,
                    image=_tvdb_image(series),
                    network=series.network,
                    imdb=f"{IMDB_TITLE_URL}{series.imdb_id or ''}",
                    title=episode.name,
                    episode_number=label,
                    synopsis=episode.overview,
                    airdate=episode.first_aired,
                )
            elif (today - updated_on).days < SHOW_UPDATED_MAX_DAYS and not seasons_checked:
                # The outcome does not depend on the episode, so one pass per show is enough.
                seasons_checked = True
                self.check_seasons(show, show_id, series, series_name, found)
        return None

    def check_seasons(
        self,
        show: LibraryItem,
        show_id: str,
        series: SeriesMetadata,
        series_name: str,
        found: NewTVContent,
    ) -> None:
        aired_counts: dict[int, int] = {}
        dvd_counts: dict[int, int] = {}
        for episode in series.episodes:
            season = episode.season_number
            aired_counts[season] = max(aired_counts.get(season, 0), episode.episode_number)
            if episode.dvd_episode_number is not None:
                dvd_counts[season] = max(dvd_counts.get(season, 0), episode.dvd_episode_number)

        try:
            children = self.library.get_children(show.rating_key)
        except PlexError as exc:
            self.logger.warning("Failed to list seasons for %s: %s", show.title, exc)
            return

        for season in ensure_list(children):
            if season.index is None or season.leaf_count is None:
                continue
            if not added_within(season.added_at, self.now):
                continue
            if season.leaf_count not in (aired_counts.get(season.index), dvd_counts.get(season.index)):
                continue

            record = found.seasons.get(show_id)
            if record is None:
                self.logger.info("Reporting %s Season %s", series_name, season.index)
                found.seasons[show_id] = SeasonRecord(
                    id=show_id,
                    series_name=series_name,
                    image=_tvdb_image(series),
                    network=series.network,
                    imdb=f"{IMDB_TITLE_URL}{series.imdb_id or ''}",
                    synopsis=series.overview,
                    seasons=[season.index],
                )
            elif record.add_season(season.index):
                self.logger.info("Reporting %s Season %s", series_name, season.index)


def _air_date_key(episode: EpisodeInfo) -> dt.date:
    return parse_date(episode.first_aired) or dt.date.min


def _tvdb_image(series: SeriesMetadata) -> str:
    return f"{TVDB_IMAGE_URL}{series.poster_path or ''}"


def _display_name(name: str, section: LibrarySection | None, library_names: bool) -> str:
    """Prefix ``name`` with its library title when library names are requested."""
    if not library_names or section is None or not section.title:
        return name
    return f"{section.title}: {name}"
