"""Report assembly for one scan of the library."""

from __future__ import annotations

import datetime as dt
import logging

from plex_report.detectors import NewEpisodeDetector, NewMovieDetector
from plex_report.metadata import OMDBClient, TMDBClient, TVDBClient
from plex_report.models import EpisodeRecord, MovieRecord, Report, SeasonRecord
from plex_report.plex_client import PlexClient

LOGGER = logging.getLogger(__name__)


def assemble_report(
    movies: list[MovieRecord],
    new_episodes: list[EpisodeRecord],
    new_seasons: list[SeasonRecord],
) -> Report | None:
    """Combine detector output; ``None`` means there is nothing to report."""
    if not movies and not new_episodes and not new_seasons:
        return None
    return Report(movies=list(movies), new_episodes=list(new_episodes), new_seasons=list(new_seasons))


def build_report(
    library: PlexClient,
    tmdb: TMDBClient,
    omdb: OMDBClient,
    tvdb: TVDBClient,
    now: dt.datetime,
    logger: logging.Logger | None = None,
    library_names: bool = False,
) -> Report | None:
    logger = logger or LOGGER
    sections = library.get_sections()
    logger.debug("Scanning %s library sections", len(sections))

    movie_detector = NewMovieDetector(library, tmdb, omdb, now, logger=logger, library_names=library_names)
    episode_detector = NewEpisodeDetector(library, tvdb, now, logger=logger, library_names=library_names)
    movies = movie_detector.detect(sections)
    new_episodes, new_seasons = episode_detector.detect(sections)
    logger.info(
        "Found %s new movies, %s new episodes, %s shows with new seasons",
        len(movies),
        len(new_episodes),
        len(new_seasons),
    )
    return assemble_report(movies, new_episodes, new_seasons)
