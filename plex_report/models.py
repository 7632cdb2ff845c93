"""Dataclasses for library items, metadata lookups and report records."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class LibrarySection:
    key: str
    title: str
    type: str


@dataclass(frozen=True)
class LibraryItem:
    rating_key: str
    title: str
    type: str
    guid: str = ""
    added_at: int | None = None
    updated_at: int | None = None
    index: int | None = None
    leaf_count: int | None = None


@dataclass(frozen=True)
class MovieMetadata:
    id: int
    title: str
    poster_path: str | None = None
    tagline: str | None = None
    overview: str | None = None
    runtime: int | None = None
    imdb_id: str | None = None


@dataclass(frozen=True)
class MovieDetails:
    year: str | None = None
    rating: str | None = None
    votes: str | None = None
    director: str | None = None
    actors: str | None = None
    genre: str | None = None
    released: str | None = None
    content_rating: str | None = None


@dataclass(frozen=True)
class EpisodeInfo:
    season_number: int
    episode_number: int
    name: str = ""
    overview: str | None = None
    first_aired: str | None = None
    dvd_episode_number: int | None = None


@dataclass(frozen=True)
class SeriesMetadata:
    series_name: str
    network: str | None = None
    imdb_id: str | None = None
    poster_path: str | None = None
    overview: str | None = None
    episodes: tuple[EpisodeInfo, ...] = ()


@dataclass(frozen=True)
class MovieRecord:
    id: int
    title: str
    image: str
    year: str | None
    tagline: str | None
    synopsis: str | None
    runtime: int | None
    imdb: str
    imdb_rating: str | None
    imdb_votes: str | None
    director: str | None
    actors: str | None
    genre: str | None
    released: str | None
    rating: str | None


@dataclass(frozen=True)
class EpisodeRecord:
    id: str
    series_name: str
    image: str
    network: str | None
    imdb: str
    title: str
    episode_number: str
    synopsis: str | None
    airdate: str | None


@dataclass
class SeasonRecord:
    """One show with newly completed seasons; seasons keep discovery order."""

    id: str
    series_name: str
    image: str
    network: str | None
    imdb: str
    synopsis: str | None
    seasons: list[int] = field(default_factory=list)

    def add_season(self, season: int) -> bool:
        if season in self.seasons:
            return False
        self.seasons.append(season)
        return True


@dataclass(frozen=True)
class Report:
    movies: list[MovieRecord]
    new_episodes: list[EpisodeRecord]
    new_seasons: list[SeasonRecord]


@dataclass(frozen=True)
class Skipped:
    reason: str
