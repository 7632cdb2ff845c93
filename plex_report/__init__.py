"""Weekly digest of new movies, episodes and seasons on a Plex server."""

__version__ = "0.1.0"
