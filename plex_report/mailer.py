"""Plain-text rendering and SMTP delivery of a report."""

from __future__ import annotations

import logging
import smtplib
from email.message import EmailMessage
from typing import Any

from plex_report.models import Report
from plex_report.utils import ensure_list

LOGGER = logging.getLogger(__name__)


class MailError(RuntimeError):
    pass


def render_report_text(report: Report, detailed: bool = False) -> str:
    """Render the digest; ``detailed`` adds credits, runtime and image/IMDB links."""
    lines: list[str] = []
    if report.movies:
        lines.append("New Movies")
        lines.append("==========")
        for movie in report.movies:
            year = f" ({movie.year})" if movie.year else ""
            lines.append(f"{movie.title}{year}")
            if movie.tagline:
                lines.append(f"  {movie.tagline}")
            if movie.synopsis:
                lines.append(f"  {movie.synopsis}")
            if movie.imdb_rating:
                lines.append(f"  IMDB: {movie.imdb_rating}/10 ({movie.imdb_votes or 0} votes) {movie.imdb}")
            if detailed:
                _append_details(
                    lines,
                    [
                        ("Director", movie.director),
                        ("Starring", movie.actors),
                        ("Genre", movie.genre),
                        ("Runtime", f"{movie.runtime} min" if movie.runtime else None),
                        ("Released", movie.released),
                        ("Rated", movie.rating),
                        ("Poster", movie.image),
                    ],
                )
            lines.append("")

    if report.new_seasons:
        lines.append("New Seasons")
        lines.append("===========")
        for show in report.new_seasons:
            seasons = ", ".join(str(season) for season in show.seasons)
            label = "Season" if len(show.seasons) == 1 else "Seasons"
            lines.append(f"{show.series_name} - {label} {seasons}")
            if show.network:
                lines.append(f"  Network: {show.network}")
            if detailed:
                _append_details(
                    lines,
                    [("Synopsis", show.synopsis), ("Poster", show.image), ("IMDB", show.imdb)],
                )
            lines.append("")

    if report.new_episodes:
        lines.append("New Episodes")
        lines.append("============")
        for episode in report.new_episodes:
            lines.append(f"{episode.series_name} {episode.episode_number} - {episode.title}")
            if episode.airdate:
                lines.append(f"  Aired: {episode.airdate}")
            if episode.synopsis:
                lines.append(f"  {episode.synopsis}")
            if detailed:
                _append_details(
                    lines,
                    [("Network", episode.network), ("Poster", episode.image), ("IMDB", episode.imdb)],
                )
            lines.append("")

    return "\n".join(lines).rstrip() + "\n"


def _append_details(lines: list[str], fields: list[tuple[str, Any]]) -> None:
    for label, value in fields:
        # Links built from a missing id end in a bare prefix.
        if value and not str(value).endswith("/"):
            lines.append(f"  {label}: {value}")


def send_report(
    mail_config: dict[str, Any],
    report: Report,
    test_email: bool = False,
    detailed: bool = False,
) -> list[str]:
    sender = mail_config.get("sender", "")
    candidates = [sender] if test_email else ensure_list(mail_config.get("recipients"))
    recipients = [addr for addr in candidates if addr]
    if not recipients:
        raise MailError("No mail recipients configured")

    message = EmailMessage()
    message["Subject"] = mail_config.get("subject") or "New on Plex"
    message["From"] = sender
    message["To"] = sender
    if not test_email:
        message["Bcc"] = ", ".join(recipients)
    message.set_content(render_report_text(report, detailed=detailed))

    host = mail_config.get("host", "")
    port = int(mail_config.get("port", 587) or 587)
    try:
        with smtplib.SMTP(host, port, timeout=int(mail_config.get("timeout_seconds", 30) or 30)) as smtp:
            if mail_config.get("use_tls"):
                smtp.starttls()
            if mail_config.get("username"):
                smtp.login(mail_config["username"], mail_config.get("password", ""))
            smtp.send_message(message, from_addr=sender, to_addrs=recipients)
    except (smtplib.SMTPException, OSError) as exc:
        raise MailError(f"Failed to send report via {host}:{port}: {exc}") from exc

    LOGGER.info("Sent report to %s recipient(s)", len(recipients))
    return recipients
