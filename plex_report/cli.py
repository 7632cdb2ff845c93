"""Command line entrypoint for the weekly Plex report."""

from __future__ import annotations

import argparse
import logging
import random
import time

from plex_report.config import ConfigError, load_config, validate_config
from plex_report.mailer import MailError, render_report_text, send_report
from plex_report.metadata import OMDBClient, TMDBClient, TVDBClient
from plex_report.plex_client import PlexClient, PlexError
from plex_report.report import build_report
from plex_report.utils import now_local

LOGGER = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s %(message)s"


def main() -> int:
    parser = argparse.ArgumentParser(description="Report new movies, episodes and seasons on a Plex server")
    parser.add_argument("--config", required=True, help="Path to config.json or config.yaml")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    parser.add_argument("--log-file", default="", help="Also write logs to this file")

    subparsers = parser.add_subparsers(dest="command", required=True)

    run_cmd = subparsers.add_parser("run", help="Scan the library and send the report")
    run_cmd.add_argument("--no-email", action="store_true", help="Do not send the report by email")
    run_cmd.add_argument("--test-email", action="store_true", help="Send the report only to the sender address")
    run_cmd.add_argument("--print", dest="print_report", action="store_true", help="Print the report to stdout")
    run_cmd.add_argument(
        "-d",
        "--detailed-email",
        dest="detailed_email",
        action="store_true",
        help="Include credits, runtime, release date and links in the report",
    )
    run_cmd.add_argument(
        "-l",
        "--add-library-names",
        dest="library_names",
        action="store_true",
        help="Prefix each title with the name of its Plex library",
    )
    run_cmd.add_argument("--loop", action="store_true", help="Run continuously based on schedule")
    run_cmd.add_argument("--once", action="store_true", help="Run once even if schedule is set")
    run_cmd.add_argument("--interval-minutes", type=int, default=0, help="Override schedule interval")

    subparsers.add_parser("libraries", help="List Plex library sections")

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format=LOG_FORMAT,
    )

    try:
        config = load_config(args.config)
        validate_config(config)
    except (ConfigError, OSError, ValueError) as exc:
        LOGGER.error("Config error: %s", exc)
        return 1

    log_file = args.log_file or config.get("logging", {}).get("file", "")
    if log_file:
        _add_file_logging(log_file)

    plex_cfg = config["plex"]
    client = PlexClient(
        base_url=plex_cfg["url"],
        token=plex_cfg["token"],
        timeout=int(plex_cfg.get("timeout_seconds", 30) or 30),
        client_identifier=(plex_cfg.get("client_id") or "plex-report").strip() or "plex-report",
    )

    if args.command == "libraries":
        try:
            sections = client.get_sections()
        except PlexError as exc:
            LOGGER.error("%s", exc)
            return 1
        for section in sections:
            print(f"{section.title} ({section.type}) - key={section.key}")
        return 0

    if args.command == "run":
        timeout = int(plex_cfg.get("timeout_seconds", 30) or 30)
        tmdb = TMDBClient(config["tmdb"]["api_key"], base_url=config["tmdb"]["url"], timeout=timeout)
        omdb = OMDBClient(config["omdb"]["api_key"], base_url=config["omdb"]["url"], timeout=timeout)
        tvdb = TVDBClient(
            config["tvdb"]["api_key"],
            base_url=config["tvdb"]["url"],
            language=config["tvdb"].get("language") or "en",
            timeout=timeout,
        )
        interval = args.interval_minutes or int(config.get("schedule", {}).get("interval_minutes", 0) or 0)
        jitter = int(config.get("schedule", {}).get("jitter_seconds", 0) or 0)

        def run_once() -> bool:
            started = time.monotonic()
            LOGGER.info("Starting Plex report scan")
            try:
                report = build_report(client, tmdb, omdb, tvdb, now_local(), library_names=args.library_names)
            except PlexError as exc:
                LOGGER.error("Library scan failed: %s", exc)
                return False
            if report is None:
                LOGGER.info("No new media to report!")
                return True
            if args.print_report:
                print(render_report_text(report, detailed=args.detailed_email), end="")
            mail_cfg = config.get("mail", {})
            if not args.no_email and mail_cfg.get("enabled"):
                try:
                    send_report(mail_cfg, report, test_email=args.test_email, detailed=args.detailed_email)
                except MailError as exc:
                    LOGGER.error("%s", exc)
                    return False
            LOGGER.info("Report complete in %.1f seconds", time.monotonic() - started)
            return True

        if args.once or not args.loop:
            return 0 if run_once() else 1

        while True:
            run_once()
            if interval <= 0:
                LOGGER.info("Schedule interval is 0; exiting loop")
                break
            sleep_seconds = interval * 60
            if jitter > 0:
                sleep_seconds += random.randint(0, jitter)
            LOGGER.info("Sleeping for %s seconds", sleep_seconds)
            time.sleep(sleep_seconds)
        return 0

    return 0


def _add_file_logging(path: str) -> None:
    handler = logging.FileHandler(path, encoding="utf-8")
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logging.getLogger().addHandler(handler)


if __name__ == "__main__":
    raise SystemExit(main())
