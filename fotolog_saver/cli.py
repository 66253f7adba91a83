"""Command line entry point for the Fotolog saver."""
from __future__ import annotations

import argparse
import logging
import os
import sys
from pathlib import Path
from typing import Sequence

from .core import (
    BASE_URL,
    COMMENTS_URL,
    DEFAULT_TIMEOUT,
    DEFAULT_USER_AGENT,
    ExportOptions,
    FotologError,
    build_session,
)
from .pipeline import export_user


def _default_output_root() -> Path:
    env_override = os.environ.get("FOTOLOG_SAVER_OUTPUT_DIR")
    if env_override:
        return Path(env_override).expanduser().resolve()
    return Path.cwd()


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="fotolog-saver",
        description=(
            "Save a Fotolog user's photos, descriptions and comments to a local "
            "fotolog_<user>_data folder. Any previous export for the user is replaced."
        ),
    )
    parser.add_argument(
        "--user",
        default=None,
        help="Fotolog username to export (required).",
    )
    parser.add_argument(
        "--skipcomments",
        dest="skip_comments",
        action="store_true",
        help="Don't fetch post comments.",
    )
    parser.add_argument(
        "--no-dates",
        dest="extract_dates",
        action="store_false",
        help="Don't read post dates from the photo captions.",
    )
    parser.add_argument(
        "--layout",
        choices=["dated", "flat"],
        default="dated",
        help=(
            "Output layout: 'dated' stores files under <year>/<month>/ with a YYYYMMDD_ prefix, "
            "'flat' stores <post id> files in one folder (default: dated)."
        ),
    )
    parser.add_argument(
        "--comments-file",
        choices=["combined", "separate"],
        default=None,
        help=(
            "Append comments to the description file or write a separate _comments.txt "
            "(default: combined for the dated layout, separate for flat)."
        ),
    )
    parser.add_argument(
        "--output-dir",
        type=Path,
        default=None,
        help=(
            "Directory where the fotolog_<user>_data folder is created. Defaults to the current "
            "directory (override with FOTOLOG_SAVER_OUTPUT_DIR)."
        ),
    )
    parser.add_argument(
        "--base-url",
        default=BASE_URL,
        help=f"Fotolog site root (default: {BASE_URL}).",
    )
    parser.add_argument(
        "--comments-url",
        default=COMMENTS_URL,
        help=f"Endpoint serving additional comment pages (default: {COMMENTS_URL}).",
    )
    parser.add_argument(
        "--user-agent",
        default=DEFAULT_USER_AGENT,
        help="Custom User-Agent header to send with requests.",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=DEFAULT_TIMEOUT,
        help=f"Per-request timeout in seconds (default: {DEFAULT_TIMEOUT:g}).",
    )
    parser.add_argument(
        "--insecure",
        action="store_true",
        help="Disable TLS certificate verification (only if you trust the network).",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"],
        help="Logging verbosity (default: INFO).",
    )
    return parser


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    return _build_parser().parse_args(argv)


def main(argv: Sequence[str] | None = None) -> None:
    args = parse_args(argv)

    if not args.user or not args.user.strip():
        print("You must specify a Fotolog username.\n", file=sys.stderr)
        _build_parser().print_help(sys.stderr)
        raise SystemExit(1)

    log_level = getattr(logging, args.log_level.upper(), logging.INFO)
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        force=True,
    )
    logging.getLogger("urllib3").setLevel(logging.WARNING)

    output_root = Path(args.output_dir).expanduser().resolve() if args.output_dir else _default_output_root()

    try:
        options = ExportOptions(
            username=args.user,
            output_root=output_root,
            skip_comments=args.skip_comments,
            extract_dates=args.extract_dates,
            layout=args.layout,
            comments_file=args.comments_file,
            base_url=args.base_url,
            comments_url=args.comments_url,
            timeout=args.timeout,
        )
    except ValueError as exc:
        raise SystemExit(str(exc)) from exc

    session = build_session(args.user_agent, not args.insecure)

    try:
        export_user(options, session=session)
    except (FotologError, OSError) as exc:
        print(f"Failed to export {options.username}: {exc}", file=sys.stderr)
        raise SystemExit(1) from exc
    except KeyboardInterrupt:
        print("Interrupted", file=sys.stderr)
        raise SystemExit(130)


if __name__ == "__main__":
    main()
