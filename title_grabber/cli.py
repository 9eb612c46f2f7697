"""Command-line entry point for the title grabber."""

from __future__ import annotations

import argparse
import logging
import os
import sys
from pathlib import Path
from typing import Callable, Optional, Sequence, TypeVar

from dotenv import load_dotenv

from .config import (
    CONNECT_TIMEOUT,
    DEFAULT_OUTPUT_PATH,
    MAX_REDIRECTS,
    MAX_RETRIES,
    READ_TIMEOUT,
    GrabberConfig,
    default_max_threads,
)
from .crawler import TitleGrabber

logger = logging.getLogger("title_grabber.cli")

LOG_FILE = "title_grabber.log"
LOG_FORMAT = "[%(levelname)s] %(message)s"
TRUE_VALUES = {"1", "t", "true", "True", "TRUE"}

N = TypeVar("N", int, float)


def _env_number(name: str, cast: Callable[[str], N], default: N) -> N:
    """Read a numeric env var, falling back to ``default`` when unset or bogus."""
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return cast(raw)
    except ValueError:
        return default


def _env_flag(name: str) -> bool:
    return os.getenv(name, "") in TRUE_VALUES


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    max_threads = default_max_threads()
    parser = argparse.ArgumentParser(
        prog="title-grabber",
        description="Grabs page & article titles from lists of URLs contained in files passed in as arguments",
    )
    parser.add_argument("files", nargs="*", type=Path, help="1 or more files containing URLs (1 per line)")
    parser.add_argument(
        "-d",
        "--debug",
        action="store_true",
        default=_env_flag("DEBUG"),
        help="Log to the console instead of to a file in the CWD. Defaults to the value of the DEBUG env var or False",
    )
    parser.add_argument(
        "-o",
        "--output",
        type=Path,
        default=DEFAULT_OUTPUT_PATH,
        help=f"Output file (defaults to {DEFAULT_OUTPUT_PATH})",
    )
    parser.add_argument(
        "--connect-timeout",
        type=float,
        default=_env_number("CONNECT_TIMEOUT", float, CONNECT_TIMEOUT),
        help=f"HTTP connect timeout. Defaults to the value of the CONNECT_TIMEOUT env var or {CONNECT_TIMEOUT:g}",
    )
    parser.add_argument(
        "--read-timeout",
        type=float,
        default=_env_number("READ_TIMEOUT", float, READ_TIMEOUT),
        help=f"HTTP read timeout. Defaults to the value of the READ_TIMEOUT env var or {READ_TIMEOUT:g}",
    )
    parser.add_argument(
        "--max-redirects",
        type=int,
        default=_env_number("MAX_REDIRECTS", int, MAX_REDIRECTS),
        help=f"Max. # of HTTP redirects to follow. Defaults to the value of the MAX_REDIRECTS env var or {MAX_REDIRECTS}",
    )
    parser.add_argument(
        "-r",
        "--max-retries",
        type=int,
        default=_env_number("MAX_RETRIES", int, MAX_RETRIES),
        help=f"Max. # of times to retry failed HTTP reqs. Defaults to the value of the MAX_RETRIES env var or {MAX_RETRIES}",
    )
    parser.add_argument(
        "-t",
        "--max-threads",
        type=int,
        default=_env_number("MAX_THREADS", int, max_threads),
        help=(
            "Max. # of threads to use. Defaults to the value of the MAX_THREADS env var "
            f"or the # of logical processors in the system ({max_threads})"
        ),
    )
    return parser.parse_args(argv)


def build_config(args: argparse.Namespace) -> GrabberConfig:
    return GrabberConfig(
        input_paths=tuple(args.files),
        output_path=args.output,
        connect_timeout=args.connect_timeout,
        read_timeout=args.read_timeout,
        max_redirects=args.max_redirects,
        max_retries=args.max_retries,
        max_threads=args.max_threads,
        debug=args.debug,
    )


def configure_logging(debug: bool) -> None:
    if debug:
        logging.basicConfig(level=logging.DEBUG, format=LOG_FORMAT)
    else:
        logging.basicConfig(
            level=logging.INFO,
            format=LOG_FORMAT,
            filename=LOG_FILE,
        )
    logging.getLogger("urllib3").setLevel(logging.WARNING)


def main(argv: Optional[Sequence[str]] = None) -> int:
    load_dotenv()
    args = parse_args(argv)
    if not args.files:
        print("At least 1 input file is required!", file=sys.stderr)
        return 1

    try:
        config = build_config(args)
    except ValueError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    configure_logging(config.debug)
    grabber = TitleGrabber(config, log=logging.getLogger("title_grabber"))
    try:
        summary = grabber.write_csv()
    except OSError as exc:
        logger.error("Aborting: %s", exc)
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    logger.debug("Done: %d rows written to %s", summary.written, summary.output_path)
    return 0


if __name__ == "__main__":
    sys.exit(main())
