"""Command line entry points: ``feedtohtml`` and ``outboxtohtml``."""

from __future__ import annotations

import argparse
import sys
from typing import Sequence

from . import __version__
from .config import ArchiveConfig, config_summary, load_config, write_sample_config
from .errors import EXIT_SUCCESS, ConfigError, FeedArchiveError, FilesystemError
from .feeds import fetch_feed, load_feed_file
from .grouping import count_skipped, month_distribution
from .models import FeedDocument
from .outbox import fetch_outbox, load_outbox_file
from .pipeline import build_archive

__all__ = ["main", "outbox_main", "build_parser"]

MIN_CLI_TIMEOUT = 1
MAX_CLI_TIMEOUT = 300


class _ArgumentParser(argparse.ArgumentParser):
    """Report usage errors as configuration failures instead of exiting with 2."""

    def error(self, message: str):
        raise ConfigError(message)


def _timeout_arg(value: str) -> float:
    try:
        seconds = float(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid timeout: {value!r}") from None
    if not MIN_CLI_TIMEOUT <= seconds <= MAX_CLI_TIMEOUT:
        raise argparse.ArgumentTypeError(
            f"timeout must be between {MIN_CLI_TIMEOUT} and {MAX_CLI_TIMEOUT} seconds"
        )
    return seconds


def build_parser(*, outbox: bool = False) -> argparse.ArgumentParser:
    prog = "outboxtohtml" if outbox else "feedtohtml"
    kind = "ActivityPub outbox" if outbox else "RSS or Atom feed"
    parser = _ArgumentParser(
        prog=prog,
        description=f"Archive a {kind} as one static HTML page per month.",
    )
    parser.add_argument("url", nargs="?", help=f"URL of the {kind}.")
    parser.add_argument("-f", "--file", help=f"Read the {kind} from a local file instead of a URL.")
    parser.add_argument("-o", "--output", help="Output directory (default: current directory).")
    parser.add_argument("-t", "--template", help="Custom HTML page template.")
    parser.add_argument("-c", "--config", help="JSON configuration file.")
    parser.add_argument(
        "-T",
        "--timeout",
        type=_timeout_arg,
        help=f"Network timeout in seconds ({MIN_CLI_TIMEOUT}-{MAX_CLI_TIMEOUT}, default: 60).",
    )
    parser.add_argument("-u", "--user-agent", dest="user_agent", help="HTTP User-Agent header.")
    parser.add_argument("-V", "--verbose", action="store_true", help="Print progress details.")
    parser.add_argument(
        "--allow-local",
        dest="allow_local",
        action="store_true",
        help="Allow fetching from localhost and private network addresses.",
    )
    parser.add_argument("--report", help="Write a JSON run report to this path.")
    parser.add_argument(
        "--init-config",
        dest="init_config",
        metavar="PATH",
        help="Write a sample configuration file to PATH and exit.",
    )
    if outbox:
        parser.add_argument("-n", "--title", help="Title for the generated pages.")
        parser.add_argument("-d", "--description", help="Description for the generated pages.")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def _load_document(args: argparse.Namespace, config: ArchiveConfig, *, outbox: bool) -> tuple[FeedDocument, str]:
    if args.url and args.file:
        raise ConfigError("Provide either a URL or --file, not both")
    if not args.url and not args.file:
        raise ConfigError("A feed URL or --file is required")

    if outbox:
        meta = {"title": args.title, "description": args.description}
        if args.file:
            return load_outbox_file(args.file, **meta), args.file
        return fetch_outbox(args.url, config, **meta), args.url

    if args.file:
        return load_feed_file(args.file), args.file
    return fetch_feed(args.url, config), args.url


def _print_error(exc: FeedArchiveError) -> None:
    print(f"Error: {exc}", file=sys.stderr)
    if exc.suggestion:
        print(f"Suggestion: {exc.suggestion}", file=sys.stderr)


def _run(argv: Sequence[str] | None, *, outbox: bool) -> int:
    parser = build_parser(outbox=outbox)
    try:
        args = parser.parse_args(argv)

        if args.init_config:
            path = write_sample_config(args.init_config)
            print(f"Configuration saved to: {path}")
            return EXIT_SUCCESS

        config = load_config(
            args.config,
            {
                "output_dir": args.output,
                "template_path": args.template,
                "timeout": args.timeout,
                "user_agent": args.user_agent,
                "verbose": True if args.verbose else None,
                "allow_local": True if args.allow_local else None,
            },
        )
        if config.verbose:
            if config.source is not None:
                print(f"[feedarchive] Loaded configuration from: {config.source}")
            print(f"[feedarchive] {config_summary(config)}")

        document, source = _load_document(args, config, outbox=outbox)
        if config.verbose:
            print(f"[feedarchive] {document.entry_count} item(s) in {document.meta.title!r}")
            for key, count in month_distribution(document.entries, config.timezone).items():
                print(f"[feedarchive]   {key}: {count}")
            skipped = count_skipped(document.entries)
            if skipped:
                print(f"[feedarchive] {skipped} item(s) without a publication date will be skipped")

        report = build_archive(document, config, source=source)

        if args.report:
            try:
                report.write(args.report)
            except OSError as exc:
                raise FilesystemError(f"Failed to write report {args.report}: {exc}") from exc
    except FeedArchiveError as exc:
        _print_error(exc)
        return exc.exit_code

    for warning in report.warnings:
        print(f"Warning: {warning}", file=sys.stderr)
    for line in report.summary_lines():
        print(line)
    return EXIT_SUCCESS


def main(argv: Sequence[str] | None = None) -> int:
    return _run(argv, outbox=False)


def outbox_main(argv: Sequence[str] | None = None) -> int:
    return _run(argv, outbox=True)


if __name__ == "__main__":
    raise SystemExit(main())
