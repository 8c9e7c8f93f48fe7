"""Typed failures raised by the archive core and mapped to exit codes by the CLI."""

from __future__ import annotations

__all__ = [
    "FeedArchiveError",
    "NetworkError",
    "ParseError",
    "TemplateError",
    "FilesystemError",
    "ConfigError",
    "EXIT_SUCCESS",
]

EXIT_SUCCESS = 0


class FeedArchiveError(Exception):
    """Base class for every failure the CLI knows how to report."""

    exit_code = 4
    kind = "error"
    suggestion = ""


class NetworkError(FeedArchiveError):
    exit_code = 1
    kind = "network"
    suggestion = "Check the feed URL and your network connection, or raise --timeout"


class ParseError(FeedArchiveError):
    exit_code = 2
    kind = "parse"
    suggestion = "Make sure the source is a valid RSS 2.0, Atom or ActivityPub outbox document"


class TemplateError(ParseError):
    """The page template is missing required markers or repeats the entries region."""

    suggestion = "Templates need {{FEED_TITLE}} and exactly one {{ITEMS}} or {{#ITEMS}}...{{/ITEMS}}"


class FilesystemError(FeedArchiveError):
    exit_code = 3
    kind = "filesystem"
    suggestion = "Check that the output directory exists and is writable"


class ConfigError(FeedArchiveError):
    exit_code = 4
    kind = "config"
    suggestion = "Check the command arguments and configuration file"
