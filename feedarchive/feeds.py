"""Fetch and parse RSS 2.0 and Atom feeds into a :class:`FeedDocument`."""

from __future__ import annotations

import datetime as _dt
import ipaddress
import pathlib
import re
import socket
import urllib.error
import urllib.request
from email.utils import parsedate_to_datetime
from urllib.parse import urlparse
from xml.etree import ElementTree as ET

from .errors import ConfigError, NetworkError, ParseError
from .models import Entry, FeedDocument, FeedMeta

__all__ = [
    "FEED_ACCEPT",
    "is_local_host",
    "validate_feed_url",
    "fetch_bytes",
    "parse_date",
    "parse_feed",
    "validate_feed",
    "load_feed_file",
    "fetch_feed",
]

FEED_ACCEPT = "application/rss+xml, application/atom+xml, application/xml, text/xml, */*"

ATOM_NS = "http://www.w3.org/2005/Atom"
DC_NS = "http://purl.org/dc/elements/1.1/"
CONTENT_NS = "http://purl.org/rss/1.0/modules/content/"
XHTML_NS = "http://www.w3.org/1999/xhtml"
XML_LANG = "{http://www.w3.org/XML/1998/namespace}lang"

_NS = {"atom": ATOM_NS, "dc": DC_NS, "content": CONTENT_NS}
_LOCAL_HOSTNAMES = {"localhost", "localhost.localdomain"}


def is_local_host(hostname: str) -> bool:
    """Return ``True`` for loopback, private, link-local and ``.local`` hosts."""

    host = (hostname or "").strip().lower().rstrip(".")
    if host in _LOCAL_HOSTNAMES or host.endswith(".local"):
        return True
    try:
        address = ipaddress.ip_address(host)
    except ValueError:
        return False
    return address.is_loopback or address.is_private or address.is_link_local or address.is_unspecified


def validate_feed_url(url: str, *, allow_local: bool = False) -> str:
    text = (url or "").strip()
    if not text:
        raise ConfigError("Feed URL is required")
    parsed = urlparse(text)
    if parsed.scheme not in ("http", "https"):
        raise ConfigError(f"URL must use http or https: {text}")
    if not parsed.netloc or not parsed.hostname:
        raise ConfigError(f"URL is missing a host: {text}")
    if not allow_local and is_local_host(parsed.hostname):
        raise ConfigError(f"Local/private URLs are not allowed: {parsed.hostname}")
    return text


def fetch_bytes(url: str, *, timeout: float, user_agent: str, accept: str = FEED_ACCEPT) -> bytes:
    req = urllib.request.Request(url, headers={"User-Agent": user_agent, "Accept": accept})
    try:
        with urllib.request.urlopen(req, timeout=timeout) as r:
            return r.read()
    except urllib.error.HTTPError as e:
        raise NetworkError(f"Failed to fetch {url}: HTTP {e.code}: {e.reason}") from e
    except urllib.error.URLError as e:
        if isinstance(e.reason, (socket.timeout, TimeoutError)):
            raise NetworkError(f"Failed to fetch {url}: timeout after {timeout:g} seconds") from e
        raise NetworkError(f"Failed to fetch {url}: {e.reason}") from e
    except (socket.timeout, TimeoutError) as e:
        raise NetworkError(f"Failed to fetch {url}: timeout after {timeout:g} seconds") from e
    except OSError as e:
        raise NetworkError(f"Failed to fetch {url}: {e}") from e


def parse_date(value: str | None) -> _dt.datetime | None:
    """Parse an RFC 822 or ISO 8601 timestamp; ``None`` when neither fits."""

    text = re.sub(r"\s+", " ", (value or "").strip())
    if not text:
        return None

    iso_candidate = text[:-1] + "+00:00" if text.endswith("Z") else text
    try:
        return _dt.datetime.fromisoformat(iso_candidate)
    except ValueError:
        pass

    try:
        return parsedate_to_datetime(text)
    except (TypeError, ValueError, IndexError):
        return None


def _text(elem: ET.Element | None) -> str:
    if elem is None:
        return ""
    return "".join(elem.itertext()).strip()


def _local(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


def _build_entry(**fields) -> Entry | None:
    try:
        return Entry(**fields)
    except ValueError:
        return None


# ---- RSS 2.0 ---------------------------------------------------------------
def _parse_rss(channel: ET.Element) -> FeedDocument:
    meta = FeedMeta(
        title=channel.findtext("title", default="").strip(),
        description=channel.findtext("description", default="").strip(),
        link=channel.findtext("link", default="").strip(),
        language=channel.findtext("language", default="").strip(),
    )

    entries: list[Entry] = []
    invalid = 0
    for item in channel.findall("item"):
        author = item.findtext("author", default="").strip()
        if not author:
            author = item.findtext("dc:creator", default="", namespaces=_NS).strip()
        description = item.findtext("description", default="").strip()
        if not description:
            description = item.findtext("content:encoded", default="", namespaces=_NS).strip()

        entry = _build_entry(
            title=item.findtext("title", default="").strip(),
            link=item.findtext("link", default="").strip(),
            description=description,
            published_at=parse_date(
                item.findtext("pubDate") or item.findtext("dc:date", default="", namespaces=_NS)
            ),
            author=author,
            categories=tuple(_text(cat) for cat in item.findall("category")),
            guid=item.findtext("guid", default="").strip(),
        )
        if entry is None:
            invalid += 1
            continue
        entries.append(entry)

    return FeedDocument(meta=meta, entries=tuple(entries), invalid_entries=invalid)


# ---- Atom ------------------------------------------------------------------
def _atom_link(elem: ET.Element) -> str:
    # A link without ``rel`` is an alternate link.
    links = [
        (link.get("rel") or "alternate", (link.get("href") or "").strip())
        for link in elem.findall("atom:link", _NS)
    ]
    links = [(rel, href) for rel, href in links if href]
    for wanted in ("alternate", "self"):
        for rel, href in links:
            if rel == wanted:
                return href
    for rel, href in links:
        if rel != "next":
            return href
    return ""


def _atom_content(elem: ET.Element) -> str:
    for tag in ("atom:content", "atom:summary"):
        node = elem.find(tag, _NS)
        if node is None:
            continue
        if node.get("type") == "xhtml":
            parts = [node.text or ""]
            parts.extend(ET.tostring(child, encoding="unicode", default_namespace=XHTML_NS) for child in node)
            text = "".join(parts).strip()
        else:
            text = (node.text or "").strip()
        if text:
            return text
    return ""


def _atom_author(elem: ET.Element) -> str:
    author = elem.find("atom:author", _NS)
    if author is None:
        return ""
    return (
        author.findtext("atom:name", default="", namespaces=_NS).strip()
        or author.findtext("atom:email", default="", namespaces=_NS).strip()
    )


def _parse_atom(root: ET.Element) -> FeedDocument:
    meta = FeedMeta(
        title=_text(root.find("atom:title", _NS)),
        description=_text(root.find("atom:subtitle", _NS)),
        link=_atom_link(root),
        language=root.get(XML_LANG, "").strip(),
    )

    entries: list[Entry] = []
    invalid = 0
    for node in root.findall("atom:entry", _NS):
        published = node.findtext("atom:published", default="", namespaces=_NS)
        if not published.strip():
            published = node.findtext("atom:updated", default="", namespaces=_NS)
        categories = [
            (cat.get("term") or cat.get("label") or "").strip()
            for cat in node.findall("atom:category", _NS)
        ]
        entry = _build_entry(
            title=_text(node.find("atom:title", _NS)),
            link=_atom_link(node),
            description=_atom_content(node),
            published_at=parse_date(published),
            author=_atom_author(node),
            categories=tuple(cat for cat in categories if cat),
            guid=node.findtext("atom:id", default="", namespaces=_NS).strip(),
        )
        if entry is None:
            invalid += 1
            continue
        entries.append(entry)

    return FeedDocument(meta=meta, entries=tuple(entries), invalid_entries=invalid)


def parse_feed(xml_bytes: bytes | str) -> FeedDocument:
    if not xml_bytes:
        raise ParseError("Feed document is empty")
    try:
        root = ET.fromstring(xml_bytes)
    except ET.ParseError as exc:
        raise ParseError(f"Invalid XML: {exc}") from exc

    name = _local(root.tag)
    if name == "rss":
        channel = root.find("channel")
        if channel is None:
            raise ParseError("RSS document has no <channel> element")
        return _parse_rss(channel)
    if name == "feed" and root.tag.startswith("{" + ATOM_NS):
        return _parse_atom(root)
    raise ParseError(f"Unsupported feed format: root element <{name}> is neither RSS 2.0 nor Atom")


def validate_feed(document: FeedDocument) -> FeedDocument:
    if not document.meta.title:
        raise ParseError("Feed has no title")
    if not document.entries:
        raise ParseError("Feed contains no valid items")
    return document


def load_feed_file(path: pathlib.Path | str) -> FeedDocument:
    source = pathlib.Path(path)
    try:
        data = source.read_bytes()
    except FileNotFoundError:
        raise ConfigError(f"Feed file not found: {source}") from None
    except OSError as exc:
        raise ConfigError(f"Failed to read feed file {source}: {exc}") from exc
    return validate_feed(parse_feed(data))


def fetch_feed(url: str, config) -> FeedDocument:
    url = validate_feed_url(url, allow_local=config.allow_local)
    data = fetch_bytes(url, timeout=config.timeout, user_agent=config.user_agent, accept=FEED_ACCEPT)
    return validate_feed(parse_feed(data))
