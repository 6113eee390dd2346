"""Library identity helpers: ids, index names, display names."""

from __future__ import annotations

import re
import urllib.parse
from dataclasses import dataclass
from datetime import date

from apidocs.ingest.crawler import InvalidUrlError, validate_seed_url

_HOST_PREFIX_RE = re.compile(r"^(?:www\.|docs\.|api\.|platform\.)")
_UNSAFE_RE = re.compile(r"[^a-z0-9.-]")


@dataclass(frozen=True)
class WebsiteInfo:
    url: str
    domain: str
    path: str
    scheme: str


def parse_website_url(url: str) -> WebsiteInfo:
    """Parse an http(s) URL. Raises InvalidUrlError for anything else."""
    parsed = validate_seed_url(url)
    return WebsiteInfo(
        url=urllib.parse.urlunsplit(parsed),
        domain=(parsed.hostname or "").lower(),
        path=parsed.path or "/",
        scheme=parsed.scheme.lower(),
    )


def sanitize_id(value: str) -> str:
    return _UNSAFE_RE.sub("-", value.lower())


def create_library_id(url: str, name: str | None = None) -> str:
    """Derive a filesystem-safe library id.

    With *name*, the id is the sanitized name. Otherwise the host minus a
    ``www.``/``docs.``/``api.``/``platform.`` prefix, plus the first path
    segment unless it is ``docs`` or ``documentation``.

    Examples:
        "https://docs.stripe.com/api"  -> "stripe.com-api"
        "https://www.example.com/docs" -> "example.com"
    """
    if name:
        return sanitize_id(name.strip())

    info = parse_website_url(url)
    library_id = _HOST_PREFIX_RE.sub("", info.domain)
    first_segment = info.path.strip("/").split("/")[0]
    if first_segment and first_segment not in ("docs", "documentation"):
        library_id = f"{library_id}-{first_segment}"
    return sanitize_id(library_id)


def create_index_name(library_id: str, day: date | None = None) -> str:
    """``<library_id>-<YYYYMMDD>``, lower-cased."""
    day = day or date.today()
    return f"{library_id}-{day:%Y%m%d}".lower()


def default_library_name(url: str) -> str:
    """Display name: the host without a www./docs./api./platform. prefix."""
    return _HOST_PREFIX_RE.sub("", parse_website_url(url).domain)


__all__ = [
    "InvalidUrlError",
    "WebsiteInfo",
    "create_index_name",
    "create_library_id",
    "default_library_name",
    "parse_website_url",
    "sanitize_id",
]
