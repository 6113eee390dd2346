"""Bounded same-site crawler for documentation websites.

Security / scope requirements:
- Allowed URL schemes: https:// and http:// only (seed and discovered links).
- Discovered links outside ``allowed_domains`` are reported and never fetched.
  Pages whose redirect chain ends outside ``allowed_domains`` are discarded.
- SSRF guard: hostnames are resolved and private/loopback/link-local/reserved
  addresses are refused before any connection (also on redirects).
- Content-Type whitelist: text/html and application/xhtml+xml only.
- Max response body: 5 MB. Timeout: 30 seconds. Max redirects: 5.

Concurrency: a small ThreadPoolExecutor fetches frontier URLs in parallel.
Frontier, visited set, pages and errors are shared state guarded by one lock;
``max_pages`` is a global cap checked under that lock, so the crawl stops at
exactly ``max_pages`` successful pages.
"""

from __future__ import annotations

import ipaddress
import logging
import re
import socket
import threading
import time
import urllib.error
import urllib.parse
import urllib.request
from collections import deque
from collections.abc import Callable, Iterable
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass
from datetime import datetime, timezone
from functools import lru_cache

from bs4 import BeautifulSoup

from apidocs.ingest.html import (
    extract_main_content,
    html_to_markdown,
    looks_like_documentation,
    page_title,
)
from apidocs.models import CrawledPage, CrawlEvent, CrawlResult

logger = logging.getLogger(__name__)

_USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36 apidocs/0.1"
)
_MAX_BYTES = 5 * 1024 * 1024  # 5 MB
_TIMEOUT = 30  # seconds
_MAX_REDIRECTS = 5
_ALLOWED_SCHEMES = {"https", "http"}
_HTML_CONTENT_TYPES = {"text/html", "application/xhtml+xml"}
_TRACKING_PARAMS = {"ref", "source", "fbclid", "gclid"}

# Non-content URLs: assets, protocol handlers, feeds, auth, commerce, search.
_SKIP_PATTERNS: tuple[re.Pattern[str], ...] = tuple(
    re.compile(p, re.IGNORECASE)
    for p in (
        r"\.(png|jpg|jpeg|gif|svg|ico|webp|pdf|zip|tar|gz|mp4|mp3|wav|woff|woff2|ttf|eot)$",
        r"\.(css|js|mjs|jsx|ts|tsx)$",
        r"\.(json|xml|yaml|yml)$",
        r"/assets/",
        r"/_next/",
        r"/static/",
        r"/chunks/",
        r"/(feed|rss|atom)/?$",
        r"/(login|logout|signin|signout|signup|register|auth)(/|$)",
        r"/(account|profile|settings|dashboard)/?$",
        r"/(cart|checkout|payment|order)(/|$)",
        r"/search(/?$|\?)",
    )
)

# Sections of a product site that are not documentation.
_NON_DOC_PATTERNS: tuple[re.Pattern[str], ...] = tuple(
    re.compile(p, re.IGNORECASE)
    for p in (
        r"/blog/",
        r"/news/",
        r"/press/",
        r"/careers/",
        r"/jobs/",
        r"/about-us/?$",
        r"/contact-us/?$",
        r"/terms/?$",
        r"/privacy/?$",
        r"/legal/?$",
        r"/cookie",
        r"/pricing/?$",
        r"/enterprise/?$",
        r"/customers/?$",
        r"/case-studies/",
        r"/testimonials/",
    )
)


class InvalidUrlError(ValueError):
    """Raised when a seed URL is unparsable or uses an unsupported scheme."""


class FetchError(RuntimeError):
    """Raised when a single page cannot be fetched (network, status, type)."""


class SsrfError(FetchError):
    """Raised when a URL resolves to a private or reserved address."""


@dataclass(frozen=True)
class FetchedPage:
    html: str
    final_url: str
    content_type: str


# ------------------------------------------------------------------
# URL helpers
# ------------------------------------------------------------------


def validate_seed_url(url: str) -> urllib.parse.SplitResult:
    """Parse *url* and require an http(s) scheme and a hostname."""
    try:
        parsed = urllib.parse.urlsplit(url.strip())
    except ValueError as exc:
        raise InvalidUrlError(f"Invalid URL '{url}': {exc}") from exc
    if parsed.scheme.lower() not in _ALLOWED_SCHEMES:
        raise InvalidUrlError(
            f"Unsupported URL scheme '{parsed.scheme}'. Only https:// and http:// are allowed."
        )
    if not parsed.hostname:
        raise InvalidUrlError(f"URL has no hostname: '{url}'")
    return parsed


def normalize_url(url: str) -> str:
    """Canonical visited-set key: no fragment, trailing slash or tracking params."""
    try:
        parsed = urllib.parse.urlsplit(url)
        query = [
            (k, v)
            for k, v in urllib.parse.parse_qsl(parsed.query, keep_blank_values=True)
            if not k.startswith("utm_") and k not in _TRACKING_PARAMS
        ]
    except ValueError:
        return url.lower()
    normalized = f"{parsed.scheme}://{parsed.netloc}{parsed.path}".rstrip("/")
    if query:
        normalized += "?" + urllib.parse.urlencode(query)
    return normalized.lower()


def host_allowed(host: str, domains: Iterable[str]) -> bool:
    host = host.lower()
    return any(host == d or host.endswith("." + d) for d in domains)


@lru_cache(maxsize=256)
def _glob_to_regex(pattern: str) -> re.Pattern[str]:
    """``**`` → any run incl. '/', ``*`` → any run without '/', ``?`` → one char."""
    parts: list[str] = []
    i = 0
    while i < len(pattern):
        if pattern.startswith("**", i):
            parts.append(".*")
            i += 2
        elif pattern[i] == "*":
            parts.append("[^/]*")
            i += 1
        elif pattern[i] == "?":
            parts.append(".")
            i += 1
        else:
            parts.append(re.escape(pattern[i]))
            i += 1
    return re.compile("".join(parts))


def matches_pattern(path: str, patterns: Iterable[str]) -> bool:
    """True if the URL *path* matches any glob in *patterns*.

    A pattern matches the whole path, the path with a trailing slash (so
    ``/docs/changelog`` matches ``**/changelog/**``) or the path without its
    leading slash (so relative patterns like ``docs/*`` work).
    """
    candidates = (path, path + "/", path.lstrip("/"))
    for pattern in patterns:
        regex = _glob_to_regex(pattern)
        if any(regex.fullmatch(c) for c in candidates):
            return True
    return False


def is_skippable_url(url: str) -> bool:
    return any(p.search(url) for p in _SKIP_PATTERNS)


def is_likely_doc_page(url: str) -> bool:
    return not any(p.search(url) for p in _NON_DOC_PATTERNS)


def extract_links(html: str, base_url: str) -> list[str]:
    """Return absolute, fragment-free links found in *html*, first occurrence order."""
    soup = BeautifulSoup(html, "html.parser")
    links: list[str] = []
    seen: set[str] = set()
    for anchor in soup.find_all("a", href=True):
        href = str(anchor["href"]).strip()
        if not href or href.startswith(("#", "javascript:", "mailto:", "tel:")):
            continue
        try:
            resolved = urllib.parse.urldefrag(urllib.parse.urljoin(base_url, href)).url
        except ValueError:
            continue
        key = normalize_url(resolved)
        if key in seen:
            continue
        seen.add(key)
        links.append(resolved)
    return links


# ------------------------------------------------------------------
# Fetching
# ------------------------------------------------------------------


class PageFetcher:
    """Fetch one page over HTTP(S) with the scope and safety limits above."""

    def __init__(self, timeout: int = _TIMEOUT, block_private: bool = True) -> None:
        self._timeout = timeout
        self._block_private = block_private

    def fetch(self, url: str) -> FetchedPage:
        if self._block_private:
            _check_ssrf(url)

        request = urllib.request.Request(
            url,
            headers={
                "User-Agent": _USER_AGENT,
                "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
                "Accept-Language": "en-US,en;q=0.9",
            },
        )
        opener = urllib.request.build_opener(
            _LimitedRedirectHandler(_MAX_REDIRECTS, self._block_private)
        )

        try:
            with opener.open(request, timeout=self._timeout) as response:
                raw_ct = response.headers.get("Content-Type", "")
                content_type = raw_ct.split(";")[0].strip().lower()
                if content_type not in _HTML_CONTENT_TYPES:
                    raise FetchError(f"Not HTML: {raw_ct or 'missing Content-Type'}")
                body = response.read(_MAX_BYTES + 1)
                charset = response.headers.get_content_charset() or "utf-8"
                final_url = response.geturl()
        except urllib.error.HTTPError as exc:
            raise FetchError(f"HTTP {exc.code}: {exc.reason}") from exc
        except urllib.error.URLError as exc:
            raise FetchError(f"Request failed: {exc.reason}") from exc
        except OSError as exc:
            raise FetchError(f"Request failed: {exc}") from exc

        if len(body) > _MAX_BYTES:
            raise FetchError(f"Response body exceeds {_MAX_BYTES // (1024 * 1024)} MB limit.")

        try:
            html = body.decode(charset, errors="replace")
        except LookupError:
            html = body.decode("utf-8", errors="replace")
        return FetchedPage(html=html, final_url=final_url, content_type=content_type)


def _check_ssrf(url: str) -> None:
    """Resolve the hostname and block private/reserved IP ranges."""
    hostname = urllib.parse.urlsplit(url).hostname
    if not hostname:
        raise FetchError(f"URL has no hostname: {url}")

    try:
        addrinfos = socket.getaddrinfo(hostname, None)
    except socket.gaierror as exc:
        raise FetchError(f"DNS resolution failed for '{hostname}': {exc}") from exc

    for addrinfo in addrinfos:
        try:
            ip = ipaddress.ip_address(addrinfo[4][0])
        except ValueError:
            continue
        if (
            ip.is_private
            or ip.is_loopback
            or ip.is_link_local
            or ip.is_reserved
            or ip.is_multicast
            or ip.is_unspecified
        ):
            raise SsrfError(
                f"URL resolves to private address ({ip}). "
                "Access to internal network addresses is not allowed."
            )


class _LimitedRedirectHandler(urllib.request.HTTPRedirectHandler):
    """Fail after *max_redirects* redirects; re-check SSRF on every hop."""

    def __init__(self, max_redirects: int, block_private: bool) -> None:
        self._max_redirects = max_redirects
        self._block_private = block_private
        self._count = 0

    def redirect_request(self, req, fp, code, msg, headers, newurl):
        self._count += 1
        if self._count > self._max_redirects:
            raise FetchError(f"Too many redirects (>{self._max_redirects}).")
        if urllib.parse.urlsplit(newurl).scheme.lower() not in _ALLOWED_SCHEMES:
            raise FetchError(f"Redirect to unsupported scheme: {newurl}")
        if self._block_private:
            _check_ssrf(newurl)
        return super().redirect_request(req, fp, code, msg, headers, newurl)


# ------------------------------------------------------------------
# Crawler
# ------------------------------------------------------------------


class Crawler:
    """Walk a documentation site from a seed URL and extract Markdown pages.

    Args:
        fetcher: Object with ``fetch(url) -> FetchedPage``; defaults to
            ``PageFetcher()``. Tests inject a fake.
        workers: Maximum concurrent fetches.
        delay: Politeness sleep (seconds) after each successful page.
        min_content_chars: Pages with less Markdown than this are skipped.
        on_event: Progress callback, invoked from worker threads.
    """

    def __init__(
        self,
        fetcher: PageFetcher | None = None,
        *,
        workers: int = 4,
        delay: float = 0.1,
        min_content_chars: int = 100,
        on_event: Callable[[CrawlEvent], None] | None = None,
    ) -> None:
        if workers < 1:
            raise ValueError("workers must be >= 1")
        self._fetcher = fetcher or PageFetcher()
        self._workers = workers
        self._delay = delay
        self._min_content_chars = min_content_chars
        self._on_event = on_event
        self._cancel = threading.Event()
        self._lock = threading.Lock()

    def cancel(self) -> None:
        """Stop after the pages currently in flight; partial results are kept."""
        self._cancel.set()

    @property
    def cancelled(self) -> bool:
        return self._cancel.is_set()

    def crawl(
        self,
        seed_url: str,
        max_pages: int,
        allowed_domains: list[str] | None = None,
        exclude_patterns: list[str] | None = None,
    ) -> CrawlResult:
        """Crawl from *seed_url* until *max_pages* pages or the frontier runs dry.

        Raises:
            InvalidUrlError: If *seed_url* is not a valid http(s) URL.
        """
        seed = validate_seed_url(seed_url)
        if max_pages < 1:
            raise ValueError("max_pages must be >= 1")

        started = time.monotonic()
        self._cancel.clear()
        session = _Session(
            max_pages=max_pages,
            domains=_domain_list(allowed_domains, seed.hostname or ""),
            excludes=list(exclude_patterns or []),
        )
        session.frontier.append(seed_url)
        self._emit(CrawlEvent(type="navigating", url=seed_url))

        with ThreadPoolExecutor(max_workers=self._workers, thread_name_prefix="crawl") as pool:
            in_flight: dict[Future[list[str]], str] = {}
            while True:
                self._fill(pool, session, in_flight)
                if not in_flight:
                    break
                done, _ = wait(in_flight, return_when=FIRST_COMPLETED)
                for future in done:
                    url = in_flight.pop(future)
                    self._collect(future, url, session)

        pages = list(session.pages)
        self._emit(CrawlEvent(type="complete", page_count=len(pages)))
        logger.info(
            "Crawl of %s finished: %d pages, %d errors", seed_url, len(pages), len(session.errors)
        )
        return CrawlResult(
            pages=pages,
            total_pages=len(pages),
            duration=time.monotonic() - started,
            errors=list(session.errors),
        )

    # ------------------------------------------------------------------
    # Scheduling (main thread)
    # ------------------------------------------------------------------

    def _fill(
        self,
        pool: ThreadPoolExecutor,
        session: _Session,
        in_flight: dict[Future[list[str]], str],
    ) -> None:
        """Submit admissible frontier URLs until the pool or page budget is full."""
        while not self._cancel.is_set() and len(in_flight) < self._workers:
            with self._lock:
                if len(session.pages) + len(in_flight) >= session.max_pages:
                    return
                if not session.frontier:
                    return
                url = session.frontier.popleft()
                key = normalize_url(url)
                if key in session.visited:
                    continue
                session.visited.add(key)

            reason = self._rejection_reason(url, session)
            if reason is not None:
                self._emit(CrawlEvent(type="skipped", url=url, reason=reason))
                continue
            in_flight[pool.submit(self._visit, url, session)] = url

    def _rejection_reason(self, url: str, session: _Session) -> str | None:
        parsed = urllib.parse.urlsplit(url)
        if parsed.scheme.lower() not in _ALLOWED_SCHEMES:
            return "unsupported scheme"
        if not host_allowed(parsed.hostname or "", session.domains):
            return "outside allowed domains"
        if session.excludes and matches_pattern(parsed.path or "/", session.excludes):
            return "matches exclude pattern"
        if is_skippable_url(url):
            return "non-content URL"
        if not is_likely_doc_page(url):
            return "non-documentation URL pattern"
        return None

    def _collect(self, future: Future[list[str]], url: str, session: _Session) -> None:
        try:
            links = future.result()
        except Exception as exc:  # noqa: BLE001
            logger.exception("Unexpected failure while processing %s", url)
            self._record_error(session, url, str(exc) or exc.__class__.__name__)
            return
        with self._lock:
            for link in links:
                if normalize_url(link) not in session.visited:
                    session.frontier.append(link)

    # ------------------------------------------------------------------
    # Page processing (worker threads)
    # ------------------------------------------------------------------

    def _visit(self, url: str, session: _Session) -> list[str]:
        """Fetch and extract one page. Returns the links discovered on it."""
        self._emit(CrawlEvent(type="navigating", url=url))
        try:
            fetched = self._fetcher.fetch(url)
        except FetchError as exc:
            self._record_error(session, url, str(exc))
            return []

        final_url = fetched.final_url or url
        with self._lock:
            session.visited.add(normalize_url(final_url))

        # A redirect may land anywhere; scope is enforced on where we ended up.
        if final_url != url:
            reason = self._rejection_reason(final_url, session)
            if reason is not None:
                self._emit(CrawlEvent(type="skipped", url=final_url, reason=reason))
                return []

        links = extract_links(fetched.html, final_url)

        if not looks_like_documentation(fetched.html):
            self._emit(
                CrawlEvent(type="skipped", url=final_url, reason="no documentation content detected")
            )
            return links

        main_html = extract_main_content(fetched.html)
        markdown = html_to_markdown(main_html)
        if len(markdown.strip()) < self._min_content_chars:
            self._emit(CrawlEvent(type="skipped", url=final_url, reason="content too short"))
            return links

        path = urllib.parse.urlsplit(final_url).path or "/"
        title = page_title(fetched.html) or path
        page = CrawledPage(
            url=final_url,
            path=path,
            title=title,
            content=markdown,
            html=main_html,
            crawled_at=datetime.now(timezone.utc).isoformat(),
        )

        with self._lock:
            fingerprint = markdown[:500]
            if fingerprint in session.fingerprints:
                reason = "duplicate content"
            elif len(session.pages) >= session.max_pages:
                reason = "page limit reached"
            else:
                reason = None
                session.fingerprints.add(fingerprint)
                session.pages.append(page)
                count = len(session.pages)

        if reason is not None:
            self._emit(CrawlEvent(type="skipped", url=final_url, reason=reason))
            return links

        self._emit(
            CrawlEvent(
                type="extracted",
                url=final_url,
                title=title,
                page_count=count,
                total_pages=session.max_pages,
            )
        )
        if self._delay > 0:
            time.sleep(self._delay)
        return links

    def _record_error(self, session: _Session, url: str, message: str) -> None:
        logger.debug("Failed to crawl %s: %s", url, message)
        with self._lock:
            session.errors.append(f"{url}: {message}")
        self._emit(CrawlEvent(type="error", url=url, error=message))

    def _emit(self, event: CrawlEvent) -> None:
        if self._on_event is not None:
            self._on_event(event)


class _Session:
    """Mutable state of one crawl; every access goes through Crawler._lock."""

    def __init__(self, max_pages: int, domains: list[str], excludes: list[str]) -> None:
        self.max_pages = max_pages
        self.domains = domains
        self.excludes = excludes
        self.frontier: deque[str] = deque()
        self.visited: set[str] = set()
        self.fingerprints: set[str] = set()
        self.pages: list[CrawledPage] = []
        self.errors: list[str] = []


def _domain_list(allowed: list[str] | None, seed_host: str) -> list[str]:
    domains = allowed or [seed_host]
    return [re.sub(r"^www\.", "", d.strip().lower()) for d in domains if d.strip()]
