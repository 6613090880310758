"""Content fetching for launch enrichment.

Two modes:
  - simple: one GET, JSON pretty-printed or raw text
  - advanced: Firecrawl v1 scrape (single page) or crawl (async job, polled)

Nothing here raises on fetch failure. Failures come back as strings prefixed
with ``Error fetching content`` so enrichment stays best-effort;
format_fetched_content drops them.
"""

import asyncio
import html
import json
import logging
import re
from dataclasses import dataclass, field
from typing import Callable

import httpx

from launch_scanner.config import settings

logger = logging.getLogger(__name__)

FETCH_ERROR_PREFIX = "Error fetching content"
NO_CONTENT = "No content extracted"

_USER_AGENT = "LaunchScanner/1.0"

_URL_RE = re.compile(
    r"(\b(?:https?|ftp|file)://[-A-Z0-9+&@#/%?=~_|!:,.;]*[-A-Z0-9+&@#/%=~_|])"
    r"|(\bwww\.[-A-Z0-9+&@#/%?=~_|!:,.;]*[-A-Z0-9+&@#/%=~_|])",
    re.IGNORECASE,
)

_SCRIPT_STYLE_RE = re.compile(r"<(script|style|noscript)\b.*?</\1>", re.IGNORECASE | re.DOTALL)
_TAG_RE = re.compile(r"<[^>]+>")
_BLANK_LINES_RE = re.compile(r"\n\s*\n+")
_SPACES_RE = re.compile(r"[ \t\r\f\v]+")


@dataclass
class LinkSpec:
    url: str
    name: str = ""
    use_advanced: bool = False
    mode: str | None = None  # "scrape" | "crawl" | None (auto)
    max_pages: int | None = None
    formats: list[str] = field(default_factory=lambda: ["markdown"])


def fetch_failed(content: str) -> bool:
    return not content or not content.strip() or content.startswith(FETCH_ERROR_PREFIX) or content == NO_CONTENT


def extract_urls(text: str) -> list[str]:
    """Unique URLs found in text, in order of appearance; www. gets http://."""
    seen: list[str] = []
    for match in _URL_RE.finditer(text or ""):
        url = match.group(0)
        if url.lower().startswith("www."):
            url = f"http://{url}"
        if url not in seen:
            seen.append(url)
    return seen


def is_site_root(url: str) -> bool:
    """True for a bare site URL (no path beyond "/", no query)."""
    try:
        parsed = httpx.URL(url)
    except (httpx.InvalidURL, TypeError):
        return False
    return parsed.path in ("", "/") and not parsed.query


async def fetch_url_content(url: str, client: httpx.AsyncClient) -> str:
    """Simple GET. JSON bodies are pretty-printed."""
    try:
        resp = await client.get(
            url,
            headers={"Accept": "application/json, text/plain, */*", "User-Agent": _USER_AGENT},
            timeout=settings.content_request_timeout_seconds,
            follow_redirects=True,
        )
        resp.raise_for_status()
    except httpx.HTTPError as exc:
        logger.warning("Fetch failed for %s: %s", url, exc)
        return f"{FETCH_ERROR_PREFIX}: {str(exc) or exc.__class__.__name__}"

    try:
        return json.dumps(resp.json(), indent=2)
    except ValueError:
        return resp.text


# ---------------------------------------------------------------------------
# Firecrawl response extraction, tried in order, first hit wins
# ---------------------------------------------------------------------------

def _scrape_markdown(payload: dict) -> str | None:
    data = payload.get("data")
    if isinstance(data, dict):
        return data.get("markdown") or data.get("content")
    return None


def _crawl_documents(payload: dict) -> str | None:
    data = payload.get("data")
    if not isinstance(data, list):
        return None
    parts = []
    for doc in data:
        if not isinstance(doc, dict):
            continue
        text = doc.get("markdown") or doc.get("content")
        if text:
            source = (doc.get("metadata") or {}).get("sourceURL")
            parts.append(f"# {source}\n{text}" if source else text)
    return "\n\n".join(parts) or None


def _top_level_markdown(payload: dict) -> str | None:
    return payload.get("markdown") or payload.get("content")


def _html_fallback(payload: dict) -> str | None:
    data = payload.get("data")
    candidates = [payload]
    if isinstance(data, dict):
        candidates.insert(0, data)
    elif isinstance(data, list):
        candidates = [d for d in data if isinstance(d, dict)] + candidates
    for c in candidates:
        raw = c.get("html") or c.get("rawHtml")
        if raw:
            text = strip_html(raw)
            if text:
                return text
    return None


_EXTRACTORS: list[Callable[[dict], str | None]] = [
    _scrape_markdown,
    _crawl_documents,
    _top_level_markdown,
    _html_fallback,
]


def extract_content(payload: object) -> str | None:
    if not isinstance(payload, dict):
        return None
    for extractor in _EXTRACTORS:
        text = extractor(payload)
        if text and text.strip():
            return text
    return None


def strip_html(raw: str) -> str:
    text = _SCRIPT_STYLE_RE.sub(" ", raw)
    text = _TAG_RE.sub("\n", text)
    text = html.unescape(text)
    text = _SPACES_RE.sub(" ", text)
    lines = [line.strip() for line in text.split("\n")]
    return _BLANK_LINES_RE.sub("\n\n", "\n".join(lines)).strip()


def _auth_headers() -> dict:
    return {
        "Content-Type": "application/json",
        "Authorization": f"Bearer {settings.firecrawl_api_key}",
    }


async def poll_crawl_job(
    status_url: str,
    client: httpx.AsyncClient,
    attempts: int | None = None,
    base_delay: float | None = None,
) -> dict | str:
    """Poll a crawl job until complete; returns its payload or a failure string.

    Waits base_delay, 2*base_delay, 4*base_delay ... before each poll.
    """
    attempts = attempts if attempts is not None else settings.crawl_poll_attempts
    base_delay = base_delay if base_delay is not None else settings.crawl_poll_base_delay_seconds

    for attempt in range(attempts):
        wait = base_delay * (2 ** attempt)
        await asyncio.sleep(wait)
        try:
            resp = await client.get(
                status_url, headers=_auth_headers(),
                timeout=settings.content_request_timeout_seconds,
            )
            resp.raise_for_status()
            data = resp.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.debug("Crawl poll %d/%d failed: %s", attempt + 1, attempts, exc)
            continue
        if not isinstance(data, dict):
            logger.debug("Crawl poll %d/%d: unexpected payload %s", attempt + 1, attempts, str(data)[:200])
            continue

        status = str(data.get("status", "")).lower()
        if status in ("completed", "complete"):
            return data
        if status in ("failed", "cancelled"):
            return f"{FETCH_ERROR_PREFIX}: crawl job {status}"
        logger.debug("Crawl job %s (poll %d/%d)", status or "pending", attempt + 1, attempts)

    return f"{FETCH_ERROR_PREFIX}: crawl job did not complete after {attempts} polls"


async def fetch_advanced_content(
    url: str,
    client: httpx.AsyncClient,
    mode: str | None = None,
    max_pages: int | None = None,
    formats: list[str] | None = None,
) -> str:
    """Scrape or crawl a URL through Firecrawl.

    Without an API key this degrades to a simple fetch.
    """
    if not settings.firecrawl_api_key:
        logger.debug("Firecrawl key not configured, simple fetch for %s", url)
        return await fetch_url_content(url, client)

    mode = mode or ("crawl" if is_site_root(url) else "scrape")
    formats = formats or ["markdown"]
    base = settings.firecrawl_api_base.rstrip("/")

    try:
        if mode == "crawl":
            resp = await client.post(
                f"{base}/crawl",
                headers=_auth_headers(),
                json={
                    "url": url,
                    "limit": max_pages or settings.crawl_max_pages,
                    "scrapeOptions": {"formats": formats, "onlyMainContent": True},
                },
                timeout=settings.content_request_timeout_seconds,
            )
            resp.raise_for_status()
            job = resp.json()
            if not isinstance(job, dict):
                logger.warning("Firecrawl crawl for %s returned %s", url, str(job)[:200])
                return f"{FETCH_ERROR_PREFIX}: unexpected crawl response"
            status_url = job.get("url") or (f"{base}/crawl/{job['id']}" if job.get("id") else None)
            if not status_url:
                logger.warning("Firecrawl crawl for %s returned no job: %s", url, str(job)[:200])
                return f"{FETCH_ERROR_PREFIX}: crawl job was not created"
            result = await poll_crawl_job(status_url, client)
            if isinstance(result, str):
                logger.info("Crawl of %s gave up: %s", url, result)
                return result
        else:
            resp = await client.post(
                f"{base}/scrape",
                headers=_auth_headers(),
                json={"url": url, "formats": formats, "onlyMainContent": True},
                timeout=settings.content_request_timeout_seconds,
            )
            resp.raise_for_status()
            result = resp.json()
    except (httpx.HTTPError, ValueError) as exc:
        logger.warning("Firecrawl %s failed for %s: %s", mode, url, exc)
        return f"{FETCH_ERROR_PREFIX}: {str(exc) or exc.__class__.__name__}"

    content = extract_content(result)
    if content is None:
        logger.debug("Firecrawl %s of %s: unrecognised payload %s", mode, url, str(result)[:200])
        return NO_CONTENT
    return content


def format_fetched_content(
    contents: list[tuple[str, str]],
    include_urls: bool = True,
    combine_content: bool = False,
    max_content_length: int | None = None,
) -> str:
    """Wrap fetched (url, content) pairs in a <fetched_info> block.

    Failed or empty entries are dropped; returns "" when nothing is left.
    """
    limit = max_content_length or settings.fetched_content_max_length
    kept = [(url, content[:limit]) for url, content in contents if not fetch_failed(content)]
    if not kept:
        return ""

    if combine_content:
        body = "\n\n".join(
            f"# {url}\n{content}" if include_urls else content for url, content in kept
        )
        blocks = f'"""\n{body}\n"""'
    else:
        blocks = "\n\n".join(
            f'""" {url}\n{content}\n"""' if include_urls else f'"""\n{content}\n"""'
            for url, content in kept
        )
    return f"<fetched_info>\n{blocks}\n</fetched_info>"


async def _fetch_link(link: LinkSpec, client: httpx.AsyncClient) -> str:
    try:
        if link.use_advanced:
            return await fetch_advanced_content(
                link.url, client,
                mode=link.mode,
                max_pages=link.max_pages or settings.custom_link_max_pages,
                formats=link.formats,
            )
        return await fetch_url_content(link.url, client)
    except Exception as exc:
        logger.exception("Unexpected error fetching %s", link.url)
        return f"{FETCH_ERROR_PREFIX}: {str(exc) or exc.__class__.__name__}"


async def fetch_additional_content(
    description: str,
    links: list[LinkSpec],
    client: httpx.AsyncClient,
) -> str:
    """Fetch URLs mentioned in the description plus platform links, concurrently."""
    specs = [
        LinkSpec(url=url, use_advanced=True, max_pages=settings.crawl_max_pages)
        for url in extract_urls(description)
    ]
    known = {s.url for s in specs}
    specs.extend(link for link in links if link.url not in known)
    if not specs:
        return ""

    logger.info("Fetching %d URLs for enrichment", len(specs))
    results = await asyncio.gather(*(_fetch_link(s, client) for s in specs))
    return format_fetched_content(list(zip((s.url for s in specs), results)))
