import html
import logging
import re
from urllib.parse import urlsplit, urlunsplit

import requests

from clipkeep.config import URL_TITLE_MAX_BYTES, URL_TITLE_MAX_LENGTH, URL_TITLE_TIMEOUT

logger = logging.getLogger(__name__)

USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/605.1.15 "
    "(KHTML, like Gecko) Version/17.0 Safari/605.1.15"
)

TITLE_PATTERNS = [
    re.compile(r"<title[^>]*>([^<]+)</title>", re.IGNORECASE | re.DOTALL),
    re.compile(r"<meta[^>]+property=[\"']og:title[\"'][^>]+content=[\"']([^\"']+)[\"']", re.IGNORECASE | re.DOTALL),
    re.compile(r"<meta[^>]+content=[\"']([^\"']+)[\"'][^>]+property=[\"']og:title[\"']", re.IGNORECASE | re.DOTALL),
]


def extract_title(page: str) -> str | None:
    for pattern in TITLE_PATTERNS:
        match = pattern.search(page)
        if match:
            return match.group(1)
    return None


def clean_title(title: str, max_len: int = URL_TITLE_MAX_LENGTH) -> str:
    cleaned = " ".join(html.unescape(title).split())
    if len(cleaned) > max_len:
        cleaned = cleaned[: max_len - 3] + "..."
    return cleaned


class URLTitleFetcher:
    """Fetches page titles for http(s) URLs, caching successful lookups."""

    def __init__(self, session: requests.Session | None = None, timeout: float = URL_TITLE_TIMEOUT):
        self._session = session or requests.Session()
        self._timeout = timeout
        self._cache: dict[str, str] = {}

    def fetch_title(self, url: str) -> str | None:
        if url in self._cache:
            return self._cache[url]

        try:
            parts = urlsplit(url)
        except ValueError:
            return None
        scheme = parts.scheme.lower()
        if scheme not in ("http", "https") or not parts.netloc:
            logger.debug("Not fetching title for non-http URL %s", url)
            return None
        target = urlunsplit(parts._replace(scheme="https"))

        try:
            response = self._session.get(
                target,
                headers={"User-Agent": USER_AGENT, "Accept": "text/html"},
                timeout=self._timeout,
                stream=True,
            )
        except requests.RequestException as e:
            logger.debug("Failed to fetch %s: %s", target, e)
            return None

        try:
            if response.status_code != 200:
                logger.debug("Non-200 status %d for %s", response.status_code, target)
                return None
            content_type = response.headers.get("Content-Type", "")
            if "text/html" not in content_type:
                logger.debug("Not HTML content (%s) for %s", content_type, target)
                return None
            raw = response.raw.read(URL_TITLE_MAX_BYTES, decode_content=True)
        except Exception as e:
            logger.debug("Failed to read %s: %s", target, e)
            return None
        finally:
            response.close()

        try:
            page = raw.decode(response.encoding or "utf-8", errors="replace")
        except LookupError:
            page = raw.decode("utf-8", errors="replace")
        title = extract_title(page)
        if title is None:
            logger.debug("No title found for %s", target)
            return None

        cleaned = clean_title(title)
        if not cleaned:
            return None
        self._cache[url] = cleaned
        return cleaned

    def clear_cache(self) -> None:
        self._cache.clear()
