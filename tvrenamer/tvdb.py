"""TVDB API client module.

All knowledge of the provider's endpoints and JSON layout lives here;
callers only see ``find_series``/``get_episodes`` and the records in
``models``.
"""
import logging
import random
import re
import threading
import time
from dataclasses import dataclass
from datetime import date
from typing import Any, Callable

import requests

from .cache import Cache
from .config import Credentials
from .errors import AuthError, LookupFailure, MetadataLookupError
from .models import EpisodeRecord, SeriesRecord
from .ratelimit import TokenBucket

log = logging.getLogger(__name__)


TVDB_BASE_URL = "https://api.thetvdb.com"
DEFAULT_TIMEOUT = 10
DEFAULT_MAX_RETRIES = 4
DEFAULT_LANGUAGE = "en"
BACKOFF_BASE = 0.5
BACKOFF_MAX = 30.0
TOKEN_TTL = 24 * 60 * 60
TOKEN_REFRESH_MARGIN = 60 * 60  # refresh an hour before the token expires
MAX_EPISODE_PAGES = 100


def normalize_query(text: str) -> str:
    """Lowercase, trim and collapse whitespace for use as a cache key."""
    return re.sub(r'\s+', ' ', text).strip().lower()


def _retry_after(response: requests.Response) -> float:
    value = response.headers.get("Retry-After", "")
    try:
        return max(0.0, float(value))
    except ValueError:
        return 0.0


def _parse_date(value: Any) -> date | None:
    if not isinstance(value, str) or not value:
        return None
    try:
        return date.fromisoformat(value[:10])
    except ValueError:
        return None


def _error_message(response: requests.Response) -> str:
    """Extract the provider's ``{"Error": ...}`` message, or the raw body."""
    try:
        body = response.json()
    except ValueError:
        return response.text[:200]
    if isinstance(body, dict) and isinstance(body.get("Error"), str):
        return body["Error"]
    return response.text[:200]


@dataclass
class Session:
    """Bearer token plus its validity window."""
    token: str
    issued_at: float
    ttl: float = TOKEN_TTL

    @property
    def expires_at(self) -> float:
        return self.issued_at + self.ttl

    def is_expiring(self, now: float, margin: float = TOKEN_REFRESH_MARGIN) -> bool:
        return now >= self.expires_at - margin


def parse_series_list(body: Any) -> tuple[SeriesRecord, ...]:
    """Convert a ``/search/series`` response body into SeriesRecords.

    Raises:
        MetadataLookupError: MALFORMED if the body does not have the
            expected layout
    """
    if not isinstance(body, dict):
        raise MetadataLookupError(LookupFailure.MALFORMED, "search response is not an object")
    data = body.get("data")
    if data is None:
        return ()
    if not isinstance(data, list):
        raise MetadataLookupError(LookupFailure.MALFORMED, "search data is not a list")

    records = []
    for item in data:
        if not isinstance(item, dict) or not isinstance(item.get("id"), int):
            raise MetadataLookupError(LookupFailure.MALFORMED, f"bad series entry: {item!r}")
        name = item.get("seriesName")
        if not isinstance(name, str) or not name.strip():
            # Entries the account may not view come back without a name
            continue
        aliases = item.get("aliases") or []
        if not isinstance(aliases, list):
            raise MetadataLookupError(LookupFailure.MALFORMED, f"bad aliases for series {item['id']}")
        records.append(SeriesRecord(
            id=item["id"],
            canonical_name=name.strip(),
            aliases=frozenset(a for a in aliases if isinstance(a, str) and a.strip()),
            first_aired=item.get("firstAired") or "",
            status=item.get("status") or "",
        ))
    return tuple(records)


def parse_episode_page(body: Any, series_id: int) -> tuple[list[EpisodeRecord], int | None, int | None]:
    """Convert one episodes page into records plus its ``next``/``last`` links."""
    if not isinstance(body, dict):
        raise MetadataLookupError(LookupFailure.MALFORMED, "episodes response is not an object")
    data = body.get("data") or []
    if not isinstance(data, list):
        raise MetadataLookupError(LookupFailure.MALFORMED, "episodes data is not a list")

    episodes = []
    for item in data:
        if not isinstance(item, dict):
            raise MetadataLookupError(LookupFailure.MALFORMED, f"bad episode entry: {item!r}")
        season = item.get("airedSeason")
        number = item.get("airedEpisodeNumber")
        if not isinstance(season, int) or not isinstance(number, int):
            raise MetadataLookupError(
                LookupFailure.MALFORMED,
                f"episode {item.get('id')} has no aired season/number",
            )
        episodes.append(EpisodeRecord(
            series_id=series_id,
            season=season,
            episode=number,
            canonical_title=(item.get("episodeName") or "").strip(),
            air_date=_parse_date(item.get("firstAired")),
        ))

    links = body.get("links") or {}
    if not isinstance(links, dict):
        links = {}
    next_page = links.get("next") if isinstance(links.get("next"), int) else None
    last_page = links.get("last") if isinstance(links.get("last"), int) else None
    return episodes, next_page, last_page


class TVDBClient:
    """Client for the TVDB v3 API.

    One instance owns the session, the rate limiter and the lookup cache
    for the whole process; it is safe to share between worker threads.
    """

    def __init__(
        self,
        credentials: Credentials | None = None,
        http: requests.Session | None = None,
        limiter: TokenBucket | None = None,
        cache: Cache | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        max_retries: int = DEFAULT_MAX_RETRIES,
        language: str = DEFAULT_LANGUAGE,
        base_url: str = TVDB_BASE_URL,
        clock: Callable[[], float] = time.time,
        sleep: Callable[[float], None] = time.sleep,
        jitter: Callable[[], float] = random.random,
    ):
        """
        Initialize TVDB client.

        Args:
            credentials: Login credentials; may also be passed to authenticate()
            http: requests Session used for all calls (created if omitted)
            limiter: Token bucket shared by every request
            cache: Lookup cache
            timeout: Per-request timeout in seconds
            max_retries: Attempts per request before giving up on 429/5xx/timeouts
            language: Accept-Language sent to the API
            base_url: API root, overridable for tests
            clock, sleep, jitter: Injectable time sources
        """
        if max_retries < 1:
            raise ValueError("max_retries must be at least 1")
        self.credentials = credentials
        self.http = http or requests.Session()
        self.limiter = limiter or TokenBucket()
        self.cache = cache or Cache()
        self.timeout = timeout
        self.max_retries = max_retries
        self.language = language
        self.base_url = base_url.rstrip("/")
        self.session: Session | None = None
        self._clock = clock
        self._sleep = sleep
        self._jitter = jitter
        self._auth_lock = threading.RLock()

    # ------------------------------------------------------------------
    # Authentication
    # ------------------------------------------------------------------

    def authenticate(self, credentials: Credentials | None = None) -> Session:
        """Exchange the API key and user key for a bearer token.

        Raises:
            AuthError: If the credentials are rejected or login fails
        """
        creds = credentials or self.credentials
        if creds is None:
            raise AuthError("No TVDB credentials configured")

        with self._auth_lock:
            try:
                response = self._send("POST", "/login", json=creds.login_body())
            except MetadataLookupError as e:
                raise AuthError(f"Login failed: {e}") from e

            if not response.ok:
                raise AuthError(
                    f"Login rejected: code={response.status_code} "
                    f"message={_error_message(response)}"
                )
            token = self._token_from(response)
            self.credentials = creds
            self.session = Session(token=token, issued_at=self._clock())
            log.info("Authenticated with TVDB")
            return self.session

    def _token_from(self, response: requests.Response) -> str:
        try:
            body = response.json()
        except ValueError as e:
            raise AuthError("Token response was not JSON") from e
        token = body.get("token") if isinstance(body, dict) else None
        if not isinstance(token, str) or not token:
            raise AuthError("Token response did not contain a token")
        return token

    def _ensure_session(self) -> Session:
        """Return a valid session, logging in or refreshing as needed."""
        with self._auth_lock:
            if self.session is None:
                return self.authenticate()
            if self.session.is_expiring(self._clock()):
                log.debug("Session close to expiry, refreshing")
                self._refresh(self.session.token)
            return self.session

    def _refresh(self, stale_token: str) -> None:
        """Replace the session token; retried once, then AuthError."""
        with self._auth_lock:
            if self.session is not None and self.session.token != stale_token:
                # Another thread already refreshed it
                return

            last_error = ""
            for attempt in range(2):
                try:
                    response = self._send("GET", "/refresh_token", token=stale_token)
                except MetadataLookupError as e:
                    last_error = str(e)
                else:
                    if response.ok:
                        try:
                            token = self._token_from(response)
                        except AuthError as e:
                            last_error = str(e)
                        else:
                            self.session = Session(token=token, issued_at=self._clock())
                            log.info("Refreshed TVDB session")
                            return
                    else:
                        last_error = f"code={response.status_code} message={_error_message(response)}"
                log.warning("Session refresh failed (attempt %d/2): %s", attempt + 1, last_error)

            raise AuthError(f"Could not refresh TVDB session: {last_error}")

    # ------------------------------------------------------------------
    # Request dispatch
    # ------------------------------------------------------------------

    def _backoff(self, attempt: int) -> float:
        delay = min(BACKOFF_MAX, BACKOFF_BASE * (2 ** (attempt - 1)))
        return delay + self._jitter() * BACKOFF_BASE

    def _send(
        self,
        method: str,
        path: str,
        token: str | None = None,
        **kwargs: Any,
    ) -> requests.Response:
        """
        Send one logical request, retrying 429/5xx/timeouts with backoff.

        Every attempt takes a token from the shared rate limiter.

        Returns:
            The first response that is neither 429 nor 5xx

        Raises:
            MetadataLookupError: TRANSIENT once all attempts are used up
        """
        url = f"{self.base_url}{path}"
        headers = {
            "Accept": "application/json",
            "Accept-Language": self.language,
        }
        if token:
            headers["Authorization"] = f"Bearer {token}"

        last_error = ""
        for attempt in range(1, self.max_retries + 1):
            self.limiter.acquire()
            log.debug("%s %s params=%s (attempt %d)", method, path, kwargs.get("params"), attempt)
            try:
                response = self.http.request(
                    method, url, headers=headers, timeout=self.timeout, **kwargs
                )
            except requests.exceptions.RequestException as e:
                last_error = f"{type(e).__name__}: {e}"
                delay = self._backoff(attempt)
            else:
                if response.status_code != 429 and response.status_code < 500:
                    return response
                last_error = f"HTTP {response.status_code}"
                delay = max(self._backoff(attempt), _retry_after(response))

            if attempt < self.max_retries:
                log.debug("%s %s failed (%s), retrying in %.2fs", method, path, last_error, delay)
                self._sleep(delay)

        log.warning("%s %s gave up after %d attempts: %s", method, path, self.max_retries, last_error)
        raise MetadataLookupError(
            LookupFailure.TRANSIENT,
            f"{method} {path} failed after {self.max_retries} attempts: {last_error}",
        )

    def _get(self, path: str, params: dict[str, Any] | None = None) -> Any:
        """Authenticated GET returning decoded JSON."""
        session = self._ensure_session()
        response = self._send("GET", path, token=session.token, params=params)

        if response.status_code == 401:
            log.info("Token rejected on %s, refreshing session", path)
            self._refresh(session.token)
            response = self._send("GET", path, token=self.session.token, params=params)
            if response.status_code == 401:
                raise AuthError("Session rejected after refresh")

        if response.status_code == 404:
            raise MetadataLookupError(LookupFailure.NOT_FOUND, _error_message(response))

        if not response.ok:
            message = f"unexpected response: code={response.status_code} body={_error_message(response)}"
            log.warning("GET %s: %s", path, message)
            raise MetadataLookupError(LookupFailure.MALFORMED, message)

        try:
            return response.json()
        except ValueError as e:
            log.warning("GET %s returned invalid JSON: %s", path, e)
            raise MetadataLookupError(LookupFailure.MALFORMED, f"json decode error: {e}") from e

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def find_series(self, query_text: str) -> tuple[SeriesRecord, ...]:
        """
        Search TVDB for series by name.

        Results, including "not found", are cached by the normalized
        query for the lifetime of the client.

        Args:
            query_text: Series title to search for

        Returns:
            Tuple of matching SeriesRecords (never empty)

        Raises:
            MetadataLookupError: NOT_FOUND, TRANSIENT or MALFORMED
            AuthError: If no valid session can be obtained
        """
        query = normalize_query(query_text)
        if not query:
            raise MetadataLookupError(LookupFailure.NOT_FOUND, "empty query")
        return self.cache.get_or_load(("series", query), lambda: self._fetch_series(query))

    def _fetch_series(self, query: str) -> tuple[SeriesRecord, ...]:
        try:
            body = self._get("/search/series", params={"name": query})
            records = parse_series_list(body)
        except MetadataLookupError as e:
            if e.kind is LookupFailure.MALFORMED:
                log.warning("Malformed series search for %r: %s", query, e)
            raise
        if not records:
            raise MetadataLookupError(LookupFailure.NOT_FOUND, f"No series found for {query!r}")
        log.debug("Series search %r -> %s", query, [r.canonical_name for r in records])
        return records

    def get_episodes(self, series_id: int, season: int) -> tuple[EpisodeRecord, ...]:
        """
        Get every episode of one season of a series.

        Args:
            series_id: TVDB series ID
            season: Aired season number

        Returns:
            Tuple of EpisodeRecords sorted by episode number (never empty)

        Raises:
            MetadataLookupError: NOT_FOUND, TRANSIENT or MALFORMED
            AuthError: If no valid session can be obtained
        """
        key = ("episodes", int(series_id), int(season))
        return self.cache.get_or_load(
            key, lambda: self._fetch_episodes(int(series_id), int(season))
        )

    def _fetch_episodes(self, series_id: int, season: int) -> tuple[EpisodeRecord, ...]:
        endpoint = f"/series/{series_id}/episodes/query"
        episodes: list[EpisodeRecord] = []
        page = 1
        try:
            for _ in range(MAX_EPISODE_PAGES):
                try:
                    body = self._get(endpoint, params={"airedSeason": season, "page": page})
                except MetadataLookupError as e:
                    if e.is_not_found and page > 1:
                        break
                    raise
                page_episodes, next_page, last_page = parse_episode_page(body, series_id)
                episodes.extend(page_episodes)
                if next_page is None or next_page <= page:
                    break
                if last_page is not None and page >= last_page:
                    break
                page = next_page
        except MetadataLookupError as e:
            if e.kind is LookupFailure.MALFORMED:
                log.warning("Malformed episode list for series %s season %s: %s", series_id, season, e)
            raise

        episodes = [ep for ep in episodes if ep.season == season]
        if not episodes:
            raise MetadataLookupError(
                LookupFailure.NOT_FOUND,
                f"No episodes for series {series_id} season {season}",
            )
        episodes.sort(key=lambda ep: ep.episode)
        return tuple(episodes)

    def invalidate(self, key: Any = None) -> None:
        """Drop cached lookups (all of them when *key* is None)."""
        self.cache.invalidate(key)
