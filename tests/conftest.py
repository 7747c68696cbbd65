"""Shared fixtures: fake HTTP session, fake metadata client, media folders."""
import threading
from pathlib import Path
from urllib.parse import urlsplit

import pytest

from tvrenamer.config import Credentials, RenameConfig
from tvrenamer.errors import LookupFailure, MetadataLookupError
from tvrenamer.models import (
    Candidate,
    Confidence,
    EpisodeRecord,
    RawEntry,
    ResolvedMatch,
    SeriesRecord,
)
from tvrenamer.ratelimit import TokenBucket
from tvrenamer.tvdb import TVDBClient

_INVALID_JSON = object()


class FakeResponse:
    """Just enough of requests.Response for the client."""

    def __init__(self, status_code=200, body=None, headers=None):
        self.status_code = status_code
        self._body = body
        self.headers = headers or {}

    @property
    def ok(self):
        return self.status_code < 400

    @property
    def text(self):
        return "<html>" if self._body is _INVALID_JSON else str(self._body)

    def json(self):
        if self._body is _INVALID_JSON:
            raise ValueError("Expecting value: line 1 column 1 (char 0)")
        return self._body


class FakeHTTP:
    """Stands in for requests.Session.

    Routes are keyed by (method, path).  Each route holds a queue of
    responses; the last one repeats.  A queued exception is raised, and a
    callable is called with the request params.
    """

    def __init__(self):
        self.routes = {}
        self.calls = []
        self._lock = threading.Lock()
        self.add("POST", "/login", FakeResponse(200, {"token": "tok-1"}))

    def add(self, method, path, *responses):
        self.routes[(method, path)] = list(responses)

    def count(self, method, path):
        return sum(1 for call in self.calls if call["method"] == method and call["path"] == path)

    def request(self, method, url, headers=None, timeout=None, params=None, json=None):
        path = urlsplit(url).path
        with self._lock:
            self.calls.append({
                "method": method,
                "path": path,
                "params": params,
                "json": json,
                "headers": dict(headers or {}),
            })
            queue = self.routes.get((method, path))
            if not queue:
                return FakeResponse(404, {"Error": "Resource not found"})
            response = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(response, Exception):
            raise response
        if callable(response):
            return response(params)
        return response


class FakeClock:
    def __init__(self, now=1_000_000.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


class FakeMetadataClient:
    """In-memory metadata provider keyed by lowercase series query."""

    def __init__(self, series=None, episodes=None, errors=None):
        self.series = series or {}
        self.episodes = episodes or {}
        self.errors = errors or {}
        self.series_calls = []
        self.episode_calls = []
        self._lock = threading.Lock()

    def find_series(self, query_text):
        query = query_text.lower()
        with self._lock:
            self.series_calls.append(query)
        if query in self.errors:
            raise self.errors[query]
        if query not in self.series:
            raise MetadataLookupError(LookupFailure.NOT_FOUND, f"No series found for {query!r}")
        return tuple(self.series[query])

    def get_episodes(self, series_id, season):
        with self._lock:
            self.episode_calls.append((series_id, season))
        records = self.episodes.get((series_id, season))
        if not records:
            raise MetadataLookupError(LookupFailure.NOT_FOUND, "no episodes")
        return tuple(records)


SHOW = SeriesRecord(id=1, canonical_name="Show Name", aliases=frozenset({"Show"}))
PILOT_RETURNS = EpisodeRecord(series_id=1, season=1, episode=2, canonical_title="Pilot Returns")


@pytest.fixture
def show():
    return SHOW


@pytest.fixture
def pilot_returns():
    return PILOT_RETURNS


@pytest.fixture
def fake_client():
    """Metadata client that knows "Show Name" season 1, episodes 1-3."""
    return FakeMetadataClient(
        series={"show name": [SHOW]},
        episodes={(1, 1): [
            EpisodeRecord(1, 1, 1, "Pilot"),
            PILOT_RETURNS,
            EpisodeRecord(1, 1, 3, "Third Time"),
        ]},
    )


@pytest.fixture
def http():
    return FakeHTTP()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def make_client(http, clock, sleeps):
    """Factory for a TVDBClient talking to the fake HTTP session."""

    def _make(**kwargs):
        kwargs.setdefault("credentials", Credentials("api-key", "user-key", "user"))
        kwargs.setdefault("limiter", TokenBucket(rate=1000, capacity=1000))
        kwargs.setdefault("max_retries", 3)
        return TVDBClient(
            http=http,
            clock=clock,
            sleep=sleeps.append,
            jitter=lambda: 0.0,
            **kwargs,
        )

    return _make


@pytest.fixture
def config():
    return RenameConfig()


@pytest.fixture
def media_dir(tmp_path):
    """Factory creating files (relative paths) under a fresh media folder."""
    root = tmp_path / "media"
    root.mkdir()

    def _make(*names):
        for name in names:
            path = root / name
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(b"x")
        return root

    return _make


@pytest.fixture
def make_match():
    """Factory for a ResolvedMatch of an on-disk or imaginary path."""

    def _make(path, series=SHOW, episode=PILOT_RETURNS, tags=()):
        path = Path(path)
        entry = RawEntry(path=path, extension=path.suffix.lstrip("."))
        candidate = Candidate(
            series_text=series.canonical_name,
            season=episode.season,
            episode=episode.episode,
            pattern_id="sxxexx",
            tags=tuple(tags),
        )
        return ResolvedMatch(entry, series, episode, Confidence.EXACT, candidate)

    return _make
