"""Data models for the tvrenamer package."""
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from pathlib import Path


class Confidence(Enum):
    EXACT = "exact"
    FUZZY = "fuzzy"


class UnresolvedReason(Enum):
    NO_CANDIDATE = "no_candidate"
    NO_SERIES_MATCH = "no_series_match"
    NO_EPISODE_MATCH = "no_episode_match"
    AMBIGUOUS_SERIES = "ambiguous_series"
    LOOKUP_FAILED = "lookup_failed"


class PlanAction(Enum):
    RENAME = "rename"
    DELETE = "delete"
    SKIP = "skip"


class SkipReason(Enum):
    COLLISION = "collision"
    ALREADY_CORRECT = "already_correct"
    UNRESOLVED = "unresolved"
    WHITELISTED = "whitelisted"
    CANCELLED = "cancelled"


class OutcomeResult(Enum):
    RENAMED = "renamed"
    DELETED = "deleted"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass(frozen=True)
class RawEntry:
    """Snapshot of a file taken at scan time."""
    path: Path
    extension: str
    size: int = 0
    mtime: float = 0.0

    @classmethod
    def from_path(cls, path: Path) -> "RawEntry":
        stat = path.stat()
        return cls(
            path=path,
            extension=path.suffix.lstrip("."),
            size=stat.st_size,
            mtime=stat.st_mtime,
        )

    @property
    def name(self) -> str:
        return self.path.name


@dataclass(frozen=True)
class Candidate:
    """A parsed guess at the show/season/episode identity of a file."""
    series_text: str
    season: int | None
    episode: int | None
    pattern_id: str
    episode_title_text: str | None = None
    tags: tuple[str, ...] = ()


@dataclass(frozen=True)
class SeriesRecord:
    """Represents a TV series from TVDB."""
    id: int
    canonical_name: str
    aliases: frozenset[str] = frozenset()
    first_aired: str = ""
    status: str = ""


@dataclass(frozen=True)
class EpisodeRecord:
    """Represents an episode from TVDB."""
    series_id: int
    season: int
    episode: int
    canonical_title: str
    air_date: date | None = None


@dataclass(frozen=True)
class ResolvedMatch:
    raw_entry: RawEntry
    series_record: SeriesRecord
    episode_record: EpisodeRecord
    confidence: Confidence
    source_candidate: Candidate


@dataclass(frozen=True)
class Unresolved:
    raw_entry: RawEntry
    reason: UnresolvedReason
    detail: str = ""
    error: Exception | None = field(default=None, compare=False)


@dataclass(frozen=True)
class RenamePlan:
    """The filesystem action decided for one file."""
    raw_entry: RawEntry
    action: PlanAction
    target_path: Path | None = None
    skip_reason: SkipReason | None = None
    detail: str = ""


@dataclass(frozen=True)
class Outcome:
    """Terminal result for one file; emitted exactly once per run."""
    raw_entry: RawEntry
    result: OutcomeResult
    new_path: Path | None = None
    skip_reason: SkipReason | None = None
    error: Exception | None = field(default=None, compare=False)
    detail: str = ""

    @property
    def path(self) -> Path:
        return self.raw_entry.path
