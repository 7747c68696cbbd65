"""Match parsed candidates against TVDB series and episode records.

Only exact matches are accepted: the cleaned series text from the filename
must equal the canonical name or one of the aliases of exactly one series,
after normalization.  Near-misses are reported as unresolved instead of
guessed, which keeps false-positive renames out of the batch.
"""
import logging
import re
from collections.abc import Sequence
from typing import Protocol

from .errors import LookupFailure, MetadataLookupError
from .models import (
    Candidate,
    Confidence,
    EpisodeRecord,
    RawEntry,
    ResolvedMatch,
    SeriesRecord,
    Unresolved,
    UnresolvedReason,
)

log = logging.getLogger(__name__)


class MetadataClient(Protocol):
    def find_series(self, query_text: str) -> Sequence[SeriesRecord]: ...

    def get_episodes(self, series_id: int, season: int) -> Sequence[EpisodeRecord]: ...


def normalize_for_comparison(text: str) -> str:
    """Normalize a series name for exact comparison."""
    text = text.lower().replace("'", "")
    text = re.sub(r'[^\w\s]|_', ' ', text)
    return re.sub(r'\s+', ' ', text).strip()


def matching_series(series_text: str, records: Sequence[SeriesRecord]) -> list[SeriesRecord]:
    """Return the distinct records whose name or alias equals *series_text*."""
    wanted = normalize_for_comparison(series_text)
    matches: dict[int, SeriesRecord] = {}
    for record in records:
        names = {record.canonical_name, *record.aliases}
        if any(normalize_for_comparison(name) == wanted for name in names):
            matches.setdefault(record.id, record)
    return list(matches.values())


def resolve(
    raw_entry: RawEntry,
    candidates: Sequence[Candidate],
    client: MetadataClient,
) -> ResolvedMatch | Unresolved:
    """
    Resolve a file to a canonical series and episode.

    Candidates are tried in order.  A candidate that yields no unique
    series anchor, or whose episode is missing, falls through to the next.

    Args:
        raw_entry: The file being resolved
        candidates: Parser candidates in priority order
        client: Metadata client (find_series / get_episodes)

    Returns:
        ResolvedMatch with Exact confidence, or Unresolved with a reason

    Raises:
        AuthError: Propagated from the client; it is fatal for the run
    """
    if not candidates:
        return Unresolved(raw_entry, UnresolvedReason.NO_CANDIDATE, "filename has no season/episode")

    saw_anchor = False
    saw_ambiguous = False
    details: list[str] = []

    for candidate in candidates:
        if candidate.season is None or candidate.episode is None:
            continue

        try:
            records = client.find_series(candidate.series_text)
        except MetadataLookupError as e:
            if e.kind is not LookupFailure.NOT_FOUND:
                return Unresolved(raw_entry, UnresolvedReason.LOOKUP_FAILED, str(e), error=e)
            records = ()

        matches = matching_series(candidate.series_text, records)
        if not matches:
            details.append(f"no series named {candidate.series_text!r}")
            continue
        if len(matches) > 1:
            saw_ambiguous = True
            names = ", ".join(f"{m.canonical_name} ({m.id})" for m in matches)
            details.append(f"{candidate.series_text!r} is ambiguous: {names}")
            continue

        series = matches[0]
        saw_anchor = True
        try:
            episodes = client.get_episodes(series.id, candidate.season)
        except MetadataLookupError as e:
            if e.kind is not LookupFailure.NOT_FOUND:
                return Unresolved(raw_entry, UnresolvedReason.LOOKUP_FAILED, str(e), error=e)
            episodes = ()

        episode = next((ep for ep in episodes if ep.episode == candidate.episode), None)
        if episode is None:
            details.append(
                f"{series.canonical_name} has no S{candidate.season:02d}E{candidate.episode:02d}"
            )
            continue

        log.debug(
            "Resolved %s -> %s S%02dE%02d via %s",
            raw_entry.name, series.canonical_name, episode.season, episode.episode,
            candidate.pattern_id,
        )
        return ResolvedMatch(
            raw_entry=raw_entry,
            series_record=series,
            episode_record=episode,
            confidence=Confidence.EXACT,
            source_candidate=candidate,
        )

    if saw_anchor:
        reason = UnresolvedReason.NO_EPISODE_MATCH
    elif saw_ambiguous:
        reason = UnresolvedReason.AMBIGUOUS_SERIES
    else:
        reason = UnresolvedReason.NO_SERIES_MATCH
    return Unresolved(raw_entry, reason, "; ".join(details))
