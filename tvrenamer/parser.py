"""Parser module for extracting episode identifiers from file names."""
import re
from pathlib import Path

from .cleaner import find_tags, normalize_separators, strip_release_tags
from .models import Candidate, RawEntry

# Largest season or episode number accepted from a filename.
MAX_NUMBER = 999

# Episode rules (order matters - more specific first).  Each rule is
# (pattern_id, compiled regex) with season in group 1 and episode in group 2.
EPISODE_RULES: list[tuple[str, re.Pattern]] = [
    # S01E04 / S1E4 / S01 E04
    ("sxxexx", re.compile(r'(?<![a-z0-9])s(\d+)\s?e(\d+)(?!\d)', re.IGNORECASE)),
    # Season 1 Episode 4
    ("season_episode", re.compile(
        r'\bseason\s*(\d+)\s*episode\s*(\d+)(?!\d)', re.IGNORECASE
    )),
    # 1x04, 01x05, 1.2.3x04 (rejected by _to_small_int)
    ("nxnn", re.compile(r'(?<![\w.])([\d.]+)\s?x\s?(\d+)(?![\w.])', re.IGNORECASE)),
    # Show 104 -> S01E04
    ("compact", re.compile(r'(?<![\w.])(\d)(\d\d)(?![\w.])')),
]


def _to_small_int(text: str) -> int | None:
    """Cast a captured number, rejecting anything that is not small and positive."""
    if not text.isdigit() or len(text) > 3:
        return None
    value = int(text)
    if value <= 0 or value > MAX_NUMBER:
        return None
    return value


def clean_series_text(text: str) -> str:
    """Clean up the text in front of the episode marker."""
    text = strip_release_tags(text, series=True)
    # Version-like dotted numbers are not part of a show name
    text = re.sub(r'\b\d+(?:\.\d+)+\b', ' ', text)
    text = re.sub(r'\(\s*\)|\[\s*\]', '', text)
    text = re.sub(r'^[\s\-]+|[\s\-]+$', '', text)
    return re.sub(r'\s+', ' ', text).strip()


def clean_episode_title_text(text: str) -> str | None:
    """Clean up the text after the episode marker, None if nothing is left."""
    text = strip_release_tags(text)
    text = re.sub(r'^[\s\-]+|[\s\-]+$', '', text)
    text = re.sub(r'\s+', ' ', text).strip()
    return text or None


def _tags_after_marker(text: str, pattern: re.Pattern, season: int, episode: int) -> tuple[str, ...]:
    """Bracketed tags that follow the episode marker in *text*.

    *text* still has its brackets, so the marker is searched again here.
    """
    for match in pattern.finditer(text):
        if (_to_small_int(match.group(1)), _to_small_int(match.group(2))) == (season, episode):
            return find_tags(text[match.end():])
    return ()


def parse(raw_entry: RawEntry | str | Path) -> list[Candidate]:
    """
    Parse a filename into candidate show/season/episode identifiers.

    Every rule that matches contributes one candidate; the list is ordered
    by rule priority.  Rules whose numbers are not plausible are skipped.

    Args:
        raw_entry: RawEntry, or a bare path/filename

    Returns:
        Ordered list of Candidate objects (possibly empty)
    """
    if isinstance(raw_entry, RawEntry):
        path = raw_entry.path
    else:
        path = Path(raw_entry)

    normalized = normalize_separators(path.stem)
    # Remove resolution/codec/bracket noise before looking for markers
    name = strip_release_tags(normalized, series=True)

    candidates: list[Candidate] = []
    seen: set[tuple[str, int, int]] = set()

    for pattern_id, pattern in EPISODE_RULES:
        match = pattern.search(name)
        if not match:
            continue

        season = _to_small_int(match.group(1))
        episode = _to_small_int(match.group(2))
        if season is None or episode is None:
            continue

        series_text = clean_series_text(name[:match.start()])
        if not series_text:
            continue

        key = (series_text.lower(), season, episode)
        if key in seen:
            continue
        seen.add(key)

        candidates.append(Candidate(
            series_text=series_text,
            season=season,
            episode=episode,
            pattern_id=pattern_id,
            episode_title_text=clean_episode_title_text(name[match.end():]),
            tags=_tags_after_marker(normalized, pattern, season, episode),
        ))

    return candidates
