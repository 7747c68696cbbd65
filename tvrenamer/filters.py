"""Blacklist and whitelist predicates applied before any lookup happens."""
from collections.abc import Iterable
from pathlib import PurePath


def _normalize_extension(extension: str) -> str:
    return extension.lstrip(".").lower()


def is_blacklisted(extension: str, configured_set: Iterable[str]) -> bool:
    """
    Check whether a file extension is marked for deletion.

    Matching is exact and case-insensitive; a leading dot on either side
    is ignored, so ``".NFO"`` matches a configured ``"nfo"``.

    Args:
        extension: Extension of the file, with or without the dot
        configured_set: Extensions the caller wants deleted

    Returns:
        True if the file should be deleted
    """
    ext = _normalize_extension(extension)
    if not ext:
        return False
    return ext in {_normalize_extension(e) for e in configured_set}


def is_whitelisted(
    relative_path: PurePath,
    whitelist_folders: Iterable[str] = (),
    whitelist_filenames: Iterable[str] = (),
) -> bool:
    """Check whether a file must be left alone.

    A file is whitelisted when any of its parent folders, or its own
    filename, appears in the configured lists.
    """
    folders = set(whitelist_folders)
    if folders and any(part in folders for part in relative_path.parts[:-1]):
        return True
    return relative_path.name in set(whitelist_filenames)


def kept_tags(tags: Iterable[str], whitelist_tags: Iterable[str]) -> list[str]:
    """Return the release tags that should survive the rename, in order."""
    allowed = {t.lower() for t in whitelist_tags}
    kept = []
    seen = set()
    for tag in tags:
        key = tag.lower()
        if key in allowed and key not in seen:
            seen.add(key)
            kept.append(tag)
    return kept
