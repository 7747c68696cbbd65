"""Turn resolutions into rename/delete/skip plans with collision safety."""
import logging
from collections.abc import Iterable, Mapping
from pathlib import Path

from .config import RenameConfig
from .filters import is_blacklisted, is_whitelisted, kept_tags
from .formatter import format_episode_name, format_season_folder
from .models import (
    PlanAction,
    RawEntry,
    RenamePlan,
    ResolvedMatch,
    SkipReason,
    Unresolved,
)

log = logging.getLogger(__name__)


def _path_key(path: Path) -> str:
    # Case-insensitive filesystems treat these as the same file
    return str(path).casefold()


def target_path(match: ResolvedMatch, config: RenameConfig, root: Path | None = None) -> Path:
    """Compute where a resolved file should live."""
    entry = match.raw_entry
    tags = kept_tags(match.source_candidate.tags, config.whitelist_tags)
    filename = format_episode_name(
        match.series_record,
        match.episode_record,
        extension=entry.extension,
        template=config.naming_template,
        tags=tags,
    )

    if config.season_folder_template:
        base = root if root is not None else entry.path.parent
        folder = format_season_folder(
            match.series_record, match.episode_record, config.season_folder_template
        )
        return base / folder / filename
    return entry.path.parent / filename


def _relative(path: Path, root: Path | None) -> Path:
    if root is None:
        return Path(path.name)
    try:
        return path.relative_to(root)
    except ValueError:
        return Path(path.name)


def plan(
    entries: Iterable[RawEntry],
    resolutions: Mapping[Path, ResolvedMatch | Unresolved],
    existing_paths: Iterable[Path],
    config: RenameConfig,
    root: Path | None = None,
) -> list[RenamePlan]:
    """
    Decide the action for every entry.

    Checks run in this order: blacklist (delete), whitelist (skip),
    unresolved (skip), already correct (skip), collision (skip), rename.
    Entries are planned in sorted path order, so the first entry to claim
    a target keeps it.

    A target that is the current path of another scanned file counts as a
    collision even when that file is renamed away in the same run; the
    renames are applied one by one and a rename must never replace a file.

    Args:
        entries: Scanned files
        resolutions: Resolution result per file path
        existing_paths: Every path currently on disk
        config: Rename rules
        root: Scan root, used for whitelisted folders and season folders

    Returns:
        One RenamePlan per entry, in sorted path order
    """
    existing = {_path_key(p) for p in existing_paths}
    allocated: set[str] = set()
    plans: list[RenamePlan] = []

    for entry in sorted(entries, key=lambda e: e.path):
        if is_blacklisted(entry.extension, config.blacklist_extensions):
            plans.append(RenamePlan(entry, PlanAction.DELETE))
            continue

        if is_whitelisted(
            _relative(entry.path, root), config.whitelist_folders, config.whitelist_filenames
        ):
            plans.append(RenamePlan(entry, PlanAction.SKIP, skip_reason=SkipReason.WHITELISTED))
            continue

        resolution = resolutions.get(entry.path)
        if resolution is None:
            plans.append(RenamePlan(
                entry, PlanAction.SKIP,
                skip_reason=SkipReason.UNRESOLVED,
                detail="no_candidate",
            ))
            continue
        if isinstance(resolution, Unresolved):
            detail = resolution.reason.value
            if resolution.detail:
                detail = f"{detail}: {resolution.detail}"
            plans.append(RenamePlan(
                entry, PlanAction.SKIP, skip_reason=SkipReason.UNRESOLVED, detail=detail
            ))
            continue

        target = target_path(resolution, config, root)

        if target == entry.path:
            plans.append(RenamePlan(
                entry, PlanAction.SKIP,
                target_path=target,
                skip_reason=SkipReason.ALREADY_CORRECT,
            ))
            continue

        key = _path_key(target)
        own_key = _path_key(entry.path)
        if key in allocated or (key in existing and key != own_key):
            log.info("Collision: %s -> %s", entry.name, target.name)
            plans.append(RenamePlan(
                entry, PlanAction.SKIP,
                target_path=target,
                skip_reason=SkipReason.COLLISION,
                detail=f"{target.name} already exists or is claimed by another file",
            ))
            continue

        allocated.add(key)
        plans.append(RenamePlan(entry, PlanAction.RENAME, target_path=target))

    return plans
