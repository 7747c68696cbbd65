"""Execution engine: scan, resolve concurrently, plan, and apply."""
import logging
import threading
from collections.abc import Iterator, Sequence
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from pathlib import Path

from .config import RenameConfig
from .errors import FilesystemError
from .filters import is_blacklisted, is_whitelisted
from .models import (
    Outcome,
    OutcomeResult,
    PlanAction,
    RawEntry,
    RenamePlan,
    ResolvedMatch,
    SkipReason,
    Unresolved,
)
from .parser import parse
from .planner import plan as build_plans
from .resolver import MetadataClient, resolve

log = logging.getLogger(__name__)

Resolution = ResolvedMatch | Unresolved


def _same_file(a: Path, b: Path) -> bool:
    try:
        return a.samefile(b)
    except OSError:
        return False


class Engine:
    """Runs one rename batch over a folder.

    Metadata lookups for different files run on a thread pool; filesystem
    changes are applied one file at a time.  Each scanned file produces
    exactly one Outcome per run.

    Usage::

        engine = Engine(client, config)
        for outcome in engine.run(Path("/media/Show")):
            print(outcome.result, outcome.path)
    """

    def __init__(self, client: MetadataClient, config: RenameConfig, workers: int | None = None):
        self.client = client
        self.config = config
        # More workers than burst tokens would only queue on the limiter
        self.workers = max(1, min(workers or config.workers, config.rate_burst))

    # ------------------------------------------------------------------
    # Scan
    # ------------------------------------------------------------------

    def scan(self, root: Path, recursive: bool = True) -> list[RawEntry]:
        """
        List the files under *root*.

        Args:
            root: Folder to scan (a single file is also accepted)
            recursive: Descend into subfolders

        Returns:
            RawEntry snapshots in sorted path order
        """
        root = Path(root)
        if root.is_file():
            paths = [root]
        elif recursive:
            paths = [p for p in root.rglob("*") if p.is_file()]
        else:
            paths = [p for p in root.iterdir() if p.is_file()]

        entries = []
        for path in sorted(paths):
            try:
                entries.append(RawEntry.from_path(path))
            except OSError as e:
                # Removed between listing and stat
                log.warning("Cannot stat %s: %s", path, e)
        log.info("Scanned %d file(s) under %s", len(entries), root)
        return entries

    # ------------------------------------------------------------------
    # Resolve
    # ------------------------------------------------------------------

    def _needs_lookup(self, entry: RawEntry, root: Path) -> bool:
        if is_blacklisted(entry.extension, self.config.blacklist_extensions):
            return False
        try:
            relative = entry.path.relative_to(root)
        except ValueError:
            relative = Path(entry.name)
        return not is_whitelisted(
            relative, self.config.whitelist_folders, self.config.whitelist_filenames
        )

    def _resolve_one(
        self, entry: RawEntry, cancel_event: threading.Event | None
    ) -> Resolution | None:
        if cancel_event is not None and cancel_event.is_set():
            return None
        candidates = parse(entry)
        log.debug("Parsed %s -> %s", entry.name, candidates)
        result = resolve(entry, candidates, self.client)
        if isinstance(result, Unresolved):
            log.info("Unresolved %s: %s %s", entry.name, result.reason.value, result.detail)
        return result

    def resolve_all(
        self,
        entries: Sequence[RawEntry],
        cancel_event: threading.Event | None = None,
    ) -> dict[Path, Resolution]:
        """
        Resolve entries concurrently.

        Entries that had not started when *cancel_event* was set are left
        out of the result.

        Raises:
            AuthError: Pending lookups are cancelled and the error propagates
        """
        resolutions: dict[Path, Resolution] = {}
        if not entries:
            return resolutions

        executor = ThreadPoolExecutor(max_workers=self.workers, thread_name_prefix="tvrenamer")
        futures: dict[Future, RawEntry] = {}
        try:
            for entry in entries:
                futures[executor.submit(self._resolve_one, entry, cancel_event)] = entry
            for future in as_completed(futures):
                result = future.result()
                if result is not None:
                    resolutions[futures[future].path] = result
        except BaseException:
            executor.shutdown(wait=True, cancel_futures=True)
            raise
        executor.shutdown(wait=True)
        return resolutions

    def _resolve_batch(
        self,
        root: Path,
        entries: Sequence[RawEntry],
        cancel_event: threading.Event | None,
    ) -> tuple[list[RenamePlan], dict[Path, Resolution], list[RawEntry]]:
        base = root if root.is_dir() else root.parent
        lookups = [e for e in entries if self._needs_lookup(e, base)]
        resolutions = self.resolve_all(lookups, cancel_event)

        cancelled = [e for e in lookups if e.path not in resolutions]
        skipped = {e.path for e in cancelled}
        plannable = [e for e in entries if e.path not in skipped]
        plans = build_plans(
            plannable,
            resolutions,
            existing_paths=[e.path for e in entries],
            config=self.config,
            root=base,
        )
        return plans, resolutions, cancelled

    def preview(
        self,
        root: Path,
        recursive: bool = True,
        cancel_event: threading.Event | None = None,
    ) -> list[RenamePlan]:
        """Scan, resolve, and plan without touching the filesystem."""
        root = Path(root)
        plans, _, _ = self._resolve_batch(root, self.scan(root, recursive), cancel_event)
        return plans

    # ------------------------------------------------------------------
    # Apply
    # ------------------------------------------------------------------

    def apply(self, plan: RenamePlan) -> Outcome:
        """Carry out one plan; filesystem errors become a FAILED outcome."""
        entry = plan.raw_entry

        if plan.action is PlanAction.SKIP:
            return Outcome(
                entry, OutcomeResult.SKIPPED,
                new_path=plan.target_path,
                skip_reason=plan.skip_reason,
                detail=plan.detail,
            )

        try:
            if plan.action is PlanAction.DELETE:
                entry.path.unlink()
                log.info("Deleted %s", entry.path)
                return Outcome(entry, OutcomeResult.DELETED)

            target = plan.target_path
            # Another process may have created the target since planning
            if target.exists() and not _same_file(entry.path, target):
                return Outcome(
                    entry, OutcomeResult.SKIPPED,
                    new_path=target,
                    skip_reason=SkipReason.COLLISION,
                    detail=f"{target.name} appeared after planning",
                )
            target.parent.mkdir(parents=True, exist_ok=True)
            entry.path.rename(target)
        except OSError as e:
            error = FilesystemError.from_os_error(e)
            log.warning("Failed on %s: %s", entry.path, error)
            return Outcome(entry, OutcomeResult.FAILED, error=error, detail=str(error))

        log.info("Renamed %s -> %s", entry.name, target.name)
        return Outcome(entry, OutcomeResult.RENAMED, new_path=target)

    def remove_empty_folders(self, root: Path) -> list[Path]:
        """Remove empty directories below *root* (never *root* itself)."""
        root = Path(root)
        removed = []
        folders = sorted(
            (p for p in root.rglob("*") if p.is_dir()),
            key=lambda p: len(p.parts),
            reverse=True,
        )
        for folder in folders:
            try:
                if any(folder.iterdir()):
                    continue
                folder.rmdir()
            except OSError as e:
                log.warning("Could not remove folder %s: %s", folder, e)
                continue
            log.info("Removed empty folder %s", folder)
            removed.append(folder)
        return removed

    # ------------------------------------------------------------------
    # Run
    # ------------------------------------------------------------------

    def run(
        self,
        root: Path,
        cancel_event: threading.Event | None = None,
        recursive: bool = True,
        entries: Sequence[RawEntry] | None = None,
    ) -> Iterator[Outcome]:
        """
        Execute a full batch, yielding one Outcome per file.

        Args:
            root: Folder to process
            cancel_event: When set, files not yet started are reported as
                          SKIPPED(CANCELLED); a rename in progress completes
            recursive: Descend into subfolders
            entries: Pre-scanned entries (skips the scan step)

        Yields:
            Outcome objects

        Raises:
            AuthError: Credentials were rejected; the batch stops
        """
        root = Path(root)
        if entries is None:
            entries = self.scan(root, recursive)

        plans, resolutions, cancelled = self._resolve_batch(root, entries, cancel_event)

        for entry in cancelled:
            yield Outcome(entry, OutcomeResult.SKIPPED, skip_reason=SkipReason.CANCELLED)

        for plan in plans:
            if cancel_event is not None and cancel_event.is_set():
                yield Outcome(plan.raw_entry, OutcomeResult.SKIPPED, skip_reason=SkipReason.CANCELLED)
                continue

            outcome = self.apply(plan)
            resolution = resolutions.get(plan.raw_entry.path)
            if isinstance(resolution, Unresolved) and resolution.error is not None:
                outcome = Outcome(
                    outcome.raw_entry, outcome.result,
                    skip_reason=outcome.skip_reason,
                    error=resolution.error,
                    detail=outcome.detail,
                )
            yield outcome

        if self.config.remove_empty_folders and root.is_dir():
            if cancel_event is None or not cancel_event.is_set():
                self.remove_empty_folders(root)
