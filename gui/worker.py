"""Background worker that runs a rename batch for the Qt GUI."""
import threading
from pathlib import Path

from PySide6.QtCore import QObject, Signal

from tvrenamer.engine import Engine
from tvrenamer.errors import AuthError
from tvrenamer.models import Outcome, OutcomeResult


class RenameWorker(QObject):
    """Worker for executing a rename batch.

    Meant to be moved to a QThread; ``run`` re-emits every Outcome from
    the engine as a signal so the window can update rows as they finish.
    """

    # Signals
    started = Signal()
    progress = Signal(int, int)  # current, total
    outcome = Signal(object)  # Outcome
    log = Signal(str)
    finished = Signal(int, int, int, int)  # renamed, deleted, skipped, errors
    error = Signal(str)

    def __init__(self, engine: Engine, folder_path: str | Path, recursive: bool = True):
        """
        Args:
            engine: Engine holding the TVDB client and rename config
            folder_path: Folder to process
            recursive: Descend into subfolders
        """
        super().__init__()
        self.engine = engine
        self.folder_path = Path(folder_path)
        self.recursive = recursive
        self._cancel_event = threading.Event()

    def cancel(self):
        """Cancel the operation; the file being renamed still completes."""
        self._cancel_event.set()

    @property
    def cancelled(self) -> bool:
        return self._cancel_event.is_set()

    def run(self):
        """Execute the rename operation."""
        try:
            self.started.emit()
            self.log.emit(f"Scanning: {self.folder_path}")

            entries = self.engine.scan(self.folder_path, self.recursive)
            total = len(entries)
            self.log.emit(f"Found {total} file(s)")

            counts = {result: 0 for result in OutcomeResult}
            done = 0
            for outcome in self.engine.run(
                self.folder_path, cancel_event=self._cancel_event, entries=entries
            ):
                done += 1
                counts[outcome.result] += 1
                self.progress.emit(done, total)
                self.outcome.emit(outcome)
                self.log.emit(self._describe(outcome))

            if self.cancelled:
                self.log.emit("Rename cancelled.")

            self.finished.emit(
                counts[OutcomeResult.RENAMED],
                counts[OutcomeResult.DELETED],
                counts[OutcomeResult.SKIPPED],
                counts[OutcomeResult.FAILED],
            )

        except AuthError as e:
            self.error.emit(f"TVDB authentication failed: {e}")
        except Exception as e:
            self.error.emit(str(e))

    @staticmethod
    def _describe(outcome: Outcome) -> str:
        name = outcome.raw_entry.name
        if outcome.result is OutcomeResult.RENAMED:
            return f"Renamed: {name} -> {outcome.new_path.name}"
        if outcome.result is OutcomeResult.DELETED:
            return f"Deleted: {name}"
        if outcome.result is OutcomeResult.FAILED:
            return f"[ERROR] {name}: {outcome.detail}"
        reason = outcome.skip_reason.value if outcome.skip_reason else "unknown"
        return f"[SKIP] {name}: {reason}"
