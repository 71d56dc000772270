"""Apply a plan to the filesystem inside one restore point."""
from __future__ import annotations

import logging
import os
import shutil
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path

from .journal import CREATE_DIR, DELETE_DIR, MOVE, RestorePointJournal
from .models import Category
from .planner import Plan, PlanEntry
from .session import Session
from .sidecars import DEFAULT_THUMBNAIL_STYLE, plan_sidecar_moves

log = logging.getLogger(__name__)


@dataclass
class ExecuteOptions:
    """Which plan categories to act on."""
    include_discrepancies: bool = False
    move_unmatched: bool = True
    move_duplicates: bool = True
    prune_empty_dirs: bool = True
    label: str = "apply"


class JournalWriteError(Exception):
    """A mutation happened but could not be recorded in the restore point."""


@dataclass
class ExecutionError:
    path: Path
    message: str


@dataclass
class ExecutionReport:
    """Outcome of one :meth:`PlanExecutor.execute` call."""
    restore_point: Path | None = None
    moved: int = 0
    sidecars_moved: int = 0
    dirs_created: int = 0
    dirs_removed: int = 0
    skipped: int = 0
    errors: list[ExecutionError] = field(default_factory=list)
    # Set when a mutation could not be journaled; the run stopped there
    incomplete: bool = False

    @property
    def error_count(self) -> int:
        return len(self.errors)

    @property
    def ok(self) -> bool:
        return not self.errors


class PlanExecutor:
    """Moves planned files, journaling each mutation as it happens.

    Usage::

        executor = PlanExecutor(session, RestorePointJournal(session))
        report = executor.execute(plan, ExecuteOptions(include_discrepancies=True))
    """

    def __init__(
        self,
        session: Session,
        journal: RestorePointJournal,
        thumbnail_style: str | None = None,
    ):
        self.session = session
        self.journal = journal
        if thumbnail_style is None:
            thumbnail_style = session.settings.get("thumbnail_style", DEFAULT_THUMBNAIL_STYLE)
        self.thumbnail_style = thumbnail_style

    def selected_entries(self, plan: Plan, options: ExecuteOptions) -> list[PlanEntry]:
        """Entries that *options* asks to move, in plan order."""
        wanted = {Category.PROPOSED_RENAME}
        if options.include_discrepancies:
            wanted.add(Category.DISCREPANCY)
        if options.move_unmatched:
            wanted.add(Category.UNMATCHED)
        if options.move_duplicates:
            wanted.add(Category.DUPLICATE)
        return [e for e in plan if e.category in wanted and e.needs_move]

    def execute(self, plan: Plan, options: ExecuteOptions | None = None) -> ExecutionReport:
        """
        Carry out the moves in *plan*.

        Per-file failures are logged and counted; the run continues.  A
        path outside the working root aborts the run with
        :class:`~organizer.session.PathSafetyError`.  A mutation that
        cannot be journaled stops the run and marks the report
        ``incomplete``.

        Args:
            plan: Plan built by :class:`~organizer.planner.PlanBuilder`
            options: Categories to act on; defaults to renames, unmatched
                files and duplicates

        Returns:
            Counts and errors for the run
        """
        options = options or ExecuteOptions()
        report = ExecutionReport()
        entries = self.selected_entries(plan, options)
        if not entries:
            log.info("Nothing to execute")
            return report

        vacated: set[Path] = set()
        try:
            with self.journal.restore_point(options.label):
                report.restore_point = self.journal.current_path
                try:
                    self._apply_all(entries, report, vacated, options)
                except JournalWriteError as e:
                    report.incomplete = True
                    log.error("Run stopped, restore point is incomplete: %s", e)
        finally:
            self.session.invalidate()

        if report.restore_point is not None and not report.restore_point.exists():
            report.restore_point = None
        log.info(
            "Executed: %d moved, %d sidecars, %d dirs created, %d dirs removed, %d skipped, %d errors",
            report.moved, report.sidecars_moved, report.dirs_created,
            report.dirs_removed, report.skipped, report.error_count,
        )
        return report

    def _apply_all(
        self,
        entries: list[PlanEntry],
        report: ExecutionReport,
        vacated: set[Path],
        options: ExecuteOptions,
    ) -> None:
        deferred = []
        for entry in entries:
            if not self._apply_entry(entry, report, vacated, defer=True):
                deferred.append(entry)

        # Targets freed by earlier moves in this run
        for entry in deferred:
            self._apply_entry(entry, report, vacated, defer=False)

        if options.prune_empty_dirs:
            self.prune_empty_dirs(vacated, report)

    # -- per entry -------------------------------------------------

    def _apply_entry(
        self,
        entry: PlanEntry,
        report: ExecutionReport,
        vacated: set[Path],
        defer: bool,
    ) -> bool:
        """Move one entry.  Returns False only when it was deferred."""
        source = self.session.ensure_within_root(entry.file.path)
        target = self.session.ensure_within_root(entry.target)

        if not os.path.lexists(source):
            self._fail(report, source, "Source file no longer exists")
            return True

        if os.path.lexists(target) and not _same_file(source, target):
            if entry.category in (Category.DUPLICATE, Category.UNMATCHED):
                target = unique_path(target)
            elif defer:
                log.debug("Deferring %s: %s exists", source.name, target)
                return False
            else:
                report.skipped += 1
                self._fail(report, source, f"Destination file already exists: {target}")
                return True

        try:
            self.make_dirs(target.parent, report)
            shutil.move(str(source), str(target))
        except OSError as e:
            self._fail(report, source, str(e))
            return True

        report.moved += 1
        vacated.add(source.parent)
        self._record(report, source, MOVE, from_path=source, to_path=target)
        log.info("Moved %s -> %s", self.session.relative(source), self.session.relative(target))

        self.move_sidecars(source, target, report)
        return True

    def move_sidecars(self, original: Path, final: Path, report: ExecutionReport) -> None:
        """Move subtitles and thumbnails of a video that has just moved."""
        for move in plan_sidecar_moves(original, final, self.thumbnail_style):
            source = self.session.ensure_within_root(move.source)
            target = self.session.ensure_within_root(move.target)
            if os.path.lexists(target):
                report.skipped += 1
                log.warning("Sidecar %s not moved: %s exists", source.name, target.name)
                continue
            try:
                shutil.move(str(source), str(target))
            except OSError as e:
                self._fail(report, source, str(e))
                continue
            report.sidecars_moved += 1
            self._record(report, source, MOVE, from_path=source, to_path=target)
            log.debug("Moved %s %s -> %s", move.kind, source.name, target.name)

    # -- directories -----------------------------------------------

    def make_dirs(self, directory: Path, report: ExecutionReport) -> None:
        """Create *directory* and missing parents, journaling each one."""
        directory = self.session.ensure_within_root(directory)
        missing = []
        current = directory
        while not current.exists() and current != self.session.root:
            missing.append(current)
            current = current.parent
        for path in reversed(missing):
            path.mkdir()
            report.dirs_created += 1
            self._record(report, path, CREATE_DIR, path=path)
            log.debug("Created %s", self.session.relative(path))

    def prune_empty_dirs(self, directories: set[Path], report: ExecutionReport) -> None:
        """Remove directories emptied by this run, walking up to the root."""
        protected = {self.session.root, self.session.cleanup_dir.resolve()}
        # Deepest first so a parent is checked after its children
        for directory in sorted(directories, key=lambda p: len(p.parts), reverse=True):
            current = directory
            while current not in protected and self.session.root in current.parents:
                if self.session.is_excluded(current):
                    break
                try:
                    if any(current.iterdir()):
                        break
                    current.rmdir()
                except FileNotFoundError:
                    current = current.parent
                    continue
                except OSError as e:
                    log.warning("Could not remove %s: %s", current, e)
                    break
                report.dirs_removed += 1
                self._record(report, current, DELETE_DIR, path=current)
                log.debug("Removed empty %s", self.session.relative(current))
                current = current.parent

    def _record(self, report: ExecutionReport, subject: Path, op_type: str, **paths) -> None:
        try:
            self.journal.record_op(op_type, **paths)
        except OSError as e:
            self._fail(report, subject, f"Done but not journaled, undo will miss it: {e}")
            raise JournalWriteError(f"{op_type} {subject}: {e}") from e

    def _fail(self, report: ExecutionReport, path: Path, message: str) -> None:
        report.errors.append(ExecutionError(path, message))
        log.error("%s: %s", path.name, message)


def _same_file(a: Path, b: Path) -> bool:
    """True when *a* and *b* are one directory entry (case-only renames)."""
    try:
        first, second = os.lstat(a), os.lstat(b)
    except OSError:
        return False
    return (first.st_dev, first.st_ino) == (second.st_dev, second.st_ino)


def unique_path(path: Path) -> Path:
    """A free variant of *path*, suffixed with a timestamp."""
    stamp = int(datetime.now().timestamp())
    candidate = path.with_name(f"{path.stem}_{stamp}{path.suffix}")
    counter = 1
    while os.path.lexists(candidate):
        candidate = path.with_name(f"{path.stem}_{stamp}_{counter}{path.suffix}")
        counter += 1
    return candidate
