"""Restore-point journal backed by JSONL files.

Every top-level mutating operation writes one journal file under
``cleanup/restore_points/``.  The first line is a header, each further
line records one mutation that has just been performed.  Undo replays the
newest journal in reverse and deletes it once fully reverted, so the next-newest
file becomes the one to undo.
"""
from __future__ import annotations

import json
import logging
import os
import re
import shutil
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Iterator

from .session import PathSafetyError, Session

log = logging.getLogger(__name__)

MOVE = "move"
CREATE_DIR = "create_dir"
DELETE_DIR = "delete_dir"
META = "meta"
ENTRY_TYPES = (MOVE, CREATE_DIR, DELETE_DIR)

FILENAME_TIME_FORMAT = "%Y%m%d_%H%M%S"
JOURNAL_SUFFIX = ".jsonl"


class JournalError(Exception):
    """The journal cannot be written or there is nothing to undo."""


# ---------------------------------------------------------------------------
# Data models
# ---------------------------------------------------------------------------

@dataclass
class JournalEntry:
    """One recorded mutation."""
    type: str
    from_path: str | None = None
    to_path: str | None = None
    path: str | None = None
    timestamp: str = ""

    def to_json(self) -> dict[str, Any]:
        return {
            "type": self.type,
            "from": self.from_path,
            "to": self.to_path,
            "path": self.path,
            "timestamp": self.timestamp,
        }

    @classmethod
    def from_json(cls, data: dict[str, Any]) -> "JournalEntry":
        return cls(
            type=data["type"],
            from_path=data.get("from"),
            to_path=data.get("to"),
            path=data.get("path"),
            timestamp=data.get("timestamp", ""),
        )


@dataclass
class RestorePoint:
    """One journal file and its entries, in recorded order."""
    label: str
    created: str
    path: Path
    entries: list[JournalEntry] = field(default_factory=list)


@dataclass
class UndoFailure:
    entry: JournalEntry
    reason: str


@dataclass
class UndoReport:
    """What an undo did, entry by entry."""
    restore_point: RestorePoint
    reverted: int = 0
    skipped: int = 0
    failures: list[UndoFailure] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures


def sanitize_label(label: str) -> str:
    """Make *label* safe for use in a journal filename."""
    cleaned = re.sub(r'[^A-Za-z0-9._-]+', '-', label.strip())
    cleaned = cleaned.strip('-.')
    return cleaned[:60] or "operation"


def _now() -> datetime:
    return datetime.now().astimezone()


# ---------------------------------------------------------------------------
# RestorePointJournal
# ---------------------------------------------------------------------------

class RestorePointJournal:
    """Append-only journal with an idle/active state.

    Usage::

        journal = RestorePointJournal(session)
        with journal.restore_point("apply"):
            path.rename(target)
            journal.record_op("move", from_path=path, to_path=target)
        report = journal.undo_latest()
    """

    def __init__(self, session: Session, directory: Path | None = None):
        self.session = session
        self.directory = Path(directory) if directory is not None else session.restore_points_dir
        self._current: Path | None = None
        self._entry_count = 0

    # -- state -----------------------------------------------------

    @property
    def active(self) -> bool:
        return self._current is not None

    @property
    def current_path(self) -> Path | None:
        return self._current

    def begin(self, label: str) -> Path:
        """
        Open a new restore point and make it the target of :meth:`record_op`.

        Returns:
            Path of the new journal file

        Raises:
            JournalError: If a restore point is already active or the
                journal file cannot be created
        """
        if self._current is not None:
            raise JournalError(f"Restore point already active: {self._current.name}")

        try:
            self.directory.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise JournalError(f"Cannot create journal directory {self.directory}: {e}") from e

        created = _now()
        name = sanitize_label(label)
        path = self.directory / f"{created.strftime(FILENAME_TIME_FORMAT)}-{name}{JOURNAL_SUFFIX}"
        # A second operation within the same second gets a later stamp so
        # that filename order stays chronological.
        while path.exists() or self._stamp_taken(path):
            created += timedelta(seconds=1)
            path = self.directory / f"{created.strftime(FILENAME_TIME_FORMAT)}-{name}{JOURNAL_SUFFIX}"

        header = {"type": META, "timestamp": created.isoformat(timespec="seconds"), "label": label}
        try:
            with open(path, "x", encoding="utf-8") as f:
                f.write(json.dumps(header, ensure_ascii=False) + "\n")
        except OSError as e:
            raise JournalError(f"Cannot create journal {path}: {e}") from e

        self._current = path
        self._entry_count = 0
        log.info("Restore point started: %s", path.name)
        return path

    def _stamp_taken(self, path: Path) -> bool:
        stamp = path.name[: len("YYYYmmdd_HHMMSS")]
        return any(p.name.startswith(stamp) for p in self.directory.glob(f"*{JOURNAL_SUFFIX}"))

    def record_op(
        self,
        op_type: str,
        from_path: str | Path | None = None,
        to_path: str | Path | None = None,
        path: str | Path | None = None,
    ) -> JournalEntry | None:
        """
        Append one mutation to the active restore point.

        Paths are made absolute against the working root.  Does nothing
        when no restore point is active.
        """
        if self._current is None:
            return None
        if op_type not in ENTRY_TYPES:
            raise ValueError(f"Unknown journal entry type: {op_type!r}")

        entry = JournalEntry(
            type=op_type,
            from_path=self._absolute(from_path),
            to_path=self._absolute(to_path),
            path=self._absolute(path),
            timestamp=_now().isoformat(timespec="seconds"),
        )
        with open(self._current, "a", encoding="utf-8") as f:
            f.write(json.dumps(entry.to_json(), ensure_ascii=False) + "\n")
            f.flush()
            os.fsync(f.fileno())
        self._entry_count += 1
        return entry

    def end(self) -> Path | None:
        """
        Close the active restore point.

        A restore point that recorded nothing is removed, since there is
        nothing to undo.

        Returns:
            The journal path, or None if it was empty or nothing was active
        """
        path = self._current
        if path is None:
            return None
        self._current = None
        if self._entry_count == 0:
            path.unlink(missing_ok=True)
            log.info("Restore point %s recorded nothing; removed", path.name)
            return None
        log.info("Restore point closed: %s (%d entries)", path.name, self._entry_count)
        return path

    @contextmanager
    def restore_point(self, label: str) -> Iterator["RestorePointJournal"]:
        self.begin(label)
        try:
            yield self
        finally:
            self.end()

    def _absolute(self, value: str | Path | None) -> str | None:
        if value is None:
            return None
        p = Path(value)
        if not p.is_absolute():
            p = self.session.root / p
        return os.path.normpath(str(p))

    # -- reading ---------------------------------------------------

    def journal_files(self) -> list[Path]:
        """Journal files, newest first (by filename)."""
        if not self.directory.is_dir():
            return []
        return sorted(self.directory.glob(f"*{JOURNAL_SUFFIX}"), key=lambda p: p.name, reverse=True)

    def load(self, path: Path) -> RestorePoint:
        """Read a journal file; malformed lines are logged and skipped."""
        label = path.stem
        created = ""
        entries: list[JournalEntry] = []
        with open(path, "r", encoding="utf-8") as f:
            for lineno, line in enumerate(f, start=1):
                line = line.strip()
                if not line:
                    continue
                try:
                    data = json.loads(line)
                except json.JSONDecodeError as e:
                    log.warning("%s:%d: unreadable journal line: %s", path.name, lineno, e)
                    continue
                if not isinstance(data, dict):
                    log.warning("%s:%d: journal line is not an object", path.name, lineno)
                    continue
                if data.get("type") == META:
                    label = data.get("label", label)
                    created = data.get("timestamp", "")
                elif data.get("type") in ENTRY_TYPES:
                    entries.append(JournalEntry.from_json(data))
                else:
                    log.warning("%s:%d: unknown entry type %r", path.name, lineno, data.get("type"))
        return RestorePoint(label=label, created=created, path=path, entries=entries)

    def latest(self) -> RestorePoint | None:
        """The most recent restore point not yet consumed by undo."""
        for path in self.journal_files():
            if path == self._current:
                continue
            return self.load(path)
        return None

    def list_restore_points(self) -> list[RestorePoint]:
        return [self.load(p) for p in self.journal_files() if p != self._current]

    # -- undo ------------------------------------------------------

    def undo_latest(self) -> UndoReport:
        """
        Reverse the most recent restore point.

        Entries are replayed newest first.  A failing entry is reported
        and skipped; the rest are still attempted.  The journal file is
        deleted once every entry has been reverted.  Otherwise it is
        rewritten to hold only the entries that were not, so the restore
        point remains and undo can be retried.

        Raises:
            JournalError: If a restore point is active or none exists
            PathSafetyError: If an entry points outside the working root
        """
        if self._current is not None:
            raise JournalError("Cannot undo while a restore point is active")
        point = self.latest()
        if point is None:
            raise JournalError("No restore point to undo")

        report = UndoReport(restore_point=point)
        log.info("Undoing %s (%d entries)", point.path.name, len(point.entries))

        try:
            for entry in reversed(point.entries):
                try:
                    reason = self._revert(entry)
                except PathSafetyError:
                    raise
                except OSError as e:
                    reason = str(e)
                    report.failures.append(UndoFailure(entry, reason))
                    log.error("Undo %s failed: %s", entry.type, reason)
                    continue
                if reason is None:
                    report.reverted += 1
                else:
                    report.skipped += 1
                    report.failures.append(UndoFailure(entry, reason))
                    log.warning("Undo %s skipped: %s", entry.type, reason)
        finally:
            self.session.invalidate()

        if report.ok:
            point.path.unlink(missing_ok=True)
        else:
            self._keep_failed(point, [failure.entry for failure in reversed(report.failures)])
        log.info("Undo complete: %d reverted, %d skipped, %d failed",
                 report.reverted, report.skipped, len(report.failures) - report.skipped)
        return report

    def _keep_failed(self, point: RestorePoint, entries: list[JournalEntry]) -> None:
        header = {"type": META, "timestamp": point.created, "label": point.label}
        lines = [header] + [entry.to_json() for entry in entries]
        try:
            with open(point.path, "w", encoding="utf-8") as f:
                for data in lines:
                    f.write(json.dumps(data, ensure_ascii=False) + "\n")
                f.flush()
                os.fsync(f.fileno())
        except OSError as e:
            raise JournalError(f"Cannot rewrite journal {point.path}: {e}") from e
        log.warning("Restore point %s kept with %d entries not undone",
                    point.path.name, len(entries))

    def _revert(self, entry: JournalEntry) -> str | None:
        """Reverse one entry.  Returns a skip reason, or None on success."""
        if entry.type == MOVE:
            if not entry.from_path or not entry.to_path:
                return "move entry without both paths"
            source = self.session.ensure_within_root(entry.to_path)
            target = self.session.ensure_within_root(entry.from_path)
            if not os.path.lexists(source):
                return f"missing source {source}"
            if os.path.lexists(target):
                return f"target already exists {target}"
            target.parent.mkdir(parents=True, exist_ok=True)
            shutil.move(str(source), str(target))
            return None

        if entry.type == DELETE_DIR:
            if not entry.path:
                return "delete_dir entry without a path"
            directory = self.session.ensure_within_root(entry.path)
            directory.mkdir(parents=True, exist_ok=True)
            return None

        if entry.type == CREATE_DIR:
            if not entry.path:
                return "create_dir entry without a path"
            directory = self.session.ensure_within_root(entry.path)
            if not directory.exists():
                return None
            if any(directory.iterdir()):
                return f"directory not empty {directory}"
            directory.rmdir()
            return None

        return f"unknown entry type {entry.type!r}"
