"""Session context shared by planning, execution and undo.

One :class:`Session` replaces what would otherwise be module-level state:
the working root, the series being organized, the settings, and a
short-lived cache of the video-file listing.  Every operation that
mutates the tree must call :meth:`Session.invalidate` afterwards.
"""
from __future__ import annotations

import logging
import os
import time
from pathlib import Path
from typing import Callable

from .parser import is_video_file
from .settings import Settings

log = logging.getLogger(__name__)

RESTORE_POINTS_DIR = "restore_points"
DUPLICATES_DIR = "duplicates"
UNKNOWN_DIR = "unknown"


class PathSafetyError(Exception):
    """A mutation source or target resolves outside the working root."""


class Session:
    """Explicit context for one organizing session.

    Usage::

        session = Session(root, series_name="Thomas & Friends (1984)")
        files = session.video_files()
        session.ensure_within_root(target)
        session.invalidate()
    """

    def __init__(
        self,
        root: str | Path,
        series_name: str | None = None,
        settings: Settings | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.root = Path(root).resolve()
        self.settings = settings if settings is not None else Settings(self.root)
        self.series_name = series_name or self.settings.get("series_name") or self.root.name
        self._clock = clock
        self._listing: list[Path] | None = None
        self._listing_time = 0.0

    # -- layout ----------------------------------------------------

    @property
    def cleanup_dir(self) -> Path:
        return self.root / self.settings.get("cleanup_dir")

    @property
    def reference_dir(self) -> Path:
        return self.root / self.settings.get("reference_dir")

    @property
    def duplicates_dir(self) -> Path:
        return self.cleanup_dir / DUPLICATES_DIR

    @property
    def unknown_dir(self) -> Path:
        return self.cleanup_dir / UNKNOWN_DIR

    @property
    def restore_points_dir(self) -> Path:
        return self.cleanup_dir / RESTORE_POINTS_DIR

    # -- safety ----------------------------------------------------

    def ensure_within_root(self, path: str | Path) -> Path:
        """
        Check that *path* lies under the working root.

        Parent directories are resolved; the final component is not
        followed, so a symlinked file stays the link and is never swapped
        for its target.

        Args:
            path: Absolute path, or a path relative to the root

        Returns:
            The normalized absolute path

        Raises:
            PathSafetyError: If the path escapes the root
        """
        resolved = self._lexical(path)
        if resolved != self.root and self.root not in resolved.parents:
            raise PathSafetyError(
                f"Refusing to touch {resolved}: outside working root {self.root}"
            )
        return resolved

    def _lexical(self, path: str | Path) -> Path:
        candidate = Path(path)
        if not candidate.is_absolute():
            candidate = self.root / candidate
        candidate = Path(os.path.normpath(candidate))
        if candidate == self.root or not candidate.name:
            return candidate.resolve()
        return candidate.parent.resolve() / candidate.name

    def relative(self, path: Path) -> Path:
        """Path relative to the root (paths outside the root are refused)."""
        return self.ensure_within_root(path).relative_to(self.root)

    def is_excluded(self, path: Path) -> bool:
        """True for files under the cleanup or reference-data directories."""
        path = self._lexical(path)
        for excluded in (self.cleanup_dir.resolve(), self.reference_dir.resolve()):
            if path == excluded or excluded in path.parents:
                return True
        return False

    # -- listing cache ---------------------------------------------

    def video_files(self) -> list[Path]:
        """
        Video files under the root, outside cleanup and reference data.

        The listing is cached for ``listing_cache_seconds``.
        """
        ttl = float(self.settings.get("listing_cache_seconds") or 0)
        now = self._clock()
        if self._listing is not None and now - self._listing_time < ttl:
            return list(self._listing)

        files = []
        for dirpath, dirnames, filenames in os.walk(self.root):
            current = Path(dirpath)
            dirnames[:] = sorted(
                d for d in dirnames
                if not self.is_excluded(current / d)
            )
            for filename in sorted(filenames):
                path = current / filename
                if is_video_file(path) and path.is_file():
                    files.append(path)

        log.debug("Listed %d video files under %s", len(files), self.root)
        self._listing = files
        self._listing_time = now
        return list(files)

    def invalidate(self) -> None:
        """Drop the cached listing; call after every mutation."""
        self._listing = None
