"""Alternate-encoding duplicate detection.

Two files are duplicates when their names differ only by an alternate
encoding marker ("Pilot.mkv" and "Pilot (Alt).mp4").  The decision is
name and size based; file contents are never read.
"""
from __future__ import annotations

import logging
from typing import Iterable

from .cleaner import strip_alt_marker
from .models import ALTERNATE_ENCODING, CandidateFile, DuplicatePair

log = logging.getLogger(__name__)


def _group_key(file: CandidateFile) -> tuple[str, bool]:
    """Grouping key (marker-less lowercase stem) and whether a marker was found."""
    stem, found = strip_alt_marker(file.stem)
    return stem.lower(), found


def choose_keeper(plain: CandidateFile, alternate: CandidateFile) -> CandidateFile:
    """The larger file is kept; on a tie the unmarked file wins."""
    if alternate.size > plain.size:
        return alternate
    return plain


def find_duplicates(files: Iterable[CandidateFile]) -> list[DuplicatePair]:
    """
    Pair files that differ only by an alternate-encoding marker.

    Args:
        files: Candidate video files

    Returns:
        One :class:`DuplicatePair` per marked file whose unmarked sibling
        is present.  ``file_a`` is the unmarked file, ``file_b`` the
        marked one.
    """
    plain: dict[str, CandidateFile] = {}
    marked: list[tuple[str, CandidateFile]] = []

    for file in files:
        key, found = _group_key(file)
        if not key:
            continue
        if found:
            marked.append((key, file))
        else:
            plain.setdefault(key, file)

    pairs = []
    for key, alternate in marked:
        original = plain.get(key)
        if original is None:
            continue
        kept = choose_keeper(original, alternate)
        pair = DuplicatePair(
            file_a=original,
            file_b=alternate,
            kept=kept,
            reason=ALTERNATE_ENCODING,
        )
        log.debug(
            "Duplicate pair: %s (%d bytes) / %s (%d bytes), keeping %s",
            original.name, original.size, alternate.name, alternate.size, kept.name,
        )
        pairs.append(pair)

    return pairs
