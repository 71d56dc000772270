"""Episode reference index.

Built once per loaded reference list.  Lookups go through three tables:
normalized title (including alternate titles), overall Number, and
lowercased SeriesEpisodeCode.
"""
from __future__ import annotations

import logging
import re
from typing import Any, Iterable, Iterator, Mapping

from .codes import legacy_equivalent, normalize_code
from .models import EpisodeRecord

log = logging.getLogger(__name__)


def normalize_title(title: str | None) -> str:
    """Normalize a title for comparison.

    Curly apostrophes become straight ones, ``&`` reads as ``and``,
    hyphens become spaces, then everything except letters, digits and
    spaces is dropped and whitespace is collapsed.
    """
    if not title:
        return ""
    text = title.replace("’", "'").replace("‘", "'")
    text = text.replace("&", " and ")
    text = re.sub(r'[-‐-―]', ' ', text)
    text = text.lower()
    text = re.sub(r'[^\w\s]|_', '', text)
    return re.sub(r'\s+', ' ', text).strip()


def normalize_number(number: str | None) -> str:
    """Comparison key for episode Numbers: ``"001"`` and ``"1"`` agree."""
    if not number:
        return ""
    number = number.strip()
    whole, dot, frac = number.partition(".")
    if whole.isdigit():
        whole = whole.lstrip("0") or "0"
    return f"{whole}{dot}{frac}"


def load_records(rows: Iterable[Mapping[str, Any]]) -> list[EpisodeRecord]:
    """Turn reference-list rows into records, dropping rows without a title."""
    records = []
    for row in rows:
        record = EpisodeRecord.from_dict(row)
        if not record.title:
            log.debug("Skipping reference row without a title: %r", row)
            continue
        records.append(record)
    return records


class EpisodeIndex:
    """Lookup tables over a list of :class:`EpisodeRecord`.

    Later records whose normalized title collides with an earlier one
    replace it in the title table.
    """

    def __init__(self, records: Iterable[EpisodeRecord]):
        self.records: list[EpisodeRecord] = list(records)
        self.by_title: dict[str, EpisodeRecord] = {}
        self.by_number: dict[str, EpisodeRecord] = {}
        self.by_code: dict[str, EpisodeRecord] = {}

        for record in self.records:
            for title in (record.title, *record.alt_titles):
                key = normalize_title(title)
                if key:
                    self.by_title[key] = record
            if record.number:
                self.by_number[record.number] = record
            if record.code:
                self.by_code[normalize_code(record.code)] = record

        log.debug(
            "Indexed %d records (%d titles, %d numbers, %d codes)",
            len(self.records), len(self.by_title),
            len(self.by_number), len(self.by_code),
        )

    def __len__(self) -> int:
        return len(self.records)

    def title_items(self) -> Iterator[tuple[str, EpisodeRecord]]:
        return iter(self.by_title.items())

    def lookup_title(self, title: str | None) -> EpisodeRecord | None:
        return self.by_title.get(normalize_title(title))

    def lookup_number(self, number: str | None) -> EpisodeRecord | None:
        if not number:
            return None
        record = self.by_number.get(number.strip())
        if record is not None:
            return record
        key = normalize_number(number)
        for known, record in self.by_number.items():
            if normalize_number(known) == key:
                return record
        return None

    def has_number(self, number: str) -> bool:
        return number in self.by_number

    def lookup_code(self, code: str | None) -> EpisodeRecord | None:
        """Resolve a code, falling back to its legacy counterpart."""
        if not code:
            return None
        code = normalize_code(code)
        record = self.by_code.get(code)
        if record is not None:
            return record
        legacy = legacy_equivalent(code)
        if legacy:
            return self.by_code.get(legacy)
        return None
