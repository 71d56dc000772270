"""Data models for the organizer package."""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Mapping, Union


@dataclass(frozen=True)
class EpisodeRecord:
    """One row of the canonical episode reference list."""
    number: str
    title: str
    code: str
    air_date: str = ""
    alt_titles: tuple[str, ...] = ()

    @property
    def is_movie(self) -> bool:
        return self.code.lower().startswith("m")

    @property
    def year(self) -> int | None:
        if len(self.air_date) >= 4 and self.air_date[:4].isdigit():
            return int(self.air_date[:4])
        return None

    @classmethod
    def from_dict(cls, row: Mapping[str, Any]) -> "EpisodeRecord":
        """Build a record from a reference-list row.

        Accepts the reference column names (``Number``, ``Title``,
        ``SeriesEpisodeCode``, ``AirDate``, ``AltTitles``) as well as
        their snake_case equivalents.  ``AltTitles`` may be a list or a
        ``|``-separated string.
        """
        def pick(*keys: str) -> Any:
            for key in keys:
                if key in row and row[key] is not None:
                    return row[key]
            return ""

        alt = pick("AltTitles", "alt_titles")
        if isinstance(alt, str):
            alt_titles = tuple(a.strip() for a in alt.split("|") if a.strip())
        else:
            alt_titles = tuple(str(a).strip() for a in alt if str(a).strip())

        return cls(
            number=str(pick("Number", "number")).strip(),
            title=str(pick("Title", "title")).strip(),
            code=str(pick("SeriesEpisodeCode", "SeriesEpisode", "code")).strip().lower(),
            air_date=str(pick("AirDate", "air_date")).strip(),
            alt_titles=alt_titles,
        )


@dataclass(frozen=True)
class CompositeEpisode:
    """A synthesized match for a file holding two or more episodes."""
    number: str
    title: str
    code: str
    air_date: str
    parts: tuple[EpisodeRecord, ...]

    @property
    def is_movie(self) -> bool:
        return False

    @property
    def year(self) -> int | None:
        if len(self.air_date) >= 4 and self.air_date[:4].isdigit():
            return int(self.air_date[:4])
        return None


Episode = Union[EpisodeRecord, CompositeEpisode]


@dataclass(frozen=True)
class CandidateFile:
    """Read-only view of a file considered during planning."""
    path: Path
    name: str
    extension: str
    size: int
    directory: Path

    @property
    def stem(self) -> str:
        return Path(self.name).stem

    @classmethod
    def from_path(cls, path: str | Path) -> "CandidateFile":
        p = Path(path).absolute()
        try:
            size = p.stat().st_size
        except OSError:
            size = 0
        return cls(
            path=p,
            name=p.name,
            extension=p.suffix,
            size=size,
            directory=p.parent,
        )


class Category(Enum):
    """Report bucket a planned file belongs to."""
    PROPOSED_RENAME = "proposed_rename"
    DISCREPANCY = "discrepancy"
    UNMATCHED = "unmatched"
    SKIPPED = "skipped"
    DUPLICATE = "duplicate"


class DiscrepancyKind(Enum):
    TITLE = "title"
    NUMBER = "number"
    CODE = "code"


@dataclass(frozen=True)
class Discrepancy:
    """An extracted value that disagrees with the matched reference."""
    kind: DiscrepancyKind
    extracted: str
    reference: str

    @property
    def detail(self) -> str:
        return f"{self.kind.value}: extracted='{self.extracted}' reference='{self.reference}'"


@dataclass
class MatchResult:
    """Outcome of matching one file against the reference index."""
    file: CandidateFile
    episode: Episode | None = None
    proposed_name: str | None = None
    target_folder: str | None = None
    discrepancies: list[Discrepancy] = field(default_factory=list)
    extracted_title: str | None = None
    extracted_number: str | None = None
    extracted_codes: list[str] | None = None
    strategy: str = ""

    @property
    def matched(self) -> bool:
        return self.episode is not None

    @property
    def has_discrepancy(self) -> bool:
        return bool(self.discrepancies)

    @property
    def discrepancy_kind(self) -> DiscrepancyKind | None:
        return self.discrepancies[0].kind if self.discrepancies else None

    @property
    def discrepancy_detail(self) -> str:
        return "; ".join(d.detail for d in self.discrepancies)


ALTERNATE_ENCODING = "Alternate Encoding"
RENAME_COLLISION = "Rename Collision"


@dataclass(frozen=True)
class DuplicatePair:
    """Two files judged to be the same episode, or one rename collision."""
    file_a: CandidateFile
    file_b: CandidateFile | None
    kept: CandidateFile
    reason: str

    @property
    def relocated(self) -> CandidateFile:
        """The file that is moved aside."""
        if self.file_b is None:
            return self.file_a
        return self.file_b if self.kept == self.file_a else self.file_a
