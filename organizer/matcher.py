"""Match files against the episode reference index.

Four strategies are available:

- ``TITLE``: title first, episode code as fallback
- ``CODE``: episode code first, title as fallback
- ``STRICT``: code and title must agree
- ``NUMBER``: overall Number only

Whatever strategy produced the match, the extracted title, Number and
code are then compared with the matched reference so that disagreements
surface as discrepancies instead of being silently accepted.
"""
from __future__ import annotations

import logging
from enum import Enum

from .cleaner import part_number, remove_part_text
from .codes import code_season, codes_equivalent, join_codes, legacy_equivalent, normalize_code
from .index import EpisodeIndex, normalize_number, normalize_title
from .models import (
    CandidateFile,
    CompositeEpisode,
    Discrepancy,
    DiscrepancyKind,
    Episode,
    EpisodeRecord,
    MatchResult,
)
from .parser import extract_episode_codes, extract_episode_number, extract_title

log = logging.getLogger(__name__)


class MatchStrategy(Enum):
    TITLE = "title"
    CODE = "code"
    STRICT = "strict"
    NUMBER = "number"

    @classmethod
    def from_value(cls, value: "str | MatchStrategy") -> "MatchStrategy":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ValueError(
                f"Unknown match strategy {value!r}; "
                f"expected one of {', '.join(s.value for s in cls)}"
            ) from None


# ------------------------------------------------------------------
# Composite episodes
# ------------------------------------------------------------------

def new_composite_episode(codes: list[str], index: EpisodeIndex) -> CompositeEpisode | None:
    """
    Build a composite episode for a multi-episode filename.

    Args:
        codes: Two or more canonical codes sharing one season
        index: Reference index

    Returns:
        The composite, or None when the codes span seasons or fewer than
        two of them resolve.
    """
    if len(codes) < 2:
        return None
    seasons = {code_season(c) for c in codes}
    if len(seasons) != 1 or None in seasons:
        return None

    resolved: list[tuple[str, EpisodeRecord]] = []
    for code in codes:
        record = index.lookup_code(code)
        if record is not None:
            resolved.append((normalize_code(code), record))

    if len(resolved) < 2:
        return None

    joined = join_codes([code for code, _ in resolved])
    if joined is None:
        return None

    parts = tuple(record for _, record in resolved)
    air_dates = {record.air_date for record in parts}
    air_date = air_dates.pop() if len(air_dates) == 1 else ""

    return CompositeEpisode(
        number=parts[0].number,
        title=" + ".join(record.title for record in parts),
        code=joined,
        air_date=air_date,
        parts=parts,
    )


def _episode_titles(episode: Episode) -> list[str]:
    """Every normalized title an episode answers to."""
    if isinstance(episode, CompositeEpisode):
        titles = [episode.title, *(p.title for p in episode.parts)]
    else:
        titles = [episode.title, *episode.alt_titles]
    return [t for t in (normalize_title(x) for x in titles) if t]


def _reference_titles(episode: Episode) -> list[str]:
    """Titles an extracted title must equal to count as clean.

    A composite only answers to its joined title.
    """
    if isinstance(episode, CompositeEpisode):
        return [normalize_title(episode.title)]
    return _episode_titles(episode)


def _titles_overlap(a: str, b: str) -> bool:
    return bool(a) and bool(b) and (a in b or b in a)


# ------------------------------------------------------------------
# Matcher
# ------------------------------------------------------------------

class Matcher:
    """Pairs candidate files with reference episodes.

    Usage::

        matcher = Matcher(index, "Thomas & Friends (1984)", MatchStrategy.TITLE)
        result = matcher.match(candidate)
    """

    def __init__(
        self,
        index: EpisodeIndex,
        series_name: str | None = None,
        strategy: MatchStrategy | str = MatchStrategy.TITLE,
        suppress_number_mismatch: bool = False,
    ):
        self.index = index
        self.series_name = series_name
        self.strategy = MatchStrategy.from_value(strategy)
        self.suppress_number_mismatch = suppress_number_mismatch

    # -- public API ------------------------------------------------

    def match(self, file: CandidateFile, strategy: MatchStrategy | str | None = None) -> MatchResult:
        """Match one file and attach any discrepancies.

        *strategy* replaces the matcher's own strategy for this call.
        """
        strategy = self.strategy if strategy is None else MatchStrategy.from_value(strategy)
        title = extract_title(file.name, self.series_name)
        codes = extract_episode_codes(file.name)
        number = extract_episode_number(file.name, self.index)

        if strategy is MatchStrategy.TITLE:
            episode = self._match_title_priority(title, codes)
        elif strategy is MatchStrategy.CODE:
            episode = self._match_code_priority(title, codes)
        elif strategy is MatchStrategy.STRICT:
            episode = self._match_strict(title, codes)
        else:
            episode = self.index.lookup_number(number)

        result = MatchResult(
            file=file,
            episode=episode,
            extracted_title=title,
            extracted_number=number,
            extracted_codes=codes,
            strategy=strategy.value,
        )

        if episode is None:
            log.debug("No match for %s (title=%r codes=%r number=%r)",
                      file.name, title, codes, number)
            return result

        result.discrepancies = self.detect_discrepancies(title, number, codes, episode)
        log.debug("Matched %s -> %s %r%s", file.name, episode.code, episode.title,
                  " (discrepant)" if result.discrepancies else "")
        return result

    def lookup_codes(self, codes: list[str] | None) -> Episode | None:
        """Resolve extracted codes, building a composite for multi-episode names."""
        if not codes:
            return None
        if len(codes) >= 2:
            composite = new_composite_episode(codes, self.index)
            if composite is not None:
                return composite
        for code in codes:
            record = self.index.lookup_code(code)
            if record is not None:
                return record
        return None

    def lookup_composite_title(self, title: str) -> CompositeEpisode | None:
        """
        Resolve a joined title ("Thomas' Train + Thomas & the Trucks").

        Every " + " separated piece must be an exact indexed title, and the
        pieces must form a valid composite.
        """
        if "+" not in title:
            return None
        records = [self.index.lookup_title(piece) for piece in title.split("+")]
        if len(records) < 2 or any(record is None for record in records):
            return None
        return new_composite_episode([record.code for record in records], self.index)

    def lookup_title(self, title: str, codes: list[str] | None = None) -> EpisodeRecord | None:
        """
        Resolve an extracted title.

        Exact normalized lookup first.  Otherwise every indexed title that
        contains, or is contained in, the extracted one is a candidate.
        Candidates are narrowed by "Part N" agreement, then by episode
        code agreement; remaining ties go to the candidate whose title
        length is closest to the extracted title, then to the smallest
        code.
        """
        norm = normalize_title(title)
        if not norm:
            return None

        exact = self.index.by_title.get(norm)
        if exact is not None:
            return exact

        wanted_part = part_number(title)
        # Containment is checked on the title without its part marker
        bare = normalize_title(remove_part_text(title)) if wanted_part is not None else norm
        if not bare:
            return None

        candidates: dict[int, tuple[str, EpisodeRecord]] = {}
        for key, record in self.index.title_items():
            if _titles_overlap(bare, key):
                current = candidates.get(id(record))
                if current is None or abs(len(key) - len(bare)) < abs(len(current[0]) - len(bare)):
                    candidates[id(record)] = (key, record)

        if not candidates:
            return None

        pool = list(candidates.values())

        if wanted_part is not None:
            same_part = [c for c in pool if part_number(c[1].title) == wanted_part]
            if same_part:
                pool = same_part

        if codes:
            agreeing = [
                c for c in pool
                if any(codes_equivalent(code, c[1].code) for code in codes)
            ]
            if agreeing:
                pool = agreeing

        if len(pool) > 1:
            log.debug("Ambiguous title %r: %d candidates", title, len(pool))
        pool.sort(key=lambda c: (abs(len(c[0]) - len(bare)), c[1].code))
        return pool[0][1]

    # -- strategies ------------------------------------------------

    def _lookup_any_title(self, title: str, codes: list[str] | None) -> Episode | None:
        composite = self.lookup_composite_title(title)
        if composite is not None:
            return composite
        return self.lookup_title(title, codes)

    def _match_title_priority(self, title: str | None, codes: list[str] | None) -> Episode | None:
        if codes and len(codes) >= 2:
            composite = new_composite_episode(codes, self.index)
            if composite is not None and (
                not title or normalize_title(title) == normalize_title(composite.title)
            ):
                return composite
        if title:
            episode = self._lookup_any_title(title, codes)
            if episode is not None:
                return episode
        # No title, or a title nothing in the index contains
        return self.lookup_codes(codes)

    def _match_code_priority(self, title: str | None, codes: list[str] | None) -> Episode | None:
        episode = self.lookup_codes(codes)
        if episode is not None:
            return episode
        if title:
            return self._lookup_any_title(title, codes)
        return None

    def _match_strict(self, title: str | None, codes: list[str] | None) -> Episode | None:
        episode = self.lookup_codes(codes)
        if episode is None or not title:
            return None
        norm = normalize_title(title)
        if any(_titles_overlap(norm, t) for t in _episode_titles(episode)):
            return episode
        return None

    # -- discrepancies ---------------------------------------------

    def detect_discrepancies(
        self,
        title: str | None,
        number: str | None,
        codes: list[str] | None,
        episode: Episode,
    ) -> list[Discrepancy]:
        """
        Compare extracted values with the matched episode.

        Args:
            title: Extracted title (None skips the title check)
            number: Extracted Number (None skips the number check)
            codes: Extracted codes (None skips the code check)
            episode: The matched record or composite

        Returns:
            One :class:`Discrepancy` per disagreeing field.
        """
        found: list[Discrepancy] = []

        if title:
            norm = normalize_title(title)
            if norm not in _reference_titles(episode):
                found.append(Discrepancy(DiscrepancyKind.TITLE, title, episode.title))

        if number and episode.number:
            suppressed = (
                self.suppress_number_mismatch
                and self.strategy is not MatchStrategy.NUMBER
            )
            if not suppressed and normalize_number(number) != normalize_number(episode.number):
                found.append(Discrepancy(DiscrepancyKind.NUMBER, number, episode.number))

        if codes:
            if not self._codes_agree(codes, episode):
                found.append(Discrepancy(DiscrepancyKind.CODE, "+".join(codes), episode.code))

        return found

    @staticmethod
    def _codes_agree(codes: list[str], episode: Episode) -> bool:
        if isinstance(episode, CompositeEpisode):
            joined = join_codes(codes)
            return joined is not None and normalize_code(joined) == normalize_code(episode.code)
        if len(codes) != 1:
            return False
        code = normalize_code(codes[0])
        reference = normalize_code(episode.code)
        return code == reference or legacy_equivalent(code) == reference
