"""Plan builder: classifies every eligible video file exactly once.

Each file gets one :class:`PlanEntry` in an arena owned by the
:class:`Plan`.  An entry carries a single category tag, so moving a file
between report buckets is a tag update and a file can never sit in two
buckets at once.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable

from .duplicates import find_duplicates
from .formatter import NamingFormat, series_folder
from .matcher import Matcher, MatchStrategy
from .models import (
    RENAME_COLLISION,
    CandidateFile,
    Category,
    DuplicatePair,
    MatchResult,
)
from .session import Session

log = logging.getLogger(__name__)

# Categories whose entries end up at a computed series-folder target
PLACED_CATEGORIES = (Category.PROPOSED_RENAME, Category.DISCREPANCY, Category.SKIPPED)


@dataclass
class PlanEntry:
    """One file in the plan arena."""
    id: int
    file: CandidateFile
    category: Category
    match: MatchResult | None = None
    duplicate: DuplicatePair | None = None
    target: Path | None = None

    @property
    def needs_move(self) -> bool:
        return (
            self.category is not Category.SKIPPED
            and self.target is not None
            and self.target != self.file.path
        )


class Plan:
    """Arena of plan entries indexed by id."""

    def __init__(self) -> None:
        self.entries: list[PlanEntry] = []

    def __len__(self) -> int:
        return len(self.entries)

    def __iter__(self):
        return iter(self.entries)

    def add(self, file: CandidateFile, category: Category) -> PlanEntry:
        entry = PlanEntry(id=len(self.entries), file=file, category=category)
        self.entries.append(entry)
        return entry

    def get(self, entry_id: int) -> PlanEntry:
        return self.entries[entry_id]

    def set_category(self, entry_id: int, category: Category, target: Path | None = None) -> PlanEntry:
        """Move an entry into *category*, replacing whatever it was in."""
        entry = self.entries[entry_id]
        if entry.category is not category:
            log.debug("%s: %s -> %s", entry.file.name, entry.category.value, category.value)
        entry.category = category
        if target is not None:
            entry.target = target
        return entry

    def in_category(self, category: Category) -> list[PlanEntry]:
        return [e for e in self.entries if e.category is category]

    @property
    def proposed_renames(self) -> list[PlanEntry]:
        return self.in_category(Category.PROPOSED_RENAME)

    @property
    def discrepancies(self) -> list[PlanEntry]:
        return self.in_category(Category.DISCREPANCY)

    @property
    def unmatched(self) -> list[PlanEntry]:
        return self.in_category(Category.UNMATCHED)

    @property
    def skipped(self) -> list[PlanEntry]:
        return self.in_category(Category.SKIPPED)

    @property
    def duplicates(self) -> list[PlanEntry]:
        return self.in_category(Category.DUPLICATE)

    def counts(self) -> dict[Category, int]:
        counts = {category: 0 for category in Category}
        for entry in self.entries:
            counts[entry.category] += 1
        return counts

    def needs_action(self) -> bool:
        """True when anything other than skipped files is in the plan."""
        return any(e.category is not Category.SKIPPED for e in self.entries)


class PlanBuilder:
    """Builds a :class:`Plan` for the files under a session root.

    Usage::

        builder = PlanBuilder(session, matcher, NamingFormat.SERIES_CODE_TITLE)
        plan = builder.build()
    """

    def __init__(
        self,
        session: Session,
        matcher: Matcher,
        naming_format: NamingFormat = NamingFormat.SERIES_CODE_TITLE,
    ):
        self.session = session
        self.matcher = matcher
        self.naming_format = naming_format

    # -- targets ---------------------------------------------------

    def duplicate_target(self, file: CandidateFile) -> Path:
        return self.session.duplicates_dir / self.session.relative(file.path)

    def unknown_target(self, file: CandidateFile) -> Path:
        return self.session.unknown_dir / self.session.relative(file.path)

    # -- building --------------------------------------------------

    def build(self, files: Iterable[CandidateFile] | None = None) -> Plan:
        """
        Classify every eligible file.

        Args:
            files: Files to plan; defaults to the session's video listing

        Returns:
            The plan, with rename conflicts already resolved
        """
        if files is None:
            files = [CandidateFile.from_path(p) for p in self.session.video_files()]
        else:
            files = [f for f in files if not self.session.is_excluded(f.path)]

        pairs = find_duplicates(files)
        relocated = {pair.relocated.path: pair for pair in pairs}

        plan = Plan()
        for file in files:
            pair = relocated.get(file.path)
            if pair is not None:
                entry = plan.add(file, Category.DUPLICATE)
                entry.duplicate = pair
                entry.target = self.duplicate_target(file)
                continue

            entry = plan.add(file, Category.UNMATCHED)
            self.classify(plan, entry, self.matcher.match(file))

        self.resolve_rename_conflicts(plan)

        counts = plan.counts()
        log.info(
            "Plan: %d rename, %d discrepancy, %d unmatched, %d skipped, %d duplicate",
            counts[Category.PROPOSED_RENAME], counts[Category.DISCREPANCY],
            counts[Category.UNMATCHED], counts[Category.SKIPPED],
            counts[Category.DUPLICATE],
        )
        return plan

    def target_for(self, result: MatchResult) -> Path:
        """Name the matched file and return where it belongs."""
        series = self.session.series_name
        result.proposed_name = self.naming_format.render(
            result.episode, result.file.extension, series, original=result.file.name,
        )
        result.target_folder = series_folder(result.episode, series)
        return self.session.root / result.target_folder / result.proposed_name

    def placed_match(self, file: CandidateFile) -> MatchResult | None:
        """
        Identify an already organized file the configured strategy missed.

        Code-less names defeat STRICT and NUMBER-less names defeat NUMBER.
        The file is matched by title and code instead, and the result is
        kept only when the file already sits at that episode's target.
        """
        if self.matcher.strategy is MatchStrategy.TITLE:
            return None
        result = self.matcher.match(file, MatchStrategy.TITLE)
        if result.episode is None or self.target_for(result) != file.path:
            return None
        return result

    def classify(self, plan: Plan, entry: PlanEntry, result: MatchResult) -> None:
        """Route a match result into exactly one category."""
        entry.match = result
        file = entry.file

        if result.episode is None:
            placed = self.placed_match(file)
            if placed is not None:
                entry.match = placed
                log.debug("%s: already in place", file.name)
                plan.set_category(entry.id, Category.SKIPPED, file.path)
                return
            plan.set_category(entry.id, Category.UNMATCHED, self.unknown_target(file))
            return

        target = self.target_for(result)

        if result.has_discrepancy:
            plan.set_category(entry.id, Category.DISCREPANCY, target)
        elif target == file.path:
            plan.set_category(entry.id, Category.SKIPPED, target)
        else:
            plan.set_category(entry.id, Category.PROPOSED_RENAME, target)

    def resolve_rename_conflicts(self, plan: Plan) -> int:
        """
        Divert all but one file from every shared target path.

        Files already sitting at the target win; otherwise the first file
        in plan order stays.  The others become duplicates tagged
        "Rename Collision" and are moved aside instead of overwriting.

        Returns:
            Number of entries diverted
        """
        groups: dict[str, list[PlanEntry]] = {}
        for entry in plan.entries:
            if entry.category in PLACED_CATEGORIES and entry.target is not None:
                groups.setdefault(str(entry.target).casefold(), []).append(entry)

        diverted = 0
        for members in groups.values():
            if len(members) < 2:
                continue
            keeper = next(
                (m for m in members if m.category is Category.SKIPPED),
                members[0],
            )
            for member in members:
                if member is keeper:
                    continue
                member.duplicate = DuplicatePair(
                    file_a=member.file,
                    file_b=None,
                    kept=keeper.file,
                    reason=RENAME_COLLISION,
                )
                plan.set_category(member.id, Category.DUPLICATE, self.duplicate_target(member.file))
                log.info("Rename collision: %s diverted, %s keeps %s",
                         member.file.name, keeper.file.name, keeper.target.name)
                diverted += 1
        return diverted
