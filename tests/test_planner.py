"""Tests for plan building and classification."""
import pytest

from organizer.formatter import NamingFormat
from organizer.matcher import Matcher, MatchStrategy
from organizer.models import RENAME_COLLISION, ALTERNATE_ENCODING, CandidateFile, Category
from organizer.planner import Plan, PlanBuilder

from conftest import SERIES, touch

SEASON_1 = "Thomas & Friends (1984)/Season 1"


@pytest.fixture
def builder(session, matcher):
    return PlanBuilder(session, matcher, NamingFormat.SERIES_CODE_TITLE)


def by_name(plan):
    return {entry.file.name: entry for entry in plan}


class TestClassification:

    def test_scenario_rename(self, root, builder):
        touch(root / "001 - Thomas & Gordon.mp4")
        plan = builder.build()
        entry = by_name(plan)["001 - Thomas & Gordon.mp4"]
        assert entry.category is Category.PROPOSED_RENAME
        assert entry.match.proposed_name == "Thomas & Friends (1984) - s01e01 - Thomas & Gordon.mp4"
        assert entry.match.target_folder == SEASON_1
        assert entry.target == root / SEASON_1 / entry.match.proposed_name
        assert not entry.match.has_discrepancy

    def test_every_file_in_exactly_one_category(self, root, builder):
        touch(root / "001 - Thomas & Gordon.mp4")
        touch(root / "002 - Thomas & Gordon.mkv")
        touch(root / "random clip.mp4")
        touch(root / "old" / "The Sad Story of Henry.mkv", size=10)
        touch(root / "old" / "The Sad Story of Henry (Alt).mkv", size=5)
        touch(root / SEASON_1 / "Thomas & Friends (1984) - s01e05 - Thomas' Train.mkv")

        plan = builder.build()
        entries = by_name(plan)

        assert len(plan) == 6
        assert sum(plan.counts().values()) == len(plan)
        assert entries["001 - Thomas & Gordon.mp4"].category is Category.PROPOSED_RENAME
        assert entries["002 - Thomas & Gordon.mkv"].category is Category.DISCREPANCY
        assert entries["random clip.mp4"].category is Category.UNMATCHED
        assert entries["The Sad Story of Henry.mkv"].category is Category.PROPOSED_RENAME
        assert entries["The Sad Story of Henry (Alt).mkv"].category is Category.DUPLICATE
        assert entries["Thomas & Friends (1984) - s01e05 - Thomas' Train.mkv"].category is Category.SKIPPED

    def test_cleanup_targets_mirror_relative_path(self, root, session, builder):
        touch(root / "random clip.mp4")
        touch(root / "old" / "Pilot.mkv", size=10)
        touch(root / "old" / "Pilot (Alt).mkv", size=5)
        entries = by_name(builder.build())

        assert entries["random clip.mp4"].target == session.unknown_dir / "random clip.mp4"
        duplicate = entries["Pilot (Alt).mkv"]
        assert duplicate.target == session.duplicates_dir / "old" / "Pilot (Alt).mkv"
        assert duplicate.duplicate.reason == ALTERNATE_ENCODING

    def test_cleanup_and_reference_dirs_are_ignored(self, root, builder):
        touch(root / "cleanup" / "unknown" / "random clip.mp4")
        touch(root / "reference" / "Thomas & Gordon.mp4")
        assert len(builder.build()) == 0

    def test_skip_format_only_moves(self, root, session, matcher):
        touch(root / "001 - Thomas & Gordon.mp4")
        plan = PlanBuilder(session, matcher, NamingFormat.SKIP).build()
        entry = plan.entries[0]
        assert entry.target == root / SEASON_1 / "001 - Thomas & Gordon.mp4"


class TestAlreadyInPlace:

    def test_title_only_name_under_number_strategy(self, root, session, index):
        matcher = Matcher(index, series_name=SERIES, strategy=MatchStrategy.NUMBER)
        builder = PlanBuilder(session, matcher, NamingFormat.TITLE_ONLY)
        touch(root / SEASON_1 / "Thomas' Train.mkv")
        touch(root / "Thomas & Gordon.mkv")

        entries = by_name(builder.build())
        placed = entries["Thomas' Train.mkv"]
        assert placed.category is Category.SKIPPED
        assert placed.match.episode.code == "s01e05"
        # Not yet organized, so the configured strategy decides
        assert entries["Thomas & Gordon.mkv"].category is Category.UNMATCHED

    def test_movie_under_strict_strategy(self, root, session, index):
        matcher = Matcher(index, series_name=SERIES, strategy=MatchStrategy.STRICT)
        builder = PlanBuilder(session, matcher, NamingFormat.SERIES_CODE_TITLE)
        movie = f"{SERIES} - Thomas and the Magic Railroad (2000)"
        touch(root / SERIES / "Movies" / movie / f"{movie}.mkv")

        plan = builder.build()
        assert [e.category for e in plan] == [Category.SKIPPED]
        assert not plan.needs_action()

    def test_misplaced_file_is_still_unmatched(self, root, session, index):
        strict = Matcher(index, series_name=SERIES, strategy=MatchStrategy.STRICT)
        builder = PlanBuilder(session, strict, NamingFormat.NUMBER_TITLE)
        touch(root / "Season 9" / "005 - Thomas' Train.mkv")
        entry = builder.build().entries[0]
        assert entry.category is Category.UNMATCHED


class TestRenameCollision:

    def test_second_file_is_diverted(self, root, session, builder):
        touch(root / "001 - Thomas & Gordon.mp4")
        touch(root / "extras" / "Thomas & Gordon.mp4")
        plan = builder.build()

        assert len(plan.proposed_renames) == 1
        assert len(plan.duplicates) == 1
        kept = plan.proposed_renames[0]
        diverted = plan.duplicates[0]
        assert kept.file.name == "001 - Thomas & Gordon.mp4"
        assert diverted.duplicate.reason == RENAME_COLLISION
        assert diverted.duplicate.file_b is None
        assert diverted.duplicate.kept == kept.file
        assert diverted.target == session.duplicates_dir / "extras" / "Thomas & Gordon.mp4"

    def test_file_already_in_place_wins(self, root, builder):
        target = root / SEASON_1 / "Thomas & Friends (1984) - s01e01 - Thomas & Gordon.mp4"
        touch(target)
        touch(root / "001 - Thomas & Gordon.mp4")
        plan = builder.build()

        assert [e.file.path for e in plan.skipped] == [target]
        assert [e.file.name for e in plan.duplicates] == ["001 - Thomas & Gordon.mp4"]
        assert plan.duplicates[0].duplicate.reason == RENAME_COLLISION

    def test_collision_between_rename_and_discrepancy(self, root, builder):
        touch(root / "001 - Thomas & Gordon.mp4")
        touch(root / "S01E02 - Thomas & Gordon.mp4")
        plan = builder.build()
        placed = plan.proposed_renames + plan.discrepancies
        assert len(placed) == 1
        assert placed[0].file.name == "001 - Thomas & Gordon.mp4"
        assert len(plan.duplicates) == 1


class TestPlan:

    def test_set_category_moves_between_buckets(self, root):
        plan = Plan()
        entry = plan.add(CandidateFile.from_path(root / "a.mkv"), Category.UNMATCHED)
        plan.set_category(entry.id, Category.DUPLICATE, root / "cleanup" / "a.mkv")
        assert plan.unmatched == []
        assert plan.duplicates == [entry]
        assert entry.target == root / "cleanup" / "a.mkv"

    def test_needs_action(self, root):
        plan = Plan()
        plan.add(CandidateFile.from_path(root / "a.mkv"), Category.SKIPPED)
        assert not plan.needs_action()
        plan.add(CandidateFile.from_path(root / "b.mkv"), Category.UNMATCHED)
        assert plan.needs_action()

    def test_explicit_file_list(self, root, builder):
        path = touch(root / "001 - Thomas & Gordon.mp4")
        plan = builder.build([CandidateFile.from_path(path)])
        assert len(plan) == 1
        assert plan.entries[0].category is Category.PROPOSED_RENAME
        assert SERIES in plan.entries[0].match.proposed_name
