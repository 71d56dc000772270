"""Tests for the matcher: strategies, composites and discrepancies."""
import pytest

from organizer.matcher import Matcher, MatchStrategy, new_composite_episode
from organizer.models import CompositeEpisode, DiscrepancyKind

from conftest import SERIES, candidate


def kinds(result):
    return {d.kind for d in result.discrepancies}


class TestTitleStrategy:

    def test_exact_title(self, matcher):
        result = matcher.match(candidate("001 - Thomas & Gordon.mp4"))
        assert result.episode.code == "s01e01"
        assert not result.has_discrepancy
        assert result.strategy == "title"

    def test_substring_title_is_flagged(self, matcher):
        result = matcher.match(candidate("Sad Story of Henry.mkv"))
        assert result.episode.code == "s01e03"
        assert kinds(result) == {DiscrepancyKind.TITLE}

    def test_alt_title(self, matcher):
        result = matcher.match(candidate("Gordon's Rescue.mkv"))
        assert result.episode.code == "s01e04"
        assert not result.has_discrepancy

    def test_part_marker_preference(self, matcher):
        result = matcher.match(candidate("Henry's Sneeze (Pt. II).mkv"))
        assert result.episode.code == "s02e11"

    def test_code_breaks_title_tie(self, matcher):
        result = matcher.match(candidate("S01E06 - Thomas.mkv"))
        assert result.episode.code == "s01e06"

    def test_ambiguous_title_is_deterministic(self, matcher):
        first = matcher.match(candidate("Thomas.mkv"))
        second = matcher.match(candidate("Thomas.mkv"))
        assert first.episode is second.episode
        assert first.episode.code == "s01e05"

    def test_no_title_falls_back_to_code(self, matcher):
        result = matcher.match(candidate("S01E02.mkv"))
        assert result.episode.code == "s01e02"
        assert not result.has_discrepancy

    def test_unmatched(self, matcher):
        result = matcher.match(candidate("random clip.mp4"))
        assert result.episode is None
        assert not result.matched


class TestCodeStrategy:

    @pytest.fixture
    def code_matcher(self, index):
        return Matcher(index, series_name=SERIES, strategy=MatchStrategy.CODE)

    def test_code_wins_over_title(self, code_matcher):
        result = code_matcher.match(candidate("S01E03 - Thomas & Gordon.mkv"))
        assert result.episode.code == "s01e03"
        assert kinds(result) == {DiscrepancyKind.TITLE}

    def test_falls_back_to_title(self, code_matcher):
        result = code_matcher.match(candidate("Thomas & Gordon.mkv"))
        assert result.episode.code == "s01e01"

    def test_legacy_special_code_finds_movie(self, code_matcher):
        result = code_matcher.match(candidate("S00E01.mkv"))
        assert result.episode.code == "m01"
        assert not result.has_discrepancy

    def test_legacy_movie_code_finds_special(self, code_matcher):
        result = code_matcher.match(candidate("Calling All Engines M02.mkv"))
        assert result.episode.code == "s00e02"
        assert not result.has_discrepancy


class TestPartTitles:

    @pytest.mark.parametrize("strategy", ["title", "strict"])
    @pytest.mark.parametrize("name", [
        "Thomas.and.Friends.1984.s02e10.Henrys.Sneeze.Part.1.mkv",
        "thomas_and_friends_1984_s02e10_henrys_sneeze_part_1.mkv",
    ])
    def test_machine_names_keep_their_part(self, index, name, strategy):
        result = Matcher(index, series_name=SERIES, strategy=strategy).match(candidate(name))
        assert result.episode.code == "s02e10"
        assert not result.has_discrepancy

    def test_strategy_for_one_call(self, index):
        matcher = Matcher(index, series_name=SERIES, strategy="strict")
        assert matcher.match(candidate("Thomas & Gordon.mkv")).episode is None
        result = matcher.match(candidate("Thomas & Gordon.mkv"), MatchStrategy.TITLE)
        assert result.episode.code == "s01e01"
        assert result.strategy == "title"


class TestStrictStrategy:

    @pytest.fixture
    def strict_matcher(self, index):
        return Matcher(index, series_name=SERIES, strategy="strict")

    def test_code_and_title_agree(self, strict_matcher):
        result = strict_matcher.match(candidate("S01E01 - Thomas & Gordon.mkv"))
        assert result.episode.code == "s01e01"

    def test_title_disagrees(self, strict_matcher):
        assert strict_matcher.match(candidate("S01E01 - The Sad Story of Henry.mkv")).episode is None

    def test_code_required(self, strict_matcher):
        assert strict_matcher.match(candidate("Thomas & Gordon.mkv")).episode is None


class TestNumberStrategy:

    def test_number_only(self, index):
        matcher = Matcher(index, series_name=SERIES, strategy=MatchStrategy.NUMBER)
        result = matcher.match(candidate("004.mkv"))
        assert result.episode.code == "s01e04"
        assert not result.has_discrepancy

    def test_unknown_strategy(self, index):
        with pytest.raises(ValueError):
            Matcher(index, strategy="fuzzy")


class TestComposite:

    def test_double_trouble_scenario(self, matcher):
        result = matcher.match(candidate("S01E05-E06 - Double Trouble.mkv"))
        episode = result.episode
        assert isinstance(episode, CompositeEpisode)
        assert episode.code == "s01e05e06"
        assert episode.title == "Thomas' Train + Thomas & the Trucks"
        assert episode.air_date == "1984-10-23"
        assert episode.number == "005"
        assert kinds(result) == {DiscrepancyKind.TITLE}
        assert "extracted='Double Trouble'" in result.discrepancy_detail

    def test_joined_title_is_clean(self, matcher):
        name = "S01E05-E06 - Thomas' Train + Thomas & the Trucks.mkv"
        result = matcher.match(candidate(name))
        assert isinstance(result.episode, CompositeEpisode)
        assert not result.has_discrepancy

    def test_joined_title_without_code(self, matcher):
        result = matcher.match(candidate("Thomas' Train + Thomas & the Trucks.mkv"))
        assert isinstance(result.episode, CompositeEpisode)
        assert result.episode.code == "s01e05e06"
        assert not result.has_discrepancy

    def test_joined_title_needs_every_piece(self, matcher):
        assert matcher.lookup_composite_title("Thomas' Train + Double Trouble") is None
        assert matcher.lookup_composite_title("Thomas' Train") is None

    def test_air_date_only_when_shared(self, index):
        composite = new_composite_episode(["s01e03", "s01e05"], index)
        assert composite.air_date == ""
        assert composite.number == "003"

    def test_needs_two_resolved_codes(self, index):
        assert new_composite_episode(["s01e05", "s01e40"], index) is None

    def test_needs_one_season(self, index):
        assert new_composite_episode(["s01e05", "s02e10"], index) is None


class TestDiscrepancies:

    def test_number_mismatch(self, matcher):
        result = matcher.match(candidate("002 - Thomas & Gordon.mkv"))
        assert result.episode.code == "s01e01"
        assert kinds(result) == {DiscrepancyKind.NUMBER}
        assert result.discrepancy_kind is DiscrepancyKind.NUMBER

    def test_number_mismatch_suppressed(self, index):
        matcher = Matcher(index, series_name=SERIES, suppress_number_mismatch=True)
        result = matcher.match(candidate("002 - Thomas & Gordon.mkv"))
        assert not result.has_discrepancy

    def test_reference_without_number(self, matcher):
        result = matcher.match(candidate("001 - Thomas and the Magic Railroad.mkv"))
        assert result.episode.code == "m01"
        assert not result.has_discrepancy

    def test_code_mismatch(self, matcher):
        result = matcher.match(candidate("S01E02 - Thomas & Gordon.mkv"))
        assert result.episode.code == "s01e01"
        assert kinds(result) == {DiscrepancyKind.NUMBER, DiscrepancyKind.CODE}
        assert "code: extracted='s01e02' reference='s01e01'" in result.discrepancy_detail
