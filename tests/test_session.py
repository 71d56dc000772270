"""Tests for the session context and settings."""
import json

import pytest

from organizer.session import PathSafetyError, Session
from organizer.settings import DEFAULT_SETTINGS, SETTINGS_FILE, Settings

from conftest import touch


class FakeClock:

    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


class TestPathSafety:

    def test_inside_root(self, root, session):
        assert session.ensure_within_root("Season 1/a.mkv") == root / "Season 1" / "a.mkv"
        assert session.ensure_within_root(root) == root

    def test_escape_via_dotdot(self, session):
        with pytest.raises(PathSafetyError):
            session.ensure_within_root("../elsewhere.mkv")

    def test_absolute_outside(self, tmp_path, session):
        with pytest.raises(PathSafetyError):
            session.ensure_within_root(tmp_path / "elsewhere.mkv")

    def test_symlink_escape(self, root, tmp_path, session):
        outside = tmp_path / "outside"
        outside.mkdir()
        link = root / "link"
        try:
            link.symlink_to(outside, target_is_directory=True)
        except OSError:
            pytest.skip("symlinks not available")
        with pytest.raises(PathSafetyError):
            session.ensure_within_root(link / "a.mkv")

    def test_symlinked_file_is_not_followed(self, root, tmp_path, session):
        outside = touch(tmp_path / "outside.mkv")
        link = root / "a.mkv"
        try:
            link.symlink_to(outside)
        except OSError:
            pytest.skip("symlinks not available")
        assert session.ensure_within_root(link) == link
        assert session.relative(link) == link.relative_to(root)


class TestListing:

    def test_videos_only_and_exclusions(self, root, session):
        touch(root / "a.mkv")
        touch(root / "a.srt")
        touch(root / "cleanup" / "unknown" / "b.mkv")
        touch(root / "reference" / "c.mkv")
        touch(root / "Season 1" / "d.MP4")
        assert session.video_files() == [root / "a.mkv", root / "Season 1" / "d.MP4"]

    def test_cache_expires(self, root):
        clock = FakeClock()
        session = Session(root, series_name="X", settings=Settings(root, use_env=False), clock=clock)
        touch(root / "a.mkv")
        assert len(session.video_files()) == 1

        touch(root / "b.mkv")
        clock.now = 10
        assert len(session.video_files()) == 1
        clock.now = 31
        assert len(session.video_files()) == 2

    def test_invalidate(self, root, session):
        touch(root / "a.mkv")
        assert len(session.video_files()) == 1
        touch(root / "b.mkv")
        session.invalidate()
        assert len(session.video_files()) == 2


class TestSeriesName:

    def test_defaults_to_folder_name(self, root):
        session = Session(root, settings=Settings(root, use_env=False))
        assert session.series_name == "library"

    def test_from_settings(self, root):
        settings = Settings(root, use_env=False)
        settings.set("series_name", "Thomas & Friends (1984)")
        assert Session(root, settings=settings).series_name == "Thomas & Friends (1984)"


class TestSettings:

    def test_defaults(self, root):
        settings = Settings(root, use_env=False)
        assert settings.get("naming_format") == 1
        assert settings.get("listing_cache_seconds") == 30
        assert settings.all() == DEFAULT_SETTINGS

    def test_save_and_reload(self, root):
        settings = Settings(root, use_env=False)
        settings.set("naming_format", 7)
        assert settings.save()
        assert json.loads((root / SETTINGS_FILE).read_text(encoding="utf-8")) == {"naming_format": 7}
        assert Settings(root, use_env=False).get("naming_format") == 7

    def test_unreadable_file_ignored(self, root):
        (root / SETTINGS_FILE).write_text("{broken", encoding="utf-8")
        assert Settings(root, use_env=False).get("naming_format") == 1

    def test_dotenv_overrides_file(self, root):
        (root / SETTINGS_FILE).write_text(json.dumps({"naming_format": 2}), encoding="utf-8")
        (root / ".env").write_text(
            "ORGANIZER_NAMING_FORMAT=7\n"
            "ORGANIZER_SUPPRESS_NUMBER_MISMATCH=yes\n"
            "ORGANIZER_MATCH_STRATEGY=code\n",
            encoding="utf-8",
        )
        settings = Settings(root)
        assert settings.get("naming_format") == 7
        assert settings.get("suppress_number_mismatch") is True
        assert settings.get("match_strategy") == "code"

    def test_process_environment_wins(self, root, monkeypatch):
        (root / ".env").write_text("ORGANIZER_SERIES_NAME=From File\n", encoding="utf-8")
        monkeypatch.setenv("ORGANIZER_SERIES_NAME", "From Env")
        assert Settings(root).get("series_name") == "From Env"

    def test_env_ignored_when_disabled(self, root, monkeypatch):
        monkeypatch.setenv("ORGANIZER_THUMBNAIL_STYLE", "poster")
        assert Settings(root, use_env=False).get("thumbnail_style") == "thumb"
        assert Settings(root).get("thumbnail_style") == "poster"
