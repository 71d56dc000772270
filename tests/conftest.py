"""Shared pytest fixtures."""
from __future__ import annotations

import json
from pathlib import Path

import pytest

from organizer.index import EpisodeIndex, load_records
from organizer.matcher import Matcher
from organizer.models import CandidateFile
from organizer.session import Session
from organizer.settings import ENV_OVERRIDES, Settings

SERIES = "Thomas & Friends (1984)"

REFERENCE_ROWS = [
    {"Number": "001", "Title": "Thomas & Gordon", "SeriesEpisodeCode": "s01e01", "AirDate": "1984-10-09"},
    {"Number": "002", "Title": "Edward & Gordon", "SeriesEpisodeCode": "s01e02", "AirDate": "1984-10-09"},
    {"Number": "003", "Title": "The Sad Story of Henry", "SeriesEpisodeCode": "s01e03", "AirDate": "1984-10-16"},
    {"Number": "004", "Title": "Edward, Gordon & Henry", "SeriesEpisodeCode": "s01e04", "AirDate": "1984-10-16",
     "AltTitles": "Edward Gordon and Henry|Gordon's Rescue"},
    {"Number": "005", "Title": "Thomas' Train", "SeriesEpisodeCode": "s01e05", "AirDate": "1984-10-23"},
    {"Number": "006", "Title": "Thomas & the Trucks", "SeriesEpisodeCode": "s01e06", "AirDate": "1984-10-23"},
    {"Number": "036", "Title": "Henry's Sneeze (Part 1)", "SeriesEpisodeCode": "s02e10", "AirDate": "1986-10-01"},
    {"Number": "037", "Title": "Henry's Sneeze (Part 2)", "SeriesEpisodeCode": "s02e11", "AirDate": "1986-10-08"},
    {"Number": "26.5", "Title": "Thomas and the Missing Christmas Tree", "SeriesEpisodeCode": "s00e10",
     "AirDate": "1986-12-01"},
    {"Number": "", "Title": "Thomas and the Magic Railroad", "SeriesEpisodeCode": "m01", "AirDate": "2000-07-14"},
    {"Number": "", "Title": "Calling All Engines!", "SeriesEpisodeCode": "s00e02", "AirDate": "2005-09-06"},
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keep the caller's ORGANIZER_* variables out of every test."""
    for var in ENV_OVERRIDES:
        monkeypatch.delenv(var, raising=False)


@pytest.fixture
def records():
    return load_records(REFERENCE_ROWS)


@pytest.fixture
def index(records):
    return EpisodeIndex(records)


@pytest.fixture
def matcher(index):
    return Matcher(index, series_name=SERIES)


@pytest.fixture
def root(tmp_path):
    library = tmp_path / "library"
    library.mkdir()
    return library.resolve()


@pytest.fixture
def session(root):
    return Session(root, series_name=SERIES, settings=Settings(root, use_env=False))


@pytest.fixture
def reference_file(root):
    """Write the reference rows where the CLI looks for them by default."""
    path = root / "reference" / "episodes.json"
    path.parent.mkdir(parents=True)
    path.write_text(json.dumps(REFERENCE_ROWS), encoding="utf-8")
    return path


def touch(path: Path, size: int = 16) -> Path:
    """Create *path* (and its parents) holding *size* bytes."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(b"x" * size)
    return path


def candidate(name: str, size: int = 16, directory: str = "/media") -> CandidateFile:
    """A CandidateFile that does not need to exist on disk."""
    path = Path(directory) / name
    return CandidateFile(path=path, name=name, extension=path.suffix, size=size, directory=path.parent)


def tree(root: Path, exclude: str = "cleanup") -> set[str]:
    """Relative paths of every file and directory under *root*."""
    found = set()
    for path in root.rglob("*"):
        rel = path.relative_to(root)
        if rel.parts[0] == exclude:
            continue
        found.add(rel.as_posix() + ("/" if path.is_dir() else ""))
    return found
