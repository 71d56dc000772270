"""Formatter module for generating final file and folder names."""
from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Callable

from .codes import code_season, is_movie_code
from .models import Episode

MOVIES_FOLDER = "Movies"
UNKNOWN_FOLDER = "Unknown"


def sanitize_filename(name: str) -> str:
    """
    Remove or replace characters that are invalid in file names.

    Args:
        name: The name to sanitize

    Returns:
        Sanitized name safe for use as a filename
    """
    # Characters not allowed in Windows filenames: / \ : * ? " < > |
    # A colon inside a title reads better as a dash.
    sanitized = re.sub(r'\s*:\s*', ' - ', name)
    sanitized = re.sub(r'[<>"/\\|?*]', '', sanitized)
    sanitized = re.sub(r'[\x00-\x1f]', '', sanitized)
    # Remove leading/trailing dots and spaces
    sanitized = sanitized.strip('. ')
    # Replace multiple spaces with single space
    sanitized = re.sub(r'\s+', ' ', sanitized)
    return sanitized


def machine_words(text: str) -> list[str]:
    """Split *text* into ASCII-safe words for dotted/underscored names."""
    text = text.replace("&", " and ").replace("+", " ")
    text = re.sub(r"['’]", "", text)
    return re.findall(r'[A-Za-z0-9]+', text)


def _with_ext(name: str, extension: str) -> str:
    return f"{sanitize_filename(name)}{extension}"


def _year_suffix(episode: Episode) -> str:
    return f" ({episode.year})" if episode.year else ""


def _airdate_suffix(episode: Episode) -> str:
    return f" ({episode.air_date})" if episode.air_date else ""


# ------------------------------------------------------------------
# Episode renderers
# ------------------------------------------------------------------

def _series_code_title(ep: Episode, ext: str, series: str) -> str:
    return _with_ext(f"{series} - {ep.code} - {ep.title}", ext)


def _code_title(ep: Episode, ext: str, series: str) -> str:
    return _with_ext(f"{ep.code} - {ep.title}", ext)


def _series_code(ep: Episode, ext: str, series: str) -> str:
    return _with_ext(f"{series} - {ep.code}", ext)


def _number_title(ep: Episode, ext: str, series: str) -> str:
    if not ep.number:
        return _code_title(ep, ext, series)
    return _with_ext(f"{ep.number} - {ep.title}", ext)


def _series_number_title(ep: Episode, ext: str, series: str) -> str:
    if not ep.number:
        return _series_code_title(ep, ext, series)
    return _with_ext(f"{series} - {ep.number} - {ep.title}", ext)


def _title_only(ep: Episode, ext: str, series: str) -> str:
    return _with_ext(ep.title, ext)


def _dotted(ep: Episode, ext: str, series: str) -> str:
    words = machine_words(series) + [ep.code] + machine_words(ep.title)
    return ".".join(words) + ext


def _underscored(ep: Episode, ext: str, series: str) -> str:
    words = machine_words(series) + [ep.code] + machine_words(ep.title)
    return "_".join(w.lower() for w in words) + ext


def _series_code_title_airdate(ep: Episode, ext: str, series: str) -> str:
    return _with_ext(f"{series} - {ep.code} - {ep.title}{_airdate_suffix(ep)}", ext)


def _code_title_airdate(ep: Episode, ext: str, series: str) -> str:
    return _with_ext(f"{ep.code} - {ep.title}{_airdate_suffix(ep)}", ext)


def _bracketed_series(ep: Episode, ext: str, series: str) -> str:
    return _with_ext(f"[{series}] {ep.code} - {ep.title}", ext)


def _bracketed_series_number(ep: Episode, ext: str, series: str) -> str:
    if not ep.number:
        return _bracketed_series(ep, ext, series)
    return _with_ext(f"[{series}] {ep.number} - {ep.title}", ext)


# ------------------------------------------------------------------
# Movie renderers
# ------------------------------------------------------------------

def _movie_series_title(ep: Episode, ext: str, series: str) -> str:
    return _with_ext(f"{series} - {ep.title}{_year_suffix(ep)}", ext)


def _movie_title(ep: Episode, ext: str, series: str) -> str:
    return _with_ext(f"{ep.title}{_year_suffix(ep)}", ext)


def _movie_dotted(ep: Episode, ext: str, series: str) -> str:
    words = machine_words(series) + machine_words(ep.title)
    if ep.year:
        words.append(str(ep.year))
    return ".".join(words) + ext


def _movie_underscored(ep: Episode, ext: str, series: str) -> str:
    words = machine_words(series) + machine_words(ep.title)
    if ep.year:
        words.append(str(ep.year))
    return "_".join(w.lower() for w in words) + ext


def _movie_series_title_airdate(ep: Episode, ext: str, series: str) -> str:
    return _with_ext(f"{series} - {ep.title}{_airdate_suffix(ep)}", ext)


def _movie_title_airdate(ep: Episode, ext: str, series: str) -> str:
    return _with_ext(f"{ep.title}{_airdate_suffix(ep)}", ext)


def _movie_bracketed(ep: Episode, ext: str, series: str) -> str:
    return _with_ext(f"[{series}] {ep.title}{_year_suffix(ep)}", ext)


Renderer = Callable[[Episode, str, str], str]


@dataclass(frozen=True)
class NamingTemplate:
    """One output-name template with its episode and movie renderings."""
    key: int
    label: str
    episode: Renderer | None
    movie: Renderer | None


class NamingFormat(Enum):
    """Closed set of output-name templates.

    ``SKIP`` keeps the current filename; only folder placement applies.
    """
    SERIES_CODE_TITLE = NamingTemplate(
        1, "Series - sXXeXX - Title", _series_code_title, _movie_series_title)
    CODE_TITLE = NamingTemplate(
        2, "sXXeXX - Title", _code_title, _movie_title)
    SERIES_CODE = NamingTemplate(
        3, "Series - sXXeXX", _series_code, _movie_series_title)
    NUMBER_TITLE = NamingTemplate(
        4, "Number - Title", _number_title, _movie_title)
    SERIES_NUMBER_TITLE = NamingTemplate(
        5, "Series - Number - Title", _series_number_title, _movie_series_title)
    TITLE_ONLY = NamingTemplate(
        6, "Title", _title_only, _movie_title)
    DOTTED = NamingTemplate(
        7, "Series.sXXeXX.Title", _dotted, _movie_dotted)
    UNDERSCORED = NamingTemplate(
        8, "series_sxxexx_title", _underscored, _movie_underscored)
    SERIES_CODE_TITLE_AIRDATE = NamingTemplate(
        9, "Series - sXXeXX - Title (AirDate)", _series_code_title_airdate,
        _movie_series_title_airdate)
    CODE_TITLE_AIRDATE = NamingTemplate(
        10, "sXXeXX - Title (AirDate)", _code_title_airdate, _movie_title_airdate)
    BRACKETED_SERIES = NamingTemplate(
        11, "[Series] sXXeXX - Title", _bracketed_series, _movie_bracketed)
    BRACKETED_SERIES_NUMBER = NamingTemplate(
        12, "[Series] Number - Title", _bracketed_series_number, _movie_bracketed)
    SKIP = NamingTemplate(13, "Skip renaming", None, None)

    @property
    def key(self) -> int:
        return self.value.key

    @property
    def label(self) -> str:
        return self.value.label

    @classmethod
    def from_key(cls, key: "int | str | NamingFormat") -> "NamingFormat":
        """Look a format up by its menu number or member name."""
        if isinstance(key, cls):
            return key
        text = str(key).strip()
        for member in cls:
            if text == str(member.key) or text.upper() == member.name:
                return member
        raise ValueError(f"Unknown naming format: {key!r}")

    def render(self, episode: Episode, extension: str, series: str, original: str | None = None) -> str:
        """
        Build the filename for *episode*.

        Args:
            episode: Matched record or composite
            extension: File extension (including dot)
            series: Series name
            original: Current filename, returned unchanged for ``SKIP``

        Returns:
            The new filename
        """
        if self is NamingFormat.SKIP:
            if original is None:
                raise ValueError("SKIP format needs the original filename")
            return original
        renderer = self.value.movie if is_movie_code(episode.code) else self.value.episode
        return renderer(episode, extension, series)


def series_folder(episode: Episode, series: str) -> str:
    """
    Relative folder an episode belongs in.

    Movies go to ``<Series>/Movies/<Series> - <Title> (<Year>)`` (or
    ``<Series>/Movies`` without a year), episodes to
    ``<Series>/Season <N>``; anything else to ``<Series>/Unknown``.
    """
    series_dir = sanitize_filename(series)
    if is_movie_code(episode.code):
        if episode.year:
            movie_dir = sanitize_filename(f"{series} - {episode.title} ({episode.year})")
            return f"{series_dir}/{MOVIES_FOLDER}/{movie_dir}"
        return f"{series_dir}/{MOVIES_FOLDER}"

    season = code_season(episode.code)
    if season is None:
        return f"{series_dir}/{UNKNOWN_FOLDER}"
    return f"{series_dir}/Season {season}"
