"""Filename analyzer: pulls titles, Numbers and episode codes out of names."""
from __future__ import annotations

import re
from pathlib import Path
from typing import TYPE_CHECKING

from .cleaner import (
    collapse_separators,
    has_part_marker,
    remove_part_text,
    split_bare_part_marker,
    split_part_marker,
    strip_noise,
    trim_punctuation,
)
from .codes import format_code, format_movie_code

if TYPE_CHECKING:
    from .index import EpisodeIndex


VIDEO_EXTENSIONS = {
    '.mkv', '.mp4', '.avi', '.mov', '.wmv', '.flv', '.webm',
    '.m4v', '.mpg', '.mpeg', '.m2ts', '.ts', '.vob', '.ogm', '.divx',
}

SUBTITLE_EXTENSIONS = {'.srt', '.ass', '.ssa', '.vtt', '.sub', '.idx'}

IMAGE_EXTENSIONS = {'.jpg', '.jpeg', '.png', '.webp', '.tbn'}

_KNOWN_EXTENSIONS = VIDEO_EXTENSIONS | SUBTITLE_EXTENSIONS | IMAGE_EXTENSIONS

# Unicode hyphens and dashes that show up in hand-typed names
_DASHES_RE = re.compile('[‐‑‒–—―−]')

# Episode code patterns (order matters - the chained scan runs first)
# "S01" followed by an e/ep token: S01E01, S01 Ep01, s01.e01
_SEASON_RE = re.compile(
    r'(?<![a-z0-9])s(\d{1,2})(?=[\s._-]*ep?[\s._]*\d)',
    re.IGNORECASE,
)
# One e/ep token: E01, -E02, " Ep02"
_EP_TOKEN_RE = re.compile(r'[\s._-]*ep?[\s._]*(\d{1,3})(?!\d)', re.IGNORECASE)
# Bare two-digit token chained to a preceding e/ep token: "E01-02"
_CHAINED_RE = re.compile(r'(?:\s*-\s*|\s+)(\d{2})(?!\d)')
# 1x04, 01x05
_CROSS_CODE_RE = re.compile(r'(?<![\d])(\d{1,2})x(\d{2,3})(?!\d)', re.IGNORECASE)
# M05 movie token
_MOVIE_TOKEN_RE = re.compile(r'(?<![a-z0-9])m(\d{1,3})(?![a-z0-9])', re.IGNORECASE)

# 1.05 read as season.episode, and any decimal token
_SEASON_DOT_RE = re.compile(r'(?<![\d.])(\d{1,2})\.(\d{1,2})(?![\d.])')
_DECIMAL_RE = re.compile(r'(?<![\d.])\d+\.\d+(?![\d.])')

# ISO dates must not leak digits into the bare-number step
_DATE_RE = re.compile(r'\b\d{4}-\d{2}-\d{2}\b')

_TOKEN_SPLIT_RE = re.compile(r'[\s._\-()\[\]{}]+')


def normalize_dashes(name: str) -> str:
    """Replace unicode dashes with a plain hyphen."""
    return _DASHES_RE.sub('-', name)


def split_extension(name: str) -> tuple[str, str]:
    """
    Split a filename into stem and extension.

    Only known media extensions are split off, so "Show.s01e01.Title"
    keeps its last dotted word.
    """
    path = Path(name)
    if path.suffix.lower() in _KNOWN_EXTENSIONS:
        return path.stem, path.suffix
    return name, ""


def is_video_file(filepath: Path) -> bool:
    """Check if file is a video file based on extension."""
    return filepath.suffix.lower() in VIDEO_EXTENSIONS


def is_subtitle_file(filepath: Path) -> bool:
    return filepath.suffix.lower() in SUBTITLE_EXTENSIONS


def is_image_file(filepath: Path) -> bool:
    return filepath.suffix.lower() in IMAGE_EXTENSIONS


# ---------------------------------------------------------------------------
# Episode codes
# ---------------------------------------------------------------------------

def _scan_chained_codes(name: str) -> tuple[list[str], int, int] | None:
    """
    Find a season token and the episode tokens chained after it.

    Covers "S01E01", "S01E01E02", "S01E01-E02", "S01E01-02" and
    "S01 Ep01 Ep02".

    Returns:
        (codes, start, end) of the first season token that carries at
        least one episode, or None.
    """
    for season_match in _SEASON_RE.finditer(name):
        season = int(season_match.group(1))
        pos = end = season_match.end()
        episodes: list[int] = []

        while True:
            token = _EP_TOKEN_RE.match(name, pos)
            if token:
                episodes.append(int(token.group(1)))
                pos = end = token.end()
                continue
            if episodes:
                chained = _CHAINED_RE.match(name, pos)
                if chained:
                    episodes.append(int(chained.group(1)))
                    pos = end = chained.end()
                    continue
            break

        if episodes:
            unique = list(dict.fromkeys(episodes))
            codes = [format_code(season, ep) for ep in unique]
            return codes, season_match.start(), end

    return None


def find_code_span(name: str) -> tuple[list[str], int, int] | None:
    """
    Locate episode code(s) in *name*.

    Tries the chained ``sNNeNN`` scan, then the ``NxNN`` form, then a
    ``mNN`` movie token.

    Returns:
        (codes, start, end) or None
    """
    name = normalize_dashes(name)

    found = _scan_chained_codes(name)
    if found:
        return found

    match = _CROSS_CODE_RE.search(name)
    if match:
        code = format_code(int(match.group(1)), int(match.group(2)))
        return [code], match.start(), match.end()

    match = _MOVIE_TOKEN_RE.search(name)
    if match:
        return [format_movie_code(int(match.group(1)))], match.start(), match.end()

    return None


def extract_episode_codes(name: str) -> list[str] | None:
    """
    Extract canonical episode codes from a filename.

    Args:
        name: Raw filename (extension allowed)

    Returns:
        Lowercase codes in first-seen order, e.g. ``["s02e10", "s02e11"]``
        for "Show S02E10-E11.mkv", or None when no code is present.
    """
    stem, _ = split_extension(name)
    found = find_code_span(stem)
    if not found:
        return None
    return found[0]


# ---------------------------------------------------------------------------
# Overall episode Number
# ---------------------------------------------------------------------------

def extract_episode_number(name: str, index: EpisodeIndex) -> str | None:
    """
    Work out the overall episode Number a filename refers to.

    The steps run in order and the first one that resolves wins:

    1. an episode code, resolved through the code index
    2. ``N.N`` tokens read as season.episode, resolved the same way
    3. a standalone decimal token equal to a known Number
    4. a standalone 1-3 digit token, zero-padded to 3 digits, equal to a
       known Number

    Args:
        name: Raw filename
        index: Reference index to resolve against

    Returns:
        The reference Number, or None
    """
    stem, _ = split_extension(name)
    stem = normalize_dashes(stem)
    # A part number is never an episode Number
    stem = remove_part_text(stem)

    codes = extract_episode_codes(stem)
    if codes:
        for code in codes:
            record = index.lookup_code(code)
            if record is not None and record.number:
                return record.number

    for match in _SEASON_DOT_RE.finditer(stem):
        code = format_code(int(match.group(1)), int(match.group(2)))
        record = index.lookup_code(code)
        if record is not None and record.number:
            return record.number

    for match in _DECIMAL_RE.finditer(stem):
        token = match.group(0)
        if index.has_number(token):
            return token

    for token in _TOKEN_SPLIT_RE.split(_DATE_RE.sub(' ', stem)):
        if token.isdigit() and 1 <= len(token) <= 3:
            padded = token.zfill(3)
            if index.has_number(padded):
                return padded
            if index.has_number(token):
                return token

    return None


# ---------------------------------------------------------------------------
# Title
# ---------------------------------------------------------------------------

def _strip_residual_codes(text: str) -> str:
    """Remove every remaining code token from *text*."""
    while True:
        found = find_code_span(text)
        if not found:
            return text
        _, start, end = found
        text = text[:start] + " " + text[end:]


def strip_series_prefix(text: str, series_name: str | None) -> str:
    """
    Remove a leading series name from *text*.

    Both the literal name and its "&" -> "and" spelling are recognised,
    case-insensitively.  A parenthesised year in the series name
    ("Thomas & Friends (1984)") is ignored.
    """
    if not series_name:
        return text
    base = re.sub(r'\([^)]*\)', ' ', series_name)
    base = re.sub(r'\s+', ' ', base).strip()
    if not base:
        return text

    variants = {base, re.sub(r'\s*&\s*', ' and ', base)}
    for variant in sorted(variants, key=len, reverse=True):
        words = variant.split()
        pattern = r'^\s*' + r'[\s._]+'.join(re.escape(w) for w in words) + r'(?=$|[\s\-:.,_])'
        stripped, count = re.subn(pattern, '', text, count=1, flags=re.IGNORECASE)
        if count:
            return stripped
    return text


def extract_title(name: str, series_name: str | None = None) -> str | None:
    """
    Extract the episode title from a filename.

    Args:
        name: Raw filename
        series_name: Series name to strip when it prefixes the title

    Returns:
        The cleaned title, with any "(Part N)" marker re-attached, or
        None when nothing is left.
    """
    stem, _ = split_extension(name)
    stem = normalize_dashes(stem).strip()

    # Set the part marker aside before parentheses are stripped.
    stem, part_marker = split_part_marker(stem)
    if part_marker is None:
        stem, part_marker = split_bare_part_marker(stem)
    stem = strip_noise(stem)

    found = find_code_span(stem)
    if found:
        _, start, end = found
        after = re.sub(r'^[\s._]*[-:]?', '', stem[end:])
        if after.strip(' ._-:'):
            text = after
        else:
            text = stem[:start]
    else:
        text = stem

    text = _strip_residual_codes(text)
    text = _DECIMAL_RE.sub(' ', text)
    text = collapse_separators(text)
    text = re.sub(r'\b\d+\b', ' ', text)
    text = collapse_separators(text)
    text = trim_punctuation(text)

    text = strip_series_prefix(text, series_name)
    text = collapse_separators(text)
    text = trim_punctuation(text)

    if not text:
        return None

    if part_marker and not has_part_marker(text):
        text = f"{text} {part_marker}"
    return text
