"""Noise stripping for title extraction.

The *parser* module handles structural extraction (episode codes,
numbers, the title text around them).  This module only knows how to
remove archival and quality tags, bracketed segments and the alternate
encoding marker, and how to set aside a trailing "(Part N)" marker.
"""

import re

# ---------------------------------------------------------------------------
# Pattern groups
# ---------------------------------------------------------------------------

# Resolution / quality
_RESOLUTION = r'\b(240p|360p|480p|576p|720p|1080p|1080i|2160p|4[kK]|UHD|FHD)\b'

# Video codec
_CODEC = r'\b(x\.?264|x\.?265|[hH]\.?264|[hH]\.?265|HEVC|AVC|XVID|DIVX|AV1|VP9)\b'

# Audio codec
_AUDIO = r'\b(AAC(?:2\.0)?|AC3|EAC3|DTS|FLAC|MP3|DD5\.1)\b'

# Source / archival tags
_SOURCE = (
    r'\b(WEB[- ]?DL|WEBRip|Blu[- ]?[Rr]ay|BDRip|BRRip|HDTV|HDRip|DVDRip'
    r'|DVD|VHS|VHSRip|LaserDisc|LD[- ]?Rip|TVRip)\b'
)

# Edition tags that archivists append to episode files
_ARCHIVAL = (
    r'\b(REMASTERED|RESTORED|UNCUT|REPACK|PROPER|US[- ]?DUB|UK[- ]?DUB'
    r'|US[- ]?Narration|UK[- ]?Narration|Lost[- ]?Episode|Original[- ]?Version)\b'
)

# Copy suffix left behind by file managers: "Title - Copy", "Title (2)"
_COPY_SUFFIX = r'(?:\s*-\s*Copy(?:\s*\(\d+\))?\s*$)'

# Alternate-encoding marker: "(Alt)", "[Alt]", ".alt", "- Alt",
# "(Alternate)", "(Alternate Encoding)", "(Re-encode)"
ALT_MARKER = (
    r'(?:\s*[\(\[](?:alt|alternate(?:[ ._-]?encod(?:e|ing))?|re-?encoded?)[\)\]]'
    r'|[ ._-]+alt$)'
)
ALT_MARKER_RE = re.compile(ALT_MARKER, re.IGNORECASE)

# Bracketed content  [anything]  and parenthesised content  (anything)
_BRACKETS = r'\[[^\]]*\]'
_PARENS = r'\([^)]*\)'
_BRACES = r'\{[^}]*\}'

# Part marker: "(Part 2)", "(Pt. II)", "(part three)" is not recognised
PART_MARKER_RE = re.compile(
    r'\(\s*(Part|Pt\.?)\s*([IVXLC]+|\d+)\s*\)',
    re.IGNORECASE,
)
# Same marker without parentheses: "Part 2", "Pt. II", "Part.1", "part_1"
_PART_TEXT_RE = re.compile(
    r'(?<![A-Za-z0-9])(Part|Pt\.?)[\s._]*([IVXLC]+|\d+)(?![A-Za-z0-9])',
    re.IGNORECASE,
)

_ROMAN = {"I": 1, "V": 5, "X": 10, "L": 50, "C": 100}

_TAG_NOISE = [
    _RESOLUTION,
    _CODEC,
    _AUDIO,
    _SOURCE,
    _ARCHIVAL,
]


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def roman_to_int(value: str) -> int | None:
    """Convert a roman numeral (I..C range) to an int."""
    value = value.upper()
    if not value or any(ch not in _ROMAN for ch in value):
        return None
    total = 0
    for i, ch in enumerate(value):
        current = _ROMAN[ch]
        following = _ROMAN[value[i + 1]] if i + 1 < len(value) else 0
        total += -current if current < following else current
    return total


def part_number(text: str) -> int | None:
    """Return the part number carried by *text*, if any.

    Accepts both "(Part 2)" and bare "Part II" forms.
    """
    match = _PART_TEXT_RE.search(text or "")
    if not match:
        return None
    token = match.group(2)
    if token.isdigit():
        return int(token)
    return roman_to_int(token)


def split_part_marker(name: str) -> tuple[str, str | None]:
    """Remove the last "(Part N)" / "(Pt N)" marker from *name*.

    Returns ``(remaining, marker)`` where *marker* is the original text of
    the marker, or None.
    """
    matches = list(PART_MARKER_RE.finditer(name))
    if not matches:
        return name, None
    match = matches[-1]
    remaining = name[:match.start()] + " " + name[match.end():]
    return remaining, match.group(0).strip()


def split_bare_part_marker(text: str) -> tuple[str, str | None]:
    """Remove the last bare "Part N" token from *text*.

    Dotted and underscored names ("Henrys.Sneeze.Part.1") carry the marker
    without parentheses.  It is returned in the "(Part 1)" form.
    """
    matches = list(_PART_TEXT_RE.finditer(text))
    if not matches:
        return text, None
    match = matches[-1]
    remaining = text[:match.start()] + " " + text[match.end():]
    return remaining, f"({match.group(1)} {match.group(2)})"


def has_part_marker(text: str) -> bool:
    return _PART_TEXT_RE.search(text or "") is not None


def strip_alt_marker(stem: str) -> tuple[str, bool]:
    """Remove an alternate-encoding marker from a filename stem.

    Returns ``(stem_without_marker, found)``.
    """
    cleaned, count = ALT_MARKER_RE.subn("", stem)
    return cleaned.strip(), count > 0


def strip_noise(name: str) -> str:
    """Strip archival/quality tags, copy suffixes and bracketed segments."""
    name = re.sub(_COPY_SUFFIX, '', name, flags=re.IGNORECASE)
    name, _ = strip_alt_marker(name)

    # Brackets first so that "[DVDRip]" goes as a unit.
    name = re.sub(_BRACKETS, ' ', name)
    name = re.sub(_BRACES, ' ', name)
    name = re.sub(_PARENS, ' ', name)

    # Take a leading dot or underscore separator along with the tag.
    for pattern in _TAG_NOISE:
        name = re.sub(r'[._]?' + pattern, ' ', name, flags=re.IGNORECASE)

    return re.sub(r'\s+', ' ', name).strip()


def collapse_separators(name: str) -> str:
    """Turn machine separators into spaces and collapse whitespace.

    Underscores always become spaces.  Dots only do when they glue two
    words together ("Thomas.and.Gordon"), so "Mr. Conductor" survives.
    """
    name = name.replace("_", " ")
    name = re.sub(r'\.(?=\S)', ' ', name)
    name = re.sub(r'\s*-(?:\s*-)+\s*', ' - ', name)
    return re.sub(r'\s+', ' ', name).strip()


def trim_punctuation(name: str) -> str:
    """Trim leading and trailing separators and punctuation."""
    name = re.sub(r'^[\s\-–—:;.,~+|]+', '', name)
    name = re.sub(r'[\s\-–—:;,~+|]+$', '', name)
    # Trailing dot only when it is a lone separator, keep "..." and "Jr."
    name = re.sub(r'(?<=\s)\.$', '', name)
    return name.strip()


def remove_part_text(text: str) -> str:
    """Drop every "Part N" / "Pt. N" token (with or without parentheses)."""
    text = _PART_TEXT_RE.sub(' ', text or "")
    text = re.sub(r'\(\s*\)', ' ', text)
    return re.sub(r'\s+', ' ', text).strip()
