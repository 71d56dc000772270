"""SeriesEpisodeCode helpers.

Codes come in three shapes: ``sNNeNN`` for regular episodes, ``s00eNN``
for specials and ``mNN`` for movies.  Older reference lists filed movies
as season-zero specials, so ``s00eNN`` and ``mNN`` are treated as the
same episode whenever one of them is missing from the index.
"""
import re

EPISODE_CODE_RE = re.compile(r'^s(\d{1,2})((?:e\d{1,3})+)$', re.IGNORECASE)
MOVIE_CODE_RE = re.compile(r'^m(\d{1,3})$', re.IGNORECASE)


def normalize_code(code: str) -> str:
    """Lowercase and strip a code; empty stays empty."""
    return (code or "").strip().lower()


def format_code(season: int, episode: int) -> str:
    """Canonical single-episode code, e.g. ``s01e05``."""
    return f"s{season:02d}e{episode:02d}"


def format_movie_code(number: int) -> str:
    return f"m{number:02d}"


def code_season(code: str) -> int | None:
    """Season digits of an episode code, or None for movies/malformed codes."""
    match = EPISODE_CODE_RE.match(normalize_code(code))
    if not match:
        return None
    return int(match.group(1))


def code_episodes(code: str) -> list[int]:
    """Episode numbers of a (possibly joined) episode code."""
    match = EPISODE_CODE_RE.match(normalize_code(code))
    if not match:
        return []
    return [int(ep) for ep in re.findall(r'e(\d{1,3})', match.group(2))]


def is_movie_code(code: str) -> bool:
    return MOVIE_CODE_RE.match(normalize_code(code)) is not None


def legacy_equivalent(code: str) -> str | None:
    """Map ``s00eNN`` to ``mNN`` and back.

    Returns None when *code* has no legacy counterpart.
    """
    code = normalize_code(code)
    match = EPISODE_CODE_RE.match(code)
    if match and int(match.group(1)) == 0:
        episodes = code_episodes(code)
        if len(episodes) == 1:
            return format_movie_code(episodes[0])
        return None
    match = MOVIE_CODE_RE.match(code)
    if match:
        return format_code(0, int(match.group(1)))
    return None


def codes_equivalent(a: str, b: str) -> bool:
    """Case-insensitive code comparison honouring the legacy mapping."""
    a = normalize_code(a)
    b = normalize_code(b)
    if not a or not b:
        return False
    return a == b or legacy_equivalent(a) == b


def join_codes(codes: list[str]) -> str | None:
    """Join same-season codes into ``sNNeAAeBB``.

    Returns None when the codes do not share one season.
    """
    seasons = {code_season(c) for c in codes}
    if len(seasons) != 1 or None in seasons:
        return None
    season = seasons.pop()
    episodes = "".join(f"e{ep:02d}" for c in codes for ep in code_episodes(c))
    return f"s{season:02d}{episodes}"
