"""Sidecar resolver: subtitles and thumbnails that travel with a video."""
from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path

from .parser import is_image_file, is_subtitle_file

DEFAULT_THUMBNAIL_STYLE = "thumb"

# Language tag: en, eng, pt-BR, zh_Hans
_LANGUAGE_RE = re.compile(r'^[a-z]{2,3}(?:[-_][a-z0-9]{2,4})?$', re.IGNORECASE)

_FORCED_TOKENS = {"forced"}
_SDH_TOKENS = {"sdh", "hi"}


@dataclass(frozen=True)
class SubtitleTags:
    """Tokens found between a video's base name and a subtitle extension."""
    language: str | None = None
    forced: bool = False
    sdh: bool = False

    def suffix(self) -> str:
        parts = []
        if self.language:
            parts.append(self.language)
        if self.forced:
            parts.append("forced")
        if self.sdh:
            parts.append("sdh")
        return "".join(f".{p}" for p in parts)


@dataclass(frozen=True)
class SidecarMove:
    """One planned sidecar rename."""
    source: Path
    target: Path
    kind: str  # "subtitle" | "thumbnail"


def _sidecar_stem(path: Path) -> str:
    return path.name[: -len(path.suffix)] if path.suffix else path.name


def is_sidecar_of(candidate: Path, video_base: str) -> bool:
    """
    Check whether *candidate* belongs to a video with base name *video_base*.

    The candidate's stem must be the base itself, the base followed by a
    dot-suffix ("Pilot.en", "Pilot.en.forced"), or the base plus
    ``-thumb``.
    """
    if not (is_subtitle_file(candidate) or is_image_file(candidate)):
        return False
    stem = _sidecar_stem(candidate)
    return (
        stem == video_base
        or stem.startswith(video_base + ".")
        or stem == f"{video_base}-thumb"
    )


def find_sidecars(video_path: Path) -> list[Path]:
    """
    Find sidecar files next to a video.

    Args:
        video_path: Path of the video (it does not need to exist any more)

    Returns:
        Sidecar paths sorted by name
    """
    parent = video_path.parent
    if not parent.is_dir():
        return []
    base = video_path.stem
    found = []
    for file in parent.iterdir():
        if file == video_path or not file.is_file():
            continue
        if is_sidecar_of(file, base):
            found.append(file)
    return sorted(found)


def parse_subtitle_tags(tokens: list[str]) -> SubtitleTags:
    """
    Read language, forced and SDH markers from dot-separated tokens.

    Unrecognised tokens are dropped.
    """
    language = None
    forced = False
    sdh = False
    for token in tokens:
        lowered = token.lower()
        if not lowered:
            continue
        if lowered in _FORCED_TOKENS:
            forced = True
        elif lowered in _SDH_TOKENS:
            sdh = True
        elif language is None and _LANGUAGE_RE.match(token):
            language = token
    return SubtitleTags(language=language, forced=forced, sdh=sdh)


def subtitle_target_name(sidecar: Path, original_base: str, final_base: str) -> str:
    """Rebuild a subtitle name as ``<finalBase>[.lang][.forced][.sdh]<ext>``."""
    rest = _sidecar_stem(sidecar)[len(original_base):]
    tags = parse_subtitle_tags(rest.split(".")[1:] if rest.startswith(".") else [])
    return f"{final_base}{tags.suffix()}{sidecar.suffix}"


def thumbnail_target_name(sidecar: Path, final_base: str,
                          style: str = DEFAULT_THUMBNAIL_STYLE) -> str:
    """Rebuild a thumbnail name as ``<finalBase>-<style><ext>``."""
    if style:
        return f"{final_base}-{style}{sidecar.suffix}"
    return f"{final_base}{sidecar.suffix}"


def plan_sidecar_moves(
    original_video: Path,
    final_video: Path,
    thumbnail_style: str = DEFAULT_THUMBNAIL_STYLE,
) -> list[SidecarMove]:
    """
    Work out where each sidecar of a moved video should go.

    Args:
        original_video: Path the video had before the move
        final_video: Path the video has now
        thumbnail_style: Suffix for thumbnails; empty means none

    Returns:
        Moves for sidecars that need a new name or folder
    """
    original_base = original_video.stem
    final_base = final_video.stem
    moves = []
    for sidecar in find_sidecars(original_video):
        if is_subtitle_file(sidecar):
            name = subtitle_target_name(sidecar, original_base, final_base)
            kind = "subtitle"
        else:
            name = thumbnail_target_name(sidecar, final_base, thumbnail_style)
            kind = "thumbnail"
        target = final_video.parent / name
        if target != sidecar:
            moves.append(SidecarMove(source=sidecar, target=target, kind=kind))
    return moves
