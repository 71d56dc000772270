"""Settings management for the organizer.

Settings live in ``.organizer.json`` inside the working root.  Values
from a ``.env`` file in the root (or the process environment) override
the file, which in turn overrides :data:`DEFAULT_SETTINGS`.
"""
import json
import logging
import os
from pathlib import Path
from typing import Any

from dotenv import dotenv_values

log = logging.getLogger(__name__)

SETTINGS_FILE = ".organizer.json"
ENV_FILE = ".env"

# ---------------------------------------------------------------------------
# Default values for every known key
# ---------------------------------------------------------------------------

DEFAULT_SETTINGS: dict[str, Any] = {
    # Naming
    "series_name": "",
    "naming_format": 1,
    "thumbnail_style": "thumb",

    # Matching
    "match_strategy": "title",
    "suppress_number_mismatch": False,

    # Layout
    "cleanup_dir": "cleanup",
    "reference_dir": "reference",

    # Behavior
    "listing_cache_seconds": 30,
    "prune_empty_dirs": True,
}

# Environment variable -> settings key
ENV_OVERRIDES = {
    "ORGANIZER_SERIES_NAME": "series_name",
    "ORGANIZER_NAMING_FORMAT": "naming_format",
    "ORGANIZER_MATCH_STRATEGY": "match_strategy",
    "ORGANIZER_SUPPRESS_NUMBER_MISMATCH": "suppress_number_mismatch",
    "ORGANIZER_THUMBNAIL_STYLE": "thumbnail_style",
}

_TRUE = {"1", "true", "yes", "on"}


def _coerce(key: str, raw: str) -> Any:
    """Convert an environment string to the type of the default value."""
    default = DEFAULT_SETTINGS.get(key)
    if isinstance(default, bool):
        return raw.strip().lower() in _TRUE
    if isinstance(default, int):
        try:
            return int(raw)
        except ValueError:
            return raw.strip()
    return raw


# ---------------------------------------------------------------------------
# Settings -- single authority for reading / writing settings
# ---------------------------------------------------------------------------

class Settings:
    """Settings store backed by a JSON file in the working root.

    Usage:
        settings = Settings(root)
        fmt = settings.get("naming_format")
        settings.set("series_name", "Thomas & Friends (1984)")
        settings.save()
    """

    def __init__(self, root: Path | None = None, *, use_env: bool = True):
        self.root = Path(root) if root is not None else Path.cwd()
        self.path = self.root / SETTINGS_FILE
        self._data: dict[str, Any] = self._load()
        self._env: dict[str, Any] = self._load_env() if use_env else {}

    # -- public API -------------------------------------------------------

    def get(self, key: str, default: Any = None) -> Any:
        if key in self._env:
            return self._env[key]
        fallback = DEFAULT_SETTINGS.get(key, default)
        return self._data.get(key, fallback)

    def set(self, key: str, value: Any) -> None:
        self._data[key] = value
        self._env.pop(key, None)

    def save(self) -> bool:
        try:
            with open(self.path, "w", encoding="utf-8") as f:
                json.dump(self._data, f, indent=2, ensure_ascii=False)
            return True
        except OSError as e:
            log.warning("Could not save settings to %s: %s", self.path, e)
            return False

    def all(self) -> dict[str, Any]:
        """Return a merged view: defaults + saved values + environment."""
        merged = DEFAULT_SETTINGS.copy()
        merged.update(self._data)
        merged.update(self._env)
        return merged

    def reload(self) -> None:
        self._data = self._load()

    # -- private ----------------------------------------------------------

    def _load(self) -> dict[str, Any]:
        if self.path.exists():
            try:
                with open(self.path, "r", encoding="utf-8") as f:
                    data = json.load(f)
                if isinstance(data, dict):
                    return data
                log.warning("Ignoring %s: not a JSON object", self.path)
            except (json.JSONDecodeError, OSError) as e:
                log.warning("Ignoring unreadable settings %s: %s", self.path, e)
        return {}

    def _load_env(self) -> dict[str, Any]:
        values: dict[str, Any] = {}
        env_path = self.root / ENV_FILE
        file_values = dotenv_values(env_path) if env_path.is_file() else {}
        for var, key in ENV_OVERRIDES.items():
            raw = os.environ.get(var, file_values.get(var))
            if raw is not None and raw != "":
                values[key] = _coerce(key, raw)
        return values
