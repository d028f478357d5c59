"""Per-directory settings persistence for compass.

Settings are stored in ./.compass/settings.json relative to the current
working directory. The file is a flat JSON object, e.g.:

    {"verbose": false, "default_project": "AUTH"}

The directory and file are created automatically when any setter or
defaulting-write logic runs.
"""

import json
import os

_SETTINGS_DIR = ".compass"
_SETTINGS_FILE = os.path.join(_SETTINGS_DIR, "settings.json")


def _read_settings() -> dict:
    """Read settings from disk, returning an empty dict if the file is absent or unreadable."""
    if not os.path.exists(_SETTINGS_FILE):
        return {}
    try:
        with open(_SETTINGS_FILE) as f:
            return json.load(f)
    except (json.JSONDecodeError, OSError):
        return {}


def _write_settings(data: dict) -> None:
    """Persist settings to disk, creating the directory and file if needed."""
    os.makedirs(_SETTINGS_DIR, exist_ok=True)
    with open(_SETTINGS_FILE, "w") as f:
        json.dump(data, f, indent=2)


def get_verbose() -> bool:
    """Return the persisted verbose setting (default: False)."""
    return bool(_read_settings().get("verbose", False))


def set_verbose(value: bool) -> None:
    data = _read_settings()
    data["verbose"] = value
    _write_settings(data)


def get_default_project() -> str:
    """Return the persisted default project key, or "" when none is set."""
    return str(_read_settings().get("default_project", "") or "")


def set_default_project(value: str) -> None:
    data = _read_settings()
    data["default_project"] = value
    _write_settings(data)


_DEFAULTS = {
    "verbose": False,
    "default_project": "",
}


def ensure_defaults() -> None:
    """Ensure all settings have default values in settings.json.

    Writes default values only for keys not already present; existing values
    are not changed.
    """
    data = _read_settings()
    changed = False
    for key, default in _DEFAULTS.items():
        if key not in data:
            data[key] = default
            changed = True
    if changed or not os.path.exists(_SETTINGS_FILE):
        _write_settings(data)
