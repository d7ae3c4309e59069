"""Runtime settings (sender address, retry budget, trigger defaults)."""

import json
from pathlib import Path
from typing import Any

from darkriver.errors import ValidationError

from .core import data_dir, read_json, write_json

_MATCH_MODES = ("substring", "word")

_CONFIG_DEFAULTS: dict[str, Any] = {
    "sender_address": "admin@darkriver.site",
    "max_conflict_retries": 3,
    "notify_participants": True,
    "trigger_defaults": {
        "mode": "substring",
        "case_sensitive": False,
    },
}


def _config_path() -> Path:
    return data_dir() / "config.json"


def get_config() -> dict[str, Any]:
    """Read config, returning defaults merged with stored values."""
    config: dict[str, Any] = json.loads(json.dumps(_CONFIG_DEFAULTS))
    path = _config_path()
    if path.is_file():
        stored = read_json(path)
        for key in ("sender_address", "max_conflict_retries", "notify_participants"):
            if key in stored:
                config[key] = stored[key]
        if isinstance(stored.get("trigger_defaults"), dict):
            config["trigger_defaults"].update(stored["trigger_defaults"])
    return config


def update_config(fields: dict[str, Any]) -> dict[str, Any]:
    """Merge fields into config and persist. Returns full config."""
    config = get_config()
    if "sender_address" in fields:
        config["sender_address"] = fields["sender_address"]
    if "max_conflict_retries" in fields:
        config["max_conflict_retries"] = max(0, int(fields["max_conflict_retries"]))
    if "notify_participants" in fields:
        config["notify_participants"] = bool(fields["notify_participants"])
    if isinstance(fields.get("trigger_defaults"), dict):
        defaults = fields["trigger_defaults"]
        if "mode" in defaults:
            if defaults["mode"] not in _MATCH_MODES:
                raise ValidationError(f"Unknown trigger mode: {defaults['mode']!r}")
            config["trigger_defaults"]["mode"] = defaults["mode"]
        if "case_sensitive" in defaults:
            config["trigger_defaults"]["case_sensitive"] = bool(defaults["case_sensitive"])
    write_json(_config_path(), config)
    return config
