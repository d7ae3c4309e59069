"""Storage initialization, path helpers, atomic writes, and record locks."""

import json
import os
import re
import tempfile
import threading
from pathlib import Path
from typing import Any

from darkriver.errors import ValidationError

_data_dir: Path | None = None

_locks: dict[str, threading.Lock] = {}
_locks_guard = threading.Lock()

_KEY_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_.@+-]{0,127}$")


def init_storage(data_dir: Path) -> None:
    global _data_dir
    from . import stages as _stages_mod

    _data_dir = data_dir
    _data_dir.mkdir(parents=True, exist_ok=True)
    stages_dir().mkdir(exist_ok=True)
    participants_dir().mkdir(exist_ok=True)
    _stages_mod.invalidate_snapshot()


def data_dir() -> Path:
    assert _data_dir is not None, "Call init_storage() before using storage"
    return _data_dir


def stages_dir() -> Path:
    return data_dir() / "stages"


def participants_dir() -> Path:
    return data_dir() / "participants"


def record_key(value: str) -> str:
    """Validate an externally supplied id for use as a file name.

    "agent-007@darkriver" → "agent-007@darkriver"; "../etc" is rejected.
    """
    if not isinstance(value, str) or not _KEY_RE.match(value) or ".." in value:
        raise ValidationError(f"Invalid record id: {value!r}")
    return value


def record_lock(path: Path) -> threading.Lock:
    """Return the process-wide lock guarding one record file."""
    key = str(path.resolve())
    with _locks_guard:
        lock = _locks.get(key)
        if lock is None:
            lock = _locks[key] = threading.Lock()
        return lock


def read_json(path: Path) -> Any:
    return json.loads(path.read_text())


def write_json(path: Path, data: Any) -> None:
    """Write JSON atomically: temp file in the same dir, then os.replace."""
    fd, tmp = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w") as f:
            f.write(json.dumps(data, indent=2))
        os.replace(tmp, path)
    except BaseException:
        Path(tmp).unlink(missing_ok=True)
        raise


def create_json(path: Path, data: Any) -> bool:
    """Create a new JSON file; returns False if it already exists.

    The content is written to a temp file first and hard-linked into place,
    so readers never see a half-written record.
    """
    fd, tmp = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w") as f:
            f.write(json.dumps(data, indent=2))
        os.link(tmp, path)
    except FileExistsError:
        return False
    finally:
        Path(tmp).unlink(missing_ok=True)
    return True
