"""Participant progress records (one JSON file per participant).

Writes are compare-and-swap on the record's version stamp: save_progress()
re-reads the stored version under the record lock and refuses to write if
someone else got there first.
"""

from pathlib import Path

from darkriver.errors import ConcurrencyConflict
from darkriver.models import ParticipantProgress, utcnow

from .core import create_json, participants_dir, read_json, record_key, record_lock, write_json


def _progress_path(participant_id: str) -> Path:
    return participants_dir() / f"{record_key(participant_id)}.json"


def list_participants() -> list[str]:
    return [path.stem for path in sorted(participants_dir().glob("*.json"))]


def get_progress(participant_id: str) -> ParticipantProgress | None:
    path = _progress_path(participant_id)
    if not path.is_file():
        return None
    return ParticipantProgress.model_validate(read_json(path))


def create_progress(progress: ParticipantProgress) -> ParticipantProgress | None:
    """Persist a brand-new record. Returns None if one already exists."""
    created = progress.model_copy(update={"version": 1})
    if not create_json(_progress_path(created.participant_id), created.model_dump()):
        return None
    return created


def save_progress(progress: ParticipantProgress, expected_version: int) -> ParticipantProgress:
    """Write `progress` if the stored version still equals `expected_version`.

    Returns the saved record with its bumped version. Raises
    ConcurrencyConflict when the stored record has moved on (or vanished).
    """
    path = _progress_path(progress.participant_id)
    with record_lock(path):
        stored_version = read_json(path)["version"] if path.is_file() else -1
        if stored_version != expected_version:
            raise ConcurrencyConflict(progress.participant_id, expected_version, stored_version)
        saved = progress.model_copy(update={
            "version": expected_version + 1,
            "updated_at": utcnow(),
        })
        write_json(path, saved.model_dump())
    return saved
