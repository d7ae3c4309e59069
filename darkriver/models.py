"""Core domain models.

The registry, progress store and engine all operate on these types.
Pydantic is used for validation and serialisation at every data boundary.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Literal

from pydantic import BaseModel, Field, field_validator

MatchMode = Literal["substring", "word"]
Folder = Literal["inbox", "sent"]


def utcnow() -> str:
    return datetime.now(timezone.utc).isoformat()


def new_entry_id() -> str:
    return uuid.uuid4().hex


class Trigger(BaseModel):
    """Keyword condition that moves a participant off a stage.

    Keywords match on any-of semantics.
    """

    keywords: list[str] = Field(min_length=1)
    mode: MatchMode = "substring"
    case_sensitive: bool = False

    @field_validator("keywords")
    @classmethod
    def _strip_keywords(cls, value: list[str]) -> list[str]:
        cleaned = [k.strip() for k in value if k and k.strip()]
        if not cleaned:
            raise ValueError("Trigger needs at least one non-empty keyword")
        return cleaned


class StageTemplate(BaseModel):
    """One narrative stage, keyed by its stage number."""

    stage: int = Field(ge=1)
    subject: str = Field(min_length=1)
    body: str = Field(min_length=1)
    description: str = ""
    is_initial: bool = False
    is_active: bool = True
    trigger: Trigger | None = None
    next_stage: int | None = Field(default=None, ge=1)
    version: int = 0
    updated_at: str | None = None

    @field_validator("trigger", mode="before")
    @classmethod
    def _coerce_trigger(cls, value):
        # Plain phrases are stored as single-keyword triggers
        if isinstance(value, str):
            return {"keywords": [value]} if value.strip() else None
        return value

    @property
    def is_terminal(self) -> bool:
        """True when the stage has no outgoing edge."""
        return (
            self.trigger is None
            or self.next_stage is None
            or self.next_stage == self.stage
        )


class MailEntry(BaseModel):
    """A single message in a participant's inbox or sent folder."""

    id: str = Field(default_factory=new_entry_id)
    subject: str
    body: str
    sender: str = ""
    recipient: str = ""
    timestamp: str = Field(default_factory=utcnow)
    read: bool = False
    stage: int | None = None
    matched: bool | None = None  # sent entries only


class ParticipantProgress(BaseModel):
    """Durable per-participant progress record."""

    participant_id: str
    address: str = ""
    current_stage: int
    inbox: list[MailEntry] = Field(default_factory=list)
    sent: list[MailEntry] = Field(default_factory=list)
    version: int = 0
    created_at: str = Field(default_factory=utcnow)
    updated_at: str = Field(default_factory=utcnow)

    def inbox_entry(self, entry_id: str) -> MailEntry | None:
        for entry in self.inbox:
            if entry.id == entry_id:
                return entry
        return None


class SubmitResult(BaseModel):
    """Outcome of one submitted reply."""

    advanced: bool
    delivered_stage: StageTemplate | None = None
    sent_entry_id: str
    inbox_entry_id: str | None = None
    current_stage: int
    is_last_stage: bool = False


class PreviewResult(BaseModel):
    """Speculative evaluation of a reply; nothing is written."""

    would_advance: bool
    current_stage: int
    matched_keywords: list[str] = Field(default_factory=list)
    next_stage: int | None = None


class FolderView(BaseModel):
    folder: Folder
    entries: list[MailEntry]
    unread: int = 0
    is_last_stage: bool = False
