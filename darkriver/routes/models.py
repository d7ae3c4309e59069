"""Pydantic request models for API endpoints."""

from pydantic import BaseModel, Field

from darkriver.models import Trigger


class UpsertStage(BaseModel):
    subject: str = Field(min_length=1)
    body: str = Field(min_length=1)
    description: str = ""
    is_initial: bool = False
    is_active: bool = True
    trigger: Trigger | str | None = None
    next_stage: int | None = Field(default=None, ge=1)


class BootstrapBody(BaseModel):
    address: str = ""


class ReplyBody(BaseModel):
    body: str
    subject: str = ""


class PreviewBody(BaseModel):
    body: str = ""


class MarkReadBody(BaseModel):
    entry_id: str


class UpdateSettings(BaseModel):
    sender_address: str | None = None
    max_conflict_retries: int | None = Field(default=None, ge=0)
    notify_participants: bool | None = None
    trigger_defaults: dict | None = None
