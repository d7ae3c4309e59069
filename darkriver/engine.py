"""Stage progression engine.

Reply flow (submit_reply):
  1. Reject an empty body before anything is read or written.
  2. Load the participant's progress record and its current active stage.
  3. Append the reply to `sent` (always; every attempt is kept).
  4. Evaluate the current stage's trigger against the body.
  5. On a match, deliver the next stage to the inbox (unread) and move
     `current_stage` to it.
  6. Commit with a version-checked write. If another writer got there first,
     start again from step 2 against the fresh record, a bounded number of
     times.

The engine keeps no state between calls; every decision is made from the
stored record and the registry snapshot. Completion is not stored: a
participant is done when their current stage is terminal.

Out-of-band delivery (notify_delivery) happens after the commit and never
affects stored state.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from darkriver import storage, triggers
from darkriver.errors import (
    AlreadyBootstrapped,
    ConcurrencyConflict,
    EngineError,
    UnknownInboxEntry,
    UnknownParticipant,
    UnknownStage,
    ValidationError,
)
from darkriver.models import (
    FolderView,
    MailEntry,
    ParticipantProgress,
    PreviewResult,
    StageTemplate,
    SubmitResult,
)
from darkriver.transport import Transport, TransportError

logger = logging.getLogger(__name__)

FOLDERS = ("inbox", "sent")


@dataclass
class _ReplyOutcome:
    progress: ParticipantProgress
    sent_entry: MailEntry
    inbox_entry: MailEntry | None
    delivered: StageTemplate | None
    is_last_stage: bool
    error: EngineError | None


def _load(participant_id: str) -> ParticipantProgress:
    progress = storage.get_progress(participant_id)
    if progress is None:
        raise UnknownParticipant(participant_id)
    return progress


def _delivery(template: StageTemplate, sender: str, recipient: str) -> MailEntry:
    return MailEntry(
        subject=template.subject,
        body=template.body,
        sender=sender,
        recipient=recipient,
        read=False,
        stage=template.stage,
    )


def _reply_subject(progress: ParticipantProgress) -> str:
    if not progress.inbox:
        return "Re:"
    latest = progress.inbox[-1].subject
    return latest if latest.lower().startswith("re:") else f"Re: {latest}"


def _retries() -> int:
    return int(storage.get_config()["max_conflict_retries"])


# ---------------------------------------------------------------------------
# Bootstrap
# ---------------------------------------------------------------------------

def bootstrap(participant_id: str, address: str = "") -> ParticipantProgress:
    """Create the progress record with the initial stage already delivered."""
    storage.record_key(participant_id)
    if storage.get_progress(participant_id) is not None:
        raise AlreadyBootstrapped(participant_id)

    initial = storage.get_initial()
    sender = storage.get_config()["sender_address"]
    progress = ParticipantProgress(
        participant_id=participant_id,
        address=address,
        current_stage=initial.stage,
        inbox=[_delivery(initial, sender, address)],
    )
    created = storage.create_progress(progress)
    if created is None:
        raise AlreadyBootstrapped(participant_id)

    logger.info("participant %s bootstrapped at stage %d", participant_id, initial.stage)
    return created


# ---------------------------------------------------------------------------
# Replies
# ---------------------------------------------------------------------------

def _apply_reply(progress: ParticipantProgress, body: str, subject: str, sender: str) -> _ReplyOutcome:
    """Compute the post-reply record. Pure apart from registry reads."""
    updated = progress.model_copy(deep=True)
    stage_before = updated.current_stage
    error: EngineError | None = None

    try:
        current: StageTemplate | None = storage.get_stage(stage_before)
    except UnknownStage as e:
        logger.warning("participant %s is on missing stage %d", updated.participant_id, stage_before)
        current, error = None, e

    sent_entry = MailEntry(
        subject=subject or _reply_subject(updated),
        body=body,
        sender=updated.address,
        recipient=sender,
        read=True,
        stage=stage_before,
        matched=False,
    )
    updated.sent.append(sent_entry)

    inbox_entry = None
    delivered = None
    if current is not None and not current.is_terminal:
        matched = triggers.matching_keywords(current.trigger, body)
        logger.debug("stage %d trigger check: matched=%s body_len=%d",
                      stage_before, matched, len(body))
        if matched:
            try:
                delivered = storage.get_stage(current.next_stage)
            except UnknownStage as e:
                logger.warning("stage %d points at missing stage %d",
                               stage_before, current.next_stage)
                error = e
            else:
                inbox_entry = _delivery(delivered, sender, updated.address)
                updated.inbox.append(inbox_entry)
                updated.current_stage = delivered.stage
                sent_entry.matched = True

    landed = delivered or current
    return _ReplyOutcome(
        progress=updated,
        sent_entry=sent_entry,
        inbox_entry=inbox_entry,
        delivered=delivered,
        is_last_stage=landed is not None and landed.is_terminal,
        error=error,
    )


def submit_reply(participant_id: str, body: str, subject: str = "") -> SubmitResult:
    """Record a participant's reply and advance them if it satisfies the trigger.

    The reply is always stored, even when the trigger does not match or the
    registry is misconfigured. In the latter case UnknownStage is raised after
    the reply has been committed.
    """
    if body is None or not body.strip():
        raise ValidationError("Reply body must not be empty")
    storage.record_key(participant_id)

    sender = storage.get_config()["sender_address"]
    retries = _retries()
    attempt = 0
    while True:
        progress = _load(participant_id)
        outcome = _apply_reply(progress, body, subject.strip(), sender)
        try:
            saved = storage.save_progress(outcome.progress, progress.version)
        except ConcurrencyConflict:
            if attempt >= retries:
                raise
            attempt += 1
            logger.warning("participant %s: version conflict, retrying (%d/%d)",
                           participant_id, attempt, retries)
            continue
        break

    if outcome.error is not None:
        raise outcome.error

    if outcome.delivered is not None:
        logger.info("participant %s advanced %d -> %d", participant_id,
                    progress.current_stage, saved.current_stage)

    return SubmitResult(
        advanced=outcome.delivered is not None,
        delivered_stage=outcome.delivered,
        sent_entry_id=outcome.sent_entry.id,
        inbox_entry_id=outcome.inbox_entry.id if outcome.inbox_entry else None,
        current_stage=saved.current_stage,
        is_last_stage=outcome.is_last_stage,
    )


def preview_reply(participant_id: str, body: str) -> PreviewResult:
    """Report whether `body` would advance the participant. Writes nothing."""
    progress = _load(participant_id)
    current = storage.find_stage(progress.current_stage, include_inactive=False)
    if current is None or current.is_terminal:
        return PreviewResult(would_advance=False, current_stage=progress.current_stage)
    matched = triggers.matching_keywords(current.trigger, body)
    return PreviewResult(
        would_advance=bool(matched),
        current_stage=progress.current_stage,
        matched_keywords=matched,
        next_stage=current.next_stage if matched else None,
    )


# ---------------------------------------------------------------------------
# Read flags and views
# ---------------------------------------------------------------------------

def mark_read(participant_id: str, entry_id: str) -> MailEntry:
    """Mark one inbox entry read. Calling it again changes nothing."""
    retries = _retries()
    attempt = 0
    while True:
        progress = _load(participant_id)
        entry = progress.inbox_entry(entry_id)
        if entry is None:
            raise UnknownInboxEntry(entry_id)
        if entry.read:
            return entry

        updated = progress.model_copy(deep=True)
        updated.inbox_entry(entry_id).read = True
        try:
            saved = storage.save_progress(updated, progress.version)
        except ConcurrencyConflict:
            if attempt >= retries:
                raise
            attempt += 1
            continue
        return saved.inbox_entry(entry_id)


def get_progress(participant_id: str) -> ParticipantProgress:
    return _load(participant_id)


def is_complete(progress: ParticipantProgress) -> bool:
    """True when the participant's current stage has no way forward."""
    current = storage.find_stage(progress.current_stage, include_inactive=False)
    return current is not None and current.is_terminal


def list_folder(participant_id: str, folder: str) -> FolderView:
    """Entries of one folder, newest first."""
    if folder not in FOLDERS:
        raise ValidationError(f"Invalid folder: {folder!r}")
    progress = _load(participant_id)
    entries = progress.inbox if folder == "inbox" else progress.sent
    return FolderView(
        folder=folder,
        entries=entries[::-1],
        unread=sum(1 for e in progress.inbox if not e.read) if folder == "inbox" else 0,
        is_last_stage=is_complete(progress),
    )


# ---------------------------------------------------------------------------
# Out-of-band delivery
# ---------------------------------------------------------------------------

async def notify_delivery(transport: Transport, progress: ParticipantProgress, entry: MailEntry) -> bool:
    """Tell the transport about a delivered inbox entry. Returns True if sent.

    Failures are logged only; the inbox record is the source of truth.
    """
    if not progress.address:
        logger.debug("participant %s has no address; skipping notification",
                     progress.participant_id)
        return False
    try:
        await transport(progress.address, entry.subject, entry.body)
    except TransportError as e:
        logger.warning("Notification to %s failed: %s", progress.participant_id, e)
        return False
    return True
