"""Participant endpoints: bootstrap, replies, read flags, progress and folders.

The participant id in the path comes from the identity layer and is trusted.
Notifications for newly delivered stages run as background tasks, after the
response, so they never hold up a commit.
"""

from fastapi import APIRouter, BackgroundTasks, HTTPException, Request

from darkriver import engine, storage
from darkriver.errors import (
    ConfigurationError,
    ConflictError,
    NotFoundError,
    UnknownStage,
    ValidationError,
)

from .models import BootstrapBody, MarkReadBody, PreviewBody, ReplyBody

router = APIRouter()


def _schedule_notification(request: Request, tasks: BackgroundTasks,
                           participant_id: str, entry_id: str | None) -> None:
    if entry_id is None or not storage.get_config()["notify_participants"]:
        return
    progress = storage.get_progress(participant_id)
    entry = progress.inbox_entry(entry_id) if progress else None
    if entry is not None:
        tasks.add_task(engine.notify_delivery, request.app.state.transport, progress, entry)


@router.post("/participants/{participant_id}/bootstrap", status_code=201)
async def bootstrap(participant_id: str, body: BootstrapBody,
                    request: Request, tasks: BackgroundTasks):
    """Create the participant's progress record with the first stage delivered."""
    try:
        progress = engine.bootstrap(participant_id, body.address)
    except ValidationError as e:
        raise HTTPException(400, str(e))
    except ConflictError as e:
        raise HTTPException(409, str(e))
    except ConfigurationError as e:
        raise HTTPException(500, f"System not properly configured: {e}")
    _schedule_notification(request, tasks, participant_id, progress.inbox[0].id)
    return progress


@router.post("/participants/{participant_id}/replies")
async def submit_reply(participant_id: str, body: ReplyBody,
                       request: Request, tasks: BackgroundTasks):
    """Send a reply; advances the story when it satisfies the current trigger."""
    try:
        result = engine.submit_reply(participant_id, body.body, body.subject)
    except ValidationError as e:
        raise HTTPException(400, str(e))
    except UnknownStage as e:
        # The reply is recorded; the registry needs repair
        raise HTTPException(500, f"Stage configuration error: {e}")
    except NotFoundError as e:
        raise HTTPException(404, str(e))
    except ConflictError as e:
        raise HTTPException(409, str(e))
    _schedule_notification(request, tasks, participant_id, result.inbox_entry_id)
    return result


@router.post("/participants/{participant_id}/replies/preview")
async def preview_reply(participant_id: str, body: PreviewBody):
    """Check whether a draft would advance the story, without sending it."""
    try:
        return engine.preview_reply(participant_id, body.body)
    except ValidationError as e:
        raise HTTPException(400, str(e))
    except NotFoundError as e:
        raise HTTPException(404, str(e))


@router.post("/participants/{participant_id}/read")
async def mark_read(participant_id: str, body: MarkReadBody):
    """Mark an inbox entry as read."""
    try:
        engine.mark_read(participant_id, body.entry_id)
    except ValidationError as e:
        raise HTTPException(400, str(e))
    except NotFoundError as e:
        raise HTTPException(404, str(e))
    except ConflictError as e:
        raise HTTPException(409, str(e))
    return {"ok": True}


@router.get("/participants/{participant_id}/progress")
async def get_progress(participant_id: str):
    """Current stage plus full inbox and sent history."""
    try:
        progress = engine.get_progress(participant_id)
    except ValidationError as e:
        raise HTTPException(400, str(e))
    except NotFoundError as e:
        raise HTTPException(404, str(e))
    return {
        "participant_id": progress.participant_id,
        "current_stage": progress.current_stage,
        "inbox": progress.inbox,
        "sent": progress.sent,
        "is_last_stage": engine.is_complete(progress),
    }


@router.get("/participants/{participant_id}/folders/{folder}")
async def list_folder(participant_id: str, folder: str):
    """Inbox or sent entries, newest first."""
    try:
        return engine.list_folder(participant_id, folder)
    except ValidationError as e:
        raise HTTPException(400, str(e))
    except NotFoundError as e:
        raise HTTPException(404, str(e))
