"""Administrative stage template endpoints."""

from fastapi import APIRouter, HTTPException, Path

from darkriver import storage
from darkriver.errors import ConfigurationError, ValidationError

from .models import UpsertStage

router = APIRouter()


@router.get("/templates")
async def list_templates():
    """List all stage templates, active and inactive, by stage number."""
    return storage.list_stages()


@router.get("/templates/graph")
async def template_graph():
    """Summarise the stage graph: initial stage, edges, terminal and unreachable stages."""
    return storage.graph().report()


@router.get("/templates/{stage}")
async def get_template(stage: int):
    """Get a single stage template (inactive ones included)."""
    template = storage.find_stage(stage)
    if template is None:
        raise HTTPException(404, "Stage not found")
    return template


@router.put("/templates/{stage}")
async def upsert_template(body: UpsertStage, stage: int = Path(ge=1)):
    """Create or replace a stage template. The stage number comes from the path."""
    fields = body.model_dump()
    fields["stage"] = stage
    try:
        return storage.upsert_stage(fields)
    except ValidationError as e:
        raise HTTPException(400, str(e))
    except ConfigurationError as e:
        raise HTTPException(409, str(e))


@router.delete("/templates/{stage}")
async def delete_template(stage: int):
    """Delete a stage template that no other stage points at."""
    try:
        deleted = storage.delete_stage(stage)
    except ConfigurationError as e:
        raise HTTPException(409, str(e))
    if not deleted:
        raise HTTPException(404, "Stage not found")
    return {"ok": True}
