"""Health check and runtime settings endpoints."""

from fastapi import APIRouter, HTTPException

from darkriver import storage
from darkriver.errors import ValidationError

from .models import UpdateSettings

router = APIRouter()


@router.get("/health")
async def health():
    """Health check."""
    return {"status": "ok"}


@router.get("/settings")
async def get_settings():
    """Get runtime settings (sender address, retry budget, trigger defaults)."""
    return storage.get_config()


@router.patch("/settings")
async def update_settings(body: UpdateSettings):
    """Update runtime settings (partial merge)."""
    try:
        return storage.update_config(body.model_dump(exclude_none=True))
    except ValidationError as e:
        raise HTTPException(400, str(e))
