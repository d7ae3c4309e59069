"""FastAPI API endpoints under /api.

Endpoint groups: settings (health, runtime settings), templates (stage
registry administration and graph report), participants (bootstrap, replies,
reply preview, read flags, progress, folders). Each participant's resources
are nested under /api/participants/{participant_id}/.
"""

from fastapi import APIRouter

from .participants import router as participants_router
from .settings import router as settings_router
from .stages import router as stages_router

router = APIRouter()
router.include_router(settings_router)
router.include_router(stages_router)
router.include_router(participants_router)
