from fastapi import APIRouter
from journal_auth.api.routes import auth, profile
from journal_auth.schemas.auth import ErrorOut

ERROR_RESPONSES = {status: {"model": ErrorOut} for status in (400, 401, 429, 500, 502)}

router = APIRouter()
router.include_router(auth.router, prefix="/auth", tags=["auth"], responses=ERROR_RESPONSES)
router.include_router(profile.router, prefix="/profile", tags=["profile"], responses=ERROR_RESPONSES)
