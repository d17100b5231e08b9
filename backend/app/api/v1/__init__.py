from fastapi import APIRouter

from backend.app.api.v1 import (
    audit,
    letters,
    templates,
)

router = APIRouter(prefix="/api/v1")

router.include_router(letters.router, prefix="/letters", tags=["letters"])
router.include_router(templates.router, prefix="/templates", tags=["templates"])
router.include_router(audit.router, prefix="/audit", tags=["audit"])

__all__ = ["router"]
