"""Maintenance and readiness actions.

POST /tasks/retention       → purge expired contacts and history
POST /platform/wait-ready   → wait for the page (503 on timeout)
"""

from fastapi import APIRouter, Depends, HTTPException

from chatsy.api.deps import get_session
from chatsy.platforms.resolver import PlatformTimeout
from chatsy.session import Session

router = APIRouter(tags=["tasks"])


@router.post("/tasks/retention")
async def run_retention(session: Session = Depends(get_session)) -> dict:
    return {"ok": True, **session.run_retention()}


@router.post("/platform/wait-ready")
async def wait_ready(session: Session = Depends(get_session)) -> dict:
    try:
        await session.wait_until_ready()
    except PlatformTimeout:
        raise HTTPException(status_code=503, detail="platform not ready") from None
    return {"ready": True, "platform": session.resolver.platform}
