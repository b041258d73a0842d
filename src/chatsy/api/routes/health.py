"""Liveness and session status."""

from fastapi import APIRouter, Depends

from chatsy.api.deps import get_session
from chatsy.session import Session

router = APIRouter(tags=["health"])


@router.get("/health")
async def health() -> dict:
    """Health check endpoint."""
    return {"status": "ok"}


@router.get("/status")
async def status(session: Session = Depends(get_session)) -> dict:
    """Platform, readiness and monitoring state."""
    return session.status()
