"""Statistics, privacy report and data clearing."""

from fastapi import APIRouter, Depends, Response

from chatsy.api.deps import get_session
from chatsy.session import Session

router = APIRouter(tags=["data"])


@router.get("/stats")
async def stats(session: Session = Depends(get_session)) -> dict:
    return session.stats()


@router.get("/privacy-report")
async def privacy_report(session: Session = Depends(get_session)) -> dict:
    return session.privacy_report()


@router.delete("/data", status_code=204)
async def clear_data(session: Session = Depends(get_session)) -> Response:
    session.clear_data()
    return Response(status_code=204)
