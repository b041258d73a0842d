"""Suggestion outcomes reported by the overlay.

POST /suggestions/{id}/select → insert into the page input, record acceptance
POST /suggestions/{id}/reject → record rejection
"""

from fastapi import APIRouter, Depends, HTTPException, Path

from chatsy.api.deps import get_session
from chatsy.observability.logging import get_logger
from chatsy.observability.redaction import safe_log_context
from chatsy.session import Session, UnknownSuggestionError

logger = get_logger(__name__)

router = APIRouter(prefix="/suggestions", tags=["suggestions"])


@router.get("/last")
async def last_suggestions(session: Session = Depends(get_session)) -> dict:
    """Most recent suggestion set shown for the active contact."""
    result = session.last_suggestions
    if result is None:
        return {"suggestions": []}
    return {
        "source": result.source,
        "suggestions": [
            {"id": s.id, "text": s.text, "kind": s.kind}
            for s in result.suggestions[: session.settings.max_suggestions]
        ],
    }


@router.post("/{suggestion_id}/select")
async def select_suggestion(
    suggestion_id: str = Path(...),
    session: Session = Depends(get_session),
) -> dict:
    try:
        inserted = session.select(suggestion_id)
    except UnknownSuggestionError:
        logger.info(
            "select for unknown suggestion",
            extra={"extra_fields": safe_log_context(suggestion_id=suggestion_id)},
        )
        raise HTTPException(status_code=404, detail="suggestion not found") from None
    return {"ok": True, "inserted": inserted}


@router.post("/{suggestion_id}/reject")
async def reject_suggestion(
    suggestion_id: str = Path(...),
    session: Session = Depends(get_session),
) -> dict:
    try:
        session.reject(suggestion_id)
    except UnknownSuggestionError:
        raise HTTPException(status_code=404, detail="suggestion not found") from None
    return {"ok": True}
