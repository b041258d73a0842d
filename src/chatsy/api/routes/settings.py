"""Settings and provider credentials.

GET /settings   → current settings
PUT /settings   → partial update (422 on invalid values)
PUT /api-keys   → store keys encrypted; returns only which providers are configured
"""

from fastapi import APIRouter, Depends

from chatsy.api.deps import get_session
from chatsy.session import Session
from chatsy.settings import ApiKeysUpdate, SettingsUpdate, SuggestionSettings

router = APIRouter(tags=["settings"])


@router.get("/settings", response_model=SuggestionSettings)
async def get_settings(session: Session = Depends(get_session)) -> SuggestionSettings:
    return session.settings


@router.put("/settings", response_model=SuggestionSettings)
async def put_settings(
    body: SettingsUpdate,
    session: Session = Depends(get_session),
) -> SuggestionSettings:
    return session.update_settings(body)


@router.put("/api-keys")
async def put_api_keys(
    body: ApiKeysUpdate,
    session: Session = Depends(get_session),
) -> dict:
    return {"configured": session.update_api_keys(body)}
