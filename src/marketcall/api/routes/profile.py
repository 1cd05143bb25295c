"""Display-name profile endpoint."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from marketcall.api.deps import get_current_user, get_registry
from marketcall.registry.queries import Registry

router = APIRouter()


class ProfileRequest(BaseModel):
    name: str


@router.put("/profile")
def update_profile(
    body: ProfileRequest,
    user_id: str = Depends(get_current_user),
    registry: Registry = Depends(get_registry),
) -> dict:
    profile = registry.upsert_profile(user_id, body.name)
    return {
        "id": profile.id,
        "name": profile.name,
        "createdAt": profile.created_at.isoformat() if profile.created_at else None,
    }
