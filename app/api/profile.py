"""
app/api/profile.py

Purpose: Dashboard profile endpoints

- GET returns the profile with defaults filled in
- PUT updates name, profile fields and notification flags
- PATCH applies a typed partial update
"""

from fastapi import APIRouter, Depends

from app.core.security import SessionUser, get_current_session
from app.schemas.profile import ProfilePatch, ProfileUpdate
from app.services import user_service

router = APIRouter()


@router.get("/profile")
async def get_profile(session: SessionUser = Depends(get_current_session)):
    user = await user_service.require_user(session.email)
    return user_service.build_profile_view(user)


@router.put("/profile")
async def update_profile(body: ProfileUpdate, session: SessionUser = Depends(get_current_session)):
    changes = body.model_dump(exclude_unset=True)
    if body.notifications is not None:
        changes["notifications"] = body.notifications.model_dump(exclude_unset=True)

    profile = await user_service.update_profile(session.email, changes)
    return {"message": "Profile updated successfully", "profile": profile}


@router.patch("/profile")
async def patch_profile(body: ProfilePatch, session: SessionUser = Depends(get_current_session)):
    section = await user_service.patch_profile(session.email, body.type, body.data)
    return {"message": f"{body.type} updated successfully", body.type: section}
