"""Profile routes."""
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, EmailStr
from sqlalchemy.orm import Session

from eduai.core.security import TokenUser, get_current_user
from eduai.db.sessions import get_db
from eduai.routes.auth import UserResponse
from eduai.services import accounts


router = APIRouter(prefix="/api/profile", tags=["Profile"])


class UpdateProfileRequest(BaseModel):
    name: Optional[str] = None
    email: Optional[EmailStr] = None


class UpdateProfileResponse(BaseModel):
    msg: str
    user: UserResponse


@router.get("", response_model=UserResponse)
def get_profile(
    current_user: TokenUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Get the stored profile of the caller."""
    return UserResponse.from_user(accounts.get_user(db, current_user.id))


@router.put("", response_model=UpdateProfileResponse)
def update_profile(
    request: UpdateProfileRequest,
    current_user: TokenUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """
    Update the caller's name and/or email.

    Tokens issued before the change keep the old claims until they expire.
    """
    user = accounts.update_profile(db, current_user.id, name=request.name, email=request.email)
    return UpdateProfileResponse(msg="Profile updated successfully.", user=UserResponse.from_user(user))
