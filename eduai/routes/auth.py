"""Authentication routes."""
from typing import Optional

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.orm import Session
from pydantic import BaseModel, EmailStr

from eduai.db.sessions import get_db
from eduai.core.security import TokenUser, create_access_token, get_current_user
from eduai.services import accounts


router = APIRouter(prefix="/api/auth", tags=["Authentication"])


# Request/Response schemas
class RegisterRequest(BaseModel):
    name: Optional[str] = None
    email: Optional[EmailStr] = None
    password: Optional[str] = None


class LoginRequest(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = None


class UserResponse(BaseModel):
    id: int
    name: str
    email: str
    created_at: Optional[str] = None

    @classmethod
    def from_user(cls, user) -> "UserResponse":
        return cls(
            id=user.id,
            name=user.name,
            email=user.email,
            created_at=user.created_at.isoformat() if user.created_at else None,
        )


class RegisterResponse(BaseModel):
    msg: str
    user: UserResponse


class LoginResponse(BaseModel):
    msg: str
    token: str
    user: UserResponse


@router.post("/register", response_model=RegisterResponse, status_code=status.HTTP_201_CREATED)
def register(request: RegisterRequest, db: Session = Depends(get_db)):
    """
    Register a new user.

    - Requires name, email and a password of at least 6 characters
    - Returns the created user (no token; clients log in afterwards)
    """
    user = accounts.register_user(db, request.name, request.email, request.password)
    return RegisterResponse(msg="User registered successfully.", user=UserResponse.from_user(user))


@router.post("/login", response_model=LoginResponse)
def login(body: LoginRequest, request: Request, db: Session = Depends(get_db)):
    """
    Login with email and password.

    - Validates credentials
    - Returns a JWT access token valid for JWT_EXPIRE_MINUTES
    """
    user = accounts.authenticate(db, body.email, body.password)
    token = create_access_token(user.id, user.email, user.name, request.app.state.settings)

    return LoginResponse(msg="Login successful.", token=token, user=UserResponse.from_user(user))


@router.get("/me", response_model=TokenUser)
def get_me(current_user: TokenUser = Depends(get_current_user)):
    """
    Get the identity carried by the caller's token.

    Protected endpoint - requires valid JWT token.
    """
    return current_user
