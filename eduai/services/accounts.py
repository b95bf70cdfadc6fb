"""Account registration, login and profile updates."""
import logging
from typing import Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from eduai.core import errors
from eduai.core.security import get_password_hash, verify_password
from eduai.models.user import User

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6
INVALID_CREDENTIALS_MSG = "Invalid credentials."
EMAIL_TAKEN_MSG = "Email is already registered."


def _normalize_email(email: Optional[str]) -> str:
    return (email or "").strip().lower()


def register_user(db: Session, name: Optional[str], email: Optional[str], password: Optional[str]) -> User:
    """
    Create an account with a bcrypt-hashed password.

    Raises:
        ValidationError: a field is missing or the password is too short
        ConflictError: the email is already registered
    """
    name = (name or "").strip()
    email = _normalize_email(email)
    if not name or not email or not password:
        raise errors.ValidationError("Please provide name, email and password.")
    if len(password) < MIN_PASSWORD_LENGTH:
        raise errors.ValidationError(
            f"Password must be at least {MIN_PASSWORD_LENGTH} characters long."
        )

    if _first(db.query(User).filter(User.email == email), "registering user"):
        logger.info("Registration rejected, email already registered: %s", email)
        raise errors.ConflictError(EMAIL_TAKEN_MSG)

    user = User(name=name, email=email, password_hash=get_password_hash(password))
    db.add(user)
    _commit(db, "registering user")
    db.refresh(user)

    logger.info("Registered user %s (%s)", user.id, user.email)
    return user


def authenticate(db: Session, email: Optional[str], password: Optional[str]) -> User:
    """
    Check credentials and return the matching user.

    Unknown email and wrong password produce the same client-facing error;
    only the log tells them apart.
    """
    email = _normalize_email(email)
    if not email or not password:
        raise errors.ValidationError("Please provide email and password.")

    user = _first(db.query(User).filter(User.email == email), "logging in")
    if user is None:
        logger.info("Login failed for %s: user not found", email)
        raise errors.AuthError(INVALID_CREDENTIALS_MSG, status_code=400)

    if not verify_password(password, user.password_hash):
        logger.info("Login failed for %s: wrong password", email)
        raise errors.AuthError(INVALID_CREDENTIALS_MSG, status_code=400)

    return user


def get_user(db: Session, user_id: int) -> User:
    user = _first(db.query(User).filter(User.id == user_id), "loading user")
    if user is None:
        raise errors.NotFoundError("User not found.")
    return user


def update_profile(db: Session, user_id: int, name: Optional[str] = None, email: Optional[str] = None) -> User:
    """Change the display name and/or email of an existing user."""
    name = name.strip() if name is not None else None
    email = _normalize_email(email) if email is not None else None
    if not name and not email:
        raise errors.ValidationError("Please provide a name or an email to update.")

    user = get_user(db, user_id)

    if email and email != user.email:
        taken = _first(
            db.query(User).filter(User.email == email, User.id != user.id), "updating profile"
        )
        if taken:
            raise errors.ConflictError(EMAIL_TAKEN_MSG)
        user.email = email
    if name:
        user.name = name

    _commit(db, "updating profile")
    db.refresh(user)

    logger.info("Updated profile for user %s", user.id)
    return user


def _first(query, action: str) -> Optional[User]:
    try:
        return query.first()
    except SQLAlchemyError as e:
        logger.exception("Database error while %s", action)
        raise errors.ServerError(f"Server error while {action}.", details=str(e))


def _commit(db: Session, action: str) -> None:
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise errors.ConflictError(EMAIL_TAKEN_MSG)
    except SQLAlchemyError as e:
        db.rollback()
        logger.exception("Database error while %s", action)
        raise errors.ServerError(f"Server error while {action}.", details=str(e))
