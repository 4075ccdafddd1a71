import logging
import os
from datetime import datetime, timedelta, timezone
from typing import Optional, Tuple

from dotenv import load_dotenv
from jose import ExpiredSignatureError, JWTError, jwt
from passlib.context import CryptContext
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from fintrack.data.repositories.user_repository import (
    count_users,
    create_user as repo_create_user,
    delete_user as repo_delete_user,
    get_user,
    get_user_by_email,
    list_users as repo_list_users,
    update_password,
    update_profile,
    update_role,
    user_to_domain,
)
from fintrack.domain.errors import (
    DuplicateError,
    NotFoundError,
    ValidationError,
    translate_integrity_error,
)
from fintrack.domain.models.user import Identity, Role, User

logger = logging.getLogger(__name__)

load_dotenv()

BCRYPT_ROUNDS = int(os.getenv("BCRYPT_ROUNDS", "12"))
pwd_context = CryptContext(
    schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=BCRYPT_ROUNDS
)

SECRET_KEY = os.getenv("SECRET_KEY")
if not SECRET_KEY:
    raise RuntimeError("SECRET_KEY environment variable is not set")

ALGORITHM = "HS256"
SESSION_EXPIRE_DAYS = int(os.getenv("SESSION_EXPIRE_DAYS", "7"))
MIN_PASSWORD_LENGTH = 6

SESSION_EXPIRED = "expired"
SESSION_INVALID = "invalid"


def verify_password(plain_password, hashed_password) -> bool:
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except (ValueError, TypeError):
        return False


def get_password_hash(password) -> str:
    return pwd_context.hash(password)


def has_role(identity: Optional[Identity], role: Role) -> bool:
    """The one authorization predicate. A superadmin satisfies every role."""
    if identity is None:
        return False
    if identity.role == Role.SUPERADMIN:
        return True
    return identity.role == role


def normalize_email(email: str) -> str:
    email = (email or "").strip().lower()
    if not email or "@" not in email:
        raise ValidationError("A valid email address is required")
    return email


def _validate_new_password(password: str) -> None:
    if not password or len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(
            f"Password must be at least {MIN_PASSWORD_LENGTH} characters long"
        )


# --- Sessions ---


def create_session_token(user: User, expires_delta: timedelta | None = None) -> str:
    issued_at = datetime.now(timezone.utc)
    expire = issued_at + (expires_delta or timedelta(days=SESSION_EXPIRE_DAYS))
    to_encode = {
        "sub": str(user.id),
        "email": user.email,
        "role": user.role.value,
        "iat": issued_at,
        "exp": expire,
    }
    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)


def inspect_session(token: Optional[str]) -> Tuple[Optional[Identity], Optional[str]]:
    """
    Check signature, expiry and payload shape of a session token.
    Returns (identity, None) on success, otherwise (None, failure reason).
    Stateless: the user table is not consulted.
    """
    if not token:
        return None, SESSION_INVALID
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except ExpiredSignatureError:
        return None, SESSION_EXPIRED
    except JWTError:
        return None, SESSION_INVALID
    try:
        identity = Identity(
            user_id=int(payload["sub"]),
            email=str(payload["email"]),
            role=Role(payload["role"]),
        )
    except (KeyError, TypeError, ValueError):
        return None, SESSION_INVALID
    return identity, None


def validate_session(token: Optional[str]) -> Optional[Identity]:
    identity, _ = inspect_session(token)
    return identity


# --- Credentials ---


def authenticate_user(db: Session, email: str, password: str) -> Optional[User]:
    try:
        email = normalize_email(email)
    except ValidationError:
        return None
    user = get_user_by_email(db, email)
    if not user or not verify_password(password, user.hashed_password):
        return None
    return user_to_domain(user)


def change_password(
    db: Session, user_id: int, current_password: str, new_password: str
) -> None:
    user = get_user(db, user_id)
    if user is None:
        raise NotFoundError("User not found")
    if not verify_password(current_password, user.hashed_password):
        raise ValidationError("Current password is incorrect")
    _validate_new_password(new_password)
    update_password(db, user_id, get_password_hash(new_password))
    logger.info("User %s changed their password", user_id)


def reset_password(db: Session, user_id: int, new_password: str) -> None:
    """Privileged reset; the caller has already established superadmin rights."""
    _validate_new_password(new_password)
    if update_password(db, user_id, get_password_hash(new_password)) is None:
        raise NotFoundError("User not found")
    logger.info("Password reset for user %s", user_id)


# --- User management ---


def get_user_profile(db: Session, user_id: int) -> User:
    user = get_user(db, user_id)
    if user is None:
        raise NotFoundError("User not found")
    return user_to_domain(user)


def list_users(db: Session) -> list[User]:
    return [user_to_domain(u) for u in repo_list_users(db)]


def create_user(
    db: Session,
    email: str,
    password: str,
    name: str,
    role: Role = Role.ADMINISTRATOR,
) -> User:
    email = normalize_email(email)
    name = (name or "").strip()
    if not name:
        raise ValidationError("Name cannot be empty")
    _validate_new_password(password)
    if get_user_by_email(db, email):
        raise DuplicateError("Email is already registered")
    try:
        user = repo_create_user(db, email, get_password_hash(password), name, role)
    except IntegrityError as e:
        db.rollback()
        raise translate_integrity_error(e, "User") from e
    logger.info("Created user %s with role %s", user.id, role.value)
    return user_to_domain(user)


def update_user_role(db: Session, user_id: int, role: Role) -> User:
    user = update_role(db, user_id, role)
    if user is None:
        raise NotFoundError("User not found")
    logger.info("User %s role set to %s", user_id, role.value)
    return user_to_domain(user)


def update_user_profile(db: Session, user_id: int, name: str, email: str) -> User:
    email = normalize_email(email)
    name = (name or "").strip()
    if not name:
        raise ValidationError("Name cannot be empty")
    existing = get_user_by_email(db, email)
    if existing is not None and existing.id != user_id:
        raise DuplicateError("Email is already registered")
    try:
        user = update_profile(db, user_id, name, email)
    except IntegrityError as e:
        db.rollback()
        raise translate_integrity_error(e, "User") from e
    if user is None:
        raise NotFoundError("User not found")
    return user_to_domain(user)


def delete_user(db: Session, user_id: int) -> None:
    user = get_user(db, user_id)
    if user is None:
        raise NotFoundError("User not found")
    if user.role == Role.SUPERADMIN:
        raise ValidationError("A superadmin account cannot be deleted")
    repo_delete_user(db, user_id)
    logger.info("Deleted user %s", user_id)


def bootstrap_superadmin(
    db: Session, email: Optional[str], password: Optional[str], name: str
) -> Optional[User]:
    """Create the first superadmin when the user table is empty."""
    if not email or not password:
        return None
    if count_users(db) > 0:
        return None
    user = create_user(db, email, password, name, Role.SUPERADMIN)
    logger.info("Bootstrapped superadmin %s", user.email)
    return user
