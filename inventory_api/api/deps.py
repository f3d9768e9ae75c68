"""
FastAPI Dependencies

Provides dependency injection for database sessions, authentication,
authorization and the per-request service objects.

SECURITY NOTES:
- JWT payloads are never logged
- Bearer token is the only HTTP auth method; the WebSocket endpoint takes
  the same token as a query parameter
"""

from typing import Annotated, Optional
from fastapi import BackgroundTasks, Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from jose import JWTError, jwt
import bcrypt
from datetime import datetime, timedelta, timezone
import logging

from inventory_api.database import get_db, async_session_maker
from inventory_api.config import settings
from inventory_api.exceptions import UnauthorizedError, ForbiddenError
from inventory_api.models.user import User
from inventory_api.security.rbac import require_admin
from inventory_api.services.audit_service import AuditRecorder, DeferredAuditor
from inventory_api.services.websocket_manager import InventoryNotifier, manager

logger = logging.getLogger(__name__)


security = HTTPBearer(auto_error=False)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against a hash."""
    return bcrypt.checkpw(plain_password.encode("utf-8"), hashed_password.encode("utf-8"))


def get_password_hash(password: str) -> str:
    """Hash a password."""
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def create_access_token(data: dict, expires_delta: timedelta | None = None) -> str:
    """Create a JWT access token."""
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    )
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_access_token(token: str) -> Optional[str]:
    """Return the user id (``sub``) carried by a valid token, else None."""
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError:
        # SECURITY: Don't log token decode errors with details
        logger.warning("JWT validation failed")
        return None
    sub = payload.get("sub")
    return str(sub) if sub else None


async def get_user_from_token(db: AsyncSession, token: Optional[str]) -> Optional[User]:
    """Resolve an active user from a bearer token, or None."""
    if not token:
        return None
    user_id = decode_access_token(token)
    if user_id is None:
        return None
    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    if user is None or not user.is_active:
        return None
    return user


async def get_current_user(
    db: Annotated[AsyncSession, Depends(get_db)],
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)] = None,
) -> User:
    """Get current user from the Bearer token."""
    if not credentials:
        raise UnauthorizedError("Access token required")

    user_id = decode_access_token(credentials.credentials)
    if user_id is None:
        raise UnauthorizedError("Invalid or expired token")

    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    if user is None:
        raise UnauthorizedError("Invalid or expired token")
    if not user.is_active:
        raise ForbiddenError("User account is disabled")

    logger.debug("User authenticated", extra={"user_id": user.id})
    return user


async def get_admin_user(current_user: Annotated[User, Depends(get_current_user)]) -> User:
    """Current user, required to hold the ADMIN role."""
    require_admin(current_user)
    return current_user


def get_notifier() -> InventoryNotifier:
    """Notification sink bound to the process-wide connection manager."""
    return InventoryNotifier(manager)


def get_audit_recorder() -> AuditRecorder:
    """Audit writer with its own sessions, independent of the request session."""
    return AuditRecorder(async_session_maker)


def get_auditor(
    background_tasks: BackgroundTasks,
    recorder: Annotated[AuditRecorder, Depends(get_audit_recorder)],
) -> DeferredAuditor:
    """Audit writes scheduled to run after the response has been sent."""
    return DeferredAuditor(recorder, background_tasks)


# Type aliases for dependency injection
DbSession = Annotated[AsyncSession, Depends(get_db)]
CurrentUser = Annotated[User, Depends(get_current_user)]
AdminUser = Annotated[User, Depends(get_admin_user)]
Notifier = Annotated[InventoryNotifier, Depends(get_notifier)]
Auditor = Annotated[DeferredAuditor, Depends(get_auditor)]
