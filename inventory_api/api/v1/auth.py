from fastapi import APIRouter
from sqlalchemy import select
from datetime import timedelta
import logging

from inventory_api.api.deps import (
    DbSession,
    CurrentUser,
    verify_password,
    create_access_token,
)
from inventory_api.config import settings
from inventory_api.exceptions import UnauthorizedError
from inventory_api.models.user import User
from inventory_api.schemas.auth import UserResponse, Token, LoginRequest

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/login", response_model=Token)
async def login(login_data: LoginRequest, db: DbSession):
    """Authenticate user and return JWT token."""
    result = await db.execute(select(User).where(User.email == login_data.email))
    user = result.scalar_one_or_none()

    # Same answer for unknown email, wrong password and disabled account
    if not user or not user.is_active or not verify_password(login_data.password, user.hashed_password):
        logger.info("Failed login attempt")
        raise UnauthorizedError("Invalid email or password")

    access_token = create_access_token(
        data={"sub": str(user.id), "role": user.role},
        expires_delta=timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES),
    )
    logger.info("User logged in", extra={"user_id": user.id})

    return Token(access_token=access_token, token_type="bearer", user=UserResponse.model_validate(user))


@router.post("/logout")
async def logout(current_user: CurrentUser):
    """Tokens are stateless; the client discards its copy."""
    return {"message": "Successfully logged out"}


@router.get("/me", response_model=UserResponse)
async def get_current_user_info(current_user: CurrentUser):
    """Get current authenticated user information."""
    return current_user
