"""User administration. Everything here is admin-only except reading your own record."""

from fastapi import APIRouter, Query, status
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
import logging

from inventory_api.api.deps import DbSession, CurrentUser, AdminUser, Auditor, get_password_hash
from inventory_api.exceptions import (
    ConflictError,
    ForbiddenError,
    InvalidArgumentError,
    NotFoundError,
    translate_store_error,
)
from inventory_api.models.user import User
from inventory_api.schemas.auth import UserCreate, UserUpdate, UserResponse
from inventory_api.security.rbac import Permission, has_permission

logger = logging.getLogger(__name__)
router = APIRouter()


async def _get_user(db, user_id: str) -> User:
    user = await db.get(User, user_id)
    if user is None:
        raise NotFoundError("User", user_id)
    return user


async def _email_taken(db, email: str, exclude_id: str | None = None) -> bool:
    query = select(User.id).where(User.email == email)
    if exclude_id:
        query = query.where(User.id != exclude_id)
    return (await db.execute(query)).scalar_one_or_none() is not None


async def _commit(db) -> None:
    try:
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        raise translate_store_error(e, "A user with this email already exists")


def _dump(user: User) -> dict:
    return UserResponse.model_validate(user).model_dump(mode="json")


@router.get("", response_model=list[UserResponse])
async def list_users(
    db: DbSession,
    admin: AdminUser,
    include_inactive: bool = Query(False, alias="includeInactive"),
):
    """List users, newest first."""
    query = select(User).order_by(User.created_at.desc())
    if not include_inactive:
        query = query.where(User.is_active == True)  # noqa: E712
    result = await db.execute(query)
    return result.scalars().all()


@router.post("", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def create_user(user_data: UserCreate, db: DbSession, admin: AdminUser, auditor: Auditor):
    """Create a user account."""
    if await _email_taken(db, user_data.email):
        raise ConflictError("A user with this email already exists")

    user = User(
        email=user_data.email,
        name=user_data.name,
        role=user_data.role,
        hashed_password=get_password_hash(user_data.password),
    )
    db.add(user)
    await _commit(db)
    logger.info("User created", extra={"user_id": user.id, "actor_id": admin.id})

    auditor.record(
        admin, "CREATE_USER", "User", user.id, "POST", 201,
        request_body=user_data.model_dump(mode="json", exclude={"password"}),
        response_data=_dump(user),
    )
    return user


@router.get("/{user_id}", response_model=UserResponse)
async def get_user(user_id: str, db: DbSession, current_user: CurrentUser):
    """Admins can read any user; everyone else only themselves."""
    if current_user.id != user_id and not has_permission(current_user, Permission.MANAGE_USERS):
        raise ForbiddenError("Access denied")
    return await _get_user(db, user_id)


@router.put("/{user_id}", response_model=UserResponse)
async def update_user(user_id: str, user_data: UserUpdate, db: DbSession, admin: AdminUser, auditor: Auditor):
    user = await _get_user(db, user_id)
    changes = user_data.model_dump(exclude_unset=True)

    if "email" in changes and await _email_taken(db, changes["email"], exclude_id=user_id):
        raise ConflictError("A user with this email already exists")
    password = changes.pop("password", None)
    if password:
        user.hashed_password = get_password_hash(password)
    for field, value in changes.items():
        setattr(user, field, value)
    await _commit(db)

    auditor.record(
        admin, "UPDATE_USER", "User", user.id, "PUT", 200,
        request_body=user_data.model_dump(mode="json", exclude_unset=True, exclude={"password"}),
        response_data=_dump(user),
    )
    return user


async def _set_active(user_id: str, active: bool, db, admin: User, auditor) -> User:
    if not active and admin.id == user_id:
        raise InvalidArgumentError("Cannot deactivate your own account")
    user = await _get_user(db, user_id)
    user.is_active = active
    await _commit(db)
    logger.info("User %s", "activated" if active else "deactivated", extra={"user_id": user.id})

    auditor.record(
        admin, "ACTIVATE_USER" if active else "DEACTIVATE_USER", "User", user.id, "PATCH", 200,
        response_data=_dump(user),
    )
    return user


@router.patch("/{user_id}/deactivate", response_model=UserResponse)
async def deactivate_user(user_id: str, db: DbSession, admin: AdminUser, auditor: Auditor):
    return await _set_active(user_id, False, db, admin, auditor)


@router.patch("/{user_id}/activate", response_model=UserResponse)
async def activate_user(user_id: str, db: DbSession, admin: AdminUser, auditor: Auditor):
    return await _set_active(user_id, True, db, admin, auditor)


@router.delete("/{user_id}")
async def delete_user(user_id: str, db: DbSession, admin: AdminUser, auditor: Auditor):
    """Delete a user. Users who recorded stock movements cannot be deleted; deactivate them instead."""
    if admin.id == user_id:
        raise InvalidArgumentError("Cannot delete your own account")
    user = await _get_user(db, user_id)
    await db.delete(user)
    try:
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        raise translate_store_error(e, "User has recorded inventory actions and cannot be deleted")

    auditor.record(admin, "DELETE_USER", "User", user_id, "DELETE", 200)
    return {"message": "User deleted successfully"}
