import logging
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.models import User
from app.auth.schemas import CurrentUser, UserResponse
from app.auth.services import count_admins
from app.core.clock import utcnow
from app.core.enums import Role
from app.core.exceptions import conflict, forbidden

from .schemas import ADMIN_ONLY_FIELDS, UserUpdate

logger = logging.getLogger("classkeeper.users")


async def _ensure_not_last_admin(db: AsyncSession, user: User, message: str) -> None:
    """Refuse to leave the school without an admin."""
    if user.role != Role.ADMIN.value:
        return
    if await count_admins(db, user.school_id, exclude_user_id=user.id) == 0:
        logger.warning("Refused to remove last admin %s of school %s", user.id, user.school_id)
        raise forbidden(message)


async def list_users(
    db: AsyncSession, current_user: CurrentUser, role: Optional[str] = None
) -> List[UserResponse]:
    stmt = current_user.scope.select(User)
    if role:
        stmt = stmt.where(User.role == role)
    result = await db.execute(stmt.order_by(User.last_name, User.first_name, User.id))
    return [UserResponse.model_validate(u) for u in result.scalars().all()]


async def get_user(db: AsyncSession, current_user: CurrentUser, user_id: int) -> UserResponse:
    user = await current_user.scope.get_or_404(db, User, user_id, "User not found")
    return UserResponse.model_validate(user)


async def update_user(
    db: AsyncSession, current_user: CurrentUser, user_id: int, payload: UserUpdate
) -> UserResponse:
    if not current_user.is_admin and current_user.id != user_id:
        raise forbidden("Access denied")

    user = await current_user.scope.get_or_404(db, User, user_id, "User not found")
    data = payload.model_dump(exclude_unset=True)

    if not current_user.is_admin and any(field in data for field in ADMIN_ONLY_FIELDS):
        raise forbidden("Only admin can change role, admin title or subject")

    new_role = data.pop("role", None)
    if new_role is not None and new_role.value != user.role:
        await _ensure_not_last_admin(db, user, "Cannot change role of the last admin")
        user.role = new_role.value

    email = data.get("email")
    if email and email != user.email:
        taken = await db.execute(select(User.id).where(User.email == email, User.id != user.id))
        if taken.first() is not None:
            raise conflict("Email already exists")

    for field, value in data.items():
        if field in ("first_name", "last_name", "email") and value is None:
            continue
        setattr(user, field, value)

    await db.commit()
    await db.refresh(user)
    return UserResponse.model_validate(user)


async def delete_user(db: AsyncSession, current_user: CurrentUser, user_id: int) -> None:
    user = await current_user.scope.get_or_404(db, User, user_id, "User not found")
    await _ensure_not_last_admin(db, user, "Cannot delete the last admin")
    user.deleted_at = utcnow()
    await db.commit()
    logger.info("User %s deleted by %s", user.id, current_user.id)
