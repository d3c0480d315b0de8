import logging
from typing import Optional, Tuple

from sqlalchemy import delete, func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.models import RefreshToken, User
from app.auth.schemas import (
    AuthResponse,
    ChangePasswordRequest,
    CurrentUser,
    LoginRequest,
    RegisterRequest,
    TokenResponse,
    UserResponse,
)
from app.auth.security import (
    create_access_token,
    create_refresh_token,
    hash_password,
    verify_password,
)
from app.core.clock import as_utc, utcnow
from app.core.enums import Role
from app.core.exceptions import bad_request, conflict, forbidden, not_found, unauthorized
from app.core.models import School

logger = logging.getLogger("classkeeper.auth")


def admin_ids_stmt(school_id: int):
    """Live admins of a school, row-locked until the transaction ends."""
    return (
        select(User.id)
        .where(
            User.school_id == school_id,
            User.role == Role.ADMIN.value,
            User.deleted_at.is_(None),
        )
        .with_for_update()
    )


async def count_admins(db: AsyncSession, school_id: int, exclude_user_id: Optional[int] = None) -> int:
    # Concurrent demotions and deletes serialize on the locked rows
    admin_ids = (await db.execute(admin_ids_stmt(school_id))).scalars().all()
    return sum(1 for admin_id in admin_ids if admin_id != exclude_user_id)


async def _issue_tokens(db: AsyncSession, user: User) -> Tuple[str, str]:
    access_token = create_access_token(user_id=user.id, school_id=user.school_id, role=user.role)
    refresh_token, expires_at = create_refresh_token()
    db.add(RefreshToken(user_id=user.id, token=refresh_token, expires_at=expires_at))
    return access_token, refresh_token


async def create_user(
    db: AsyncSession, payload: RegisterRequest, current_user: Optional[CurrentUser] = None
) -> User:
    """
    Create a user in a school.

    With a caller context the user always lands in the caller's school. Anonymous
    registration names the school explicitly and only bootstraps its first
    admin; every later member is created by an admin through /api/users.
    """
    school_id = payload.school_id
    if current_user is not None:
        if school_id is not None and school_id != current_user.school_id:
            raise forbidden("Cannot create users in another school")
        school_id = current_user.school_id
    if not school_id:
        raise bad_request("School ID is required")

    school_stmt = select(School).where(School.id == school_id, School.deleted_at.is_(None))
    if current_user is None:
        # Two anonymous bootstraps of one school serialize on the school row
        school_stmt = school_stmt.with_for_update()
    school = (await db.execute(school_stmt)).scalar_one_or_none()
    if school is None:
        raise bad_request("School not found")

    if current_user is None:
        if payload.role != Role.ADMIN:
            raise forbidden("Self-registration only creates the first admin of a school")
        members = await db.execute(
            select(func.count(User.id)).where(User.school_id == school_id, User.deleted_at.is_(None))
        )
        if members.scalar_one() > 0:
            raise forbidden("Only an admin can add users to this school")

    existing = await db.execute(
        select(User.id).where(or_(User.username == payload.username, User.email == payload.email))
    )
    if existing.first() is not None:
        raise conflict("Username or email already exists")

    user = User(
        school_id=school_id,
        username=payload.username,
        email=payload.email,
        password_hash=hash_password(payload.password),
        role=payload.role.value,
        first_name=payload.first_name,
        last_name=payload.last_name,
        middle_name=payload.middle_name,
        teacher_subject=payload.teacher_subject,
        admin_title=payload.admin_title,
    )
    db.add(user)
    try:
        await db.flush()
    except IntegrityError:
        await db.rollback()
        raise conflict("Username or email already exists")
    logger.info("User %s (%s) created in school %s", user.username, user.role, school_id)
    return user


async def register(db: AsyncSession, payload: RegisterRequest) -> AuthResponse:
    user = await create_user(db, payload)
    token, refresh_token = await _issue_tokens(db, user)
    await db.commit()
    await db.refresh(user)
    return AuthResponse(token=token, refresh_token=refresh_token, user=UserResponse.model_validate(user))


async def login(db: AsyncSession, payload: LoginRequest) -> AuthResponse:
    result = await db.execute(
        select(User).where(User.username == payload.username, User.deleted_at.is_(None))
    )
    user = result.scalar_one_or_none()
    # Same message and same bcrypt cost for unknown user and wrong password
    valid = verify_password(payload.password, user.password_hash if user else None)
    if user is None or not valid:
        logger.info("Failed login for username %r", payload.username)
        raise unauthorized("Invalid credentials")

    token, refresh_token = await _issue_tokens(db, user)
    await db.commit()
    return AuthResponse(token=token, refresh_token=refresh_token, user=UserResponse.model_validate(user))


async def refresh(db: AsyncSession, refresh_token: str) -> TokenResponse:
    """Exchange a refresh token for a new token pair. The presented refresh token is consumed."""
    stored = (
        await db.execute(select(RefreshToken).where(RefreshToken.token == refresh_token))
    ).scalar_one_or_none()
    if stored is None or as_utc(stored.expires_at) <= utcnow():
        raise unauthorized("Invalid or expired refresh token")

    user = (
        await db.execute(select(User).where(User.id == stored.user_id, User.deleted_at.is_(None)))
    ).scalar_one_or_none()
    if user is None:
        raise unauthorized("Invalid or expired refresh token")

    await db.execute(delete(RefreshToken).where(RefreshToken.id == stored.id))
    token, new_refresh_token = await _issue_tokens(db, user)
    await db.commit()
    return TokenResponse(token=token, refresh_token=new_refresh_token)


async def get_me(db: AsyncSession, current_user: CurrentUser) -> UserResponse:
    user = await current_user.scope.get(db, User, current_user.id)
    if user is None:
        raise not_found("User not found")
    return UserResponse.model_validate(user)


async def change_password(
    db: AsyncSession, current_user: CurrentUser, user_id: int, payload: ChangePasswordRequest
) -> None:
    if user_id != current_user.id:
        raise forbidden("Access denied")

    user = await current_user.scope.get(db, User, user_id)
    if user is None:
        raise not_found("User not found")
    if not verify_password(payload.old_password, user.password_hash):
        raise unauthorized("Invalid old password")

    user.password_hash = hash_password(payload.new_password)
    # Outstanding refresh tokens die with the old password
    await db.execute(delete(RefreshToken).where(RefreshToken.user_id == user.id))
    await db.commit()
    logger.info("User %s changed password", user.id)
