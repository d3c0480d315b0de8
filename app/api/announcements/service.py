"""Announcements and the reader-facing visibility filter."""

import logging
from typing import List, Optional

from sqlalchemy import or_
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.classes.service import class_ids_of_student, get_class_or_404
from app.auth.schemas import CurrentUser
from app.core.enums import AnnouncementTarget, Role
from app.core.exceptions import bad_request, forbidden, not_found
from app.core.models import Announcement, SchoolClass

from .schemas import AnnouncementCreate, AnnouncementResponse, AnnouncementUpdate

logger = logging.getLogger("classkeeper.announcements")

DEFAULT_LIMIT = 50
TARGET_ROLES = {t.value for t in AnnouncementTarget}


async def _validate_target(
    db: AsyncSession, current_user: CurrentUser, target_role: Optional[str], target_class_id: Optional[int]
) -> None:
    if target_role and target_role not in TARGET_ROLES:
        raise bad_request("Invalid target role")
    if target_class_id is not None and await current_user.scope.get(db, SchoolClass, target_class_id) is None:
        raise not_found("Target class not found")


def _check_author(current_user: CurrentUser, announcement: Announcement, action: str) -> None:
    if not current_user.is_admin and announcement.author_id != current_user.id:
        raise forbidden(f"Not authorized to {action} this announcement")


async def visibility_filter(db: AsyncSession, current_user: CurrentUser):
    """
    Clause limiting announcements to what the caller may read, or None for admins.

    Non-admins see announcements for everyone, for their role group, and
    (students and starostas) those targeted at one of their classes.
    """
    if current_user.is_admin:
        return None
    visible = [
        Announcement.target_role == AnnouncementTarget.ALL.value,
        Announcement.target_role == current_user.role.audience,
    ]
    if current_user.role.is_pupil:
        class_ids = await class_ids_of_student(db, current_user, current_user.id)
        if class_ids:
            visible.append(Announcement.target_class_id.in_(class_ids))
    return or_(*visible)


async def create_announcement(
    db: AsyncSession, current_user: CurrentUser, payload: AnnouncementCreate
) -> AnnouncementResponse:
    if current_user.role not in (Role.ADMIN, Role.TEACHER):
        raise forbidden("Only admins and teachers can create announcements")
    await _validate_target(db, current_user, payload.target_role, payload.target_class_id)

    announcement = Announcement(
        school_id=current_user.school_id,
        author_id=current_user.id,
        title=payload.title,
        content=payload.content,
        target_role=payload.target_role or "",
        target_class_id=payload.target_class_id,
    )
    db.add(announcement)
    await db.commit()
    await db.refresh(announcement)
    logger.info("Announcement %s published by %s", announcement.id, current_user.id)
    return AnnouncementResponse.model_validate(announcement)


async def list_announcements(
    db: AsyncSession,
    current_user: CurrentUser,
    target_role: Optional[str] = None,
    class_id: Optional[int] = None,
    limit: int = DEFAULT_LIMIT,
) -> List[AnnouncementResponse]:
    stmt = current_user.scope.select(Announcement)
    visible = await visibility_filter(db, current_user)
    if visible is not None:
        stmt = stmt.where(visible)
    if target_role:
        stmt = stmt.where(Announcement.target_role == target_role)
    if class_id is not None:
        stmt = stmt.where(Announcement.target_class_id == class_id)
    result = await db.execute(
        stmt.order_by(Announcement.created_at.desc(), Announcement.id.desc()).limit(limit)
    )
    return [AnnouncementResponse.model_validate(a) for a in result.scalars().all()]


async def list_my_announcements(db: AsyncSession, current_user: CurrentUser) -> List[AnnouncementResponse]:
    result = await db.execute(
        current_user.scope.select(Announcement, Announcement.author_id == current_user.id).order_by(
            Announcement.created_at.desc(), Announcement.id.desc()
        )
    )
    return [AnnouncementResponse.model_validate(a) for a in result.scalars().all()]


async def list_class_announcements(
    db: AsyncSession, current_user: CurrentUser, class_id: int
) -> List[AnnouncementResponse]:
    await get_class_or_404(db, current_user, class_id)
    result = await db.execute(
        current_user.scope.select(
            Announcement,
            or_(
                Announcement.target_class_id == class_id,
                Announcement.target_role == AnnouncementTarget.ALL.value,
            ),
        ).order_by(Announcement.created_at.desc(), Announcement.id.desc())
    )
    return [AnnouncementResponse.model_validate(a) for a in result.scalars().all()]


async def get_announcement(db: AsyncSession, current_user: CurrentUser, announcement_id: int) -> AnnouncementResponse:
    criteria = []
    visible = await visibility_filter(db, current_user)
    if visible is not None:
        # Authors can always reopen their own posts
        criteria.append(or_(visible, Announcement.author_id == current_user.id))
    announcement = await current_user.scope.get_or_404(
        db, Announcement, announcement_id, "Announcement not found", *criteria
    )
    return AnnouncementResponse.model_validate(announcement)


async def update_announcement(
    db: AsyncSession, current_user: CurrentUser, announcement_id: int, payload: AnnouncementUpdate
) -> AnnouncementResponse:
    announcement = await current_user.scope.get_or_404(db, Announcement, announcement_id, "Announcement not found")
    _check_author(current_user, announcement, "update")

    data = payload.model_dump(exclude_unset=True)
    await _validate_target(db, current_user, data.get("target_role"), data.get("target_class_id"))
    if data.get("title"):
        announcement.title = data["title"]
    if data.get("content"):
        announcement.content = data["content"]
    if "target_role" in data:
        announcement.target_role = data["target_role"] or ""
    if "target_class_id" in data:
        announcement.target_class_id = data["target_class_id"]
    await db.commit()
    await db.refresh(announcement)
    return AnnouncementResponse.model_validate(announcement)


async def delete_announcement(db: AsyncSession, current_user: CurrentUser, announcement_id: int) -> None:
    announcement = await current_user.scope.get_or_404(db, Announcement, announcement_id, "Announcement not found")
    _check_author(current_user, announcement, "delete")
    await db.delete(announcement)
    await db.commit()
