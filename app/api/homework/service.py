"""Homework service: teachers set work for their own subject or their homeroom class."""

import logging
from typing import List, Optional, Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from app.api.classes.service import get_class_or_404
from app.auth.models import User
from app.auth.schemas import CurrentUser
from app.core.clock import today, utcnow
from app.core.enums import Role
from app.core.exceptions import bad_request, forbidden
from app.core.models import Homework, SchoolClass, Subject

from .schemas import HomeworkCreate, HomeworkResponse, HomeworkUpdate

logger = logging.getLogger("classkeeper.homework")


def _check_author(current_user: CurrentUser, homework: Homework, action: str) -> None:
    if not current_user.is_admin and homework.teacher_id != current_user.id:
        raise forbidden(f"You can only {action} your own homework")


async def _can_assign(
    db: AsyncSession, current_user: CurrentUser, school_class: SchoolClass, subject: Subject
) -> bool:
    if current_user.is_admin:
        return True
    if school_class.homeroom_teacher_id == current_user.id:
        return True
    teacher = await current_user.scope.get(db, User, current_user.id)
    return teacher is not None and bool(teacher.teacher_subject) and teacher.teacher_subject == subject.name


async def create_homework(db: AsyncSession, current_user: CurrentUser, payload: HomeworkCreate) -> HomeworkResponse:
    if current_user.role not in (Role.ADMIN, Role.TEACHER):
        raise forbidden("Only teachers and admins can create homework")

    scope = current_user.scope
    school_class = await scope.get(db, SchoolClass, payload.class_id)
    if school_class is None:
        raise bad_request("Class not found")
    subject = await scope.get(db, Subject, payload.subject_id)
    if subject is None:
        raise bad_request("Subject not found")
    if not await _can_assign(db, current_user, school_class, subject):
        raise forbidden("You can only create homework for your subject or your class")

    homework = Homework(school_id=current_user.school_id, teacher_id=current_user.id, **payload.model_dump())
    db.add(homework)
    await db.commit()
    await db.refresh(homework)
    logger.info("Homework %s created for class %s by %s", homework.id, homework.class_id, current_user.id)
    return HomeworkResponse.model_validate(homework)


def _to_responses(rows: Sequence[Homework]) -> List[HomeworkResponse]:
    return [HomeworkResponse.model_validate(h) for h in rows]


async def list_homework(
    db: AsyncSession,
    current_user: CurrentUser,
    class_id: Optional[int] = None,
    subject_id: Optional[int] = None,
) -> List[HomeworkResponse]:
    stmt = current_user.scope.select(Homework)
    if class_id is not None:
        stmt = stmt.where(Homework.class_id == class_id)
    if subject_id is not None:
        stmt = stmt.where(Homework.subject_id == subject_id)
    result = await db.execute(stmt.order_by(Homework.due_date, Homework.id))
    return _to_responses(result.scalars().all())


async def get_homework(db: AsyncSession, current_user: CurrentUser, homework_id: int) -> HomeworkResponse:
    homework = await current_user.scope.get_or_404(db, Homework, homework_id, "Homework not found")
    return HomeworkResponse.model_validate(homework)


async def update_homework(
    db: AsyncSession, current_user: CurrentUser, homework_id: int, payload: HomeworkUpdate
) -> HomeworkResponse:
    homework = await current_user.scope.get_or_404(db, Homework, homework_id, "Homework not found")
    _check_author(current_user, homework, "update")

    for field, value in payload.model_dump(exclude_unset=True).items():
        if value is not None:
            setattr(homework, field, value)
    await db.commit()
    await db.refresh(homework)
    return HomeworkResponse.model_validate(homework)


async def delete_homework(db: AsyncSession, current_user: CurrentUser, homework_id: int) -> None:
    homework = await current_user.scope.get_or_404(db, Homework, homework_id, "Homework not found")
    _check_author(current_user, homework, "delete")
    homework.deleted_at = utcnow()
    await db.commit()


async def get_upcoming(db: AsyncSession, current_user: CurrentUser, class_id: int) -> List[HomeworkResponse]:
    await get_class_or_404(db, current_user, class_id)
    result = await db.execute(
        current_user.scope.select(
            Homework, Homework.class_id == class_id, Homework.due_date >= today()
        ).order_by(Homework.due_date.asc(), Homework.id)
    )
    return _to_responses(result.scalars().all())


async def get_overdue(db: AsyncSession, current_user: CurrentUser, class_id: int) -> List[HomeworkResponse]:
    await get_class_or_404(db, current_user, class_id)
    result = await db.execute(
        current_user.scope.select(
            Homework, Homework.class_id == class_id, Homework.due_date < today()
        ).order_by(Homework.due_date.desc(), Homework.id)
    )
    return _to_responses(result.scalars().all())
