"""
Parent-student links and the child views built on them.

A parent reads a child's grades, attendance and homework only through an
existing link; admins read any student of their school.
"""

import logging
from datetime import date
from typing import List, Optional

from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.attendance.schemas import AttendanceResponse
from app.api.attendance.service import status_counts
from app.api.classes.service import class_ids_of_student
from app.api.grades.schemas import GradeResponse
from app.api.homework.schemas import HomeworkResponse
from app.auth.models import User
from app.auth.schemas import CurrentUser, UserResponse
from app.core.enums import PUPIL_ROLES, AttendanceStatus, Role
from app.core.exceptions import conflict, forbidden, not_found
from app.core.models import Attendance, Grade, Homework, ParentStudent

from .schemas import ParentStudentResponse

logger = logging.getLogger("classkeeper.parents")

CHILD_GRADES_LIMIT = 100
CHILD_ATTENDANCE_LIMIT = 100
CHILD_HOMEWORK_LIMIT = 50


async def create_link(
    db: AsyncSession, current_user: CurrentUser, parent_id: int, student_id: int
) -> ParentStudentResponse:
    scope = current_user.scope
    if await scope.get(db, User, parent_id, User.role == Role.PARENT.value) is None:
        raise not_found("Parent not found")
    if await scope.get(db, User, student_id, User.role.in_(PUPIL_ROLES)) is None:
        raise not_found("Student not found")

    existing = await db.execute(
        select(ParentStudent.id).where(
            ParentStudent.parent_id == parent_id, ParentStudent.student_id == student_id
        )
    )
    if existing.first() is not None:
        raise conflict("Link already exists")

    link = ParentStudent(school_id=current_user.school_id, parent_id=parent_id, student_id=student_id)
    db.add(link)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise conflict("Link already exists")
    await db.refresh(link)
    logger.info("Parent %s linked to student %s", parent_id, student_id)
    return ParentStudentResponse.model_validate(link)


async def unlink(db: AsyncSession, current_user: CurrentUser, parent_id: int, student_id: int) -> None:
    result = await db.execute(
        delete(ParentStudent).where(
            ParentStudent.school_id == current_user.school_id,
            ParentStudent.parent_id == parent_id,
            ParentStudent.student_id == student_id,
        )
    )
    if result.rowcount == 0:
        raise not_found("Link not found")
    await db.commit()


async def delete_link(db: AsyncSession, current_user: CurrentUser, link_id: int) -> None:
    link = await current_user.scope.get_or_404(db, ParentStudent, link_id, "Link not found")
    await db.delete(link)
    await db.commit()


async def list_links(
    db: AsyncSession,
    current_user: CurrentUser,
    parent_id: Optional[int] = None,
    student_id: Optional[int] = None,
) -> List[ParentStudentResponse]:
    stmt = current_user.scope.select(ParentStudent)
    if parent_id is not None:
        stmt = stmt.where(ParentStudent.parent_id == parent_id)
    if student_id is not None:
        stmt = stmt.where(ParentStudent.student_id == student_id)
    result = await db.execute(stmt.order_by(ParentStudent.id))
    return [ParentStudentResponse.model_validate(link) for link in result.scalars().all()]


async def children_of(db: AsyncSession, current_user: CurrentUser, parent_id: int) -> List[UserResponse]:
    result = await db.execute(
        current_user.scope.select(User)
        .join(ParentStudent, ParentStudent.student_id == User.id)
        .where(ParentStudent.parent_id == parent_id)
        .order_by(User.last_name, User.first_name)
    )
    return [UserResponse.model_validate(u) for u in result.scalars().all()]


async def parents_of(db: AsyncSession, current_user: CurrentUser, student_id: int) -> List[UserResponse]:
    result = await db.execute(
        current_user.scope.select(User)
        .join(ParentStudent, ParentStudent.parent_id == User.id)
        .where(ParentStudent.student_id == student_id)
        .order_by(User.last_name, User.first_name)
    )
    return [UserResponse.model_validate(u) for u in result.scalars().all()]


async def ensure_can_view_child(db: AsyncSession, current_user: CurrentUser, child_id: int) -> None:
    if await current_user.scope.get(db, User, child_id) is None:
        raise not_found("Student not found")
    if current_user.is_admin:
        return
    edge = await db.execute(
        select(ParentStudent.id).where(
            ParentStudent.parent_id == current_user.id, ParentStudent.student_id == child_id
        )
    )
    if edge.first() is None:
        raise forbidden("Access denied")


async def child_grades(db: AsyncSession, current_user: CurrentUser, child_id: int) -> dict:
    await ensure_can_view_child(db, current_user, child_id)
    scope = current_user.scope
    result = await db.execute(
        scope.select(Grade, Grade.student_id == child_id)
        .order_by(Grade.date.desc(), Grade.id.desc())
        .limit(CHILD_GRADES_LIMIT)
    )
    average = (
        await db.execute(select(func.avg(Grade.grade)).where(*scope.where(Grade), Grade.student_id == child_id))
    ).scalar_one()
    return {
        "grades": [GradeResponse.model_validate(g) for g in result.scalars().all()],
        "average_grade": round(float(average or 0), 2),
    }


async def child_attendance(
    db: AsyncSession,
    current_user: CurrentUser,
    child_id: int,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
) -> dict:
    await ensure_can_view_child(db, current_user, child_id)
    scope = current_user.scope
    stmt = scope.select(Attendance, Attendance.student_id == child_id)
    if date_from is not None:
        stmt = stmt.where(Attendance.date >= date_from)
    if date_to is not None:
        stmt = stmt.where(Attendance.date <= date_to)
    result = await db.execute(
        stmt.order_by(Attendance.date.desc(), Attendance.id.desc()).limit(CHILD_ATTENDANCE_LIMIT)
    )

    counts = await status_counts(db, scope, child_id, date_from, date_to)
    total = sum(counts.values())
    present = counts[AttendanceStatus.PRESENT.value]
    return {
        "attendance": [AttendanceResponse.model_validate(a) for a in result.scalars().all()],
        "stats": {"total": total, **counts},
        "percentage": round(present / total * 100, 2) if total else 0.0,
    }


async def child_homework(db: AsyncSession, current_user: CurrentUser, child_id: int) -> dict:
    await ensure_can_view_child(db, current_user, child_id)
    class_ids = await class_ids_of_student(db, current_user, child_id)
    if not class_ids:
        return {"homework": []}
    result = await db.execute(
        current_user.scope.select(Homework, Homework.class_id.in_(class_ids))
        .order_by(Homework.due_date.asc(), Homework.id)
        .limit(CHILD_HOMEWORK_LIMIT)
    )
    return {"homework": [HomeworkResponse.model_validate(h) for h in result.scalars().all()]}
