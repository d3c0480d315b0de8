import logging
from datetime import date
from typing import Dict, List, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.classes.schemas import ClassBrief
from app.api.classes.service import class_students_of, get_class_or_404
from app.api.subjects.service import teaches
from app.auth.models import User
from app.auth.schemas import CurrentUser, UserBrief
from app.core.enums import PUPIL_ROLES, Role
from app.core.exceptions import forbidden, not_found
from app.core.models import Grade, Subject

from .schemas import GradeCreate, GradeResponse, GradeUpdate, StudentAverageResponse, SubjectAverage

logger = logging.getLogger("classkeeper.grades")


def _check_author(current_user: CurrentUser, grade: Grade, action: str) -> None:
    if not current_user.is_admin and grade.teacher_id != current_user.id:
        raise forbidden(f"Not authorized to {action} this grade")


async def create_grade(db: AsyncSession, current_user: CurrentUser, payload: GradeCreate) -> GradeResponse:
    if current_user.role not in (Role.ADMIN, Role.TEACHER):
        raise forbidden("Only teachers and admins can create grades")

    scope = current_user.scope
    if await scope.get(db, User, payload.student_id, User.role.in_(PUPIL_ROLES)) is None:
        raise not_found("Student not found")
    if await scope.get(db, Subject, payload.subject_id) is None:
        raise not_found("Subject not found")
    if current_user.role == Role.TEACHER and not await teaches(db, current_user.id, payload.subject_id):
        raise forbidden("You don't teach this subject")

    grade = Grade(school_id=current_user.school_id, teacher_id=current_user.id, **payload.model_dump())
    db.add(grade)
    await db.commit()
    await db.refresh(grade)
    logger.info("Grade %s given by %s to student %s", grade.id, current_user.id, grade.student_id)
    return GradeResponse.model_validate(grade)


async def list_grades(
    db: AsyncSession,
    current_user: CurrentUser,
    student_id: Optional[int] = None,
    subject_id: Optional[int] = None,
    teacher_id: Optional[int] = None,
    grade_type: Optional[str] = None,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    limit: Optional[int] = None,
) -> List[GradeResponse]:
    stmt = current_user.scope.select(Grade)
    if student_id is not None:
        stmt = stmt.where(Grade.student_id == student_id)
    if subject_id is not None:
        stmt = stmt.where(Grade.subject_id == subject_id)
    if teacher_id is not None:
        stmt = stmt.where(Grade.teacher_id == teacher_id)
    if grade_type:
        stmt = stmt.where(Grade.grade_type == grade_type)
    if date_from is not None:
        stmt = stmt.where(Grade.date >= date_from)
    if date_to is not None:
        stmt = stmt.where(Grade.date <= date_to)
    stmt = stmt.order_by(Grade.date.desc(), Grade.id.desc())
    if limit:
        stmt = stmt.limit(limit)
    result = await db.execute(stmt)
    return [GradeResponse.model_validate(g) for g in result.scalars().all()]


async def get_grade(db: AsyncSession, current_user: CurrentUser, grade_id: int) -> GradeResponse:
    grade = await current_user.scope.get_or_404(db, Grade, grade_id, "Grade not found")
    return GradeResponse.model_validate(grade)


async def update_grade(
    db: AsyncSession, current_user: CurrentUser, grade_id: int, payload: GradeUpdate
) -> GradeResponse:
    grade = await current_user.scope.get_or_404(db, Grade, grade_id, "Grade not found")
    _check_author(current_user, grade, "update")

    for field, value in payload.model_dump(exclude_unset=True).items():
        if value is None and field in ("grade", "date"):
            continue
        setattr(grade, field, value)
    await db.commit()
    await db.refresh(grade)
    return GradeResponse.model_validate(grade)


async def delete_grade(db: AsyncSession, current_user: CurrentUser, grade_id: int) -> None:
    grade = await current_user.scope.get_or_404(db, Grade, grade_id, "Grade not found")
    _check_author(current_user, grade, "delete")
    await db.delete(grade)
    await db.commit()


async def get_student_average(
    db: AsyncSession,
    current_user: CurrentUser,
    student_id: int,
    subject_id: Optional[int] = None,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
) -> StudentAverageResponse:
    scope = current_user.scope
    if await scope.get(db, User, student_id) is None:
        raise not_found("Student not found")

    criteria = [*scope.where(Grade), Grade.student_id == student_id]
    if subject_id is not None:
        criteria.append(Grade.subject_id == subject_id)
    if date_from is not None:
        criteria.append(Grade.date >= date_from)
    if date_to is not None:
        criteria.append(Grade.date <= date_to)

    overall, total = (
        await db.execute(select(func.avg(Grade.grade), func.count(Grade.id)).where(*criteria))
    ).one()

    per_subject = await db.execute(
        select(Subject.id, Subject.name, func.avg(Grade.grade), func.count(Grade.id))
        .join(Subject, Subject.id == Grade.subject_id)
        .where(*criteria)
        .group_by(Subject.id, Subject.name)
        .order_by(Subject.name)
    )
    return StudentAverageResponse(
        student_id=student_id,
        overall_average=round(float(overall or 0), 2),
        total_grades=total,
        subject_averages=[
            SubjectAverage(subject_id=sid, subject_name=name, average=round(float(avg), 2), count=count)
            for sid, name, avg, count in per_subject.all()
        ],
    )


async def get_class_journal(
    db: AsyncSession, current_user: CurrentUser, class_id: int, subject_id: Optional[int] = None
) -> dict:
    """Grades of every student in the class, newest first, keyed by student id."""
    school_class = await get_class_or_404(db, current_user, class_id)
    students = await class_students_of(db, class_id)
    journal: Dict[int, List[GradeResponse]] = {s.id: [] for s in students}

    if journal:
        stmt = current_user.scope.select(Grade, Grade.student_id.in_(list(journal)))
        if subject_id is not None:
            stmt = stmt.where(Grade.subject_id == subject_id)
        result = await db.execute(stmt.order_by(Grade.date.desc(), Grade.id.desc()))
        for grade in result.scalars().all():
            journal[grade.student_id].append(GradeResponse.model_validate(grade))

    return {
        "class": ClassBrief.model_validate(school_class),
        "students": [UserBrief.model_validate(s) for s in students],
        "journal": journal,
    }
