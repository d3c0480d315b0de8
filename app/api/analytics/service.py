"""Read-only rollups over grades, attendance, schedules and homework. Every query is tenant-scoped."""

import calendar
from datetime import date
from typing import List, Optional, Tuple

from sqlalchemy import case, distinct, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.classes.schemas import ClassBrief
from app.api.classes.service import get_class_or_404
from app.api.subjects.schemas import SubjectBrief
from app.auth.models import User
from app.auth.schemas import CurrentUser, UserBrief
from app.core.clock import today
from app.core.enums import PUPIL_ROLES, AttendanceStatus, Role
from app.core.exceptions import not_found
from app.core.models import (
    Attendance,
    Grade,
    Homework,
    Schedule,
    SchoolClass,
    Subject,
    class_students,
    teacher_subjects,
)
from app.core.tenancy import TenantScope


def month_ago(day: date) -> date:
    year, month = (day.year, day.month - 1) if day.month > 1 else (day.year - 1, 12)
    return day.replace(year=year, month=month, day=min(day.day, calendar.monthrange(year, month)[1]))


def default_range(date_from: Optional[date], date_to: Optional[date]) -> Tuple[date, date]:
    """Missing bounds default to the last month up to today."""
    date_to = date_to or today()
    return date_from or month_ago(date_to), date_to


def percentage(part: int, total: int) -> float:
    return round(part * 100.0 / total, 2) if total else 0.0


def _round(value) -> float:
    return round(float(value or 0), 2)


def _count_if(column, value):
    return func.coalesce(func.sum(case((column == value, 1), else_=0)), 0)


def _full_name(first_name: str, last_name: str) -> str:
    return " ".join(p for p in (first_name, last_name) if p)


async def _count(db: AsyncSession, stmt) -> int:
    return (await db.execute(stmt)).scalar_one()


async def class_student_count(db: AsyncSession, class_id: int) -> int:
    return await _count(
        db,
        select(func.count(User.id))
        .join(class_students, class_students.c.user_id == User.id)
        .where(class_students.c.class_id == class_id, User.deleted_at.is_(None)),
    )


async def class_average_grade(db: AsyncSession, scope: TenantScope, class_id: int) -> float:
    average = (
        await db.execute(
            select(func.avg(Grade.grade))
            .join(class_students, class_students.c.user_id == Grade.student_id)
            .where(*scope.where(Grade), class_students.c.class_id == class_id)
        )
    ).scalar_one()
    return _round(average)


async def class_attendance_percentage(db: AsyncSession, scope: TenantScope, class_id: int) -> float:
    total, present = (
        await db.execute(
            select(func.count(Attendance.id), _count_if(Attendance.status, AttendanceStatus.PRESENT.value)).where(
                *scope.where(Attendance), Attendance.class_id == class_id
            )
        )
    ).one()
    return percentage(present, total)


async def school_stats(db: AsyncSession, current_user: CurrentUser) -> dict:
    scope = current_user.scope
    return {
        "total_classes": await _count(db, scope.count(SchoolClass)),
        "total_students": await _count(db, scope.count(User, User.role.in_(PUPIL_ROLES))),
        "total_teachers": await _count(db, scope.count(User, User.role == Role.TEACHER.value)),
        "total_subjects": await _count(db, scope.count(Subject)),
        "total_schedules": await _count(db, scope.count(Schedule)),
        "total_grades": await _count(db, scope.count(Grade)),
        "total_homework": await _count(db, scope.count(Homework)),
    }


async def class_stats(db: AsyncSession, current_user: CurrentUser, class_id: int) -> dict:
    scope = current_user.scope
    school_class = await get_class_or_404(db, current_user, class_id)
    return {
        "class": ClassBrief.model_validate(school_class),
        "total_students": await class_student_count(db, class_id),
        "average_grade": await class_average_grade(db, scope, class_id),
        "attendance_percentage": await class_attendance_percentage(db, scope, class_id),
        "lessons_per_week": await _count(db, scope.count(Schedule, Schedule.class_id == class_id)),
    }


async def teacher_stats(db: AsyncSession, current_user: CurrentUser, teacher_id: int) -> dict:
    scope = current_user.scope
    teacher = await scope.get(db, User, teacher_id, User.role == Role.TEACHER.value)
    if teacher is None:
        raise not_found("Teacher not found")

    subjects = await db.execute(
        scope.select(Subject)
        .join(teacher_subjects, teacher_subjects.c.subject_id == Subject.id)
        .where(teacher_subjects.c.user_id == teacher_id)
        .order_by(Subject.name)
    )
    average, total_grades = (
        await db.execute(
            select(func.avg(Grade.grade), func.count(Grade.id)).where(
                *scope.where(Grade), Grade.teacher_id == teacher_id
            )
        )
    ).one()
    return {
        "teacher": UserBrief.model_validate(teacher),
        "lessons_count": await _count(db, scope.count(Schedule, Schedule.teacher_id == teacher_id)),
        "classes_count": await _count(
            db,
            select(func.count(distinct(Schedule.class_id))).where(
                *scope.where(Schedule), Schedule.teacher_id == teacher_id
            ),
        ),
        "subjects": [SubjectBrief.model_validate(s) for s in subjects.scalars().all()],
        "average_grade": _round(average),
        "total_grades": total_grades,
        "homework_count": await _count(db, scope.count(Homework, Homework.teacher_id == teacher_id)),
    }


async def subject_stats(db: AsyncSession, current_user: CurrentUser, subject_id: int) -> dict:
    scope = current_user.scope
    subject = await scope.get_or_404(db, Subject, subject_id, "Subject not found")
    row = (
        await db.execute(
            select(
                func.avg(Grade.grade),
                func.count(Grade.id),
                *[_count_if(Grade.grade, value) for value in (5, 4, 3, 2, 1)],
            ).where(*scope.where(Grade), Grade.subject_id == subject_id)
        )
    ).one()
    average, total, *distribution = row
    return {
        "subject": SubjectBrief.model_validate(subject),
        "average_grade": _round(average),
        "total_grades": total,
        "grade_distribution": {
            f"grade_{value}": count for value, count in zip((5, 4, 3, 2, 1), distribution)
        },
        "lessons_count": await _count(db, scope.count(Schedule, Schedule.subject_id == subject_id)),
    }


async def attendance_report(
    db: AsyncSession,
    current_user: CurrentUser,
    class_id: Optional[int] = None,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
) -> dict:
    """Per-student attendance breakdown over a date range, best attendance first."""
    date_from, date_to = default_range(date_from, date_to)
    statuses = [s.value for s in AttendanceStatus]
    stmt = (
        select(
            User.id,
            User.first_name,
            User.last_name,
            SchoolClass.name,
            func.count(Attendance.id),
            *[_count_if(Attendance.status, s) for s in statuses],
        )
        .select_from(Attendance)
        .join(User, User.id == Attendance.student_id)
        .join(SchoolClass, SchoolClass.id == Attendance.class_id)
        .where(*current_user.scope.where(Attendance), Attendance.date.between(date_from, date_to))
        .group_by(User.id, User.first_name, User.last_name, SchoolClass.id, SchoolClass.name)
    )
    if class_id is not None:
        stmt = stmt.where(Attendance.class_id == class_id)

    report = []
    for student_id, first_name, last_name, class_name, total, *counts in (await db.execute(stmt)).all():
        by_status = dict(zip(statuses, counts))
        report.append(
            {
                "student_id": student_id,
                "student_name": _full_name(first_name, last_name),
                "class_name": class_name,
                "total": total,
                **by_status,
                "percentage": percentage(by_status[AttendanceStatus.PRESENT.value], total),
            }
        )
    report.sort(key=lambda r: r["percentage"], reverse=True)
    return {"date_from": date_from.isoformat(), "date_to": date_to.isoformat(), "report": report}


async def grades_report(
    db: AsyncSession,
    current_user: CurrentUser,
    class_id: Optional[int] = None,
    subject_id: Optional[int] = None,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
) -> dict:
    """Per student, class and subject: mean grade, count and how many of each mark."""
    marks = (5, 4, 3, 2, 1)
    stmt = (
        select(
            User.id,
            User.first_name,
            User.last_name,
            SchoolClass.name,
            Subject.name,
            func.avg(Grade.grade),
            func.count(Grade.id),
            *[_count_if(Grade.grade, m) for m in marks],
        )
        .select_from(Grade)
        .join(User, User.id == Grade.student_id)
        .join(Subject, Subject.id == Grade.subject_id)
        .join(class_students, class_students.c.user_id == Grade.student_id)
        .join(SchoolClass, SchoolClass.id == class_students.c.class_id)
        .where(
            *current_user.scope.where(Grade),
            SchoolClass.deleted_at.is_(None),
        )
        .group_by(User.id, User.first_name, User.last_name, SchoolClass.id, SchoolClass.name, Subject.id, Subject.name)
    )
    if class_id is not None:
        stmt = stmt.where(SchoolClass.id == class_id)
    if subject_id is not None:
        stmt = stmt.where(Subject.id == subject_id)
    if date_from is not None:
        stmt = stmt.where(Grade.date >= date_from)
    if date_to is not None:
        stmt = stmt.where(Grade.date <= date_to)

    report = []
    for student_id, first_name, last_name, class_name, subject_name, average, count, *counts in (
        await db.execute(stmt)
    ).all():
        row = {
            "student_id": student_id,
            "student_name": _full_name(first_name, last_name),
            "class_name": class_name,
            "subject_name": subject_name,
            "average": _round(average),
            "count": count,
        }
        row.update({f"grade_{m}": c for m, c in zip(marks, counts)})
        report.append(row)
    report.sort(key=lambda r: r["average"], reverse=True)
    return {"report": report}


async def compare_classes(db: AsyncSession, current_user: CurrentUser) -> List[dict]:
    scope = current_user.scope
    classes = await db.execute(scope.select(SchoolClass).order_by(SchoolClass.year, SchoolClass.name))
    comparisons = []
    for school_class in classes.scalars().all():
        comparisons.append(
            {
                "class_id": school_class.id,
                "class_name": school_class.name,
                "year": school_class.year,
                "students_count": await class_student_count(db, school_class.id),
                "average_grade": await class_average_grade(db, scope, school_class.id),
                "attendance_percent": await class_attendance_percentage(db, scope, school_class.id),
            }
        )
    return comparisons
