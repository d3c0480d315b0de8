"""Tabular CSV exports. Every document starts with a UTF-8 BOM so spreadsheet tools detect the encoding."""

import csv
import io
from datetime import date
from typing import Iterable, Optional, Sequence, Tuple

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.analytics.service import (
    class_attendance_percentage,
    class_average_grade,
    class_student_count,
    percentage,
)
from app.api.attendance.service import status_counts
from app.api.classes.service import class_students_of, get_class_or_404
from app.auth.models import User
from app.auth.schemas import CurrentUser
from app.core.clock import today
from app.core.enums import PUPIL_ROLES, AttendanceStatus, Role
from app.core.exceptions import not_found
from app.core.models import Attendance, Grade, School, SchoolClass, Subject

BOM = "\ufeff"
STUDENT_REPORT_ATTENDANCE_LIMIT = 100


def render_csv(rows: Iterable[Sequence]) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer)
    for row in rows:
        writer.writerow(["" if value is None else value for value in row])
    return BOM + buffer.getvalue()


def safe_filename(label: str) -> str:
    return "".join(c if c.isalnum() or c in "-_" else "_" for c in label) or "export"


def _name(user: Optional[User]) -> str:
    return user.full_name if user is not None else ""


async def class_grades_csv(db: AsyncSession, current_user: CurrentUser, class_id: int) -> Tuple[str, str]:
    school_class = await get_class_or_404(db, current_user, class_id)
    student_ids = [s.id for s in await class_students_of(db, class_id)]
    rows = [["Date", "Student", "Subject", "Grade", "Type", "Teacher", "Comment"]]
    if student_ids:
        result = await db.execute(
            current_user.scope.select(Grade, Grade.student_id.in_(student_ids)).order_by(
                Grade.date.desc(), Grade.id.desc()
            )
        )
        for grade in result.scalars().all():
            rows.append(
                [
                    grade.date.isoformat(),
                    _name(grade.student),
                    grade.subject.name if grade.subject else "",
                    grade.grade,
                    grade.grade_type,
                    _name(grade.teacher),
                    grade.comment,
                ]
            )
    return f"grades_class_{safe_filename(school_class.name)}.csv", render_csv(rows)


async def class_attendance_csv(
    db: AsyncSession,
    current_user: CurrentUser,
    class_id: int,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
) -> Tuple[str, str]:
    school_class = await get_class_or_404(db, current_user, class_id)
    stmt = current_user.scope.select(Attendance, Attendance.class_id == class_id)
    if date_from is not None:
        stmt = stmt.where(Attendance.date >= date_from)
    if date_to is not None:
        stmt = stmt.where(Attendance.date <= date_to)
    result = await db.execute(stmt.order_by(Attendance.date.desc(), Attendance.id.desc()))

    rows = [["Date", "Student", "Subject", "Lesson", "Status", "Comment"]]
    for mark in result.scalars().all():
        rows.append(
            [
                mark.date.isoformat(),
                _name(mark.student),
                mark.subject.name if mark.subject else "",
                mark.lesson_number,
                mark.status,
                mark.comment,
            ]
        )
    return f"attendance_class_{safe_filename(school_class.name)}.csv", render_csv(rows)


async def student_report_csv(db: AsyncSession, current_user: CurrentUser, student_id: int) -> Tuple[str, str]:
    scope = current_user.scope
    student = await scope.get(db, User, student_id, User.role.in_(PUPIL_ROLES))
    if student is None:
        raise not_found("Student not found")

    rows = [["STUDENT REPORT"], ["Name", student.full_name], []]

    rows += [["GRADES"], ["Date", "Subject", "Grade", "Type", "Teacher"]]
    grades = await db.execute(
        scope.select(Grade, Grade.student_id == student_id).order_by(Grade.date.desc(), Grade.id.desc())
    )
    for grade in grades.scalars().all():
        rows.append(
            [
                grade.date.isoformat(),
                grade.subject.name if grade.subject else "",
                grade.grade,
                grade.grade_type,
                _name(grade.teacher),
            ]
        )

    rows += [[], ["SUBJECT AVERAGES"], ["Subject", "Average", "Grades"]]
    averages = await db.execute(
        select(Subject.name, func.avg(Grade.grade), func.count(Grade.id))
        .join(Subject, Subject.id == Grade.subject_id)
        .where(*scope.where(Grade), Grade.student_id == student_id)
        .group_by(Subject.id, Subject.name)
        .order_by(Subject.name)
    )
    for subject_name, average, count in averages.all():
        rows.append([subject_name, f"{float(average):.2f}", count])

    rows += [[], [f"ATTENDANCE (latest {STUDENT_REPORT_ATTENDANCE_LIMIT})"], ["Date", "Subject", "Status"]]
    marks = await db.execute(
        scope.select(Attendance, Attendance.student_id == student_id)
        .order_by(Attendance.date.desc(), Attendance.id.desc())
        .limit(STUDENT_REPORT_ATTENDANCE_LIMIT)
    )
    for mark in marks.scalars().all():
        rows.append([mark.date.isoformat(), mark.subject.name if mark.subject else "", mark.status])

    counts = await status_counts(db, scope, student_id)
    total = sum(counts.values())
    rows += [[], ["ATTENDANCE STATS"], ["Total", total]]
    rows += [[status.value.capitalize(), counts[status.value]] for status in AttendanceStatus]
    rows.append(["Attendance %", f"{percentage(counts[AttendanceStatus.PRESENT.value], total):.2f}%"])

    filename = f"report_student_{safe_filename(student.last_name)}_{safe_filename(student.first_name)}.csv"
    return filename, render_csv(rows)


async def school_report_csv(db: AsyncSession, current_user: CurrentUser) -> Tuple[str, str]:
    scope = current_user.scope
    school = (
        await db.execute(select(School).where(School.id == current_user.school_id, School.deleted_at.is_(None)))
    ).scalar_one_or_none()
    if school is None:
        raise not_found("School not found")

    async def count(stmt) -> int:
        return (await db.execute(stmt)).scalar_one()

    rows = [
        ["SCHOOL REPORT"],
        ["School", school.name],
        ["Report date", today().isoformat()],
        [],
        ["TOTALS"],
        ["Students", await count(scope.count(User, User.role.in_(PUPIL_ROLES)))],
        ["Teachers", await count(scope.count(User, User.role == Role.TEACHER.value))],
        ["Classes", await count(scope.count(SchoolClass))],
        [],
        ["CLASSES"],
        ["Class", "Students", "Average grade", "Attendance %"],
    ]
    classes = await db.execute(scope.select(SchoolClass).order_by(SchoolClass.year, SchoolClass.name))
    for school_class in classes.scalars().all():
        rows.append(
            [
                school_class.name,
                await class_student_count(db, school_class.id),
                f"{await class_average_grade(db, scope, school_class.id):.2f}",
                f"{await class_attendance_percentage(db, scope, school_class.id):.2f}",
            ]
        )
    return f"school_report_{today().isoformat()}.csv", render_csv(rows)
