import logging
from datetime import date
from typing import Dict, List, Optional

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.models import User
from app.auth.schemas import CurrentUser, UserBrief
from app.core.clock import utcnow
from app.core.enums import PUPIL_ROLES, AttendanceStatus, Role
from app.core.exceptions import ServiceError, bad_request, conflict, forbidden, not_found
from app.core.models import Attendance, SchoolClass, Subject
from app.core.tenancy import TenantScope

from .schemas import AttendanceRecord, AttendanceResponse

logger = logging.getLogger("classkeeper.attendance")

MARKER_ROLES = (Role.ADMIN, Role.TEACHER, Role.STAROSTA)
LIST_LIMIT = 100
UPSERT_ATTEMPTS = 2


def _same(column, value):
    return column.is_(None) if value is None else column == value


async def _upsert(db: AsyncSession, current_user: CurrentUser, record: AttendanceRecord) -> Attendance:
    scope = current_user.scope
    if await scope.get(db, SchoolClass, record.class_id) is None:
        raise bad_request("Class not found")
    if await scope.get(db, User, record.student_id, User.role.in_(PUPIL_ROLES)) is None:
        raise bad_request("Student not found")
    if record.subject_id is not None and await scope.get(db, Subject, record.subject_id) is None:
        raise bad_request("Subject not found")

    result = await db.execute(
        scope.select(
            Attendance,
            Attendance.student_id == record.student_id,
            Attendance.class_id == record.class_id,
            Attendance.date == record.date,
            _same(Attendance.lesson_number, record.lesson_number),
            _same(Attendance.subject_id, record.subject_id),
        )
    )
    row = result.scalars().first()
    if row is not None:
        row.status = record.status.value
        row.comment = record.comment
        row.marked_by = current_user.id
        return row

    row = Attendance(
        school_id=current_user.school_id,
        student_id=record.student_id,
        class_id=record.class_id,
        subject_id=record.subject_id,
        date=record.date,
        lesson_number=record.lesson_number,
        status=record.status.value,
        comment=record.comment,
        marked_by=current_user.id,
    )
    db.add(row)
    # Flush so a repeat of this key later in the same batch finds the row
    await db.flush()
    return row


async def bulk_mark_attendance(
    db: AsyncSession, current_user: CurrentUser, records: List[AttendanceRecord]
) -> List[AttendanceResponse]:
    """
    Upsert attendance marks in input order inside one transaction.

    A record is keyed by (student, class, date, lesson_number, subject); marking
    the same key again overwrites status and comment. Any invalid record rolls
    back the whole batch. A batch that loses an insert race on the unique mark
    index is replayed once, and the replay updates the rows the other writer
    created.
    """
    if current_user.role not in MARKER_ROLES:
        raise forbidden("Only admins, teachers and starostas can mark attendance")

    for attempt in range(UPSERT_ATTEMPTS):
        saved: List[Attendance] = []
        try:
            for record in records:
                saved.append(await _upsert(db, current_user, record))
            await db.commit()
            break
        except ServiceError:
            await db.rollback()
            raise
        except IntegrityError:
            await db.rollback()
            if attempt + 1 == UPSERT_ATTEMPTS:
                raise conflict("Attendance was marked concurrently, try again")
            logger.info("Attendance batch by user %s hit a concurrent mark, replaying", current_user.id)

    responses = []
    for row in saved:
        await db.refresh(row)
        responses.append(AttendanceResponse.model_validate(row))
    logger.info("User %s marked %d attendance records", current_user.id, len(records))
    return responses


async def list_attendance(
    db: AsyncSession,
    current_user: CurrentUser,
    class_id: Optional[int] = None,
    subject_id: Optional[int] = None,
    student_id: Optional[int] = None,
    on_date: Optional[date] = None,
    status: Optional[AttendanceStatus] = None,
) -> List[AttendanceResponse]:
    stmt = current_user.scope.select(Attendance)
    if class_id is not None:
        stmt = stmt.where(Attendance.class_id == class_id)
    if subject_id is not None:
        stmt = stmt.where(Attendance.subject_id == subject_id)
    if student_id is not None:
        stmt = stmt.where(Attendance.student_id == student_id)
    if on_date is not None:
        stmt = stmt.where(Attendance.date == on_date)
    if status is not None:
        stmt = stmt.where(Attendance.status == status.value)
    result = await db.execute(
        stmt.order_by(Attendance.date.desc(), Attendance.id.desc()).limit(LIST_LIMIT)
    )
    return [AttendanceResponse.model_validate(a) for a in result.scalars().all()]


async def status_counts(
    db: AsyncSession,
    scope: TenantScope,
    student_id: int,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
) -> Dict[str, int]:
    """Marks per status for one student; every status is present, zero if unused."""
    stmt = (
        select(Attendance.status, func.count(Attendance.id))
        .where(*scope.where(Attendance), Attendance.student_id == student_id)
        .group_by(Attendance.status)
    )
    if date_from is not None:
        stmt = stmt.where(Attendance.date >= date_from)
    if date_to is not None:
        stmt = stmt.where(Attendance.date <= date_to)
    counts = {s.value: 0 for s in AttendanceStatus}
    for status, count in (await db.execute(stmt)).all():
        counts[status] = count
    return counts


async def get_student_stats(db: AsyncSession, current_user: CurrentUser, student_id: int) -> dict:
    student = await current_user.scope.get(db, User, student_id)
    if student is None:
        raise not_found("Student not found")
    stats = await status_counts(db, current_user.scope, student_id)
    return {
        "student": UserBrief.model_validate(student),
        "stats": stats,
        "total": sum(stats.values()),
    }


async def delete_attendance(db: AsyncSession, current_user: CurrentUser, attendance_id: int) -> None:
    row = await current_user.scope.get_or_404(db, Attendance, attendance_id, "Attendance not found")
    row.deleted_at = utcnow()
    await db.commit()
