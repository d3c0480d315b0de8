from collections import OrderedDict
from typing import Dict, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from app.api.classes.schemas import ClassBrief
from app.api.classes.service import get_class_or_404
from app.auth.models import User
from app.auth.schemas import CurrentUser
from app.core.clock import utcnow
from app.core.enums import Role
from app.core.exceptions import bad_request
from app.core.models import Schedule, SchoolClass, Subject

from .schemas import ScheduleCreate, ScheduleResponse, ScheduleUpdate


async def _validate_refs(
    db: AsyncSession,
    current_user: CurrentUser,
    class_id: Optional[int],
    subject_id: Optional[int],
    teacher_id: Optional[int],
) -> None:
    scope = current_user.scope
    if class_id is not None and await scope.get(db, SchoolClass, class_id) is None:
        raise bad_request("Class not found")
    if subject_id is not None and await scope.get(db, Subject, subject_id) is None:
        raise bad_request("Subject not found")
    if teacher_id is not None and await scope.get(db, User, teacher_id, User.role == Role.TEACHER.value) is None:
        raise bad_request("Teacher not found")


async def list_schedules(
    db: AsyncSession,
    current_user: CurrentUser,
    class_id: Optional[int] = None,
    day_of_week: Optional[str] = None,
) -> List[ScheduleResponse]:
    stmt = current_user.scope.select(Schedule)
    if class_id is not None:
        stmt = stmt.where(Schedule.class_id == class_id)
    if day_of_week:
        stmt = stmt.where(Schedule.day_of_week == day_of_week)
    result = await db.execute(stmt.order_by(Schedule.day_of_week, Schedule.lesson_number))
    return [ScheduleResponse.model_validate(s) for s in result.scalars().all()]


async def get_schedule(db: AsyncSession, current_user: CurrentUser, schedule_id: int) -> ScheduleResponse:
    schedule = await current_user.scope.get_or_404(db, Schedule, schedule_id, "Schedule not found")
    return ScheduleResponse.model_validate(schedule)


async def create_schedule(db: AsyncSession, current_user: CurrentUser, payload: ScheduleCreate) -> ScheduleResponse:
    await _validate_refs(db, current_user, payload.class_id, payload.subject_id, payload.teacher_id)
    schedule = Schedule(school_id=current_user.school_id, **payload.model_dump())
    db.add(schedule)
    await db.commit()
    await db.refresh(schedule)
    return ScheduleResponse.model_validate(schedule)


async def update_schedule(
    db: AsyncSession, current_user: CurrentUser, schedule_id: int, payload: ScheduleUpdate
) -> ScheduleResponse:
    schedule = await current_user.scope.get_or_404(db, Schedule, schedule_id, "Schedule not found")
    data = payload.model_dump(exclude_unset=True)
    await _validate_refs(
        db, current_user, data.get("class_id"), data.get("subject_id"), data.get("teacher_id")
    )
    for field, value in data.items():
        if value is None and field not in ("teacher_id", "room_number"):
            continue
        setattr(schedule, field, value)
    await db.commit()
    await db.refresh(schedule)
    return ScheduleResponse.model_validate(schedule)


async def delete_schedule(db: AsyncSession, current_user: CurrentUser, schedule_id: int) -> None:
    schedule = await current_user.scope.get_or_404(db, Schedule, schedule_id, "Schedule not found")
    schedule.deleted_at = utcnow()
    await db.commit()


async def get_class_schedule(db: AsyncSession, current_user: CurrentUser, class_id: int) -> dict:
    """The class and its lessons grouped by day, each day ordered by lesson number."""
    school_class = await get_class_or_404(db, current_user, class_id)
    result = await db.execute(
        current_user.scope.select(Schedule, Schedule.class_id == class_id).order_by(
            Schedule.day_of_week, Schedule.lesson_number
        )
    )
    by_day: Dict[str, List[ScheduleResponse]] = OrderedDict()
    for schedule in result.scalars().all():
        by_day.setdefault(schedule.day_of_week, []).append(ScheduleResponse.model_validate(schedule))
    return {"class": ClassBrief.model_validate(school_class), "schedule": by_day}
