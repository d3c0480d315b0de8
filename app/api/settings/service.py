"""School settings, system info, tenant backup snapshot and the audit summary."""

import logging
from typing import List

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.announcements.schemas import AnnouncementResponse
from app.api.classes.schemas import ClassBrief
from app.api.schools import service as schools_service
from app.api.schools.schemas import SchoolResponse, SchoolUpdate
from app.api.subjects.schemas import SubjectBrief
from app.auth.models import User
from app.auth.schemas import CurrentUser, UserResponse
from app.core.clock import utcnow
from app.core.models import Announcement, Attendance, Grade, Homework, Schedule, SchoolClass, Subject

logger = logging.getLogger("classkeeper.settings")

VERSION = "7.0.0"

AUDITED = (("grades", Grade), ("attendance", Attendance), ("homework", Homework))


async def get_school_settings(db: AsyncSession, current_user: CurrentUser) -> SchoolResponse:
    return await schools_service.get_current_school(db, current_user)


async def update_school_settings(
    db: AsyncSession, current_user: CurrentUser, payload: SchoolUpdate
) -> SchoolResponse:
    return await schools_service.update_school(db, current_user, current_user.school_id, payload)


async def get_system_info(db: AsyncSession, current_user: CurrentUser) -> dict:
    scope = current_user.scope
    counted = (
        ("total_users", User),
        ("total_classes", SchoolClass),
        ("total_subjects", Subject),
        ("total_schedules", Schedule),
        ("total_grades", Grade),
        ("total_attendance", Attendance),
        ("total_homework", Homework),
        ("total_announcements", Announcement),
    )
    stats = {}
    for key, model in counted:
        stats[key] = (await db.execute(scope.count(model))).scalar_one()
    return {"version": VERSION, "stats": stats}


async def backup(db: AsyncSession, current_user: CurrentUser) -> dict:
    """JSON snapshot of the caller's school. Password hashes are never included."""
    scope = current_user.scope
    school = await schools_service.get_current_school(db, current_user)
    users = await db.execute(scope.select(User).order_by(User.id))
    classes = await db.execute(scope.select(SchoolClass).order_by(SchoolClass.id))
    subjects = await db.execute(scope.select(Subject).order_by(Subject.id))
    announcements = await db.execute(scope.select(Announcement).order_by(Announcement.id))
    logger.info("Backup taken for school %s by user %s", current_user.school_id, current_user.id)
    return {
        "school": school,
        "users": [UserResponse.model_validate(u) for u in users.scalars().all()],
        "classes": [ClassBrief.model_validate(c) for c in classes.scalars().all()],
        "subjects": [SubjectBrief.model_validate(s) for s in subjects.scalars().all()],
        "announcements": [AnnouncementResponse.model_validate(a) for a in announcements.scalars().all()],
        "backup_date": utcnow().isoformat(),
    }


async def audit_log(db: AsyncSession, current_user: CurrentUser) -> List[dict]:
    entries = []
    for label, model in AUDITED:
        count, last = (
            await db.execute(
                select(func.count(model.id), func.max(model.created_at)).where(*current_user.scope.where(model))
            )
        ).one()
        entries.append({"type": label, "count": count, "last_date": last.isoformat() if last else None})
    return entries
