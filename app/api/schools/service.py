"""Schools: anonymous creation, admin read/update of the caller's own school."""

import logging
from typing import List

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.schemas import CurrentUser
from app.core.exceptions import forbidden, not_found
from app.core.models import School

from .schemas import SchoolCreate, SchoolResponse, SchoolUpdate

logger = logging.getLogger("classkeeper.schools")


async def _get_own_school(db: AsyncSession, current_user: CurrentUser) -> School:
    result = await db.execute(
        select(School).where(School.id == current_user.school_id, School.deleted_at.is_(None))
    )
    school = result.scalar_one_or_none()
    if school is None:
        raise not_found("School not found")
    return school


async def create_school(db: AsyncSession, payload: SchoolCreate) -> SchoolResponse:
    school = School(**payload.model_dump())
    db.add(school)
    await db.commit()
    await db.refresh(school)
    logger.info("School %s created (%s)", school.id, school.name)
    return SchoolResponse.model_validate(school)


async def list_schools(db: AsyncSession, current_user: CurrentUser) -> List[SchoolResponse]:
    # A tenant only ever sees itself
    return [SchoolResponse.model_validate(await _get_own_school(db, current_user))]


async def get_school(db: AsyncSession, current_user: CurrentUser, school_id: int) -> SchoolResponse:
    if school_id != current_user.school_id:
        raise not_found("School not found")
    return SchoolResponse.model_validate(await _get_own_school(db, current_user))


async def get_current_school(db: AsyncSession, current_user: CurrentUser) -> SchoolResponse:
    return SchoolResponse.model_validate(await _get_own_school(db, current_user))


async def update_school(
    db: AsyncSession, current_user: CurrentUser, school_id: int, payload: SchoolUpdate
) -> SchoolResponse:
    if school_id != current_user.school_id:
        raise forbidden("Access denied")

    school = await _get_own_school(db, current_user)
    for field, value in payload.model_dump(exclude_unset=True).items():
        if field == "name" and value is None:
            continue
        setattr(school, field, value)
    await db.commit()
    await db.refresh(school)
    return SchoolResponse.model_validate(school)
