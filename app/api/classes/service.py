import logging
from typing import List, Optional

from sqlalchemy import delete, insert, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.models import User
from app.auth.schemas import CurrentUser, UserBrief
from app.core.clock import utcnow
from app.core.enums import PUPIL_ROLES, Role
from app.core.exceptions import bad_request, not_found
from app.core.models import SchoolClass, class_students

from .schemas import AddStudentsRequest, ClassCreate, ClassResponse, ClassUpdate

logger = logging.getLogger("classkeeper.classes")


async def class_students_of(db: AsyncSession, class_id: int) -> List[User]:
    result = await db.execute(
        select(User)
        .join(class_students, class_students.c.user_id == User.id)
        .where(class_students.c.class_id == class_id, User.deleted_at.is_(None))
        .order_by(User.last_name, User.first_name, User.id)
    )
    return list(result.scalars().all())


async def class_ids_of_student(db: AsyncSession, current_user: CurrentUser, student_id: int) -> List[int]:
    result = await db.execute(
        select(SchoolClass.id)
        .join(class_students, class_students.c.class_id == SchoolClass.id)
        .where(class_students.c.user_id == student_id, *current_user.scope.where(SchoolClass))
    )
    return list(result.scalars().all())


def _to_response(school_class: SchoolClass, students: Optional[List[User]] = None) -> ClassResponse:
    response = ClassResponse.model_validate(school_class)
    if students is not None:
        response.students = [UserBrief.model_validate(s) for s in students]
    return response


async def _validate_staff(
    db: AsyncSession,
    current_user: CurrentUser,
    homeroom_teacher_id: Optional[int],
    starosta_id: Optional[int],
) -> None:
    scope = current_user.scope
    if homeroom_teacher_id is not None:
        teacher = await scope.get(db, User, homeroom_teacher_id, User.role == Role.TEACHER.value)
        if teacher is None:
            raise bad_request("Homeroom teacher not found or is not a teacher")
    if starosta_id is not None:
        starosta = await scope.get(db, User, starosta_id, User.role.in_(PUPIL_ROLES))
        if starosta is None:
            raise bad_request("Starosta not found or is not a student")


async def get_class_or_404(db: AsyncSession, current_user: CurrentUser, class_id: int) -> SchoolClass:
    return await current_user.scope.get_or_404(db, SchoolClass, class_id, "Class not found")


async def list_classes(
    db: AsyncSession, current_user: CurrentUser, year: Optional[int] = None
) -> List[ClassResponse]:
    stmt = current_user.scope.select(SchoolClass)
    if year is not None:
        stmt = stmt.where(SchoolClass.year == year)
    result = await db.execute(stmt.order_by(SchoolClass.year, SchoolClass.name))
    return [_to_response(c) for c in result.scalars().all()]


async def get_class(db: AsyncSession, current_user: CurrentUser, class_id: int) -> ClassResponse:
    school_class = await get_class_or_404(db, current_user, class_id)
    return _to_response(school_class, await class_students_of(db, class_id))


async def create_class(db: AsyncSession, current_user: CurrentUser, payload: ClassCreate) -> ClassResponse:
    await _validate_staff(db, current_user, payload.homeroom_teacher_id, payload.starosta_id)
    school_class = SchoolClass(school_id=current_user.school_id, **payload.model_dump())
    db.add(school_class)
    await db.commit()
    await db.refresh(school_class)
    return _to_response(school_class, [])


async def update_class(
    db: AsyncSession, current_user: CurrentUser, class_id: int, payload: ClassUpdate
) -> ClassResponse:
    school_class = await get_class_or_404(db, current_user, class_id)
    data = payload.model_dump(exclude_unset=True)
    await _validate_staff(db, current_user, data.get("homeroom_teacher_id"), data.get("starosta_id"))

    for field, value in data.items():
        if field in ("name", "year") and value is None:
            continue
        setattr(school_class, field, value)
    await db.commit()
    await db.refresh(school_class)
    return _to_response(school_class, await class_students_of(db, class_id))


async def delete_class(db: AsyncSession, current_user: CurrentUser, class_id: int) -> None:
    school_class = await get_class_or_404(db, current_user, class_id)
    school_class.deleted_at = utcnow()
    await db.commit()


async def add_students(
    db: AsyncSession, current_user: CurrentUser, class_id: int, payload: AddStudentsRequest
) -> ClassResponse:
    """Enroll students. Every id must be a live student or starosta of the school, or nothing changes."""
    school_class = await get_class_or_404(db, current_user, class_id)
    wanted = list(dict.fromkeys(payload.student_ids))
    if not await current_user.scope.all_exist(db, User, wanted, User.role.in_(PUPIL_ROLES)):
        raise bad_request("Some students not found or not valid")

    existing = await db.execute(
        select(class_students.c.user_id).where(
            class_students.c.class_id == class_id, class_students.c.user_id.in_(wanted)
        )
    )
    enrolled = set(existing.scalars().all())
    rows = [{"class_id": class_id, "user_id": sid} for sid in wanted if sid not in enrolled]
    if rows:
        await db.execute(insert(class_students), rows)
    await db.commit()
    logger.info("Added %d students to class %s", len(rows), class_id)
    return _to_response(school_class, await class_students_of(db, class_id))


async def remove_student(db: AsyncSession, current_user: CurrentUser, class_id: int, student_id: int) -> None:
    await get_class_or_404(db, current_user, class_id)
    result = await db.execute(
        delete(class_students).where(
            class_students.c.class_id == class_id, class_students.c.user_id == student_id
        )
    )
    if result.rowcount == 0:
        raise not_found("Student is not in this class")
    await db.commit()
