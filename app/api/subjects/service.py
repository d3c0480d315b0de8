from collections import defaultdict
from typing import Dict, List, Sequence

from sqlalchemy import delete, insert, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.models import User
from app.auth.schemas import CurrentUser, UserBrief
from app.core.clock import utcnow
from app.core.enums import Role
from app.core.exceptions import bad_request, not_found
from app.core.models import Subject, teacher_subjects

from .schemas import AssignTeachersRequest, SubjectCreate, SubjectResponse, SubjectUpdate


async def _teachers_by_subject(db: AsyncSession, subject_ids: Sequence[int]) -> Dict[int, List[User]]:
    grouped: Dict[int, List[User]] = defaultdict(list)
    if not subject_ids:
        return grouped
    result = await db.execute(
        select(teacher_subjects.c.subject_id, User)
        .join(User, User.id == teacher_subjects.c.user_id)
        .where(teacher_subjects.c.subject_id.in_(subject_ids), User.deleted_at.is_(None))
        .order_by(User.last_name, User.first_name)
    )
    for subject_id, teacher in result.all():
        grouped[subject_id].append(teacher)
    return grouped


def _to_response(subject: Subject, teachers: List[User]) -> SubjectResponse:
    response = SubjectResponse.model_validate(subject)
    response.teachers = [UserBrief.model_validate(t) for t in teachers]
    return response


async def teaches(db: AsyncSession, teacher_id: int, subject_id: int) -> bool:
    """True when the teacher is linked to the subject."""
    result = await db.execute(
        select(teacher_subjects.c.user_id).where(
            teacher_subjects.c.user_id == teacher_id,
            teacher_subjects.c.subject_id == subject_id,
        )
    )
    return result.first() is not None


async def get_subject_or_404(db: AsyncSession, current_user: CurrentUser, subject_id: int) -> Subject:
    return await current_user.scope.get_or_404(db, Subject, subject_id, "Subject not found")


async def list_subjects(db: AsyncSession, current_user: CurrentUser) -> List[SubjectResponse]:
    result = await db.execute(current_user.scope.select(Subject).order_by(Subject.name))
    subjects = result.scalars().all()
    teachers = await _teachers_by_subject(db, [s.id for s in subjects])
    return [_to_response(s, teachers.get(s.id, [])) for s in subjects]


async def get_subject(db: AsyncSession, current_user: CurrentUser, subject_id: int) -> SubjectResponse:
    subject = await get_subject_or_404(db, current_user, subject_id)
    teachers = await _teachers_by_subject(db, [subject.id])
    return _to_response(subject, teachers.get(subject.id, []))


async def create_subject(db: AsyncSession, current_user: CurrentUser, payload: SubjectCreate) -> SubjectResponse:
    subject = Subject(
        school_id=current_user.school_id,
        name=payload.name.strip(),
        description=payload.description,
    )
    db.add(subject)
    await db.commit()
    await db.refresh(subject)
    return _to_response(subject, [])


async def update_subject(
    db: AsyncSession, current_user: CurrentUser, subject_id: int, payload: SubjectUpdate
) -> SubjectResponse:
    subject = await get_subject_or_404(db, current_user, subject_id)
    data = payload.model_dump(exclude_unset=True)
    if data.get("name"):
        subject.name = data["name"].strip()
    if "description" in data:
        subject.description = data["description"]
    await db.commit()
    await db.refresh(subject)
    return await get_subject(db, current_user, subject_id)


async def delete_subject(db: AsyncSession, current_user: CurrentUser, subject_id: int) -> None:
    subject = await get_subject_or_404(db, current_user, subject_id)
    subject.deleted_at = utcnow()
    await db.commit()


async def assign_teachers(
    db: AsyncSession, current_user: CurrentUser, subject_id: int, payload: AssignTeachersRequest
) -> SubjectResponse:
    await get_subject_or_404(db, current_user, subject_id)
    wanted = list(dict.fromkeys(payload.teacher_ids))
    if not await current_user.scope.all_exist(db, User, wanted, User.role == Role.TEACHER.value):
        raise bad_request("Some teachers not found or not valid")

    existing = await db.execute(
        select(teacher_subjects.c.user_id).where(
            teacher_subjects.c.subject_id == subject_id, teacher_subjects.c.user_id.in_(wanted)
        )
    )
    linked = set(existing.scalars().all())
    rows = [{"user_id": tid, "subject_id": subject_id} for tid in wanted if tid not in linked]
    if rows:
        await db.execute(insert(teacher_subjects), rows)
    await db.commit()
    return await get_subject(db, current_user, subject_id)


async def remove_teacher(db: AsyncSession, current_user: CurrentUser, subject_id: int, teacher_id: int) -> None:
    await get_subject_or_404(db, current_user, subject_id)
    result = await db.execute(
        delete(teacher_subjects).where(
            teacher_subjects.c.subject_id == subject_id, teacher_subjects.c.user_id == teacher_id
        )
    )
    if result.rowcount == 0:
        raise not_found("Teacher is not assigned to this subject")
    await db.commit()
