from datetime import date, datetime, timezone

import pytest
from httpx import AsyncClient
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.models import Attendance


@pytest.fixture()
async def roster(client: AsyncClient, school, make_user, auth_headers):
    admin = await make_user("admin", school.id)
    teacher = await make_user("teacher", school.id)
    starosta = await make_user("starosta", school.id)
    student = await make_user("student", school.id)
    admin_headers = auth_headers(admin)

    created = await client.post("/api/classes", json={"name": "7B", "year": 2025}, headers=admin_headers)
    class_id = created.json()["class"]["id"]
    await client.post(
        f"/api/classes/{class_id}/students",
        json={"student_ids": [student.id, starosta.id]},
        headers=admin_headers,
    )
    return {
        "admin": admin_headers,
        "teacher": auth_headers(teacher),
        "starosta": auth_headers(starosta),
        "student": auth_headers(student),
        "student_id": student.id,
        "class_id": class_id,
    }


async def _count_rows(db_session: AsyncSession) -> int:
    return (await db_session.execute(select(func.count(Attendance.id)))).scalar_one()


@pytest.mark.asyncio
async def test_bulk_upsert_overwrites_status(client: AsyncClient, db_session: AsyncSession, roster) -> None:
    record = {"student_id": roster["student_id"], "class_id": roster["class_id"], "date": "2025-01-10"}

    first = await client.post(
        "/api/attendance/bulk", json={"records": [{**record, "status": "present"}]}, headers=roster["teacher"]
    )
    assert first.status_code == 201

    second = await client.post(
        "/api/attendance/bulk", json={"records": [{**record, "status": "absent"}]}, headers=roster["teacher"]
    )
    assert second.status_code == 201
    assert second.json()["attendance"][0]["status"] == "absent"

    assert await _count_rows(db_session) == 1
    status = (await db_session.execute(select(Attendance.status))).scalar_one()
    assert status == "absent"


@pytest.mark.asyncio
async def test_bulk_is_atomic(client: AsyncClient, db_session: AsyncSession, roster) -> None:
    response = await client.post(
        "/api/attendance/bulk",
        json={
            "records": [
                {"student_id": roster["student_id"], "class_id": roster["class_id"], "date": "2025-01-10", "status": "present"},
                {"student_id": 9999, "class_id": roster["class_id"], "date": "2025-01-10", "status": "present"},
            ]
        },
        headers=roster["starosta"],
    )
    assert response.status_code == 400
    assert response.json() == {"error": "Student not found"}
    assert await _count_rows(db_session) == 0


@pytest.mark.asyncio
async def test_rejects_unknown_status(client: AsyncClient, roster) -> None:
    response = await client.post(
        "/api/attendance",
        json={"student_id": roster["student_id"], "class_id": roster["class_id"], "date": "2025-01-10", "status": "asleep"},
        headers=roster["teacher"],
    )
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_student_cannot_mark(client: AsyncClient, roster) -> None:
    response = await client.post(
        "/api/attendance",
        json={"student_id": roster["student_id"], "class_id": roster["class_id"], "date": "2025-01-10", "status": "present"},
        headers=roster["student"],
    )
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_student_stats(client: AsyncClient, roster) -> None:
    records = [
        {"student_id": roster["student_id"], "class_id": roster["class_id"], "date": day, "status": status}
        for day, status in (("2025-01-10", "present"), ("2025-01-11", "late"), ("2025-01-12", "present"))
    ]
    await client.post("/api/attendance/bulk", json={"records": records}, headers=roster["teacher"])

    response = await client.get(f"/api/attendance/student/{roster['student_id']}/stats", headers=roster["admin"])
    assert response.status_code == 200
    data = response.json()
    assert data["total"] == 3
    assert data["stats"] == {"present": 2, "absent": 0, "late": 1, "sick": 0, "excused": 0}

    listed = await client.get("/api/attendance", params={"status": "late"}, headers=roster["admin"])
    assert [a["date"] for a in listed.json()["attendance"]] == ["2025-01-11"]


@pytest.mark.asyncio
async def test_delete_is_soft_and_admin_only(client: AsyncClient, db_session: AsyncSession, roster) -> None:
    created = await client.post(
        "/api/attendance",
        json={"student_id": roster["student_id"], "class_id": roster["class_id"], "date": "2025-01-10", "status": "sick"},
        headers=roster["teacher"],
    )
    attendance_id = created.json()["attendance"]["id"]

    assert (await client.delete(f"/api/attendance/{attendance_id}", headers=roster["teacher"])).status_code == 403
    assert (await client.delete(f"/api/attendance/{attendance_id}", headers=roster["admin"])).status_code == 200

    listed = await client.get("/api/attendance", headers=roster["admin"])
    assert listed.json()["attendance"] == []
    assert await _count_rows(db_session) == 1


@pytest.mark.asyncio
async def test_lesson_and_subject_are_part_of_the_key(client: AsyncClient, db_session: AsyncSession, roster) -> None:
    subject = await client.post("/api/subjects", json={"name": "History"}, headers=roster["admin"])
    subject_id = subject.json()["subject"]["id"]
    base = {"student_id": roster["student_id"], "class_id": roster["class_id"], "date": "2025-02-03"}
    records = [
        {**base, "lesson_number": 1, "status": "present"},
        {**base, "lesson_number": 2, "status": "present"},
        {**base, "status": "present"},
        {**base, "lesson_number": 1, "subject_id": subject_id, "status": "present"},
    ]
    response = await client.post("/api/attendance/bulk", json={"records": records}, headers=roster["teacher"])
    assert response.status_code == 201
    assert await _count_rows(db_session) == 4

    again = [
        {**base, "status": "late"},
        {**base, "lesson_number": 1, "subject_id": subject_id, "status": "absent"},
    ]
    response = await client.post("/api/attendance/bulk", json={"records": again}, headers=roster["teacher"])
    assert response.status_code == 201
    assert await _count_rows(db_session) == 4

    rows = (
        await db_session.execute(
            select(Attendance.lesson_number, Attendance.subject_id, Attendance.status).order_by(Attendance.id)
        )
    ).all()
    assert [tuple(r) for r in rows] == [
        (1, None, "present"),
        (2, None, "present"),
        (None, None, "late"),
        (1, subject_id, "absent"),
    ]


@pytest.mark.asyncio
async def test_unique_mark_index_rejects_duplicate_rows(db_session: AsyncSession, school, roster) -> None:
    school_id, student_id, class_id = school.id, roster["student_id"], roster["class_id"]

    def mark(**fields) -> Attendance:
        return Attendance(
            school_id=school_id,
            student_id=student_id,
            class_id=class_id,
            date=date(2025, 2, 4),
            status="present",
            marked_by=student_id,
            **fields,
        )

    db_session.add(mark())
    await db_session.commit()

    db_session.add(mark())
    with pytest.raises(IntegrityError):
        await db_session.commit()
    await db_session.rollback()

    # A soft-deleted mark does not block a fresh one
    db_session.add(mark(deleted_at=datetime(2025, 2, 4, tzinfo=timezone.utc), lesson_number=3))
    db_session.add(mark(lesson_number=3))
    await db_session.commit()
    assert await _count_rows(db_session) == 3


@pytest.mark.asyncio
async def test_remark_after_soft_delete(client: AsyncClient, db_session: AsyncSession, roster) -> None:
    record = {"student_id": roster["student_id"], "class_id": roster["class_id"], "date": "2025-02-05", "status": "sick"}
    created = await client.post("/api/attendance", json=record, headers=roster["teacher"])
    attendance_id = created.json()["attendance"]["id"]
    assert (await client.delete(f"/api/attendance/{attendance_id}", headers=roster["admin"])).status_code == 200

    again = await client.post("/api/attendance", json={**record, "status": "present"}, headers=roster["teacher"])
    assert again.status_code == 201
    assert again.json()["attendance"]["id"] != attendance_id
    assert await _count_rows(db_session) == 2


@pytest.mark.asyncio
async def test_bulk_rejects_student_of_another_school(
    client: AsyncClient, db_session: AsyncSession, make_school, make_user, roster
) -> None:
    other = await make_school("Elsewhere")
    outsider = await make_user("student", other.id)
    response = await client.post(
        "/api/attendance/bulk",
        json={
            "records": [
                {"student_id": roster["student_id"], "class_id": roster["class_id"], "date": "2025-02-06", "status": "present"},
                {"student_id": outsider.id, "class_id": roster["class_id"], "date": "2025-02-06", "status": "present"},
            ]
        },
        headers=roster["teacher"],
    )
    assert response.status_code == 400
    assert response.json() == {"error": "Student not found"}
    assert await _count_rows(db_session) == 0
