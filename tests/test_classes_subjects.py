import pytest
from httpx import AsyncClient
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.models import class_students


@pytest.fixture()
async def staff(school, make_user, auth_headers):
    admin = await make_user("admin", school.id)
    teacher = await make_user("teacher", school.id)
    student = await make_user("student", school.id)
    return {
        "admin": auth_headers(admin),
        "teacher": auth_headers(teacher),
        "teacher_id": teacher.id,
        "student_id": student.id,
    }


@pytest.mark.asyncio
async def test_class_with_homeroom_teacher(client: AsyncClient, staff) -> None:
    response = await client.post(
        "/api/classes",
        json={"name": "9A", "year": 2025, "homeroom_teacher_id": staff["teacher_id"]},
        headers=staff["admin"],
    )
    assert response.status_code == 201
    school_class = response.json()["class"]
    assert school_class["homeroom_teacher"]["id"] == staff["teacher_id"]

    wrong = await client.post(
        "/api/classes",
        json={"name": "9B", "year": 2025, "homeroom_teacher_id": staff["student_id"]},
        headers=staff["admin"],
    )
    assert wrong.status_code == 400
    assert wrong.json() == {"error": "Homeroom teacher not found or is not a teacher"}


@pytest.mark.asyncio
async def test_teacher_cannot_create_class(client: AsyncClient, staff) -> None:
    response = await client.post("/api/classes", json={"name": "9A", "year": 2025}, headers=staff["teacher"])
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_add_students_is_all_or_nothing(client: AsyncClient, db_session: AsyncSession, staff) -> None:
    created = await client.post("/api/classes", json={"name": "1A", "year": 2025}, headers=staff["admin"])
    class_id = created.json()["class"]["id"]

    response = await client.post(
        f"/api/classes/{class_id}/students",
        json={"student_ids": [staff["student_id"], staff["teacher_id"]]},
        headers=staff["admin"],
    )
    assert response.status_code == 400
    assert response.json() == {"error": "Some students not found or not valid"}
    enrolled = (await db_session.execute(select(func.count()).select_from(class_students))).scalar_one()
    assert enrolled == 0

    response = await client.post(
        f"/api/classes/{class_id}/students", json={"student_ids": [staff["student_id"]]}, headers=staff["admin"]
    )
    assert response.status_code == 200
    assert [s["id"] for s in response.json()["class"]["students"]] == [staff["student_id"]]

    removed = await client.delete(f"/api/classes/{class_id}/students/{staff['student_id']}", headers=staff["admin"])
    assert removed.status_code == 200
    missing = await client.delete(f"/api/classes/{class_id}/students/{staff['student_id']}", headers=staff["admin"])
    assert missing.status_code == 404


@pytest.mark.asyncio
async def test_deleted_class_disappears(client: AsyncClient, staff) -> None:
    created = await client.post("/api/classes", json={"name": "2A", "year": 2024}, headers=staff["admin"])
    class_id = created.json()["class"]["id"]

    assert (await client.delete(f"/api/classes/{class_id}", headers=staff["admin"])).status_code == 200
    assert (await client.get(f"/api/classes/{class_id}", headers=staff["admin"])).status_code == 404
    listed = await client.get("/api/classes", headers=staff["admin"])
    assert listed.json()["classes"] == []


@pytest.mark.asyncio
async def test_assign_teachers_validates_every_id(client: AsyncClient, staff) -> None:
    created = await client.post("/api/subjects", json={"name": "Physics"}, headers=staff["admin"])
    subject_id = created.json()["subject"]["id"]

    bad = await client.post(
        f"/api/subjects/{subject_id}/teachers",
        json={"teacher_ids": [staff["teacher_id"], staff["student_id"]]},
        headers=staff["admin"],
    )
    assert bad.status_code == 400
    assert bad.json() == {"error": "Some teachers not found or not valid"}

    ok = await client.post(
        f"/api/subjects/{subject_id}/teachers", json={"teacher_ids": [staff["teacher_id"]]}, headers=staff["admin"]
    )
    assert ok.status_code == 200
    assert [t["id"] for t in ok.json()["subject"]["teachers"]] == [staff["teacher_id"]]

    removed = await client.delete(f"/api/subjects/{subject_id}/teachers/{staff['teacher_id']}", headers=staff["admin"])
    assert removed.status_code == 200
    subject = await client.get(f"/api/subjects/{subject_id}", headers=staff["teacher"])
    assert subject.json()["subject"]["teachers"] == []


@pytest.mark.asyncio
async def test_class_schedule_grouped_by_day(client: AsyncClient, staff) -> None:
    created = await client.post("/api/classes", json={"name": "4A", "year": 2025}, headers=staff["admin"])
    class_id = created.json()["class"]["id"]
    subject = await client.post("/api/subjects", json={"name": "History"}, headers=staff["admin"])
    subject_id = subject.json()["subject"]["id"]

    for day, lesson in (("Monday", 2), ("Monday", 1), ("Tuesday", 1)):
        response = await client.post(
            "/api/schedules",
            json={
                "class_id": class_id,
                "subject_id": subject_id,
                "teacher_id": staff["teacher_id"],
                "day_of_week": day,
                "lesson_number": lesson,
                "start_time": "08:00",
                "end_time": "08:45",
            },
            headers=staff["teacher"],
        )
        assert response.status_code == 201

    response = await client.get(f"/api/schedules/class/{class_id}", headers=staff["teacher"])
    assert response.status_code == 200
    data = response.json()
    assert data["class"]["id"] == class_id
    assert [s["lesson_number"] for s in data["schedule"]["Monday"]] == [1, 2]
    assert len(data["schedule"]["Tuesday"]) == 1

    filtered = await client.get("/api/schedules", params={"day_of_week": "Tuesday"}, headers=staff["teacher"])
    assert len(filtered.json()["schedules"]) == 1


@pytest.mark.asyncio
async def test_schedule_rejects_unknown_references(client: AsyncClient, staff) -> None:
    subject = await client.post("/api/subjects", json={"name": "Art"}, headers=staff["admin"])
    response = await client.post(
        "/api/schedules",
        json={
            "class_id": 404,
            "subject_id": subject.json()["subject"]["id"],
            "day_of_week": "Friday",
            "lesson_number": 3,
            "start_time": "10:00",
            "end_time": "10:45",
        },
        headers=staff["admin"],
    )
    assert response.status_code == 400
    assert response.json() == {"error": "Class not found"}

    out_of_range = await client.post(
        "/api/schedules",
        json={
            "class_id": 1,
            "subject_id": 1,
            "day_of_week": "Friday",
            "lesson_number": 11,
            "start_time": "10:00",
            "end_time": "10:45",
        },
        headers=staff["admin"],
    )
    assert out_of_range.status_code == 400
