import pytest
from httpx import AsyncClient


@pytest.fixture()
async def two_schools(client: AsyncClient, make_school, make_user, auth_headers):
    home = await make_school("Home")
    away = await make_school("Away")
    admin = await make_user("admin", home.id)
    teacher = await make_user("teacher", home.id, teacher_subject="Physics")
    student = await make_user("student", home.id)
    outsider = await make_user("admin", away.id)
    admin_headers = auth_headers(admin)

    created = await client.post("/api/classes", json={"name": "5C", "year": 2025}, headers=admin_headers)
    class_id = created.json()["class"]["id"]
    await client.post(f"/api/classes/{class_id}/students", json={"student_ids": [student.id]}, headers=admin_headers)
    subject = await client.post("/api/subjects", json={"name": "Physics"}, headers=admin_headers)
    subject_id = subject.json()["subject"]["id"]
    await client.post(f"/api/subjects/{subject_id}/teachers", json={"teacher_ids": [teacher.id]}, headers=admin_headers)

    teacher_headers = auth_headers(teacher)
    grade = await client.post(
        "/api/grades",
        json={"student_id": student.id, "subject_id": subject_id, "grade": 4, "date": "2025-04-01"},
        headers=teacher_headers,
    )
    homework = await client.post(
        "/api/homework",
        json={
            "class_id": class_id,
            "subject_id": subject_id,
            "description": "Read chapter 2",
            "assigned_date": "2025-04-01",
            "due_date": "2025-04-08",
        },
        headers=teacher_headers,
    )
    await client.post(
        "/api/attendance",
        json={"student_id": student.id, "class_id": class_id, "date": "2025-04-01", "status": "present"},
        headers=teacher_headers,
    )
    return {
        "outsider": auth_headers(outsider),
        "class_id": class_id,
        "subject_id": subject_id,
        "student_id": student.id,
        "grade_id": grade.json()["grade"]["id"],
        "homework_id": homework.json()["homework"]["id"],
    }


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "path, message",
    [
        ("/api/classes/{class_id}", "Class not found"),
        ("/api/subjects/{subject_id}", "Subject not found"),
        ("/api/grades/{grade_id}", "Grade not found"),
        ("/api/homework/{homework_id}", "Homework not found"),
        ("/api/attendance/student/{student_id}/stats", "Student not found"),
    ],
)
async def test_other_school_reads_are_not_found(client: AsyncClient, two_schools, path: str, message: str) -> None:
    response = await client.get(path.format(**two_schools), headers=two_schools["outsider"])
    assert response.status_code == 404
    assert response.json() == {"error": message}


@pytest.mark.asyncio
async def test_other_school_lists_are_empty(client: AsyncClient, two_schools) -> None:
    headers = two_schools["outsider"]
    assert (await client.get("/api/classes", headers=headers)).json()["classes"] == []
    assert (await client.get("/api/grades", headers=headers)).json()["grades"] == []
    assert (await client.get("/api/attendance", headers=headers)).json()["attendance"] == []
    assert (await client.get("/api/homework", headers=headers)).json()["homework"] == []


@pytest.mark.asyncio
async def test_other_school_cannot_grade_foreign_student(client: AsyncClient, two_schools) -> None:
    response = await client.post(
        "/api/grades",
        json={"student_id": two_schools["student_id"], "subject_id": two_schools["subject_id"], "grade": 2, "date": "2025-04-02"},
        headers=two_schools["outsider"],
    )
    assert response.status_code == 404
    assert response.json() == {"error": "Student not found"}
