import pytest
from httpx import AsyncClient


async def _subject(client: AsyncClient, headers, name: str) -> int:
    response = await client.post("/api/subjects", json={"name": name}, headers=headers)
    assert response.status_code == 201
    return response.json()["subject"]["id"]


@pytest.fixture()
async def journal(client: AsyncClient, school, make_user, auth_headers):
    admin = await make_user("admin", school.id)
    teacher = await make_user("teacher", school.id)
    student = await make_user("student", school.id)
    admin_headers = auth_headers(admin)

    math = await _subject(client, admin_headers, "Math")
    bio = await _subject(client, admin_headers, "Bio")
    assigned = await client.post(
        f"/api/subjects/{math}/teachers", json={"teacher_ids": [teacher.id]}, headers=admin_headers
    )
    assert assigned.status_code == 200

    return {
        "admin": admin_headers,
        "teacher": auth_headers(teacher),
        "student": auth_headers(student),
        "teacher_id": teacher.id,
        "student_id": student.id,
        "math": math,
        "bio": bio,
    }


@pytest.mark.asyncio
async def test_teacher_grades_only_linked_subjects(client: AsyncClient, journal) -> None:
    response = await client.post(
        "/api/grades",
        json={"student_id": journal["student_id"], "subject_id": journal["math"], "grade": 5, "date": "2025-01-10"},
        headers=journal["teacher"],
    )
    assert response.status_code == 201
    grade = response.json()["grade"]
    assert grade["teacher_id"] == journal["teacher_id"]
    assert grade["date"] == "2025-01-10"

    response = await client.post(
        "/api/grades",
        json={"student_id": journal["student_id"], "subject_id": journal["bio"], "grade": 5, "date": "2025-01-10"},
        headers=journal["teacher"],
    )
    assert response.status_code == 403
    assert response.json() == {"error": "You don't teach this subject"}


@pytest.mark.asyncio
async def test_admin_may_grade_any_subject(client: AsyncClient, journal) -> None:
    response = await client.post(
        "/api/grades",
        json={"student_id": journal["student_id"], "subject_id": journal["bio"], "grade": 3, "date": "2025-01-11"},
        headers=journal["admin"],
    )
    assert response.status_code == 201


@pytest.mark.asyncio
async def test_grade_validation(client: AsyncClient, journal) -> None:
    out_of_range = await client.post(
        "/api/grades",
        json={"student_id": journal["student_id"], "subject_id": journal["math"], "grade": 6, "date": "2025-01-10"},
        headers=journal["teacher"],
    )
    assert out_of_range.status_code == 400

    bad_date = await client.post(
        "/api/grades",
        json={"student_id": journal["student_id"], "subject_id": journal["math"], "grade": 4, "date": "10.01.2025"},
        headers=journal["teacher"],
    )
    assert bad_date.status_code == 400
    assert bad_date.json() == {"error": "Invalid date format (use YYYY-MM-DD)"}

    student_posting = await client.post(
        "/api/grades",
        json={"student_id": journal["student_id"], "subject_id": journal["math"], "grade": 5, "date": "2025-01-10"},
        headers=journal["student"],
    )
    assert student_posting.status_code == 403


@pytest.mark.asyncio
async def test_only_author_or_admin_updates_grade(client: AsyncClient, school, make_user, auth_headers, journal) -> None:
    created = await client.post(
        "/api/grades",
        json={"student_id": journal["student_id"], "subject_id": journal["math"], "grade": 4, "date": "2025-01-10"},
        headers=journal["teacher"],
    )
    grade_id = created.json()["grade"]["id"]

    other_teacher = await make_user("teacher", school.id)
    response = await client.put(f"/api/grades/{grade_id}", json={"grade": 2}, headers=auth_headers(other_teacher))
    assert response.status_code == 403

    response = await client.put(f"/api/grades/{grade_id}", json={"grade": 5}, headers=journal["teacher"])
    assert response.status_code == 200
    assert response.json()["grade"]["grade"] == 5

    response = await client.delete(f"/api/grades/{grade_id}", headers=journal["admin"])
    assert response.status_code == 200
    assert (await client.get(f"/api/grades/{grade_id}", headers=journal["admin"])).status_code == 404


@pytest.mark.asyncio
async def test_student_average(client: AsyncClient, journal) -> None:
    for value, day in ((5, "2025-01-10"), (4, "2025-01-11"), (3, "2025-01-12")):
        response = await client.post(
            "/api/grades",
            json={"student_id": journal["student_id"], "subject_id": journal["math"], "grade": value, "date": day},
            headers=journal["teacher"],
        )
        assert response.status_code == 201

    response = await client.get(f"/api/grades/student/{journal['student_id']}/average", headers=journal["student"])
    assert response.status_code == 200
    data = response.json()
    assert data["overall_average"] == 4.0
    assert data["total_grades"] == 3
    assert data["subject_averages"] == [
        {"subject_id": journal["math"], "subject_name": "Math", "average": 4.0, "count": 3}
    ]


@pytest.mark.asyncio
async def test_class_journal(client: AsyncClient, journal) -> None:
    created = await client.post("/api/classes", json={"name": "5A", "year": 2025}, headers=journal["admin"])
    class_id = created.json()["class"]["id"]
    await client.post(
        f"/api/classes/{class_id}/students", json={"student_ids": [journal["student_id"]]}, headers=journal["admin"]
    )
    await client.post(
        "/api/grades",
        json={"student_id": journal["student_id"], "subject_id": journal["math"], "grade": 5, "date": "2025-01-10"},
        headers=journal["teacher"],
    )

    response = await client.get(f"/api/grades/class/{class_id}/journal", headers=journal["teacher"])
    assert response.status_code == 200
    data = response.json()
    assert data["class"]["name"] == "5A"
    assert [s["id"] for s in data["students"]] == [journal["student_id"]]
    assert [g["grade"] for g in data["journal"][str(journal["student_id"])]] == [5]


@pytest.mark.asyncio
@pytest.mark.parametrize("value", ["2025-1-5", " 2025-01-10", "2025-01-10 ", "2025-02-30"])
async def test_grade_date_must_be_zero_padded_iso(client: AsyncClient, journal, value: str) -> None:
    response = await client.post(
        "/api/grades",
        json={"student_id": journal["student_id"], "subject_id": journal["math"], "grade": 4, "date": value},
        headers=journal["teacher"],
    )
    assert response.status_code == 400
    assert response.json() == {"error": "Invalid date format (use YYYY-MM-DD)"}
