import pytest
from httpx import AsyncClient


@pytest.fixture()
async def board(client: AsyncClient, school, make_user, auth_headers):
    admin = await make_user("admin", school.id)
    teacher = await make_user("teacher", school.id)
    student = await make_user("student", school.id)
    outsider_student = await make_user("student", school.id)
    parent = await make_user("parent", school.id)
    admin_headers = auth_headers(admin)

    created = await client.post("/api/classes", json={"name": "7A", "year": 2025}, headers=admin_headers)
    class_id = created.json()["class"]["id"]
    await client.post(f"/api/classes/{class_id}/students", json={"student_ids": [student.id]}, headers=admin_headers)

    ids = {}
    for key, body in (
        ("A1", {"title": "A1", "content": "For everyone", "target_role": "all"}),
        ("A2", {"title": "A2", "content": "Staff meeting", "target_role": "teachers"}),
        ("A3", {"title": "A3", "content": "Class trip", "target_class_id": class_id}),
    ):
        response = await client.post("/api/announcements", json=body, headers=admin_headers)
        assert response.status_code == 201
        ids[key] = response.json()["announcement"]["id"]

    return {
        "ids": ids,
        "class_id": class_id,
        "admin": admin_headers,
        "teacher": auth_headers(teacher),
        "student": auth_headers(student),
        "outsider": auth_headers(outsider_student),
        "parent": auth_headers(parent),
    }


async def _titles(client: AsyncClient, headers) -> set:
    response = await client.get("/api/announcements", headers=headers)
    assert response.status_code == 200
    return {a["title"] for a in response.json()["announcements"]}


@pytest.mark.asyncio
async def test_visibility_by_role_and_class(client: AsyncClient, board) -> None:
    assert await _titles(client, board["student"]) == {"A1", "A3"}
    assert await _titles(client, board["teacher"]) == {"A1", "A2"}
    assert await _titles(client, board["admin"]) == {"A1", "A2", "A3"}
    assert await _titles(client, board["outsider"]) == {"A1"}
    assert await _titles(client, board["parent"]) == {"A1"}


@pytest.mark.asyncio
async def test_my_announcements_are_authored_ones(client: AsyncClient, board) -> None:
    await client.post(
        "/api/announcements", json={"title": "Mine", "content": "Quiz", "target_role": "students"}, headers=board["teacher"]
    )
    response = await client.get("/api/announcements/my", headers=board["teacher"])
    assert [a["title"] for a in response.json()["announcements"]] == ["Mine"]

    response = await client.get("/api/announcements/my", headers=board["student"])
    assert response.json()["announcements"] == []


@pytest.mark.asyncio
async def test_invalid_target(client: AsyncClient, board) -> None:
    bad_role = await client.post(
        "/api/announcements", json={"title": "X", "content": "Y", "target_role": "aliens"}, headers=board["admin"]
    )
    assert bad_role.status_code == 400

    missing_class = await client.post(
        "/api/announcements", json={"title": "X", "content": "Y", "target_class_id": 999}, headers=board["admin"]
    )
    assert missing_class.status_code == 404


@pytest.mark.asyncio
async def test_students_cannot_post(client: AsyncClient, board) -> None:
    response = await client.post("/api/announcements", json={"title": "X", "content": "Y"}, headers=board["student"])
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_only_author_or_admin_edits(client: AsyncClient, school, make_user, auth_headers, board) -> None:
    created = await client.post(
        "/api/announcements", json={"title": "Mine", "content": "Quiz", "target_role": "students"}, headers=board["teacher"]
    )
    announcement_id = created.json()["announcement"]["id"]

    other_teacher = await make_user("teacher", school.id)
    response = await client.put(
        f"/api/announcements/{announcement_id}", json={"title": "Stolen"}, headers=auth_headers(other_teacher)
    )
    assert response.status_code == 403

    response = await client.put(f"/api/announcements/{announcement_id}", json={"title": "Quiz!"}, headers=board["teacher"])
    assert response.status_code == 200
    assert response.json()["announcement"]["title"] == "Quiz!"

    response = await client.delete(f"/api/announcements/{announcement_id}", headers=board["admin"])
    assert response.status_code == 200


@pytest.mark.asyncio
async def test_read_by_id_follows_visibility(client: AsyncClient, board) -> None:
    staff_only = f"/api/announcements/{board['ids']['A2']}"
    class_trip = f"/api/announcements/{board['ids']['A3']}"

    hidden = await client.get(staff_only, headers=board["student"])
    assert hidden.status_code == 404
    assert hidden.json() == {"error": "Announcement not found"}
    assert (await client.get(class_trip, headers=board["outsider"])).status_code == 404

    assert (await client.get(staff_only, headers=board["teacher"])).json()["announcement"]["title"] == "A2"
    assert (await client.get(class_trip, headers=board["student"])).status_code == 200
    assert (await client.get(staff_only, headers=board["admin"])).status_code == 200


@pytest.mark.asyncio
async def test_author_reads_own_post_by_id(client: AsyncClient, board) -> None:
    created = await client.post(
        "/api/announcements", json={"title": "Quiz", "content": "Friday", "target_role": "students"}, headers=board["teacher"]
    )
    response = await client.get(f"/api/announcements/{created.json()['announcement']['id']}", headers=board["teacher"])
    assert response.status_code == 200
