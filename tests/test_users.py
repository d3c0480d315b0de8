import pytest
from httpx import AsyncClient
from sqlalchemy import select
from sqlalchemy.dialects import postgresql
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.models import User
from app.auth.services import admin_ids_stmt


@pytest.mark.asyncio
async def test_last_admin_cannot_be_deleted(client: AsyncClient, db_session: AsyncSession, school, make_user, auth_headers) -> None:
    admin = await make_user("admin", school.id)
    headers = auth_headers(admin)

    response = await client.delete(f"/api/users/{admin.id}", headers=headers)
    assert response.status_code == 403
    assert response.json() == {"error": "Cannot delete the last admin"}

    created = await client.post(
        "/api/users",
        json={
            "username": "second",
            "email": "second@x",
            "password": "secret",
            "role": "admin",
            "first_name": "Second",
            "last_name": "Admin",
        },
        headers=headers,
    )
    assert created.status_code == 201
    assert created.json()["user"]["school_id"] == school.id

    response = await client.delete(f"/api/users/{admin.id}", headers=headers)
    assert response.status_code == 200
    deleted_at = (await db_session.execute(select(User.deleted_at).where(User.id == admin.id))).scalar_one()
    assert deleted_at is not None


@pytest.mark.asyncio
async def test_last_admin_cannot_be_demoted(client: AsyncClient, school, make_user, auth_headers) -> None:
    admin = await make_user("admin", school.id)
    response = await client.put(f"/api/users/{admin.id}", json={"role": "teacher"}, headers=auth_headers(admin))
    assert response.status_code == 403
    assert response.json() == {"error": "Cannot change role of the last admin"}

    me = await client.get(f"/api/users/{admin.id}", headers=auth_headers(admin))
    assert me.json()["user"]["role"] == "admin"


@pytest.mark.asyncio
async def test_non_admin_cannot_change_own_role(client: AsyncClient, school, make_user, auth_headers) -> None:
    teacher = await make_user("teacher", school.id)
    headers = auth_headers(teacher)

    response = await client.put(f"/api/users/{teacher.id}", json={"role": "admin"}, headers=headers)
    assert response.status_code == 403

    response = await client.put(f"/api/users/{teacher.id}", json={"first_name": "Renamed"}, headers=headers)
    assert response.status_code == 200
    assert response.json()["user"]["first_name"] == "Renamed"


@pytest.mark.asyncio
async def test_user_cannot_edit_someone_else(client: AsyncClient, school, make_user, auth_headers) -> None:
    student = await make_user("student", school.id)
    other = await make_user("student", school.id)
    response = await client.put(f"/api/users/{other.id}", json={"first_name": "X"}, headers=auth_headers(student))
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_list_filters_by_role(client: AsyncClient, school, make_user, auth_headers) -> None:
    admin = await make_user("admin", school.id)
    await make_user("teacher", school.id)
    await make_user("student", school.id)

    response = await client.get("/api/users", params={"role": "teacher"}, headers=auth_headers(admin))
    assert response.status_code == 200
    assert [u["role"] for u in response.json()["users"]] == ["teacher"]


@pytest.mark.asyncio
async def test_tenant_isolation(client: AsyncClient, make_school, make_user, auth_headers) -> None:
    first = await make_school("First")
    second = await make_school("Second")
    admin_one = await make_user("admin", first.id)
    outsider = await make_user("student", second.id)

    headers = auth_headers(admin_one)
    response = await client.get(f"/api/users/{outsider.id}", headers=headers)
    assert response.status_code == 404

    listed = await client.get("/api/users", headers=headers)
    assert {u["school_id"] for u in listed.json()["users"]} == {first.id}

    school = await client.get(f"/api/schools/{second.id}", headers=headers)
    assert school.status_code == 404

    update = await client.put(f"/api/schools/{second.id}", json={"name": "Hijacked"}, headers=headers)
    assert update.status_code == 403


@pytest.mark.asyncio
async def test_create_user_requires_admin(client: AsyncClient, school, make_user, auth_headers) -> None:
    teacher = await make_user("teacher", school.id)
    response = await client.post(
        "/api/users",
        json={"username": "kid", "email": "kid@x", "password": "secret", "role": "student"},
        headers=auth_headers(teacher),
    )
    assert response.status_code == 403
    assert response.json() == {"error": "Insufficient permissions"}


def test_admin_count_locks_admin_rows() -> None:
    sql = str(admin_ids_stmt(1).compile(dialect=postgresql.dialect()))
    assert "FOR UPDATE" in sql
    assert "users.deleted_at IS NULL" in sql


@pytest.mark.asyncio
async def test_two_admins_cannot_both_be_removed(client: AsyncClient, school, make_user, auth_headers) -> None:
    first = await make_user("admin", school.id)
    second = await make_user("admin", school.id)
    first_id, second_id = first.id, second.id
    first_headers = auth_headers(first)

    response = await client.delete(f"/api/users/{second_id}", headers=first_headers)
    assert response.status_code == 200

    response = await client.put(f"/api/users/{first_id}", json={"role": "teacher"}, headers=first_headers)
    assert response.status_code == 403
    assert response.json() == {"error": "Cannot change role of the last admin"}

    response = await client.delete(f"/api/users/{first_id}", headers=first_headers)
    assert response.status_code == 403
