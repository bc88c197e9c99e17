"""Tests for user listing, updates and deletion (with their authorization rules)."""

import pytest
from httpx import AsyncClient
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.security import verify_password
from app.models.employee import Employee, ProjectEmployee
from app.models.enums import Role
from app.models.project import Project
from app.models.user import User


def _has_password_key(obj) -> bool:
    if isinstance(obj, dict):
        return any("password" in k.lower() or _has_password_key(v) for k, v in obj.items())
    if isinstance(obj, list):
        return any(_has_password_key(v) for v in obj)
    return False


# ── Listing / lookup ────────────────────────────────────────────────
@pytest.mark.asyncio
async def test_list_users_never_exposes_password(async_client: AsyncClient, admin_user, guest_user, guest_headers):
    resp = await async_client.get("/api/v1/users", headers=guest_headers)
    assert resp.status_code == 200
    users = resp.json()
    assert {u["email"] for u in users} == {"admin@example.com", "guest@example.com"}
    assert not _has_password_key(users)


@pytest.mark.asyncio
async def test_list_users_requires_auth(async_client: AsyncClient):
    resp = await async_client.get("/api/v1/users")
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_get_user_by_id(async_client: AsyncClient, guest_user, admin_headers):
    resp = await async_client.get(f"/api/v1/users/{guest_user.id}", headers=admin_headers)
    assert resp.status_code == 200
    data = resp.json()
    assert data["firstName"] == "Gus"
    assert data["employee"]["department"] == "Engineering"
    assert not _has_password_key(data)


@pytest.mark.asyncio
async def test_get_user_not_found(async_client: AsyncClient, admin_headers):
    resp = await async_client.get("/api/v1/users/9999", headers=admin_headers)
    assert resp.status_code == 404
    assert resp.json() == {"message": "User not found."}


# ── Update ──────────────────────────────────────────────────────────
@pytest.mark.asyncio
async def test_user_updates_self(async_client: AsyncClient, guest_user, guest_headers, db_session: AsyncSession):
    resp = await async_client.patch(
        f"/api/v1/users/{guest_user.id}",
        json={"firstName": "Gustav", "password": "new-password"},
        headers=guest_headers,
    )
    assert resp.status_code == 200
    data = resp.json()
    assert data["firstName"] == "Gustav"
    assert data["lastName"] == "Guest"

    stored = await db_session.get(User, guest_user.id, populate_existing=True)
    assert verify_password("new-password", stored.hashed_password)


@pytest.mark.asyncio
async def test_user_cannot_update_other_user(async_client: AsyncClient, make_user, guest_headers):
    other = await make_user("other@example.com")
    resp = await async_client.patch(f"/api/v1/users/{other.id}", json={"firstName": "X"}, headers=guest_headers)
    assert resp.status_code == 403


@pytest.mark.asyncio
async def test_admin_updates_guest(async_client: AsyncClient, guest_user, admin_headers):
    resp = await async_client.patch(f"/api/v1/users/{guest_user.id}", json={"lastName": "Renamed"}, headers=admin_headers)
    assert resp.status_code == 200
    assert resp.json()["lastName"] == "Renamed"


@pytest.mark.asyncio
async def test_admin_cannot_update_another_admin(async_client: AsyncClient, make_user, admin_headers):
    other_admin = await make_user("boss@example.com", role=Role.ADMIN)
    resp = await async_client.patch(f"/api/v1/users/{other_admin.id}", json={"firstName": "X"}, headers=admin_headers)
    assert resp.status_code == 403
    assert resp.json()["message"] == "Cannot update an admin user."


@pytest.mark.asyncio
async def test_guest_cannot_promote_self(async_client: AsyncClient, guest_user, guest_headers):
    resp = await async_client.patch(f"/api/v1/users/{guest_user.id}", json={"role": "Admin"}, headers=guest_headers)
    assert resp.status_code == 403


@pytest.mark.asyncio
async def test_admin_cannot_be_demoted(async_client: AsyncClient, admin_user, admin_headers):
    resp = await async_client.patch(f"/api/v1/users/{admin_user.id}", json={"role": "Guest"}, headers=admin_headers)
    assert resp.status_code == 403


@pytest.mark.asyncio
async def test_admin_promotes_guest(async_client: AsyncClient, guest_user, admin_headers):
    resp = await async_client.patch(f"/api/v1/users/{guest_user.id}", json={"role": "Admin"}, headers=admin_headers)
    assert resp.status_code == 200
    assert resp.json()["role"] == "Admin"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "body",
    [
        {"email": "not-an-email"},
        {"firstName": ""},
        {"lastName": "   "},
        {"password": ""},
        {"role": "Superuser"},
        {"firstName": None},
    ],
)
async def test_update_rejects_invalid_fields(async_client: AsyncClient, guest_user, guest_headers, body):
    resp = await async_client.patch(f"/api/v1/users/{guest_user.id}", json=body, headers=guest_headers)
    assert resp.status_code == 400
    assert resp.json() == {"message": "Invalid input fields."}


@pytest.mark.asyncio
async def test_update_email_conflict(async_client: AsyncClient, admin_user, guest_user, guest_headers):
    resp = await async_client.patch(
        f"/api/v1/users/{guest_user.id}", json={"email": "admin@example.com"}, headers=guest_headers
    )
    assert resp.status_code == 409


@pytest.mark.asyncio
async def test_update_with_own_email_is_not_a_conflict(async_client: AsyncClient, guest_user, guest_headers):
    resp = await async_client.patch(
        f"/api/v1/users/{guest_user.id}", json={"email": "Guest@Example.com"}, headers=guest_headers
    )
    assert resp.status_code == 200
    assert resp.json()["email"] == "guest@example.com"


# ── Delete ──────────────────────────────────────────────────────────
@pytest.mark.asyncio
async def test_delete_admin_always_forbidden(async_client: AsyncClient, admin_user, make_user, auth_headers):
    other_admin = await make_user("boss@example.com", role=Role.ADMIN)
    guest = await make_user("g@example.com")

    for caller in (admin_user, other_admin, guest):
        resp = await async_client.delete(f"/api/v1/users/{admin_user.id}", headers=auth_headers(caller))
        assert resp.status_code == 403


@pytest.mark.asyncio
async def test_guest_cannot_delete_other_user(async_client: AsyncClient, make_user, guest_headers):
    other = await make_user("other@example.com")
    resp = await async_client.delete(f"/api/v1/users/{other.id}", headers=guest_headers)
    assert resp.status_code == 403


@pytest.mark.asyncio
async def test_delete_rejects_impersonating_body(async_client: AsyncClient, make_user, guest_user, guest_headers):
    other = await make_user("other@example.com")
    resp = await async_client.request(
        "DELETE",
        f"/api/v1/users/{guest_user.id}",
        json={"userId": other.id},
        headers=guest_headers,
    )
    assert resp.status_code == 403


@pytest.mark.asyncio
async def test_delete_user_cascades_to_employee_and_projects(
    async_client: AsyncClient, guest_user, admin_headers, db_session: AsyncSession
):
    employee_id = guest_user.employee_id
    project = Project(name="Apollo")
    project.employee_links = [ProjectEmployee(employee_id=employee_id, part_time=True)]
    db_session.add(project)
    await db_session.commit()
    project_id = project.id

    resp = await async_client.delete(f"/api/v1/users/{guest_user.id}", headers=admin_headers)
    assert resp.status_code == 204

    assert await db_session.scalar(select(func.count()).select_from(User).where(User.id == guest_user.id)) == 0
    assert await db_session.scalar(select(func.count()).select_from(Employee).where(Employee.id == employee_id)) == 0
    assert await db_session.scalar(
        select(func.count()).select_from(ProjectEmployee).where(ProjectEmployee.employee_id == employee_id)
    ) == 0
    # The project itself survives
    assert await db_session.scalar(select(func.count()).select_from(Project).where(Project.id == project_id)) == 1


@pytest.mark.asyncio
async def test_user_deletes_self(async_client: AsyncClient, guest_user, guest_headers):
    resp = await async_client.request(
        "DELETE",
        f"/api/v1/users/{guest_user.id}",
        json={"userId": guest_user.id},
        headers=guest_headers,
    )
    assert resp.status_code == 204


@pytest.mark.asyncio
async def test_delete_user_without_employee(async_client: AsyncClient, make_user, admin_headers):
    loner = await make_user("loner@example.com", with_employee=False)
    resp = await async_client.delete(f"/api/v1/users/{loner.id}", headers=admin_headers)
    assert resp.status_code == 204


# ── Profile image ───────────────────────────────────────────────────
PNG_URI = "data:image/png;base64,iVBORw0KGgo="


@pytest.mark.asyncio
async def test_update_user_image_from_json(async_client: AsyncClient, guest_user, guest_headers):
    resp = await async_client.patch(f"/api/v1/users/{guest_user.id}", json={"image": PNG_URI}, headers=guest_headers)
    assert resp.status_code == 200
    assert resp.json()["image"] == PNG_URI

    cleared = await async_client.patch(f"/api/v1/users/{guest_user.id}", json={"image": None}, headers=guest_headers)
    assert cleared.json()["image"] is None


@pytest.mark.asyncio
async def test_update_user_rejects_non_image_data(async_client: AsyncClient, guest_user, guest_headers):
    resp = await async_client.patch(
        f"/api/v1/users/{guest_user.id}", json={"image": "data:text/html;base64,PGI+"}, headers=guest_headers
    )
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_upload_user_image(async_client: AsyncClient, guest_user, guest_headers):
    resp = await async_client.put(
        f"/api/v1/users/{guest_user.id}/image",
        files={"image": ("me.png", b"\x89PNG bytes", "image/png")},
        headers=guest_headers,
    )
    assert resp.status_code == 200
    assert resp.json()["image"].startswith("data:image/png;base64,")


@pytest.mark.asyncio
async def test_upload_image_for_other_user_forbidden(async_client: AsyncClient, make_user, guest_headers):
    other = await make_user("other@example.com")
    resp = await async_client.put(
        f"/api/v1/users/{other.id}/image",
        files={"image": ("me.png", b"\x89PNG bytes", "image/png")},
        headers=guest_headers,
    )
    assert resp.status_code == 403


@pytest.mark.asyncio
async def test_upload_oversized_image_rejected(async_client: AsyncClient, guest_user, guest_headers, monkeypatch):
    monkeypatch.setattr(settings, "MAX_IMAGE_MB", 0)
    resp = await async_client.put(
        f"/api/v1/users/{guest_user.id}/image",
        files={"image": ("me.png", b"\x89PNG bytes", "image/png")},
        headers=guest_headers,
    )
    assert resp.status_code == 400
    assert resp.json() == {"message": "Image must not exceed 0MB."}
