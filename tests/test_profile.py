"""Tests for onboarding, data export and account deletion (/api/profile)."""
import pytest
from httpx import AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from alloqly.models.database_models import Classroom, Student, User
from tests.conftest import (
    AUTH_HEADERS,
    STUDENT_HEADERS,
    STUDENT_PROFILE,
    TEACHER_PROFILE,
    FakeSupabaseAuth,
    create_class,
    issue_code,
    onboard,
    onboard_teacher,
)


# ---------------------------------------------------------------------------
# Onboarding
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_profile_is_null_before_onboarding(client: AsyncClient):
    resp = await client.get("/api/profile", headers=AUTH_HEADERS)
    assert resp.status_code == 200
    assert resp.json() == {"profile": None}


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "changes,detail",
    [
        ({"role": "admin"}, "Select teacher or student."),
        ({"schoolName": "  "}, "Enter your school name."),
        ({"district": ""}, "District is required for teachers."),
        ({"subjects": []}, "Select at least one subject you teach."),
    ],
)
async def test_teacher_profile_validation(client: AsyncClient, changes, detail):
    resp = await client.post("/api/profile", json={**TEACHER_PROFILE, **changes}, headers=AUTH_HEADERS)
    assert resp.status_code == 400
    assert resp.json()["detail"] == detail


@pytest.mark.asyncio
async def test_student_profile_requires_grade_level(client: AsyncClient):
    resp = await client.post(
        "/api/profile", json={**STUDENT_PROFILE, "gradeLevel": None}, headers=STUDENT_HEADERS
    )
    assert resp.status_code == 400
    assert resp.json()["detail"] == "Grade level is required for students."


@pytest.mark.asyncio
async def test_teacher_onboarding(client: AsyncClient):
    resp = await client.post(
        "/api/profile",
        json={**TEACHER_PROFILE, "gradeLevel": "9", "preferredGradingScale": "Letter"},
        headers=AUTH_HEADERS,
    )
    assert resp.status_code == 200
    profile = resp.json()["profile"]
    assert profile["id"] == AUTH_HEADERS["X-User-Id"]
    assert profile["role"] == "teacher"
    assert profile["district"] == "North District"
    assert profile["subjects"] == ["Science"]
    assert profile["grade_level"] is None
    assert profile["preferred_grading_scale"] == "Letter"
    assert profile["is_onboarded"] is True

    resp = await client.get("/api/profile", headers=AUTH_HEADERS)
    assert resp.json()["profile"]["school_name"] == "Hillside Middle"


@pytest.mark.asyncio
async def test_student_onboarding_clears_teacher_fields(client: AsyncClient, db_session: AsyncSession):
    resp = await client.post(
        "/api/profile",
        json={**STUDENT_PROFILE, "district": "Ignored", "subjects": ["Math"]},
        headers=STUDENT_HEADERS,
    )
    profile = resp.json()["profile"]
    assert profile["role"] == "student"
    assert profile["district"] is None
    assert profile["subjects"] == []
    assert profile["grade_level"] == "7"
    assert profile["accommodations"]["selections"] == ["Extended time", "Frequent breaks"]

    result = await db_session.execute(select(Student).where(Student.user_id == "student-1"))
    student = result.scalar_one()
    assert student.teacher_id is None
    assert student.email == "sam@example.com"
    assert student.accommodations == ["Extended time", "Frequent breaks"]


@pytest.mark.asyncio
async def test_switching_role_updates_profile(client: AsyncClient):
    await onboard(client, AUTH_HEADERS, STUDENT_PROFILE)
    await onboard_teacher(client)
    resp = await client.get("/api/profile", headers=AUTH_HEADERS)
    profile = resp.json()["profile"]
    assert profile["role"] == "teacher"
    assert profile["grade_level"] is None


@pytest.mark.asyncio
async def test_student_onboarding_claims_invitations(client: AsyncClient, supabase: FakeSupabaseAuth):
    await onboard_teacher(client)
    class_id = await create_class(client, "Invite Only")
    resp = await client.post(
        f"/api/classes/{class_id}/invite",
        json={"email": STUDENT_HEADERS["X-User-Email"]},
        headers=AUTH_HEADERS,
    )
    assert resp.status_code == 200

    await onboard(client, STUDENT_HEADERS, STUDENT_PROFILE)
    resp = await client.get("/api/classes", headers=STUDENT_HEADERS)
    assert [c["name"] for c in resp.json()["classes"]] == ["Invite Only"]


# ---------------------------------------------------------------------------
# Export
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_export_requires_profile(client: AsyncClient):
    resp = await client.get("/api/profile/export", headers=AUTH_HEADERS)
    assert resp.status_code == 404
    assert resp.json()["detail"] == "Profile not found."


@pytest.mark.asyncio
async def test_teacher_export(client: AsyncClient):
    await onboard_teacher(client)
    await create_class(client, "Exported")
    await client.post(
        "/api/assignments", json={"title": "Quiz", "profile": "adhd"}, headers=AUTH_HEADERS
    )

    resp = await client.get("/api/profile/export", headers=AUTH_HEADERS)
    assert resp.status_code == 200
    disposition = resp.headers["content-disposition"]
    assert disposition.startswith('attachment; filename="alloqly-export-')
    assert disposition.endswith('.json"')

    data = resp.json()
    assert data["profile"]["role"] == "teacher"
    assert [c["name"] for c in data["classes"]] == ["Exported"]
    assert [a["title"] for a in data["assignments"]] == ["Quiz"]
    assert data["submissions"] == []


@pytest.mark.asyncio
async def test_student_export(client: AsyncClient):
    await onboard_teacher(client)
    class_id = await create_class(client, "Biology")
    code = await issue_code(client, class_id)

    await onboard(client, STUDENT_HEADERS, STUDENT_PROFILE)
    await client.post(
        "/api/join-class",
        json={"code": code, "studentEmail": STUDENT_HEADERS["X-User-Email"]},
    )

    resp = await client.get("/api/profile/export", headers=STUDENT_HEADERS)
    data = resp.json()
    assert data["student"]["email"] == "sam@example.com"
    assert [c["name"] for c in data["classes"]] == ["Biology"]
    assert data["submissions"] == []


# ---------------------------------------------------------------------------
# Delete
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_delete_requires_confirmation(client: AsyncClient):
    resp = await client.post("/api/profile/delete", json={}, headers=AUTH_HEADERS)
    assert resp.status_code == 400
    assert resp.json()["detail"] == "Confirmation required."


@pytest.mark.asyncio
async def test_delete_teacher_account(
    client: AsyncClient, supabase: FakeSupabaseAuth, db_session: AsyncSession
):
    await onboard_teacher(client)
    await create_class(client)
    await client.post(
        "/api/students", json={"name": "Lee", "email": "lee@example.com"}, headers=AUTH_HEADERS
    )

    resp = await client.post("/api/profile/delete", json={"confirm": True}, headers=AUTH_HEADERS)
    assert resp.status_code == 200
    assert resp.json() == {"success": True}

    assert supabase.requests[-1].method == "DELETE"
    assert supabase.requests[-1].url.path == "/auth/v1/admin/users/teacher-1"

    assert (await db_session.execute(select(User))).scalars().all() == []
    assert (await db_session.execute(select(Classroom))).scalars().all() == []
    assert (await db_session.execute(select(Student))).scalars().all() == []


@pytest.mark.asyncio
async def test_delete_reports_auth_failure(client: AsyncClient, supabase: FakeSupabaseAuth, caplog):
    supabase.status_code = 500
    await onboard_teacher(client)
    resp = await client.post("/api/profile/delete", json={"confirm": True}, headers=AUTH_HEADERS)
    assert resp.status_code == 500
    assert resp.json()["detail"] == "Unable to delete account."
    messages = [r.getMessage() for r in caplog.records]
    assert any("Auth delete failed" in m and "(status 500)" in m for m in messages)
