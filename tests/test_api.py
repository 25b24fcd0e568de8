"""
End-to-end tests through the HTTP API.
"""
import pytest
from fastapi.testclient import TestClient

from database import get_db
from main import app
from student_performance import add_grade, create_administrator

PASSWORD = "secret-pass"


@pytest.fixture
def client(db):
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def admin_headers(db):
    admin = create_administrator(db, "root", PASSWORD, "Root", "Admin")
    return {"X-Actor-Id": str(admin["id"])}


def _as(actor_id):
    return {"X-Actor-Id": str(actor_id)}


class TestEndToEnd:
    """From an empty school to the first grade."""

    def test_scenario(self, client, admin_headers):
        response = client.post("/groups/", json={"name": "G1", "code": "G1C"}, headers=admin_headers)
        assert response.status_code == 201
        group = response.json()

        response = client.post(
            "/semesters/",
            json={"name": "2024F", "code": "2024F", "start_date": "2024-09-01", "end_date": "2024-12-31"},
            headers=admin_headers,
        )
        assert response.status_code == 201
        semester = response.json()

        response = client.post("/subjects/", json={"name": "Math", "code": "MTH"}, headers=admin_headers)
        assert response.status_code == 201
        subject = response.json()

        teacher_body = {"username": "t1", "password": PASSWORD, "first_name": "Tom", "last_name": "First"}
        response = client.post("/teachers/", json=teacher_body, headers=admin_headers)
        assert response.status_code == 201
        t1 = response.json()

        response = client.post(
            "/assignments/",
            json={
                "teacher_id": t1["id"], "subject_id": subject["id"],
                "group_id": group["id"], "semester_id": semester["id"],
            },
            headers=admin_headers,
        )
        assert response.status_code == 201

        response = client.post(
            "/students/",
            json={"username": "s1", "password": PASSWORD, "first_name": "Sam", "last_name": "Adams",
                  "group_id": group["id"]},
            headers=admin_headers,
        )
        assert response.status_code == 201
        s1 = response.json()

        grade_body = {
            "student_id": s1["id"], "subject_id": subject["id"],
            "semester_id": semester["id"], "value": 90,
        }
        response = client.post("/grades/", json=grade_body, headers=_as(t1["user_id"]))
        assert response.status_code == 201
        assert response.json()["teacher_id"] == t1["id"]

        t2_body = {"username": "t2", "password": PASSWORD, "first_name": "Tina", "last_name": "Second"}
        t2 = client.post("/teachers/", json=t2_body, headers=admin_headers).json()
        response = client.post("/grades/", json=grade_body, headers=_as(t2["user_id"]))
        assert response.status_code == 403

        response = client.get("/reports/grades-summary", headers=_as(s1["user_id"]))
        assert response.status_code == 200
        assert response.json() == [{
            "student_id": s1["id"],
            "student_first_name": "Sam",
            "student_last_name": "Adams",
            "subject_id": subject["id"],
            "average_grade": 90.0,
            "grade_count": 1,
        }]


class TestHttpMapping:
    """Domain errors map to HTTP statuses."""

    def test_missing_header(self, client):
        assert client.get("/groups/").status_code == 422

    def test_unknown_actor(self, client):
        assert client.get("/groups/", headers=_as(9999)).status_code == 401

    def test_not_found(self, client, admin_headers):
        response = client.get("/groups/9999", headers=admin_headers)
        assert response.status_code == 404
        assert response.json()["error_type"] == "NotFoundError"

    def test_forbidden(self, client, world):
        response = client.post("/groups/", json={"name": "X", "code": "X"}, headers=_as(world.s1["user_id"]))
        assert response.status_code == 403

    def test_conflict(self, client, world):
        headers = _as(world.admin["id"])
        response = client.post("/groups/", json={"name": "G1", "code": "OTHER"}, headers=headers)
        assert response.status_code == 409
        assert response.json()["retryable"] is False

    def test_stale_version_is_retryable(self, client, world):
        headers = _as(world.admin["id"])
        url = f"/groups/{world.g1['id']}"
        assert client.patch(url, json={"name": "G1 new", "version": 1}, headers=headers).status_code == 200
        response = client.patch(url, json={"name": "G1 newer", "version": 1}, headers=headers)
        assert response.status_code == 409
        assert response.json()["retryable"] is True

    def test_invalid_argument(self, client, db, world):
        headers = _as(world.admin["id"])
        grade = add_grade(db, world.t1_actor, world.s1["id"], world.math["id"], world.semester["id"], 70)
        response = client.patch(f"/grades/{grade['id']}", json={"student_id": world.s2["id"]}, headers=headers)
        assert response.status_code == 400
        assert response.json()["field"] == "student_id"
        grade_body = {
            "student_id": world.s1["id"], "subject_id": world.math["id"],
            "semester_id": world.semester["id"], "value": 150,
        }
        response = client.post("/grades/", json=grade_body, headers=headers)
        assert response.status_code == 400
        assert response.json()["field"] == "value"

    def test_unknown_update_field_is_rejected(self, client, world):
        headers = _as(world.admin["id"])
        response = client.patch(f"/groups/{world.g1['id']}", json={"colour": "red"}, headers=headers)
        assert response.status_code == 422


class TestScopedListings:
    """Listings are filtered by the caller's scope before pagination."""

    def test_teacher_lists_students_of_taught_groups(self, client, world):
        response = client.get("/students/", headers=_as(world.t1["user_id"]))
        assert response.status_code == 200
        body = response.json()
        assert body["total"] == 2
        assert {s["id"] for s in body["items"]} == {world.s1["id"], world.s2["id"]}

    def test_student_cannot_view_classmate(self, client, world):
        response = client.get(f"/students/{world.s2['id']}", headers=_as(world.s1["user_id"]))
        assert response.status_code == 403

    def test_student_cannot_change_group(self, client, world):
        response = client.patch(
            f"/students/{world.s1['id']}", json={"group_id": world.g2["id"]}, headers=_as(world.s1["user_id"])
        )
        assert response.status_code == 403

    def test_student_edits_own_profile(self, client, world):
        response = client.patch(
            f"/students/{world.s1['id']}", json={"first_name": "Samuel"}, headers=_as(world.s1["user_id"])
        )
        assert response.status_code == 200
        assert response.json()["first_name"] == "Samuel"

    def test_me_and_roles(self, client, world):
        me = client.get("/users/me", headers=_as(world.t1["user_id"])).json()
        assert me["teacher_id"] == world.t1["id"]
        roles = client.get("/roles/", headers=_as(world.s1["user_id"])).json()
        assert [r["name"] for r in roles] == ["administrator", "teacher", "student"]

    def test_change_password(self, client, world):
        headers = _as(world.s1["user_id"])
        body = {"current_password": PASSWORD, "new_password": "another-pass"}
        assert client.post("/users/me/password", json=body, headers=headers).status_code == 204
        assert client.post("/users/me/password", json=body, headers=headers).status_code == 400
