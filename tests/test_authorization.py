"""
Unit tests for the authorization service.
Tests the policy table per role and resource, scope predicates, and the
rule that students and grades never leak their existence.
"""
import pytest

from database import UserRole
from student_performance import (
    Actor,
    AuthorizationService,
    Decision,
    ForbiddenError,
    InvalidArgumentError,
    NotFoundError,
    Operation,
    ResourceType,
    add_grade,
    create_assignment,
    get_authorization_service,
    list_grades,
    list_students,
)


@pytest.fixture
def auth(db):
    return get_authorization_service(db)


@pytest.fixture
def graded(db, world):
    """One grade for s1 recorded by t1."""
    return add_grade(db, world.t1_actor, world.s1["id"], world.math["id"], world.semester["id"], 90)


def _grade_payload(world, student):
    return {
        "student_id": student["id"],
        "subject_id": world.math["id"],
        "semester_id": world.semester["id"],
    }


class TestAdministrator:
    """Administrators are allowed everything; only existence is checked."""

    def test_admin_allowed_everywhere(self, auth, world):
        for resource in (ResourceType.GROUP, ResourceType.TEACHER, ResourceType.STUDENT, ResourceType.GRADE):
            verdict = auth.authorize(world.admin_actor, Operation.CREATE, resource)
            assert verdict.allowed

    def test_admin_view_all_is_unrestricted(self, auth, world):
        verdict = auth.authorize(world.admin_actor, Operation.VIEW_ALL, ResourceType.GRADE)
        assert verdict.allowed
        assert verdict.scope.unrestricted

    def test_admin_missing_row_is_not_found(self, auth, world):
        verdict = auth.authorize(world.admin_actor, Operation.VIEW_ONE, ResourceType.GROUP, 9999)
        assert verdict.decision == Decision.NOT_FOUND
        verdict = auth.authorize(world.admin_actor, Operation.DELETE, ResourceType.GRADE, 9999)
        assert verdict.decision == Decision.NOT_FOUND

    def test_admin_unknown_role_is_not_found(self, auth, world):
        verdict = auth.authorize(world.admin_actor, Operation.VIEW_ONE, ResourceType.ROLE, "janitor")
        assert verdict.decision == Decision.NOT_FOUND


class TestReferenceData:
    """Catalog, teachers and assignments are readable by all, writable by administrators."""

    def test_teacher_and_student_can_read(self, auth, world):
        for actor in (world.t1_actor, world.s1_actor):
            assert auth.authorize(actor, Operation.VIEW_ALL, ResourceType.SUBJECT).allowed
            assert auth.authorize(actor, Operation.VIEW_ONE, ResourceType.GROUP, world.g2["id"]).allowed
            assert auth.authorize(actor, Operation.VIEW_ALL, ResourceType.ROLE).allowed

    def test_teacher_and_student_cannot_write(self, auth, world):
        for actor in (world.t1_actor, world.s1_actor):
            assert auth.authorize(actor, Operation.CREATE, ResourceType.GROUP).decision == Decision.DENY
            assert auth.authorize(
                actor, Operation.UPDATE, ResourceType.ASSIGNMENT, world.assignment["id"]
            ).decision == Decision.DENY
            assert auth.authorize(actor, Operation.CREATE, ResourceType.ROLE).decision == Decision.DENY

    def test_reading_missing_reference_row_is_not_found(self, auth, world):
        verdict = auth.authorize(world.t1_actor, Operation.VIEW_ONE, ResourceType.SEMESTER, 9999)
        assert verdict.decision == Decision.NOT_FOUND


class TestActorResolution:
    """Role and profile must match the database."""

    def test_unknown_actor_is_denied(self, auth, world):
        ghost = Actor(id=9999, role=UserRole.TEACHER)
        assert auth.authorize(ghost, Operation.VIEW_ALL, ResourceType.GROUP).decision == Decision.DENY

    def test_role_mismatch_is_denied(self, auth, world):
        impostor = Actor(id=world.t1["user_id"], role=UserRole.STUDENT)
        verdict = auth.authorize(impostor, Operation.VIEW_ONE, ResourceType.STUDENT, world.s1["id"])
        assert verdict.decision == Decision.DENY


class TestStudentResource:
    """Teacher access through groups, student access to self."""

    def test_teacher_views_student_of_taught_group(self, auth, world):
        assert auth.authorize(world.t1_actor, Operation.VIEW_ONE, ResourceType.STUDENT, world.s1["id"]).allowed

    def test_teacher_cannot_view_student_of_other_group(self, auth, world):
        verdict = auth.authorize(world.t1_actor, Operation.VIEW_ONE, ResourceType.STUDENT, world.s3["id"])
        assert verdict.decision == Decision.DENY

    def test_missing_student_does_not_leak(self, auth, world):
        verdict = auth.authorize(world.t1_actor, Operation.VIEW_ONE, ResourceType.STUDENT, 9999)
        assert verdict.decision == Decision.DENY

    def test_teacher_list_scope(self, db, auth, world):
        verdict = auth.authorize(world.t1_actor, Operation.VIEW_ALL, ResourceType.STUDENT)
        assert verdict.scope.group_ids == frozenset({world.g1["id"]})
        listing = list_students(db, scope=verdict.scope)
        assert {s["id"] for s in listing["items"]} == {world.s1["id"], world.s2["id"]}
        assert listing["total"] == 2

    def test_student_sees_only_self(self, db, auth, world):
        assert auth.authorize(world.s1_actor, Operation.VIEW_ONE, ResourceType.STUDENT, world.s1["id"]).allowed
        assert auth.authorize(
            world.s1_actor, Operation.VIEW_ONE, ResourceType.STUDENT, world.s2["id"]
        ).decision == Decision.DENY
        verdict = auth.authorize(world.s1_actor, Operation.VIEW_ALL, ResourceType.STUDENT)
        listing = list_students(db, scope=verdict.scope)
        assert [s["id"] for s in listing["items"]] == [world.s1["id"]]

    def test_student_updates_own_profile_but_not_group(self, auth, world):
        s1 = world.s1["id"]
        assert auth.authorize(
            world.s1_actor, Operation.UPDATE, ResourceType.STUDENT, s1, {"first_name": "Samuel"}
        ).allowed
        assert auth.authorize(
            world.s1_actor, Operation.UPDATE, ResourceType.STUDENT, s1, {"group_id": world.g1["id"]}
        ).allowed
        verdict = auth.authorize(
            world.s1_actor, Operation.UPDATE, ResourceType.STUDENT, s1, {"group_id": world.g2["id"]}
        )
        assert verdict.decision == Decision.DENY

    def test_teacher_cannot_modify_students(self, auth, world):
        verdict = auth.authorize(world.t1_actor, Operation.UPDATE, ResourceType.STUDENT, world.s1["id"])
        assert verdict.decision == Decision.DENY


class TestGradeResource:
    """Grade creation requires a teaching grant; reads follow ownership."""

    def test_grade_requires_grant(self, db, auth, world):
        """Granting the assignment flips Deny to Allow."""
        payload = _grade_payload(world, world.s1)
        assert auth.authorize(world.t2_actor, Operation.CREATE, ResourceType.GRADE, payload=payload).decision \
            == Decision.DENY
        create_assignment(db, world.t2["id"], world.math["id"], world.g1["id"], world.semester["id"])
        assert auth.authorize(world.t2_actor, Operation.CREATE, ResourceType.GRADE, payload=payload).allowed

    def test_grant_does_not_cover_other_group(self, auth, world):
        payload = _grade_payload(world, world.s3)
        verdict = auth.authorize(world.t1_actor, Operation.CREATE, ResourceType.GRADE, payload=payload)
        assert verdict.decision == Decision.DENY

    def test_incomplete_payload_is_invalid(self, auth, world):
        with pytest.raises(InvalidArgumentError):
            auth.authorize(world.t1_actor, Operation.CREATE, ResourceType.GRADE, payload={"student_id": 1})

    def test_students_cannot_create_grades(self, auth, world):
        payload = _grade_payload(world, world.s1)
        verdict = auth.authorize(world.s1_actor, Operation.CREATE, ResourceType.GRADE, payload=payload)
        assert verdict.decision == Decision.DENY

    def test_recording_teacher_can_modify(self, auth, world, graded):
        for operation in (Operation.VIEW_ONE, Operation.UPDATE, Operation.DELETE):
            assert auth.authorize(world.t1_actor, operation, ResourceType.GRADE, graded["id"]).allowed

    def test_other_teacher_cannot_modify(self, auth, world, graded):
        for operation in (Operation.VIEW_ONE, Operation.UPDATE, Operation.DELETE):
            verdict = auth.authorize(world.t2_actor, operation, ResourceType.GRADE, graded["id"])
            assert verdict.decision == Decision.DENY

    def test_group_teacher_can_view_but_not_modify(self, db, auth, world, graded):
        create_assignment(db, world.t2["id"], world.physics["id"], world.g1["id"], world.semester["id"])
        assert auth.authorize(world.t2_actor, Operation.VIEW_ONE, ResourceType.GRADE, graded["id"]).allowed
        verdict = auth.authorize(world.t2_actor, Operation.UPDATE, ResourceType.GRADE, graded["id"])
        assert verdict.decision == Decision.DENY

    def test_student_reads_own_grade_only(self, auth, world, graded):
        assert auth.authorize(world.s1_actor, Operation.VIEW_ONE, ResourceType.GRADE, graded["id"]).allowed
        verdict = auth.authorize(world.s2_actor, Operation.VIEW_ONE, ResourceType.GRADE, graded["id"])
        assert verdict.decision == Decision.DENY
        verdict = auth.authorize(world.s1_actor, Operation.UPDATE, ResourceType.GRADE, graded["id"])
        assert verdict.decision == Decision.DENY

    def test_missing_grade_does_not_leak(self, auth, world):
        for actor in (world.t1_actor, world.s1_actor):
            verdict = auth.authorize(actor, Operation.VIEW_ONE, ResourceType.GRADE, 9999)
            assert verdict.decision == Decision.DENY

    def test_student_grade_scope(self, db, auth, world, graded):
        add_grade(db, world.t1_actor, world.s2["id"], world.math["id"], world.semester["id"], 70)
        verdict = auth.authorize(world.s2_actor, Operation.VIEW_ALL, ResourceType.GRADE)
        listing = list_grades(db, scope=verdict.scope)
        assert listing["total"] == 1
        assert listing["items"][0]["student_id"] == world.s2["id"]

    def test_teacher_grade_scope(self, db, auth, world, graded):
        verdict = auth.authorize(world.t2_actor, Operation.VIEW_ALL, ResourceType.GRADE)
        assert list_grades(db, scope=verdict.scope)["total"] == 0
        verdict = auth.authorize(world.t1_actor, Operation.VIEW_ALL, ResourceType.GRADE)
        assert list_grades(db, scope=verdict.scope)["total"] == 1


class TestReportResource:
    """Teacher filters are overridden, student mismatches are denied."""

    def test_teacher_scope_pins_teacher(self, auth, world):
        verdict = auth.authorize(
            world.t1_actor, Operation.VIEW_ALL, ResourceType.REPORT, payload={"teacher_id": world.t2["id"]}
        )
        assert verdict.allowed
        assert verdict.scope.teacher_id == world.t1["id"]

    def test_student_other_student_is_denied(self, auth, world):
        verdict = auth.authorize(
            world.s1_actor, Operation.VIEW_ALL, ResourceType.REPORT, payload={"student_id": world.s2["id"]}
        )
        assert verdict.decision == Decision.DENY

    def test_student_other_group_is_denied(self, auth, world):
        verdict = auth.authorize(
            world.s1_actor, Operation.VIEW_ALL, ResourceType.REPORT, payload={"group_id": world.g2["id"]}
        )
        assert verdict.decision == Decision.DENY

    def test_student_scope_is_self(self, auth, world):
        verdict = auth.authorize(world.s1_actor, Operation.VIEW_ALL, ResourceType.REPORT)
        assert verdict.scope.student_id == world.s1["id"]

    def test_reports_are_read_only(self, auth, world):
        verdict = auth.authorize(world.admin_actor, Operation.VIEW_ALL, ResourceType.REPORT)
        assert verdict.allowed
        verdict = auth.authorize(world.t1_actor, Operation.CREATE, ResourceType.REPORT)
        assert verdict.decision == Decision.DENY


class TestEnforce:
    """enforce() turns verdicts into exceptions."""

    def test_enforce_deny(self, db, world):
        with pytest.raises(ForbiddenError):
            AuthorizationService(db).enforce(world.s1_actor, Operation.CREATE, ResourceType.GROUP)

    def test_enforce_not_found(self, db, world):
        with pytest.raises(NotFoundError):
            AuthorizationService(db).enforce(world.admin_actor, Operation.VIEW_ONE, ResourceType.SUBJECT, 9999)

    def test_enforce_allow_returns_verdict(self, db, world):
        verdict = AuthorizationService(db).enforce(world.s1_actor, Operation.VIEW_ALL, ResourceType.GRADE)
        assert verdict.scope.student_id == world.s1["id"]
