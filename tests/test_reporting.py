"""
Tests for the grades summary report.
"""
import pytest

from student_performance import (
    AuthorizationService,
    ForbiddenError,
    Operation,
    ReportFilters,
    ResourceType,
    ScopePredicate,
    add_grade,
    create_assignment,
    generate_grade_summary,
)


@pytest.fixture
def graded_world(db, world):
    """s1: Math 90 and 80; s2: Math 70; s3: Physics 60 recorded by t2."""
    create_assignment(db, world.t2["id"], world.physics["id"], world.g2["id"], world.semester["id"])
    math, semester = world.math["id"], world.semester["id"]
    add_grade(db, world.t1_actor, world.s1["id"], math, semester, 90)
    add_grade(db, world.t1_actor, world.s1["id"], math, semester, 80)
    add_grade(db, world.t1_actor, world.s2["id"], math, semester, 70)
    add_grade(db, world.t2_actor, world.s3["id"], world.physics["id"], semester, 60)
    return world


def _summary(db, actor, filters=None):
    filters = filters or ReportFilters()
    verdict = AuthorizationService(db).enforce(
        actor, Operation.VIEW_ALL, ResourceType.REPORT, payload=filters.as_payload()
    )
    return generate_grade_summary(db, filters, verdict.scope)


class TestGradeSummary:
    """Aggregation per student and subject."""

    def test_administrator_sees_everything(self, db, graded_world):
        w = graded_world
        rows = _summary(db, w.admin_actor)
        assert [(r.student_id, r.subject_id) for r in rows] == [
            (w.s1["id"], w.math["id"]),
            (w.s2["id"], w.math["id"]),
            (w.s3["id"], w.physics["id"]),
        ]
        first = rows[0]
        assert first.average_grade == pytest.approx(85.0)
        assert first.grade_count == 2
        assert first.student_first_name == "Sam"
        assert first.student_last_name == "Adams"

    def test_repeated_calls_are_identical(self, db, graded_world):
        first = [r.to_dict() for r in _summary(db, graded_world.admin_actor)]
        second = [r.to_dict() for r in _summary(db, graded_world.admin_actor)]
        assert first == second

    def test_filters_narrow(self, db, graded_world):
        w = graded_world
        rows = _summary(db, w.admin_actor, ReportFilters(group_id=w.g2["id"]))
        assert [r.student_id for r in rows] == [w.s3["id"]]
        rows = _summary(db, w.admin_actor, ReportFilters(teacher_id=w.t1["id"]))
        assert {r.student_id for r in rows} == {w.s1["id"], w.s2["id"]}

    def test_empty_result(self, db, world):
        assert _summary(db, world.admin_actor) == []


class TestReportScoping:
    """Teachers are pinned to their own grades, students to themselves."""

    def test_teacher_sees_own_grades_only(self, db, graded_world):
        w = graded_world
        rows = _summary(db, w.t2_actor)
        assert [r.student_id for r in rows] == [w.s3["id"]]

    def test_teacher_filter_is_overridden(self, db, graded_world):
        w = graded_world
        rows = _summary(db, w.t2_actor, ReportFilters(teacher_id=w.t1["id"]))
        assert [r.student_id for r in rows] == [w.s3["id"]]

    def test_student_without_filter_gets_own_rows(self, db, graded_world):
        w = graded_world
        rows = _summary(db, w.s1_actor)
        assert {r.student_id for r in rows} == {w.s1["id"]}

    def test_student_asking_for_another_student_is_forbidden(self, db, graded_world):
        w = graded_world
        with pytest.raises(ForbiddenError):
            _summary(db, w.s1_actor, ReportFilters(student_id=w.s2["id"]))

    def test_student_asking_for_another_group_is_forbidden(self, db, graded_world):
        w = graded_world
        with pytest.raises(ForbiddenError):
            _summary(db, w.s1_actor, ReportFilters(group_id=w.g2["id"]))

    def test_scope_intersects_with_filters(self, db, graded_world):
        w = graded_world
        rows = generate_grade_summary(
            db, ReportFilters(student_id=w.s2["id"]), ScopePredicate(student_id=w.s1["id"])
        )
        assert rows == []
