"""
Grade writing tools for the Student Performance system.

A grade always hangs off the teaching assignment that covers its student's
group, subject and semester. The recording teacher is derived from that
assignment, never taken from the caller, and the academic context of a
grade cannot change after creation.
"""
import logging
from datetime import date
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from config import settings
from database import Grade, Semester, Student, Subject, UserRole
from .authorization import Actor
from .clock import Clock, utcnow
from .exceptions import ForbiddenError, InvalidArgumentError
from .relationships import RelationshipResolver
from .store import check_version, commit, get_or_404, split_changes

logger = logging.getLogger(__name__)

MUTABLE_FIELDS = ("value", "control_type", "status", "notes", "date_received")
IMMUTABLE_FIELDS = ("id", "student_id", "subject_id", "semester_id", "teacher_id", "assignment_id", "recorded_at")


def _validate_value(value: float) -> None:
    if value is None:
        raise InvalidArgumentError("Grade value is required", "value")
    if value < settings.grade_min or value > settings.grade_max:
        raise InvalidArgumentError(
            f"Grade value must be between {settings.grade_min:g} and {settings.grade_max:g}", "value"
        )


def _resolve_grant(
    resolver: RelationshipResolver,
    actor: Actor,
    teacher_id: Optional[int],
    subject_id: int,
    group_id: int,
    semester_id: int,
):
    if actor.role == UserRole.TEACHER:
        # The acting teacher is the only attribution a teacher can record under.
        teacher_id = resolver.actor_profile(actor.id).teacher_id
        grant = resolver.find_grant(teacher_id, subject_id, group_id, semester_id)
        if grant is None:
            raise ForbiddenError(
                "Teachers can only add grades for their own assigned courses",
                user_id=actor.id, action="create:grade",
            )
        return grant

    if actor.role != UserRole.ADMINISTRATOR:
        raise ForbiddenError("Only administrators and teachers can add grades", user_id=actor.id, action="create:grade")

    if teacher_id is not None:
        grant = resolver.find_grant(teacher_id, subject_id, group_id, semester_id)
        if grant is None:
            raise InvalidArgumentError(
                f"Teacher {teacher_id} holds no assignment for subject {subject_id} "
                f"in group {group_id} during semester {semester_id}", "teacher_id"
            )
        return grant

    grants = resolver.grants_covering(subject_id, group_id, semester_id)
    if not grants:
        raise InvalidArgumentError(
            f"No teaching assignment covers subject {subject_id} for group {group_id} "
            f"in semester {semester_id}", "subject_id"
        )
    if len(grants) > 1:
        raise InvalidArgumentError(
            "Several teachers are assigned to this subject, group and semester; teacher_id is required",
            "teacher_id",
        )
    return grants[0]


def add_grade(
    db: Session,
    actor: Actor,
    student_id: int,
    subject_id: int,
    semester_id: int,
    value: float,
    control_type: Optional[str] = None,
    status: Optional[str] = None,
    notes: Optional[str] = None,
    date_received: Optional[date] = None,
    teacher_id: Optional[int] = None,
    clock: Clock = utcnow,
) -> Dict[str, Any]:
    """
    Record a grade for a student.

    AUTHORIZATION: checked beforehand by the authorization service; the
    teacher attribution is still re-derived here.

    Args:
        db: Database session
        actor: The acting administrator or teacher
        student_id: ID of the student receiving the grade
        subject_id: ID of the subject
        semester_id: ID of the semester
        value: Grade value
        teacher_id: Administrators only; ignored for teacher actors
        clock: Source of recorded_at and the default date_received

    Returns:
        Created grade data

    Raises:
        NotFoundError: If the student, subject or semester does not exist
        InvalidArgumentError: If the value is out of range or no grant covers the grade
        ForbiddenError: If a teacher holds no matching grant
    """
    student = get_or_404(db, Student, student_id)
    get_or_404(db, Subject, subject_id)
    get_or_404(db, Semester, semester_id)
    _validate_value(value)

    resolver = RelationshipResolver(db)
    grant = _resolve_grant(resolver, actor, teacher_id, subject_id, student.group_id, semester_id)

    now = clock()
    grade = Grade(
        student_id=student_id,
        assignment_id=grant.id,
        teacher_id=grant.teacher_id,
        subject_id=grant.subject_id,
        semester_id=grant.semester_id,
        value=value,
        control_type=control_type,
        status=status,
        notes=notes,
        date_received=date_received or now.date(),
        recorded_at=now,
    )
    db.add(grade)
    commit(db, Grade, label="Grade")
    db.refresh(grade)
    logger.info(
        "Grade %s recorded for student %s by teacher %s (assignment %s)",
        grade.id, student_id, grade.teacher_id, grant.id,
    )
    return grade.to_dict()


def update_grade(
    db: Session,
    grade_id: int,
    changes: Dict[str, Any],
    version: Optional[int] = None,
    clock: Clock = utcnow,
) -> Dict[str, Any]:
    """
    Update the non-identifying fields of a grade.

    Raises:
        NotFoundError: If the grade does not exist (or was deleted concurrently)
        InvalidArgumentError: If an immutable field is supplied or the value is out of range
        ConcurrencyConflictError: If the grade changed since the caller read it
    """
    grade = get_or_404(db, Grade, grade_id)
    check_version(grade, version, "Grade")
    changes = split_changes(changes, MUTABLE_FIELDS, IMMUTABLE_FIELDS, label="Grade")

    if "value" in changes:
        _validate_value(changes["value"])
    if "date_received" in changes and changes["date_received"] is None:
        raise InvalidArgumentError("date_received cannot be cleared", "date_received")

    for field, value in changes.items():
        setattr(grade, field, value)
    grade.updated_at = clock()
    commit(db, Grade, grade_id)
    db.refresh(grade)
    logger.info("Grade %s updated", grade_id)
    return grade.to_dict()


def delete_grade(db: Session, grade_id: int, version: Optional[int] = None) -> None:
    """Delete a grade. Nothing depends on grades, so no further checks apply."""
    grade = get_or_404(db, Grade, grade_id)
    check_version(grade, version, "Grade")
    db.delete(grade)
    commit(db, Grade, grade_id)
    logger.info("Grade %s deleted", grade_id)
