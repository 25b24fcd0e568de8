"""
Teaching assignment tools for the Student Performance system.

An assignment is the grant that lets a teacher grade a group in a
subject for a semester. The (teacher, subject, group, semester) tuple is
unique, and an assignment that grades point at can be neither moved to
another tuple nor deleted.
"""
import logging
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from database import Assignment, Grade, Group, Semester, Subject, Teacher
from .clock import Clock, utcnow
from .exceptions import ConflictError, InvalidArgumentError
from .store import check_version, commit, get_or_404, page_result, paginate, split_changes

logger = logging.getLogger(__name__)

TUPLE_FIELDS = ("teacher_id", "subject_id", "group_id", "semester_id")


def _ensure_references(db: Session, teacher_id: int, subject_id: int, group_id: int, semester_id: int) -> None:
    get_or_404(db, Teacher, teacher_id)
    get_or_404(db, Subject, subject_id)
    get_or_404(db, Group, group_id)
    get_or_404(db, Semester, semester_id)


def _ensure_tuple_free(
    db: Session,
    teacher_id: int,
    subject_id: int,
    group_id: int,
    semester_id: int,
    exclude_id: Optional[int] = None,
) -> None:
    query = (
        db.query(Assignment.id)
        .filter(Assignment.teacher_id == teacher_id)
        .filter(Assignment.subject_id == subject_id)
        .filter(Assignment.group_id == group_id)
        .filter(Assignment.semester_id == semester_id)
    )
    if exclude_id is not None:
        query = query.filter(Assignment.id != exclude_id)
    existing = query.first()
    if existing is not None:
        logger.warning(
            "Assignment (teacher=%s, subject=%s, group=%s, semester=%s) already exists as %s",
            teacher_id, subject_id, group_id, semester_id, existing[0],
        )
        raise ConflictError(
            f"Teacher {teacher_id} is already assigned to group {group_id} "
            f"for subject {subject_id} in semester {semester_id}"
        )


def list_assignments(
    db: Session,
    teacher_id: Optional[int] = None,
    subject_id: Optional[int] = None,
    group_id: Optional[int] = None,
    semester_id: Optional[int] = None,
    page: int = 1,
    page_size: Optional[int] = None,
) -> Dict[str, Any]:
    query = db.query(Assignment)
    if teacher_id is not None:
        query = query.filter(Assignment.teacher_id == teacher_id)
    if subject_id is not None:
        query = query.filter(Assignment.subject_id == subject_id)
    if group_id is not None:
        query = query.filter(Assignment.group_id == group_id)
    if semester_id is not None:
        query = query.filter(Assignment.semester_id == semester_id)
    items, total = paginate(query.order_by(Assignment.id), page, page_size)
    return page_result(items, total, page, page_size)


def get_assignment(db: Session, assignment_id: int) -> Dict[str, Any]:
    return get_or_404(db, Assignment, assignment_id).to_dict()


def create_assignment(
    db: Session,
    teacher_id: int,
    subject_id: int,
    group_id: int,
    semester_id: int,
) -> Dict[str, Any]:
    """
    Grant a teacher a group/subject/semester combination.

    Raises:
        NotFoundError: If any of the four referenced rows does not exist
        ConflictError: If the exact tuple is already granted
    """
    _ensure_references(db, teacher_id, subject_id, group_id, semester_id)
    _ensure_tuple_free(db, teacher_id, subject_id, group_id, semester_id)

    assignment = Assignment(
        teacher_id=teacher_id,
        subject_id=subject_id,
        group_id=group_id,
        semester_id=semester_id,
    )
    db.add(assignment)
    commit(db, Assignment, label="Assignment")
    db.refresh(assignment)
    logger.info("Assignment %s created", assignment.id)
    return assignment.to_dict()


def update_assignment(
    db: Session,
    assignment_id: int,
    changes: Dict[str, Any],
    version: Optional[int] = None,
    clock: Clock = utcnow,
) -> Dict[str, Any]:
    """
    Move an assignment to a new tuple. Checks run against the new tuple,
    excluding the row being updated.

    Raises:
        NotFoundError: If the assignment or a newly referenced row does not exist
        ConflictError: If the new tuple is taken, or grades were recorded under the old one
    """
    assignment = get_or_404(db, Assignment, assignment_id)
    check_version(assignment, version, "Assignment")
    changes = split_changes(changes, TUPLE_FIELDS, ("id",), label="Assignment")

    for field, value in changes.items():
        if value is None:
            raise InvalidArgumentError(f"{field} cannot be cleared", field)
    new_tuple = {field: changes.get(field, getattr(assignment, field)) for field in TUPLE_FIELDS}
    _ensure_references(db, **new_tuple)
    _ensure_tuple_free(db, exclude_id=assignment_id, **new_tuple)

    moved = any(new_tuple[field] != getattr(assignment, field) for field in TUPLE_FIELDS)
    if moved:
        count = db.query(Grade).filter(Grade.assignment_id == assignment_id).count()
        if count:
            logger.warning("Cannot move assignment %s: %s grade(s) recorded under it", assignment_id, count)
            raise ConflictError(
                f"Cannot change assignment {assignment_id}: {count} grade(s) were recorded under it"
            )

    for field, value in new_tuple.items():
        setattr(assignment, field, value)
    assignment.updated_at = clock()
    commit(db, Assignment, assignment_id)
    db.refresh(assignment)
    logger.info("Assignment %s updated", assignment_id)
    return assignment.to_dict()


def delete_assignment(db: Session, assignment_id: int, version: Optional[int] = None) -> None:
    """
    Revoke a teaching grant.

    Raises:
        ConflictError: If grades reference the assignment
    """
    assignment = get_or_404(db, Assignment, assignment_id)
    check_version(assignment, version, "Assignment")
    count = db.query(Grade).filter(Grade.assignment_id == assignment_id).count()
    if count:
        logger.warning("Cannot delete assignment %s: %s grade(s) reference it", assignment_id, count)
        raise ConflictError(f"Cannot delete assignment {assignment_id}: {count} grade(s) reference it")

    db.delete(assignment)
    commit(db, Assignment, assignment_id)
    logger.info("Assignment %s deleted", assignment_id)
