"""
Catalog tools for the Student Performance system.
Groups, subjects and semesters: independent top-level entities that only
administrators create, change and delete.

Names and codes are unique by exact match. Deletes are refused while
other rows still reference the entity.
"""
import logging
from datetime import date
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from database import Assignment, Group, Semester, Student, Subject
from .exceptions import ConflictError, InvalidArgumentError
from .store import check_version, commit, get_or_404, page_result, paginate, split_changes

logger = logging.getLogger(__name__)

NAMED_FIELDS = ("name", "code", "description")
SEMESTER_FIELDS = ("name", "code", "start_date", "end_date", "is_active")


def _ensure_unique(db: Session, model, label: str, exclude_id: Optional[int] = None, **fields) -> None:
    for field, value in fields.items():
        if value is None:
            continue
        query = db.query(model.id).filter(getattr(model, field) == value)
        if exclude_id is not None:
            query = query.filter(model.id != exclude_id)
        if query.first() is not None:
            logger.warning("%s %s '%s' already taken", label, field, value)
            raise ConflictError(f"{label} with {field} '{value}' already exists")


def _require_text(value: Optional[str], field: str) -> str:
    if value is None or not str(value).strip():
        raise InvalidArgumentError(f"{field} is required", field)
    return value


def _ensure_dates(start_date: date, end_date: date) -> None:
    if start_date is None or end_date is None:
        raise InvalidArgumentError("start_date and end_date are required", "start_date")
    if start_date >= end_date:
        raise InvalidArgumentError("Semester start_date must be before end_date", "start_date")


def _blocked_if(db: Session, dependent_model, column, entity_id: int, message: str) -> None:
    count = db.query(dependent_model).filter(column == entity_id).count()
    if count:
        logger.warning(message, count)
        raise ConflictError(message % count)


# ============== Groups ==============

def list_groups(db: Session, page: int = 1, page_size: Optional[int] = None) -> Dict[str, Any]:
    items, total = paginate(db.query(Group).order_by(Group.name), page, page_size)
    return page_result(items, total, page, page_size)


def get_group(db: Session, group_id: int) -> Dict[str, Any]:
    return get_or_404(db, Group, group_id).to_dict()


def create_group(db: Session, name: str, code: str, description: Optional[str] = None) -> Dict[str, Any]:
    """
    Create a group.

    Raises:
        InvalidArgumentError: If name or code is blank
        ConflictError: If name or code is already used
    """
    _require_text(name, "name")
    _require_text(code, "code")
    _ensure_unique(db, Group, "Group", name=name, code=code)

    group = Group(name=name, code=code, description=description)
    db.add(group)
    commit(db, Group, label="Group")
    db.refresh(group)
    logger.info("Group %s '%s' created", group.id, group.name)
    return group.to_dict()


def update_group(
    db: Session, group_id: int, changes: Dict[str, Any], version: Optional[int] = None
) -> Dict[str, Any]:
    """Apply a partial update to a group."""
    group = get_or_404(db, Group, group_id)
    check_version(group, version, "Group")
    changes = split_changes(changes, NAMED_FIELDS, label="Group")
    if "name" in changes:
        _require_text(changes["name"], "name")
    if "code" in changes:
        _require_text(changes["code"], "code")
    _ensure_unique(db, Group, "Group", exclude_id=group_id, name=changes.get("name"), code=changes.get("code"))

    for field, value in changes.items():
        setattr(group, field, value)
    commit(db, Group, group_id)
    db.refresh(group)
    logger.info("Group %s updated", group_id)
    return group.to_dict()


def delete_group(db: Session, group_id: int, version: Optional[int] = None) -> None:
    """
    Delete a group.

    Raises:
        ConflictError: If students or assignments still reference the group
    """
    group = get_or_404(db, Group, group_id)
    check_version(group, version, "Group")
    _blocked_if(db, Student, Student.group_id, group_id,
                f"Cannot delete group {group_id}: %s student(s) still belong to it")
    _blocked_if(db, Assignment, Assignment.group_id, group_id,
                f"Cannot delete group {group_id}: %s teaching assignment(s) reference it")

    db.delete(group)
    commit(db, Group, group_id)
    logger.info("Group %s deleted", group_id)


# ============== Subjects ==============

def list_subjects(db: Session, page: int = 1, page_size: Optional[int] = None) -> Dict[str, Any]:
    items, total = paginate(db.query(Subject).order_by(Subject.name), page, page_size)
    return page_result(items, total, page, page_size)


def get_subject(db: Session, subject_id: int) -> Dict[str, Any]:
    return get_or_404(db, Subject, subject_id).to_dict()


def create_subject(db: Session, name: str, code: str, description: Optional[str] = None) -> Dict[str, Any]:
    _require_text(name, "name")
    _require_text(code, "code")
    _ensure_unique(db, Subject, "Subject", name=name, code=code)

    subject = Subject(name=name, code=code, description=description)
    db.add(subject)
    commit(db, Subject, label="Subject")
    db.refresh(subject)
    logger.info("Subject %s '%s' created", subject.id, subject.name)
    return subject.to_dict()


def update_subject(
    db: Session, subject_id: int, changes: Dict[str, Any], version: Optional[int] = None
) -> Dict[str, Any]:
    subject = get_or_404(db, Subject, subject_id)
    check_version(subject, version, "Subject")
    changes = split_changes(changes, NAMED_FIELDS, label="Subject")
    if "name" in changes:
        _require_text(changes["name"], "name")
    if "code" in changes:
        _require_text(changes["code"], "code")
    _ensure_unique(db, Subject, "Subject", exclude_id=subject_id, name=changes.get("name"), code=changes.get("code"))

    for field, value in changes.items():
        setattr(subject, field, value)
    commit(db, Subject, subject_id)
    db.refresh(subject)
    logger.info("Subject %s updated", subject_id)
    return subject.to_dict()


def delete_subject(db: Session, subject_id: int, version: Optional[int] = None) -> None:
    """
    Delete a subject.

    Raises:
        ConflictError: If teaching assignments still reference the subject
    """
    subject = get_or_404(db, Subject, subject_id)
    check_version(subject, version, "Subject")
    _blocked_if(db, Assignment, Assignment.subject_id, subject_id,
                f"Cannot delete subject {subject_id}: %s teaching assignment(s) reference it")

    db.delete(subject)
    commit(db, Subject, subject_id)
    logger.info("Subject %s deleted", subject_id)


# ============== Semesters ==============

def list_semesters(db: Session, page: int = 1, page_size: Optional[int] = None) -> Dict[str, Any]:
    query = db.query(Semester).order_by(Semester.start_date.desc(), Semester.id)
    items, total = paginate(query, page, page_size)
    return page_result(items, total, page, page_size)


def get_semester(db: Session, semester_id: int) -> Dict[str, Any]:
    return get_or_404(db, Semester, semester_id).to_dict()


def create_semester(
    db: Session,
    name: str,
    code: str,
    start_date: date,
    end_date: date,
    is_active: bool = False,
) -> Dict[str, Any]:
    """
    Create a semester.

    Raises:
        InvalidArgumentError: If start_date is not strictly before end_date
        ConflictError: If name or code is already used
    """
    _require_text(name, "name")
    _require_text(code, "code")
    _ensure_dates(start_date, end_date)
    _ensure_unique(db, Semester, "Semester", name=name, code=code)

    semester = Semester(name=name, code=code, start_date=start_date, end_date=end_date, is_active=is_active)
    db.add(semester)
    commit(db, Semester, label="Semester")
    db.refresh(semester)
    logger.info("Semester %s '%s' created", semester.id, semester.name)
    return semester.to_dict()


def update_semester(
    db: Session, semester_id: int, changes: Dict[str, Any], version: Optional[int] = None
) -> Dict[str, Any]:
    """Apply a partial update; the resulting date range is validated as a whole."""
    semester = get_or_404(db, Semester, semester_id)
    check_version(semester, version, "Semester")
    changes = split_changes(changes, SEMESTER_FIELDS, label="Semester")
    if "name" in changes:
        _require_text(changes["name"], "name")
    if "code" in changes:
        _require_text(changes["code"], "code")
    if "is_active" in changes and changes["is_active"] is None:
        raise InvalidArgumentError("is_active cannot be cleared", "is_active")
    _ensure_dates(
        changes.get("start_date", semester.start_date),
        changes.get("end_date", semester.end_date),
    )
    _ensure_unique(db, Semester, "Semester", exclude_id=semester_id, name=changes.get("name"), code=changes.get("code"))

    for field, value in changes.items():
        setattr(semester, field, value)
    commit(db, Semester, semester_id)
    db.refresh(semester)
    logger.info("Semester %s updated", semester_id)
    return semester.to_dict()


def delete_semester(db: Session, semester_id: int, version: Optional[int] = None) -> None:
    """
    Delete a semester.

    Raises:
        ConflictError: If teaching assignments still reference the semester
    """
    semester = get_or_404(db, Semester, semester_id)
    check_version(semester, version, "Semester")
    _blocked_if(db, Assignment, Assignment.semester_id, semester_id,
                f"Cannot delete semester {semester_id}: %s teaching assignment(s) reference it")

    db.delete(semester)
    commit(db, Semester, semester_id)
    logger.info("Semester %s deleted", semester_id)
