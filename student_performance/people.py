"""
Identity tools for the Student Performance system.
Actors, teacher and student profiles, and the closed role set.

A teacher or student is always created together with its actor account
and deleted together with it. Both halves commit in one transaction.
"""
import logging
from datetime import date
from typing import Any, Dict, List, Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from config import settings
from database import Assignment, Grade, Group, Student, Teacher, User, UserRole
from .authorization import ScopePredicate
from .clock import Clock, utcnow
from .exceptions import (
    ConflictError,
    InvalidArgumentError,
    NotFoundError,
    UnexpectedError,
)
from .security import get_password_hash, verify_password
from .store import atomic, check_version, commit, get_or_404, page_result, paginate, split_changes

logger = logging.getLogger(__name__)

ACCOUNT_FIELDS = ("username", "first_name", "last_name", "email")
TEACHER_FIELDS = ACCOUNT_FIELDS + ("department", "position")
STUDENT_FIELDS = ACCOUNT_FIELDS + ("group_id", "date_of_birth", "enrollment_date", "is_active")
PROFILE_IMMUTABLE = ("id", "user_id", "role", "password", "password_hash")


# ============== Accounts ==============

def _validate_password(password: Optional[str]) -> None:
    if not password or len(password) < settings.password_min_length:
        raise InvalidArgumentError(
            f"Password must be at least {settings.password_min_length} characters long", "password"
        )


def _ensure_account_unique(
    db: Session, username: Optional[str], email: Optional[str], exclude_user_id: Optional[int] = None
) -> None:
    if username is not None:
        query = db.query(User.id).filter(User.username == username)
        if exclude_user_id is not None:
            query = query.filter(User.id != exclude_user_id)
        if query.first() is not None:
            logger.warning("Username '%s' already taken", username)
            raise ConflictError(f"Username '{username}' is already taken")
    if email:
        query = db.query(User.id).filter(User.email == email)
        if exclude_user_id is not None:
            query = query.filter(User.id != exclude_user_id)
        if query.first() is not None:
            logger.warning("Email '%s' already in use", email)
            raise ConflictError(f"Email '{email}' is already in use")


def _new_actor(
    db: Session,
    role: UserRole,
    username: str,
    password: str,
    first_name: str,
    last_name: str,
    email: Optional[str],
) -> User:
    for field, value in (("username", username), ("first_name", first_name), ("last_name", last_name)):
        if not value or not value.strip():
            raise InvalidArgumentError(f"{field} is required", field)
    _validate_password(password)
    _ensure_account_unique(db, username, email)

    user = User(
        username=username,
        password_hash=get_password_hash(password),
        role=role,
        first_name=first_name,
        last_name=last_name,
        email=email or None,
    )
    db.add(user)
    db.flush()
    return user


def _apply_account_changes(db: Session, user: Optional[User], changes: Dict[str, Any], owner: str) -> None:
    if user is None:
        logger.error("%s has no actor account", owner)
        raise UnexpectedError(f"{owner} has no actor account")
    account = {key: changes[key] for key in ACCOUNT_FIELDS if key in changes}
    for field in ("username", "first_name", "last_name"):
        if field in account and (not account[field] or not account[field].strip()):
            raise InvalidArgumentError(f"{field} cannot be blank", field)
    _ensure_account_unique(db, account.get("username"), account.get("email"), exclude_user_id=user.id)
    if "email" in account:
        account["email"] = account["email"] or None
    for field, value in account.items():
        setattr(user, field, value)


def get_actor(db: Session, actor_id: int) -> Dict[str, Any]:
    """Account data plus the profile ids the actor owns."""
    user = get_or_404(db, User, actor_id, "Actor")
    result = user.to_dict()
    result["teacher_id"] = user.teacher.id if user.teacher else None
    result["student_id"] = user.student.id if user.student else None
    return result


def change_password(db: Session, actor_id: int, current_password: str, new_password: str) -> None:
    """
    Replace an actor's password after verifying the current one.

    Raises:
        InvalidArgumentError: If the current password is wrong or the new one too short
    """
    user = get_or_404(db, User, actor_id, "Actor")
    if not verify_password(current_password, user.password_hash):
        logger.warning("Password change for actor %s rejected: wrong current password", actor_id)
        raise InvalidArgumentError("Current password is incorrect", "current_password")
    _validate_password(new_password)
    user.password_hash = get_password_hash(new_password)
    commit(db, User, actor_id, "Actor")
    logger.info("Password changed for actor %s", actor_id)


def create_administrator(
    db: Session,
    username: str,
    password: str,
    first_name: str,
    last_name: str,
    email: Optional[str] = None,
) -> Dict[str, Any]:
    """Create an administrator account. Administrators own no profile."""
    with atomic(db, "Administrator"):
        user = _new_actor(db, UserRole.ADMINISTRATOR, username, password, first_name, last_name, email)
    commit(db, User, label="Administrator")
    db.refresh(user)
    logger.info("Administrator %s '%s' created", user.id, user.username)
    return user.to_dict()


# ============== Roles ==============

def list_roles() -> List[Dict[str, str]]:
    return [{"name": role.value} for role in UserRole]


def get_role(name: str) -> Dict[str, str]:
    try:
        return {"name": UserRole(name).value}
    except ValueError:
        raise NotFoundError("Role", name, f"Role '{name}' not found")


# ============== Teachers ==============

def list_teachers(db: Session, page: int = 1, page_size: Optional[int] = None) -> Dict[str, Any]:
    query = db.query(Teacher).join(User, Teacher.user_id == User.id).order_by(User.last_name, User.first_name, Teacher.id)
    items, total = paginate(query, page, page_size)
    return page_result(items, total, page, page_size)


def get_teacher(db: Session, teacher_id: int) -> Dict[str, Any]:
    return get_or_404(db, Teacher, teacher_id).to_dict()


def create_teacher(
    db: Session,
    username: str,
    password: str,
    first_name: str,
    last_name: str,
    email: Optional[str] = None,
    department: Optional[str] = None,
    position: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Create a teacher actor and its teacher profile atomically.

    Raises:
        InvalidArgumentError: If required account fields are missing or invalid
        ConflictError: If the username or email is already used
    """
    with atomic(db, "Teacher"):
        user = _new_actor(db, UserRole.TEACHER, username, password, first_name, last_name, email)
        teacher = Teacher(user_id=user.id, department=department, position=position)
        db.add(teacher)
        db.flush()
    commit(db, Teacher, label="Teacher")
    db.refresh(teacher)
    logger.info("Teacher %s created with actor %s", teacher.id, teacher.user_id)
    return teacher.to_dict()


def update_teacher(
    db: Session,
    teacher_id: int,
    changes: Dict[str, Any],
    version: Optional[int] = None,
    clock: Clock = utcnow,
) -> Dict[str, Any]:
    """Apply a partial update to a teacher profile and its account fields."""
    teacher = get_or_404(db, Teacher, teacher_id)
    check_version(teacher, version, "Teacher")
    changes = split_changes(changes, TEACHER_FIELDS, PROFILE_IMMUTABLE, label="Teacher")

    _apply_account_changes(db, teacher.user, changes, f"Teacher {teacher_id}")
    for field in ("department", "position"):
        if field in changes:
            setattr(teacher, field, changes[field])
    teacher.updated_at = clock()
    commit(db, Teacher, teacher_id)
    db.refresh(teacher)
    logger.info("Teacher %s updated", teacher_id)
    return teacher.to_dict()


def delete_teacher(db: Session, teacher_id: int, version: Optional[int] = None) -> None:
    """
    Delete a teacher profile together with its actor account.

    Raises:
        ConflictError: If teaching assignments still reference the teacher
        UnexpectedError: If the profile has no actor account
    """
    teacher = get_or_404(db, Teacher, teacher_id)
    check_version(teacher, version, "Teacher")
    count = db.query(Assignment).filter(Assignment.teacher_id == teacher_id).count()
    if count:
        logger.warning("Cannot delete teacher %s: %s assignment(s) reference it", teacher_id, count)
        raise ConflictError(f"Cannot delete teacher {teacher_id}: {count} teaching assignment(s) reference it")

    user = teacher.user
    if user is None:
        logger.error("Teacher %s has no actor account to delete", teacher_id)
        raise UnexpectedError(f"Teacher {teacher_id} has no actor account")
    db.delete(teacher)
    db.delete(user)
    commit(db, Teacher, teacher_id)
    logger.info("Teacher %s and its actor deleted", teacher_id)


# ============== Students ==============

def list_students(
    db: Session,
    scope: Optional[ScopePredicate] = None,
    group_id: Optional[int] = None,
    name: Optional[str] = None,
    page: int = 1,
    page_size: Optional[int] = None,
) -> Dict[str, Any]:
    """
    List students, restricted to the caller's scope before paginating.

    Args:
        scope: Scope predicate from the authorization verdict
        group_id: Filter by group (optional)
        name: Partial match on first or last name (optional)
    """
    query = db.query(Student).join(User, Student.user_id == User.id)
    if scope is not None:
        for criterion in scope.student_criteria():
            query = query.filter(criterion)
    if group_id is not None:
        query = query.filter(Student.group_id == group_id)
    if name:
        pattern = f"%{name}%"
        query = query.filter(or_(User.first_name.ilike(pattern), User.last_name.ilike(pattern)))
    query = query.order_by(User.last_name, User.first_name, Student.id)

    items, total = paginate(query, page, page_size)
    return page_result(items, total, page, page_size)


def get_student(db: Session, student_id: int) -> Dict[str, Any]:
    return get_or_404(db, Student, student_id).to_dict()


def create_student(
    db: Session,
    username: str,
    password: str,
    first_name: str,
    last_name: str,
    group_id: Optional[int],
    email: Optional[str] = None,
    date_of_birth: Optional[date] = None,
    enrollment_date: Optional[date] = None,
) -> Dict[str, Any]:
    """
    Create a student actor and its student profile atomically.

    Raises:
        InvalidArgumentError: If group_id is missing or account fields are invalid
        NotFoundError: If the group does not exist
        ConflictError: If the username or email is already used
    """
    if group_id is None:
        raise InvalidArgumentError("group_id is required for a student", "group_id")
    get_or_404(db, Group, group_id)

    with atomic(db, "Student"):
        user = _new_actor(db, UserRole.STUDENT, username, password, first_name, last_name, email)
        student = Student(
            user_id=user.id,
            group_id=group_id,
            date_of_birth=date_of_birth,
            enrollment_date=enrollment_date,
            is_active=True,
        )
        db.add(student)
        db.flush()
    commit(db, Student, label="Student")
    db.refresh(student)
    logger.info("Student %s created with actor %s in group %s", student.id, student.user_id, group_id)
    return student.to_dict()


def update_student(
    db: Session,
    student_id: int,
    changes: Dict[str, Any],
    version: Optional[int] = None,
    clock: Clock = utcnow,
) -> Dict[str, Any]:
    """
    Apply a partial update to a student profile and its account fields.

    Raises:
        InvalidArgumentError: If group_id or is_active is explicitly cleared
        NotFoundError: If the student or the new group does not exist
    """
    student = get_or_404(db, Student, student_id)
    check_version(student, version, "Student")
    changes = split_changes(changes, STUDENT_FIELDS, PROFILE_IMMUTABLE, label="Student")

    if "group_id" in changes:
        if changes["group_id"] is None:
            raise InvalidArgumentError("group_id is required for a student", "group_id")
        get_or_404(db, Group, changes["group_id"])
    if "is_active" in changes and changes["is_active"] is None:
        raise InvalidArgumentError("is_active cannot be cleared", "is_active")

    _apply_account_changes(db, student.user, changes, f"Student {student_id}")
    for field in ("group_id", "date_of_birth", "enrollment_date", "is_active"):
        if field in changes:
            setattr(student, field, changes[field])
    student.updated_at = clock()
    commit(db, Student, student_id)
    db.refresh(student)
    logger.info("Student %s updated", student_id)
    return student.to_dict()


def delete_student(db: Session, student_id: int, version: Optional[int] = None) -> None:
    """
    Delete a student profile together with its actor account.

    Raises:
        ConflictError: If grades still reference the student
        UnexpectedError: If the profile has no actor account
    """
    student = get_or_404(db, Student, student_id)
    check_version(student, version, "Student")
    count = db.query(Grade).filter(Grade.student_id == student_id).count()
    if count:
        logger.warning("Cannot delete student %s: %s grade(s) exist", student_id, count)
        raise ConflictError(f"Cannot delete student {student_id}: {count} grade(s) reference it")

    user = student.user
    if user is None:
        logger.error("Student %s has no actor account to delete", student_id)
        raise UnexpectedError(f"Student {student_id} has no actor account")
    db.delete(student)
    db.delete(user)
    commit(db, Student, student_id)
    logger.info("Student %s and its actor deleted", student_id)
