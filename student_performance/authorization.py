"""
Authorization module for the Student Performance system.
Implements relationship-aware access control as one policy table.

CRITICAL RULES:
1. Administrators may do anything; only existence is checked
2. Teachers reach students and grades only through a teaching assignment
3. Students reach only their own profile, grades and report rows
4. Deny is a value, not an exception; enforce() converts it when asked
5. For students and grades an unauthorized actor never learns whether the
   row exists: a missing row is reported as Deny
"""
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, FrozenSet, List, Optional

from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from database import (
    Assignment, Grade, Group, Semester, Student, Subject, Teacher, UserRole,
)
from .exceptions import ForbiddenError, InvalidArgumentError, NotFoundError
from .relationships import ActorProfile, RelationshipResolver

logger = logging.getLogger(__name__)


class Operation(str, Enum):
    VIEW_ALL = "view_all"
    VIEW_ONE = "view_one"
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


class ResourceType(str, Enum):
    GROUP = "group"
    SUBJECT = "subject"
    SEMESTER = "semester"
    TEACHER = "teacher"
    STUDENT = "student"
    ASSIGNMENT = "assignment"
    GRADE = "grade"
    ROLE = "role"
    REPORT = "report"


class Decision(str, Enum):
    ALLOW = "allow"
    DENY = "deny"
    NOT_FOUND = "not_found"


@dataclass(frozen=True)
class Actor:
    """An authenticated principal as handed over by the identity layer."""
    id: int
    role: UserRole


@dataclass(frozen=True)
class ScopePredicate:
    """
    Row filter attached to a bulk-read verdict.

    ``student_id`` narrows. ``teacher_id`` and ``group_ids`` widen each
    other: a row is in scope when it was recorded by the teacher OR its
    student sits in one of the groups. All fields None means unrestricted.
    """
    student_id: Optional[int] = None
    teacher_id: Optional[int] = None
    group_ids: Optional[FrozenSet[int]] = None

    @property
    def unrestricted(self) -> bool:
        return self.student_id is None and self.teacher_id is None and self.group_ids is None

    def grade_criteria(self) -> List[Any]:
        """SQL criteria restricting a Grade query to this scope."""
        criteria = []
        if self.student_id is not None:
            criteria.append(Grade.student_id == self.student_id)
        widening = []
        if self.teacher_id is not None:
            widening.append(Grade.teacher_id == self.teacher_id)
        if self.group_ids is not None:
            widening.append(
                Grade.student_id.in_(
                    select(Student.id).where(Student.group_id.in_(sorted(self.group_ids)))
                )
            )
        if widening:
            criteria.append(or_(*widening))
        return criteria

    def student_criteria(self) -> List[Any]:
        """SQL criteria restricting a Student query to this scope."""
        criteria = []
        if self.student_id is not None:
            criteria.append(Student.id == self.student_id)
        widening = []
        if self.teacher_id is not None:
            widening.append(
                Student.group_id.in_(
                    select(Assignment.group_id).where(Assignment.teacher_id == self.teacher_id)
                )
            )
        if self.group_ids is not None:
            widening.append(Student.group_id.in_(sorted(self.group_ids)))
        if widening:
            criteria.append(or_(*widening))
        return criteria


UNRESTRICTED = ScopePredicate()


@dataclass(frozen=True)
class Verdict:
    decision: Decision
    reason: str = ""
    scope: Optional[ScopePredicate] = None

    @property
    def allowed(self) -> bool:
        return self.decision == Decision.ALLOW

    @classmethod
    def allow(cls, scope: Optional[ScopePredicate] = None, reason: str = "") -> "Verdict":
        return cls(Decision.ALLOW, reason, scope)

    @classmethod
    def deny(cls, reason: str) -> "Verdict":
        return cls(Decision.DENY, reason)

    @classmethod
    def not_found(cls, reason: str) -> "Verdict":
        return cls(Decision.NOT_FOUND, reason)


READ_OPERATIONS = frozenset({Operation.VIEW_ALL, Operation.VIEW_ONE})

# Catalog-like resources: readable by every role, writable by administrators only.
REFERENCE_POLICY: Dict[UserRole, FrozenSet[Operation]] = {
    UserRole.TEACHER: READ_OPERATIONS,
    UserRole.STUDENT: READ_OPERATIONS,
}

RESOURCE_MODELS = {
    ResourceType.GROUP: Group,
    ResourceType.SUBJECT: Subject,
    ResourceType.SEMESTER: Semester,
    ResourceType.TEACHER: Teacher,
    ResourceType.STUDENT: Student,
    ResourceType.ASSIGNMENT: Assignment,
    ResourceType.GRADE: Grade,
}

Policy = Callable[[ActorProfile, Operation, ResourceType, Optional[Any], Dict[str, Any]], Verdict]


class AuthorizationService:
    """
    Central Allow/Deny function.
    The actor's role is trusted as given; every other fact (which teacher or
    student profile the actor owns, group membership, teaching grants) is
    read from the database through the relationship resolver.
    """

    def __init__(self, db: Session):
        self.db = db
        self.resolver = RelationshipResolver(db)
        self._policies: Dict[ResourceType, Policy] = {
            ResourceType.GROUP: self._reference_policy,
            ResourceType.SUBJECT: self._reference_policy,
            ResourceType.SEMESTER: self._reference_policy,
            ResourceType.TEACHER: self._reference_policy,
            ResourceType.ASSIGNMENT: self._reference_policy,
            ResourceType.ROLE: self._role_policy,
            ResourceType.STUDENT: self._student_policy,
            ResourceType.GRADE: self._grade_policy,
            ResourceType.REPORT: self._report_policy,
        }

    def authorize(
        self,
        actor: Actor,
        operation: Operation,
        resource_type: ResourceType,
        resource_id: Optional[Any] = None,
        payload: Optional[Dict[str, Any]] = None,
    ) -> Verdict:
        """
        Decide whether the actor may perform the operation.

        Args:
            actor: The authenticated actor
            operation: One of the Operation members
            resource_type: One of the ResourceType members
            resource_id: Target row for ViewOne/Update/Delete
            payload: Operation-specific facts, e.g. the student, subject and
                semester of a prospective grade, or report filters

        Returns:
            A Verdict; list-style reads on students, grades and reports carry
            the scope predicate the caller must apply before paginating.

        Raises:
            InvalidArgumentError: If a grade creation payload is incomplete
        """
        operation = Operation(operation)
        resource_type = ResourceType(resource_type)
        payload = payload or {}

        if actor.role == UserRole.ADMINISTRATOR:
            verdict = self._administrator_policy(operation, resource_type, resource_id)
        else:
            try:
                profile = self.resolver.actor_profile(actor.id)
            except NotFoundError:
                return Verdict.deny(f"Unknown actor {actor.id}")
            if profile.role != actor.role:
                verdict = Verdict.deny(f"Actor {actor.id} does not hold role '{actor.role.value}'")
            else:
                verdict = self._policies[resource_type](profile, operation, resource_type, resource_id, payload)

        logger.debug(
            "authorize actor=%s role=%s op=%s resource=%s id=%s -> %s (%s)",
            actor.id, actor.role.value, operation.value, resource_type.value,
            resource_id, verdict.decision.value, verdict.reason,
        )
        return verdict

    def enforce(
        self,
        actor: Actor,
        operation: Operation,
        resource_type: ResourceType,
        resource_id: Optional[Any] = None,
        payload: Optional[Dict[str, Any]] = None,
    ) -> Verdict:
        """
        Authorize and raise on anything but Allow.

        Raises:
            NotFoundError: If the verdict is NotFound
            ForbiddenError: If the verdict is Deny
        """
        verdict = self.authorize(actor, operation, resource_type, resource_id, payload)
        if verdict.decision == Decision.NOT_FOUND:
            raise NotFoundError(ResourceType(resource_type).value.capitalize(), resource_id, verdict.reason)
        if verdict.decision == Decision.DENY:
            logger.info("Denied actor %s: %s", actor.id, verdict.reason)
            raise ForbiddenError(
                f"Access denied: {verdict.reason}",
                user_id=actor.id,
                action=f"{Operation(operation).value}:{ResourceType(resource_type).value}",
            )
        return verdict

    # ------------------------------------------------------------------ helpers

    def _exists(self, resource_type: ResourceType, resource_id: Any) -> bool:
        model = RESOURCE_MODELS.get(resource_type)
        if model is None:
            return True
        return self.db.query(model.id).filter(model.id == resource_id).first() is not None

    def _student_group_or_none(self, student_id: Optional[int]) -> Optional[int]:
        if student_id is None:
            return None
        try:
            return self.resolver.student_group(student_id)
        except NotFoundError:
            return None

    @staticmethod
    def _require(payload: Dict[str, Any], *keys: str) -> List[Any]:
        missing = [key for key in keys if payload.get(key) is None]
        if missing:
            raise InvalidArgumentError(f"Missing required field(s): {', '.join(missing)}", missing[0])
        return [payload[key] for key in keys]

    # ------------------------------------------------------------------ policies

    def _administrator_policy(
        self, operation: Operation, resource_type: ResourceType, resource_id: Optional[Any]
    ) -> Verdict:
        if resource_type == ResourceType.ROLE:
            if operation == Operation.VIEW_ONE and resource_id is not None:
                if resource_id not in {role.value for role in UserRole}:
                    return Verdict.not_found(f"Role '{resource_id}' does not exist")
            return Verdict.allow(reason="administrator")
        if operation in (Operation.VIEW_ONE, Operation.UPDATE, Operation.DELETE) and resource_id is not None:
            if not self._exists(resource_type, resource_id):
                return Verdict.not_found(f"{resource_type.value} {resource_id} does not exist")
        if operation == Operation.VIEW_ALL:
            return Verdict.allow(UNRESTRICTED, reason="administrator")
        return Verdict.allow(reason="administrator")

    def _reference_policy(self, profile, operation, resource_type, resource_id, payload) -> Verdict:
        if operation not in REFERENCE_POLICY.get(profile.role, frozenset()):
            return Verdict.deny(f"{profile.role.value} may not {operation.value} {resource_type.value}")
        if operation == Operation.VIEW_ONE and resource_id is not None:
            if not self._exists(resource_type, resource_id):
                return Verdict.not_found(f"{resource_type.value} {resource_id} does not exist")
        return Verdict.allow(reason="read access")

    def _role_policy(self, profile, operation, resource_type, resource_id, payload) -> Verdict:
        if operation not in READ_OPERATIONS:
            return Verdict.deny("Only administrators manage roles")
        if operation == Operation.VIEW_ONE and resource_id is not None:
            if resource_id not in {role.value for role in UserRole}:
                return Verdict.not_found(f"Role '{resource_id}' does not exist")
        return Verdict.allow(reason="read access")

    def _student_policy(self, profile, operation, resource_type, resource_id, payload) -> Verdict:
        if profile.role == UserRole.TEACHER:
            if operation == Operation.VIEW_ALL:
                return Verdict.allow(
                    ScopePredicate(group_ids=self.resolver.taught_group_ids(profile.teacher_id)),
                    reason="students of taught groups",
                )
            if operation == Operation.VIEW_ONE:
                group_id = self._student_group_or_none(resource_id)
                if group_id is not None and self.resolver.teacher_teaches_group(profile.teacher_id, group_id):
                    return Verdict.allow(reason="teaches the student's group")
                return Verdict.deny(f"Teacher {profile.teacher_id} does not teach student {resource_id}")
            return Verdict.deny("Teachers cannot modify student profiles")

        if profile.role == UserRole.STUDENT:
            if operation == Operation.VIEW_ALL:
                return Verdict.allow(ScopePredicate(student_id=profile.student_id), reason="own profile")
            if operation in (Operation.VIEW_ONE, Operation.UPDATE) and resource_id == profile.student_id:
                if operation == Operation.UPDATE:
                    new_group = payload.get("group_id")
                    if new_group is not None and new_group != self.resolver.student_group(profile.student_id):
                        return Verdict.deny("Students cannot move themselves to another group")
                return Verdict.allow(reason="own profile")
            return Verdict.deny(f"Student {profile.student_id} can only access their own profile")

        return Verdict.deny(f"Unsupported role {profile.role.value}")

    def _grade_policy(self, profile, operation, resource_type, resource_id, payload) -> Verdict:
        if profile.role == UserRole.TEACHER:
            teacher_id = profile.teacher_id
            if operation == Operation.VIEW_ALL:
                return Verdict.allow(
                    ScopePredicate(
                        teacher_id=teacher_id,
                        group_ids=self.resolver.taught_group_ids(teacher_id),
                    ),
                    reason="grades recorded by or visible to the teacher",
                )
            if operation == Operation.CREATE:
                student_id, subject_id, semester_id = self._require(
                    payload, "student_id", "subject_id", "semester_id"
                )
                group_id = self._student_group_or_none(student_id)
                if group_id is not None and self.resolver.teacher_granted_for(
                    teacher_id, subject_id, group_id, semester_id
                ):
                    return Verdict.allow(reason="teaching grant")
                return Verdict.deny(
                    f"Teacher {teacher_id} holds no assignment for subject {subject_id} "
                    f"in semester {semester_id} covering student {student_id}"
                )

            grade = self.db.get(Grade, resource_id) if resource_id is not None else None
            if grade is None:
                return Verdict.deny(f"Grade {resource_id} is not accessible")
            if grade.teacher_id == teacher_id:
                return Verdict.allow(reason="recorded by the teacher")
            if operation == Operation.VIEW_ONE and self.resolver.teacher_teaches_group(
                teacher_id, grade.student.group_id
            ):
                return Verdict.allow(reason="teaches the student's group")
            return Verdict.deny(f"Grade {resource_id} is not accessible to teacher {teacher_id}")

        if profile.role == UserRole.STUDENT:
            if operation == Operation.VIEW_ALL:
                return Verdict.allow(ScopePredicate(student_id=profile.student_id), reason="own grades")
            if operation == Operation.VIEW_ONE and resource_id is not None:
                grade = self.db.get(Grade, resource_id)
                if grade is not None and grade.student_id == profile.student_id:
                    return Verdict.allow(reason="own grade")
                return Verdict.deny(f"Grade {resource_id} is not accessible")
            return Verdict.deny("Students cannot modify grades")

        return Verdict.deny(f"Unsupported role {profile.role.value}")

    def _report_policy(self, profile, operation, resource_type, resource_id, payload) -> Verdict:
        if operation != Operation.VIEW_ALL:
            return Verdict.deny("Reports are read-only")

        if profile.role == UserRole.TEACHER:
            # Any caller-supplied teacher filter is replaced, not rejected.
            return Verdict.allow(ScopePredicate(teacher_id=profile.teacher_id), reason="own teaching")

        if profile.role == UserRole.STUDENT:
            requested = payload.get("student_id")
            if requested is not None and requested != profile.student_id:
                return Verdict.deny("Students may only view their own grades report")
            group_id = payload.get("group_id")
            if group_id is not None and group_id != self.resolver.student_group(profile.student_id):
                return Verdict.deny("Students may only view grades for their own group")
            return Verdict.allow(ScopePredicate(student_id=profile.student_id), reason="own grades")

        return Verdict.deny(f"Unsupported role {profile.role.value}")


def get_authorization_service(db: Session) -> AuthorizationService:
    """Factory function to create AuthorizationService."""
    return AuthorizationService(db)
