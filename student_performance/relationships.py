"""
Relationship resolver for the Student Performance system.

Answers read-only questions about the assignment graph
(teacher -> assignment -> group -> student). It never writes, and it runs
on the caller's session so an authorize-then-mutate sequence reads and
writes inside one transaction.
"""
import logging
from dataclasses import dataclass
from typing import FrozenSet, List, Optional

from sqlalchemy.orm import Session

from database import Assignment, Student, Teacher, User, UserRole
from .exceptions import NotFoundError, UnexpectedError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ActorProfile:
    """Which domain profile an actor owns. Administrators own neither."""
    actor_id: int
    role: UserRole
    teacher_id: Optional[int] = None
    student_id: Optional[int] = None


class RelationshipResolver:
    """Graph-scoped lookups over teaching assignments and group membership."""

    def __init__(self, db: Session):
        self.db = db

    def teacher_teaches_group(self, teacher_id: int, group_id: int) -> bool:
        """True iff any assignment links the teacher to the group."""
        return self.db.query(
            self.db.query(Assignment)
            .filter(Assignment.teacher_id == teacher_id)
            .filter(Assignment.group_id == group_id)
            .exists()
        ).scalar()

    def teacher_granted_for(
        self,
        teacher_id: int,
        subject_id: int,
        group_id: int,
        semester_id: int,
    ) -> bool:
        """Exact four-way match. This is the grade creation predicate."""
        return self.find_grant(teacher_id, subject_id, group_id, semester_id) is not None

    def find_grant(
        self,
        teacher_id: int,
        subject_id: int,
        group_id: int,
        semester_id: int,
    ) -> Optional[Assignment]:
        return (
            self.db.query(Assignment)
            .filter(Assignment.teacher_id == teacher_id)
            .filter(Assignment.subject_id == subject_id)
            .filter(Assignment.group_id == group_id)
            .filter(Assignment.semester_id == semester_id)
            .first()
        )

    def grants_covering(self, subject_id: int, group_id: int, semester_id: int) -> List[Assignment]:
        """All assignments for a subject/group/semester, whoever teaches them."""
        return (
            self.db.query(Assignment)
            .filter(Assignment.subject_id == subject_id)
            .filter(Assignment.group_id == group_id)
            .filter(Assignment.semester_id == semester_id)
            .order_by(Assignment.id)
            .all()
        )

    def taught_group_ids(self, teacher_id: int) -> FrozenSet[int]:
        rows = (
            self.db.query(Assignment.group_id)
            .filter(Assignment.teacher_id == teacher_id)
            .distinct()
            .all()
        )
        return frozenset(group_id for (group_id,) in rows)

    def student_group(self, student_id: int) -> int:
        """
        Group of a student.

        Raises:
            NotFoundError: If the student does not exist
        """
        row = self.db.query(Student.group_id).filter(Student.id == student_id).first()
        if row is None:
            raise NotFoundError("Student", student_id)
        return row[0]

    def actor_profile(self, actor_id: int) -> ActorProfile:
        """
        Resolve the profile an actor owns.

        Raises:
            NotFoundError: If the actor does not exist
            UnexpectedError: If a teacher or student actor has no paired profile
        """
        user = self.db.query(User).filter(User.id == actor_id).first()
        if user is None:
            raise NotFoundError("Actor", actor_id)

        if user.role == UserRole.TEACHER:
            row = self.db.query(Teacher.id).filter(Teacher.user_id == actor_id).first()
            if row is None:
                logger.error("Teacher actor %s has no teacher profile", actor_id)
                raise UnexpectedError(f"Teacher profile missing for actor {actor_id}")
            return ActorProfile(actor_id, user.role, teacher_id=row[0])

        if user.role == UserRole.STUDENT:
            row = self.db.query(Student.id).filter(Student.user_id == actor_id).first()
            if row is None:
                logger.error("Student actor %s has no student profile", actor_id)
                raise UnexpectedError(f"Student profile missing for actor {actor_id}")
            return ActorProfile(actor_id, user.role, student_id=row[0])

        return ActorProfile(actor_id, user.role)
