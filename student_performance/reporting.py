"""
Reporting tools for the Student Performance system.

The grades summary averages grade values per (student, subject). The
caller's scope predicate is intersected with the optional filters, never
replaced by them.
"""
import logging
from dataclasses import asdict, dataclass
from typing import Any, Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from database import Grade, Student, User
from .authorization import ScopePredicate

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReportFilters:
    student_id: Optional[int] = None
    group_id: Optional[int] = None
    semester_id: Optional[int] = None
    teacher_id: Optional[int] = None

    def as_payload(self) -> Dict[str, Any]:
        """Filters in the shape the authorization service inspects."""
        return asdict(self)


@dataclass(frozen=True)
class GradeSummaryRow:
    student_id: int
    student_first_name: str
    student_last_name: str
    subject_id: int
    average_grade: float
    grade_count: int

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def generate_grade_summary(
    db: Session,
    filters: Optional[ReportFilters] = None,
    scope: Optional[ScopePredicate] = None,
) -> List[GradeSummaryRow]:
    """
    Average grade and grade count per student and subject.

    A scope that pins a teacher replaces any teacher filter the caller
    supplied. Rows are ordered by student id, then subject id.

    Args:
        db: Database session
        filters: Optional student, group, semester and teacher filters
        scope: Scope predicate from the authorization verdict

    Returns:
        Ordered summary rows
    """
    filters = filters or ReportFilters()
    scope = scope or ScopePredicate()
    logger.info("Generating grades summary with filters %s and scope %s", filters, scope)

    query = (
        db.query(
            Grade.student_id,
            User.first_name,
            User.last_name,
            Grade.subject_id,
            func.avg(Grade.value).label("average"),
            func.count(Grade.id).label("grade_count"),
        )
        .join(Student, Grade.student_id == Student.id)
        .join(User, Student.user_id == User.id)
    )
    for criterion in scope.grade_criteria():
        query = query.filter(criterion)

    if filters.student_id is not None:
        query = query.filter(Grade.student_id == filters.student_id)
    if filters.group_id is not None:
        query = query.filter(Student.group_id == filters.group_id)
    if filters.semester_id is not None:
        query = query.filter(Grade.semester_id == filters.semester_id)
    if filters.teacher_id is not None and scope.teacher_id is None:
        query = query.filter(Grade.teacher_id == filters.teacher_id)

    results = (
        query.group_by(Grade.student_id, User.first_name, User.last_name, Grade.subject_id)
        .order_by(Grade.student_id, Grade.subject_id)
        .all()
    )

    rows = [
        GradeSummaryRow(
            student_id=r.student_id,
            student_first_name=r.first_name,
            student_last_name=r.last_name,
            subject_id=r.subject_id,
            average_grade=float(r.average),
            grade_count=r.grade_count,
        )
        for r in results
    ]
    logger.info("Grades summary generated with %s row(s)", len(rows))
    return rows
