"""
Grade reading tools for the Student Performance system.

Listings are restricted by the scope predicate from the authorization
verdict before any caller filter or pagination is applied.
"""
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from database import Grade
from .authorization import ScopePredicate
from .store import get_or_404, page_result, paginate


def list_grades(
    db: Session,
    scope: Optional[ScopePredicate] = None,
    student_id: Optional[int] = None,
    teacher_id: Optional[int] = None,
    subject_id: Optional[int] = None,
    semester_id: Optional[int] = None,
    page: int = 1,
    page_size: Optional[int] = None,
) -> Dict[str, Any]:
    """
    Get grades with optional filters.

    Args:
        db: Database session
        scope: Scope predicate from the authorization verdict
        student_id: Filter by student (optional)
        teacher_id: Filter by recording teacher (optional)
        subject_id: Filter by subject (optional)
        semester_id: Filter by semester (optional)

    Returns:
        Paginated listing, newest grades first
    """
    query = db.query(Grade)
    if scope is not None:
        for criterion in scope.grade_criteria():
            query = query.filter(criterion)

    if student_id is not None:
        query = query.filter(Grade.student_id == student_id)
    if teacher_id is not None:
        query = query.filter(Grade.teacher_id == teacher_id)
    if subject_id is not None:
        query = query.filter(Grade.subject_id == subject_id)
    if semester_id is not None:
        query = query.filter(Grade.semester_id == semester_id)

    query = query.order_by(Grade.date_received.desc(), Grade.id.desc())
    items, total = paginate(query, page, page_size)
    return page_result(items, total, page, page_size)


def get_grade(db: Session, grade_id: int) -> Dict[str, Any]:
    return get_or_404(db, Grade, grade_id).to_dict()
