"""
Core of the Student Performance system.

This package holds the authorization service, the relationship resolver
and the guarded operations over the catalog, identities, teaching
assignments, grades and reports. Every operation works on a caller-owned
SQLAlchemy session.
"""
from .exceptions import (
    StudentPerformanceError,
    NotFoundError,
    ConflictError,
    ConcurrencyConflictError,
    InvalidArgumentError,
    ForbiddenError,
    UnexpectedError,
)

from .clock import Clock, utcnow

from .relationships import ActorProfile, RelationshipResolver

from .authorization import (
    Actor,
    Operation,
    ResourceType,
    Decision,
    ScopePredicate,
    UNRESTRICTED,
    Verdict,
    AuthorizationService,
    get_authorization_service,
)

from .catalog import (
    list_groups,
    get_group,
    create_group,
    update_group,
    delete_group,
    list_subjects,
    get_subject,
    create_subject,
    update_subject,
    delete_subject,
    list_semesters,
    get_semester,
    create_semester,
    update_semester,
    delete_semester,
)

from .people import (
    get_actor,
    change_password,
    create_administrator,
    list_roles,
    get_role,
    list_teachers,
    get_teacher,
    create_teacher,
    update_teacher,
    delete_teacher,
    list_students,
    get_student,
    create_student,
    update_student,
    delete_student,
)

from .assignments import (
    list_assignments,
    get_assignment,
    create_assignment,
    update_assignment,
    delete_assignment,
)

from .grades_write import (
    add_grade,
    update_grade,
    delete_grade,
)

from .grades_read import (
    list_grades,
    get_grade,
)

from .reporting import (
    ReportFilters,
    GradeSummaryRow,
    generate_grade_summary,
)

__all__ = [
    # Exceptions
    "StudentPerformanceError",
    "NotFoundError",
    "ConflictError",
    "ConcurrencyConflictError",
    "InvalidArgumentError",
    "ForbiddenError",
    "UnexpectedError",
    # Clock
    "Clock",
    "utcnow",
    # Relationships
    "ActorProfile",
    "RelationshipResolver",
    # Authorization
    "Actor",
    "Operation",
    "ResourceType",
    "Decision",
    "ScopePredicate",
    "UNRESTRICTED",
    "Verdict",
    "AuthorizationService",
    "get_authorization_service",
    # Catalog
    "list_groups",
    "get_group",
    "create_group",
    "update_group",
    "delete_group",
    "list_subjects",
    "get_subject",
    "create_subject",
    "update_subject",
    "delete_subject",
    "list_semesters",
    "get_semester",
    "create_semester",
    "update_semester",
    "delete_semester",
    # People
    "get_actor",
    "change_password",
    "create_administrator",
    "list_roles",
    "get_role",
    "list_teachers",
    "get_teacher",
    "create_teacher",
    "update_teacher",
    "delete_teacher",
    "list_students",
    "get_student",
    "create_student",
    "update_student",
    "delete_student",
    # Assignments
    "list_assignments",
    "get_assignment",
    "create_assignment",
    "update_assignment",
    "delete_assignment",
    # Grades Write
    "add_grade",
    "update_grade",
    "delete_grade",
    # Grades Read
    "list_grades",
    "get_grade",
    # Reporting
    "ReportFilters",
    "GradeSummaryRow",
    "generate_grade_summary",
]
