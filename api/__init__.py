"""API module for the Student Performance system."""
from .routes import (
    groups_router,
    subjects_router,
    semesters_router,
    teachers_router,
    students_router,
    assignments_router,
    grades_router,
    reports_router,
    roles_router,
    users_router,
)
from .dependencies import get_current_actor, get_authorization

routers = [
    groups_router,
    subjects_router,
    semesters_router,
    teachers_router,
    students_router,
    assignments_router,
    grades_router,
    reports_router,
    roles_router,
    users_router,
]

__all__ = [
    "routers",
    "groups_router",
    "subjects_router",
    "semesters_router",
    "teachers_router",
    "students_router",
    "assignments_router",
    "grades_router",
    "reports_router",
    "roles_router",
    "users_router",
    "get_current_actor",
    "get_authorization",
]
