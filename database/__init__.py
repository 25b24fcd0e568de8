"""Database module."""
from .models import (
    Base,
    UserRole,
    User,
    Group,
    Subject,
    Semester,
    Teacher,
    Student,
    Assignment,
    Grade,
)
from .connection import (
    engine,
    SessionLocal,
    get_db,
    get_db_context,
    init_db,
    enable_sqlite_foreign_keys,
)

__all__ = [
    "Base",
    "UserRole",
    "User",
    "Group",
    "Subject",
    "Semester",
    "Teacher",
    "Student",
    "Assignment",
    "Grade",
    "engine",
    "SessionLocal",
    "get_db",
    "get_db_context",
    "init_db",
    "enable_sqlite_foreign_keys",
]
