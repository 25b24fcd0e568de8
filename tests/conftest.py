"""
Shared fixtures for the Student Performance tests.

Each test runs against a fresh in-memory SQLite database with foreign keys
enforced, populated through the core operations themselves.
"""
import os
import sys
from datetime import date, datetime
from types import SimpleNamespace

# Must be set before config is imported anywhere
os.environ["DATABASE_URL"] = "sqlite://"

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from database import Base, UserRole, enable_sqlite_foreign_keys
from student_performance import (
    Actor,
    create_administrator,
    create_assignment,
    create_group,
    create_semester,
    create_student,
    create_subject,
    create_teacher,
)

FIXED_NOW = datetime(2024, 10, 1, 12, 30, 0)
PASSWORD = "secret-pass"


@pytest.fixture
def engine():
    """In-memory database shared by every session of one test."""
    test_engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    enable_sqlite_foreign_keys(test_engine)
    Base.metadata.create_all(bind=test_engine)
    yield test_engine
    Base.metadata.drop_all(bind=test_engine)
    test_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def clock():
    """Deterministic clock."""
    return lambda: FIXED_NOW


@pytest.fixture
def world(db):
    """
    Minimal school:
    - groups G1 and G2, subjects Math and Physics, semester 2024F
    - teacher t1 assigned to (Math, G1, 2024F); teacher t2 with no assignment
    - students s1 and s2 in G1, s3 in G2
    """
    admin = create_administrator(db, "admin", PASSWORD, "Ada", "Admin")

    g1 = create_group(db, name="G1", code="G1C")
    g2 = create_group(db, name="G2", code="G2C")
    math = create_subject(db, name="Math", code="MTH")
    physics = create_subject(db, name="Physics", code="PHY")
    semester = create_semester(db, name="2024F", code="2024F",
                               start_date=date(2024, 9, 1), end_date=date(2024, 12, 31))

    t1 = create_teacher(db, "t1", PASSWORD, "Tom", "First", department="Mathematics")
    t2 = create_teacher(db, "t2", PASSWORD, "Tina", "Second")

    s1 = create_student(db, "s1", PASSWORD, "Sam", "Adams", group_id=g1["id"])
    s2 = create_student(db, "s2", PASSWORD, "Sue", "Baker", group_id=g1["id"])
    s3 = create_student(db, "s3", PASSWORD, "Sid", "Cole", group_id=g2["id"])

    assignment = create_assignment(db, t1["id"], math["id"], g1["id"], semester["id"])

    return SimpleNamespace(
        admin=admin,
        g1=g1, g2=g2,
        math=math, physics=physics,
        semester=semester,
        t1=t1, t2=t2,
        s1=s1, s2=s2, s3=s3,
        assignment=assignment,
        admin_actor=Actor(id=admin["id"], role=UserRole.ADMINISTRATOR),
        t1_actor=Actor(id=t1["user_id"], role=UserRole.TEACHER),
        t2_actor=Actor(id=t2["user_id"], role=UserRole.TEACHER),
        s1_actor=Actor(id=s1["user_id"], role=UserRole.STUDENT),
        s2_actor=Actor(id=s2["user_id"], role=UserRole.STUDENT),
        s3_actor=Actor(id=s3["user_id"], role=UserRole.STUDENT),
    )
