"""
Database models for the Student Performance system.
Defines the SQLAlchemy models for actors, the academic catalog,
teaching assignments and grades.

Every mutable table carries a ``version`` column registered as the mapper's
``version_id_col``; SQLAlchemy bumps it on each UPDATE and refuses to write
over a row whose version moved underneath the session.
"""
from enum import Enum as PyEnum
from sqlalchemy import (
    Boolean, Column, Date, DateTime, Enum, Float, ForeignKey, Integer, String,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship, declarative_base
from sqlalchemy.sql import func

Base = declarative_base()


class UserRole(str, PyEnum):
    """Closed set of actor roles."""
    ADMINISTRATOR = "administrator"
    TEACHER = "teacher"
    STUDENT = "student"


def _iso(value):
    return value.isoformat() if value else None


class User(Base):
    """
    Users table - the authenticated actors.

    A teacher or student user owns exactly one matching profile row;
    administrators own neither.
    """
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    username = Column(String(50), nullable=False, unique=True)
    password_hash = Column(String(255), nullable=False)
    role = Column(
        Enum(UserRole, name="user_role", values_callable=lambda e: [m.value for m in e]),
        nullable=False,
    )
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    email = Column(String(150), nullable=True, unique=True)
    created_at = Column(DateTime, nullable=False, default=func.now())
    updated_at = Column(DateTime, nullable=True, onupdate=func.now())
    version = Column(Integer, nullable=False)

    # Relationships
    teacher = relationship("Teacher", back_populates="user", uselist=False)
    student = relationship("Student", back_populates="user", uselist=False)

    __mapper_args__ = {"version_id_col": version}

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    def __repr__(self):
        return f"<User(id={self.id}, username='{self.username}', role='{self.role}')>"

    def to_dict(self):
        """Convert user to dictionary for API responses. Never exposes the hash."""
        return {
            "id": self.id,
            "username": self.username,
            "role": self.role.value if self.role else None,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "email": self.email,
            "version": self.version,
        }


class Group(Base):
    """Groups table - a cohort of students."""
    __tablename__ = "groups"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(100), nullable=False, unique=True)
    code = Column(String(20), nullable=False, unique=True)
    description = Column(String(500), nullable=True)
    created_at = Column(DateTime, nullable=False, default=func.now())
    updated_at = Column(DateTime, nullable=True, onupdate=func.now())
    version = Column(Integer, nullable=False)

    # Relationships
    students = relationship("Student", back_populates="group")
    assignments = relationship("Assignment", back_populates="group")

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self):
        return f"<Group(id={self.id}, name='{self.name}', code='{self.code}')>"

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "code": self.code,
            "description": self.description,
            "version": self.version,
        }


class Subject(Base):
    """Subjects table."""
    __tablename__ = "subjects"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(200), nullable=False, unique=True)
    code = Column(String(50), nullable=False, unique=True)
    description = Column(String(500), nullable=True)
    created_at = Column(DateTime, nullable=False, default=func.now())
    updated_at = Column(DateTime, nullable=True, onupdate=func.now())
    version = Column(Integer, nullable=False)

    # Relationships
    assignments = relationship("Assignment", back_populates="subject")

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self):
        return f"<Subject(id={self.id}, name='{self.name}', code='{self.code}')>"

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "code": self.code,
            "description": self.description,
            "version": self.version,
        }


class Semester(Base):
    """
    Semesters table.

    Attributes:
        start_date: First day of the semester
        end_date: Last day of the semester, strictly after start_date
        is_active: Administrative flag, not derived from the dates
    """
    __tablename__ = "semesters"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(100), nullable=False, unique=True)
    code = Column(String(20), nullable=False, unique=True)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    is_active = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, nullable=False, default=func.now())
    updated_at = Column(DateTime, nullable=True, onupdate=func.now())
    version = Column(Integer, nullable=False)

    # Relationships
    assignments = relationship("Assignment", back_populates="semester")

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self):
        return f"<Semester(id={self.id}, name='{self.name}', code='{self.code}')>"

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "code": self.code,
            "start_date": _iso(self.start_date),
            "end_date": _iso(self.end_date),
            "is_active": self.is_active,
            "version": self.version,
        }


class Teacher(Base):
    """Teacher profiles, 1:1 with a teacher user."""
    __tablename__ = "teachers"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, unique=True)
    department = Column(String(200), nullable=True)
    position = Column(String(200), nullable=True)
    created_at = Column(DateTime, nullable=False, default=func.now())
    updated_at = Column(DateTime, nullable=True, onupdate=func.now())
    version = Column(Integer, nullable=False)

    # Relationships
    user = relationship("User", back_populates="teacher")
    assignments = relationship("Assignment", back_populates="teacher")

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self):
        return f"<Teacher(id={self.id}, user_id={self.user_id})>"

    def to_dict(self):
        return {
            "id": self.id,
            "user_id": self.user_id,
            "username": self.user.username if self.user else None,
            "first_name": self.user.first_name if self.user else None,
            "last_name": self.user.last_name if self.user else None,
            "email": self.user.email if self.user else None,
            "department": self.department,
            "position": self.position,
            "version": self.version,
        }


class Student(Base):
    """Student profiles, 1:1 with a student user. Every student belongs to a group."""
    __tablename__ = "students"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, unique=True)
    group_id = Column(Integer, ForeignKey("groups.id"), nullable=False)
    date_of_birth = Column(Date, nullable=True)
    enrollment_date = Column(Date, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, nullable=False, default=func.now())
    updated_at = Column(DateTime, nullable=True, onupdate=func.now())
    version = Column(Integer, nullable=False)

    # Relationships
    user = relationship("User", back_populates="student")
    group = relationship("Group", back_populates="students")
    grades = relationship("Grade", back_populates="student")

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self):
        return f"<Student(id={self.id}, user_id={self.user_id}, group_id={self.group_id})>"

    def to_dict(self):
        return {
            "id": self.id,
            "user_id": self.user_id,
            "username": self.user.username if self.user else None,
            "first_name": self.user.first_name if self.user else None,
            "last_name": self.user.last_name if self.user else None,
            "email": self.user.email if self.user else None,
            "group_id": self.group_id,
            "group_name": self.group.name if self.group else None,
            "date_of_birth": _iso(self.date_of_birth),
            "enrollment_date": _iso(self.enrollment_date),
            "is_active": self.is_active,
            "version": self.version,
        }


class Assignment(Base):
    """
    Teaching assignments - the grant linking one teacher to one group
    for one subject in one semester.
    """
    __tablename__ = "teaching_assignments"

    id = Column(Integer, primary_key=True, autoincrement=True)
    teacher_id = Column(Integer, ForeignKey("teachers.id"), nullable=False)
    subject_id = Column(Integer, ForeignKey("subjects.id"), nullable=False)
    group_id = Column(Integer, ForeignKey("groups.id"), nullable=False)
    semester_id = Column(Integer, ForeignKey("semesters.id"), nullable=False)
    created_at = Column(DateTime, nullable=False, default=func.now())
    updated_at = Column(DateTime, nullable=True, onupdate=func.now())
    version = Column(Integer, nullable=False)

    # Relationships
    teacher = relationship("Teacher", back_populates="assignments")
    subject = relationship("Subject", back_populates="assignments")
    group = relationship("Group", back_populates="assignments")
    semester = relationship("Semester", back_populates="assignments")
    grades = relationship("Grade", back_populates="assignment")

    __table_args__ = (
        UniqueConstraint(
            "teacher_id", "subject_id", "group_id", "semester_id",
            name="uq_teaching_assignment_tuple",
        ),
    )
    __mapper_args__ = {"version_id_col": version}

    def __repr__(self):
        return (
            f"<Assignment(id={self.id}, teacher_id={self.teacher_id}, subject_id={self.subject_id}, "
            f"group_id={self.group_id}, semester_id={self.semester_id})>"
        )

    def to_dict(self):
        return {
            "id": self.id,
            "teacher_id": self.teacher_id,
            "teacher_name": self.teacher.user.full_name if self.teacher and self.teacher.user else None,
            "subject_id": self.subject_id,
            "subject_name": self.subject.name if self.subject else None,
            "group_id": self.group_id,
            "group_name": self.group.name if self.group else None,
            "semester_id": self.semester_id,
            "semester_name": self.semester.name if self.semester else None,
            "version": self.version,
        }


class Grade(Base):
    """
    Grades table.

    teacher_id, subject_id and semester_id are copied from the covering
    assignment at creation and never change afterwards.
    """
    __tablename__ = "grades"

    id = Column(Integer, primary_key=True, autoincrement=True)
    student_id = Column(Integer, ForeignKey("students.id"), nullable=False)
    assignment_id = Column(Integer, ForeignKey("teaching_assignments.id"), nullable=False)
    teacher_id = Column(Integer, ForeignKey("teachers.id"), nullable=False)
    subject_id = Column(Integer, ForeignKey("subjects.id"), nullable=False)
    semester_id = Column(Integer, ForeignKey("semesters.id"), nullable=False)
    value = Column(Float, nullable=False)
    control_type = Column(String(50), nullable=True)
    status = Column(String(50), nullable=True)
    notes = Column(String(500), nullable=True)
    date_received = Column(Date, nullable=False)
    recorded_at = Column(DateTime, nullable=False)
    updated_at = Column(DateTime, nullable=True, onupdate=func.now())
    version = Column(Integer, nullable=False)

    # Relationships
    student = relationship("Student", back_populates="grades")
    assignment = relationship("Assignment", back_populates="grades")

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self):
        return f"<Grade(id={self.id}, student_id={self.student_id}, subject_id={self.subject_id}, value={self.value})>"

    def to_dict(self):
        """Convert grade to dictionary for API responses."""
        return {
            "id": self.id,
            "student_id": self.student_id,
            "assignment_id": self.assignment_id,
            "teacher_id": self.teacher_id,
            "subject_id": self.subject_id,
            "semester_id": self.semester_id,
            "value": self.value,
            "control_type": self.control_type,
            "status": self.status,
            "notes": self.notes,
            "date_received": _iso(self.date_received),
            "recorded_at": _iso(self.recorded_at),
            "version": self.version,
        }
