"""
Pydantic schemas for API requests and responses.

Update requests forbid unknown fields and are dumped with
``exclude_unset=True``, so a field the client omits is left unchanged
while an explicit ``null`` clears it. ``version`` is the optimistic
concurrency token from a previous read.
"""
from datetime import date
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class UpdateRequest(BaseModel):
    """Base for partial updates."""
    model_config = ConfigDict(extra="forbid")

    version: Optional[int] = Field(None, description="Version read by the client; stale versions are rejected")


# ============== Catalog ==============

class GroupCreateRequest(BaseModel):
    """Request to create a group."""
    name: str = Field(..., description="Group name", min_length=1, max_length=100)
    code: str = Field(..., description="Unique group code", min_length=1, max_length=20)
    description: Optional[str] = Field(None, description="Free-form description", max_length=500)


class GroupUpdateRequest(UpdateRequest):
    name: Optional[str] = Field(None, max_length=100)
    code: Optional[str] = Field(None, max_length=20)
    description: Optional[str] = Field(None, max_length=500)


class SubjectCreateRequest(BaseModel):
    """Request to create a subject."""
    name: str = Field(..., description="Subject name", min_length=1, max_length=200)
    code: str = Field(..., description="Unique subject code", min_length=1, max_length=50)
    description: Optional[str] = Field(None, description="Free-form description", max_length=500)


class SubjectUpdateRequest(UpdateRequest):
    name: Optional[str] = Field(None, max_length=200)
    code: Optional[str] = Field(None, max_length=50)
    description: Optional[str] = Field(None, max_length=500)


class SemesterCreateRequest(BaseModel):
    """Request to create a semester."""
    name: str = Field(..., description="Semester name", min_length=1, max_length=100)
    code: str = Field(..., description="Unique semester code, e.g. 2024F", min_length=1, max_length=20)
    start_date: date = Field(..., description="First day of the semester")
    end_date: date = Field(..., description="Last day of the semester, strictly after start_date")
    is_active: bool = Field(False, description="Whether the semester is the current one")


class SemesterUpdateRequest(UpdateRequest):
    name: Optional[str] = Field(None, max_length=100)
    code: Optional[str] = Field(None, max_length=20)
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    is_active: Optional[bool] = None


# ============== People ==============

class TeacherCreateRequest(BaseModel):
    """Request to create a teacher together with its actor account."""
    username: str = Field(..., description="Login name", min_length=1, max_length=50)
    password: str = Field(..., description="Initial password")
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    email: Optional[str] = Field(None, max_length=150)
    department: Optional[str] = Field(None, max_length=200)
    position: Optional[str] = Field(None, max_length=200)


class TeacherUpdateRequest(UpdateRequest):
    username: Optional[str] = Field(None, max_length=50)
    first_name: Optional[str] = Field(None, max_length=100)
    last_name: Optional[str] = Field(None, max_length=100)
    email: Optional[str] = Field(None, max_length=150)
    department: Optional[str] = Field(None, max_length=200)
    position: Optional[str] = Field(None, max_length=200)


class StudentCreateRequest(BaseModel):
    """Request to create a student together with its actor account."""
    username: str = Field(..., description="Login name", min_length=1, max_length=50)
    password: str = Field(..., description="Initial password")
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    group_id: int = Field(..., description="Group the student belongs to")
    email: Optional[str] = Field(None, max_length=150)
    date_of_birth: Optional[date] = None
    enrollment_date: Optional[date] = None


class StudentUpdateRequest(UpdateRequest):
    username: Optional[str] = Field(None, max_length=50)
    first_name: Optional[str] = Field(None, max_length=100)
    last_name: Optional[str] = Field(None, max_length=100)
    email: Optional[str] = Field(None, max_length=150)
    group_id: Optional[int] = None
    date_of_birth: Optional[date] = None
    enrollment_date: Optional[date] = None
    is_active: Optional[bool] = None


class PasswordChangeRequest(BaseModel):
    """Request to change the calling actor's password."""
    current_password: str = Field(..., description="Password currently on file")
    new_password: str = Field(..., description="Replacement password")


# ============== Assignments ==============

class AssignmentCreateRequest(BaseModel):
    """Request to grant a teacher a group/subject/semester combination."""
    teacher_id: int
    subject_id: int
    group_id: int
    semester_id: int


class AssignmentUpdateRequest(UpdateRequest):
    teacher_id: Optional[int] = None
    subject_id: Optional[int] = None
    group_id: Optional[int] = None
    semester_id: Optional[int] = None


# ============== Grades ==============

class GradeCreateRequest(BaseModel):
    """Request to record a grade."""
    student_id: int = Field(..., description="ID of the student")
    subject_id: int = Field(..., description="ID of the subject")
    semester_id: int = Field(..., description="ID of the semester")
    value: float = Field(..., description="Grade value")
    control_type: Optional[str] = Field(None, description="Exam, test, homework...", max_length=50)
    status: Optional[str] = Field(None, max_length=50)
    notes: Optional[str] = Field(None, max_length=500)
    date_received: Optional[date] = Field(None, description="Defaults to today")
    teacher_id: Optional[int] = Field(
        None, description="Administrators only: recording teacher when several are assigned"
    )


class GradeUpdateRequest(BaseModel):
    """
    Request to update a grade. Identifying fields are accepted here only so
    the core can reject them with a clear message.
    """
    model_config = ConfigDict(extra="forbid")

    version: Optional[int] = None
    value: Optional[float] = None
    control_type: Optional[str] = Field(None, max_length=50)
    status: Optional[str] = Field(None, max_length=50)
    notes: Optional[str] = Field(None, max_length=500)
    date_received: Optional[date] = None
    student_id: Optional[int] = None
    subject_id: Optional[int] = None
    semester_id: Optional[int] = None
    teacher_id: Optional[int] = None
    assignment_id: Optional[int] = None


# ============== Responses ==============

class GroupResponse(BaseModel):
    id: int
    name: str
    code: str
    description: Optional[str]
    version: int


class SubjectResponse(GroupResponse):
    pass


class SemesterResponse(BaseModel):
    id: int
    name: str
    code: str
    start_date: str
    end_date: str
    is_active: bool
    version: int


class ActorResponse(BaseModel):
    """Account data of an actor. The password hash is never exposed."""
    id: int
    username: str
    role: str
    first_name: str
    last_name: str
    email: Optional[str]
    version: int
    teacher_id: Optional[int] = None
    student_id: Optional[int] = None


class TeacherResponse(BaseModel):
    id: int
    user_id: int
    username: Optional[str]
    first_name: Optional[str]
    last_name: Optional[str]
    email: Optional[str]
    department: Optional[str]
    position: Optional[str]
    version: int


class StudentResponse(BaseModel):
    id: int
    user_id: int
    username: Optional[str]
    first_name: Optional[str]
    last_name: Optional[str]
    email: Optional[str]
    group_id: int
    group_name: Optional[str]
    date_of_birth: Optional[str]
    enrollment_date: Optional[str]
    is_active: bool
    version: int


class AssignmentResponse(BaseModel):
    id: int
    teacher_id: int
    teacher_name: Optional[str]
    subject_id: int
    subject_name: Optional[str]
    group_id: int
    group_name: Optional[str]
    semester_id: int
    semester_name: Optional[str]
    version: int


class GradeResponse(BaseModel):
    """Single grade response."""
    id: int
    student_id: int
    assignment_id: int
    teacher_id: int
    subject_id: int
    semester_id: int
    value: float
    control_type: Optional[str]
    status: Optional[str]
    notes: Optional[str]
    date_received: str
    recorded_at: str
    version: int


class RoleResponse(BaseModel):
    name: str


class PageResponse(BaseModel):
    """Paginated listing response."""
    total: int = Field(..., description="Rows matching the filters and the caller's scope")
    page: int
    page_size: int
    items: List[dict]


class GradeSummaryResponse(BaseModel):
    """One row of the grades summary report."""
    student_id: int
    student_first_name: str
    student_last_name: str
    subject_id: int
    average_grade: float
    grade_count: int

