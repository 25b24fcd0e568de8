"""
API routes for the Student Performance system.

Every route authorizes through the AuthorizationService first and then
calls the core operation on the same session, so the check and the write
share one transaction. Domain errors propagate to the handlers registered
in main.py.
"""
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from database import get_db
from student_performance import (
    Actor,
    AuthorizationService,
    Operation,
    ReportFilters,
    ResourceType,
    add_grade,
    change_password,
    create_assignment,
    create_group,
    create_semester,
    create_student,
    create_subject,
    create_teacher,
    delete_assignment,
    delete_grade,
    delete_group,
    delete_semester,
    delete_student,
    delete_subject,
    delete_teacher,
    generate_grade_summary,
    get_actor,
    get_assignment,
    get_grade,
    get_group,
    get_role,
    get_semester,
    get_student,
    get_subject,
    get_teacher,
    list_assignments,
    list_grades,
    list_groups,
    list_roles,
    list_semesters,
    list_students,
    list_subjects,
    list_teachers,
    update_assignment,
    update_grade,
    update_group,
    update_semester,
    update_student,
    update_subject,
    update_teacher,
)
from .dependencies import get_authorization, get_current_actor
from .schemas import (
    ActorResponse,
    AssignmentCreateRequest,
    AssignmentResponse,
    AssignmentUpdateRequest,
    GradeCreateRequest,
    GradeResponse,
    GradeSummaryResponse,
    GradeUpdateRequest,
    GroupCreateRequest,
    GroupResponse,
    GroupUpdateRequest,
    PageResponse,
    PasswordChangeRequest,
    RoleResponse,
    SemesterCreateRequest,
    SemesterResponse,
    SemesterUpdateRequest,
    StudentCreateRequest,
    StudentResponse,
    StudentUpdateRequest,
    SubjectCreateRequest,
    SubjectResponse,
    SubjectUpdateRequest,
    TeacherCreateRequest,
    TeacherResponse,
    TeacherUpdateRequest,
)


groups_router = APIRouter(prefix="/groups", tags=["Groups"])
subjects_router = APIRouter(prefix="/subjects", tags=["Subjects"])
semesters_router = APIRouter(prefix="/semesters", tags=["Semesters"])
teachers_router = APIRouter(prefix="/teachers", tags=["Teachers"])
students_router = APIRouter(prefix="/students", tags=["Students"])
assignments_router = APIRouter(prefix="/assignments", tags=["Assignments"])
grades_router = APIRouter(prefix="/grades", tags=["Grades"])
reports_router = APIRouter(prefix="/reports", tags=["Reports"])
roles_router = APIRouter(prefix="/roles", tags=["Roles"])
users_router = APIRouter(prefix="/users", tags=["Users"])


def _split_update(request) -> tuple:
    """Only the fields the client sent, with the version token separated out."""
    changes = request.model_dump(exclude_unset=True)
    version = changes.pop("version", None)
    return changes, version


# ============== Groups ==============

@groups_router.get("/", response_model=PageResponse)
async def list_groups_endpoint(
    page: int = 1,
    page_size: Optional[int] = None,
    actor: Actor = Depends(get_current_actor),
    authz: AuthorizationService = Depends(get_authorization),
    db: Session = Depends(get_db),
):
    authz.enforce(actor, Operation.VIEW_ALL, ResourceType.GROUP)
    return list_groups(db, page=page, page_size=page_size)


@groups_router.get("/{group_id}", response_model=GroupResponse)
async def get_group_endpoint(
    group_id: int,
    actor: Actor = Depends(get_current_actor),
    authz: AuthorizationService = Depends(get_authorization),
    db: Session = Depends(get_db),
):
    authz.enforce(actor, Operation.VIEW_ONE, ResourceType.GROUP, group_id)
    return get_group(db, group_id)


@groups_router.post("/", response_model=GroupResponse, status_code=201)
async def create_group_endpoint(
    request: GroupCreateRequest,
    actor: Actor = Depends(get_current_actor),
    authz: AuthorizationService = Depends(get_authorization),
    db: Session = Depends(get_db),
):
    """Create a group (Administrator only)."""
    authz.enforce(actor, Operation.CREATE, ResourceType.GROUP)
    return create_group(db, name=request.name, code=request.code, description=request.description)


@groups_router.patch("/{group_id}", response_model=GroupResponse)
async def update_group_endpoint(
    group_id: int,
    request: GroupUpdateRequest,
    actor: Actor = Depends(get_current_actor),
    authz: AuthorizationService = Depends(get_authorization),
    db: Session = Depends(get_db),
):
    authz.enforce(actor, Operation.UPDATE, ResourceType.GROUP, group_id)
    changes, version = _split_update(request)
    return update_group(db, group_id, changes, version=version)


@groups_router.delete("/{group_id}", status_code=204)
async def delete_group_endpoint(
    group_id: int,
    version: Optional[int] = None,
    actor: Actor = Depends(get_current_actor),
    authz: AuthorizationService = Depends(get_authorization),
    db: Session = Depends(get_db),
):
    """Delete a group. Refused while students or assignments reference it."""
    authz.enforce(actor, Operation.DELETE, ResourceType.GROUP, group_id)
    delete_group(db, group_id, version=version)


# ============== Subjects ==============

@subjects_router.get("/", response_model=PageResponse)
async def list_subjects_endpoint(
    page: int = 1,
    page_size: Optional[int] = None,
    actor: Actor = Depends(get_current_actor),
    authz: AuthorizationService = Depends(get_authorization),
    db: Session = Depends(get_db),
):
    authz.enforce(actor, Operation.VIEW_ALL, ResourceType.SUBJECT)
    return list_subjects(db, page=page, page_size=page_size)


@subjects_router.get("/{subject_id}", response_model=SubjectResponse)
async def get_subject_endpoint(
    subject_id: int,
    actor: Actor = Depends(get_current_actor),
    authz: AuthorizationService = Depends(get_authorization),
    db: Session = Depends(get_db),
):
    authz.enforce(actor, Operation.VIEW_ONE, ResourceType.SUBJECT, subject_id)
    return get_subject(db, subject_id)


@subjects_router.post("/", response_model=SubjectResponse, status_code=201)
async def create_subject_endpoint(
    request: SubjectCreateRequest,
    actor: Actor = Depends(get_current_actor),
    authz: AuthorizationService = Depends(get_authorization),
    db: Session = Depends(get_db),
):
    """Create a subject (Administrator only)."""
    authz.enforce(actor, Operation.CREATE, ResourceType.SUBJECT)
    return create_subject(db, name=request.name, code=request.code, description=request.description)


@subjects_router.patch("/{subject_id}", response_model=SubjectResponse)
async def update_subject_endpoint(
    subject_id: int,
    request: SubjectUpdateRequest,
    actor: Actor = Depends(get_current_actor),
    authz: AuthorizationService = Depends(get_authorization),
    db: Session = Depends(get_db),
):
    authz.enforce(actor, Operation.UPDATE, ResourceType.SUBJECT, subject_id)
    changes, version = _split_update(request)
    return update_subject(db, subject_id, changes, version=version)


@subjects_router.delete("/{subject_id}", status_code=204)
async def delete_subject_endpoint(
    subject_id: int,
    version: Optional[int] = None,
    actor: Actor = Depends(get_current_actor),
    authz: AuthorizationService = Depends(get_authorization),
    db: Session = Depends(get_db),
):
    authz.enforce(actor, Operation.DELETE, ResourceType.SUBJECT, subject_id)
    delete_subject(db, subject_id, version=version)


# ============== Semesters ==============

@semesters_router.get("/", response_model=PageResponse)
async def list_semesters_endpoint(
    page: int = 1,
    page_size: Optional[int] = None,
    actor: Actor = Depends(get_current_actor),
    authz: AuthorizationService = Depends(get_authorization),
    db: Session = Depends(get_db),
):
    authz.enforce(actor, Operation.VIEW_ALL, ResourceType.SEMESTER)
    return list_semesters(db, page=page, page_size=page_size)


@semesters_router.get("/{semester_id}", response_model=SemesterResponse)
async def get_semester_endpoint(
    semester_id: int,
    actor: Actor = Depends(get_current_actor),
    authz: AuthorizationService = Depends(get_authorization),
    db: Session = Depends(get_db),
):
    authz.enforce(actor, Operation.VIEW_ONE, ResourceType.SEMESTER, semester_id)
    return get_semester(db, semester_id)


@semesters_router.post("/", response_model=SemesterResponse, status_code=201)
async def create_semester_endpoint(
    request: SemesterCreateRequest,
    actor: Actor = Depends(get_current_actor),
    authz: AuthorizationService = Depends(get_authorization),
    db: Session = Depends(get_db),
):
    """Create a semester (Administrator only)."""
    authz.enforce(actor, Operation.CREATE, ResourceType.SEMESTER)
    return create_semester(
        db,
        name=request.name,
        code=request.code,
        start_date=request.start_date,
        end_date=request.end_date,
        is_active=request.is_active,
    )


@semesters_router.patch("/{semester_id}", response_model=SemesterResponse)
async def update_semester_endpoint(
    semester_id: int,
    request: SemesterUpdateRequest,
    actor: Actor = Depends(get_current_actor),
    authz: AuthorizationService = Depends(get_authorization),
    db: Session = Depends(get_db),
):
    authz.enforce(actor, Operation.UPDATE, ResourceType.SEMESTER, semester_id)
    changes, version = _split_update(request)
    return update_semester(db, semester_id, changes, version=version)


@semesters_router.delete("/{semester_id}", status_code=204)
async def delete_semester_endpoint(
    semester_id: int,
    version: Optional[int] = None,
    actor: Actor = Depends(get_current_actor),
    authz: AuthorizationService = Depends(get_authorization),
    db: Session = Depends(get_db),
):
    authz.enforce(actor, Operation.DELETE, ResourceType.SEMESTER, semester_id)
    delete_semester(db, semester_id, version=version)


# ============== Teachers ==============

@teachers_router.get("/", response_model=PageResponse)
async def list_teachers_endpoint(
    page: int = 1,
    page_size: Optional[int] = None,
    actor: Actor = Depends(get_current_actor),
    authz: AuthorizationService = Depends(get_authorization),
    db: Session = Depends(get_db),
):
    authz.enforce(actor, Operation.VIEW_ALL, ResourceType.TEACHER)
    return list_teachers(db, page=page, page_size=page_size)


@teachers_router.get("/{teacher_id}", response_model=TeacherResponse)
async def get_teacher_endpoint(
    teacher_id: int,
    actor: Actor = Depends(get_current_actor),
    authz: AuthorizationService = Depends(get_authorization),
    db: Session = Depends(get_db),
):
    authz.enforce(actor, Operation.VIEW_ONE, ResourceType.TEACHER, teacher_id)
    return get_teacher(db, teacher_id)


@teachers_router.post("/", response_model=TeacherResponse, status_code=201)
async def create_teacher_endpoint(
    request: TeacherCreateRequest,
    actor: Actor = Depends(get_current_actor),
    authz: AuthorizationService = Depends(get_authorization),
    db: Session = Depends(get_db),
):
    """Create a teacher and its actor account (Administrator only)."""
    authz.enforce(actor, Operation.CREATE, ResourceType.TEACHER)
    return create_teacher(db, **request.model_dump())


@teachers_router.patch("/{teacher_id}", response_model=TeacherResponse)
async def update_teacher_endpoint(
    teacher_id: int,
    request: TeacherUpdateRequest,
    actor: Actor = Depends(get_current_actor),
    authz: AuthorizationService = Depends(get_authorization),
    db: Session = Depends(get_db),
):
    authz.enforce(actor, Operation.UPDATE, ResourceType.TEACHER, teacher_id)
    changes, version = _split_update(request)
    return update_teacher(db, teacher_id, changes, version=version)


@teachers_router.delete("/{teacher_id}", status_code=204)
async def delete_teacher_endpoint(
    teacher_id: int,
    version: Optional[int] = None,
    actor: Actor = Depends(get_current_actor),
    authz: AuthorizationService = Depends(get_authorization),
    db: Session = Depends(get_db),
):
    """Delete a teacher and its actor account. Refused while assignments reference it."""
    authz.enforce(actor, Operation.DELETE, ResourceType.TEACHER, teacher_id)
    delete_teacher(db, teacher_id, version=version)


# ============== Students ==============

@students_router.get("/", response_model=PageResponse)
async def list_students_endpoint(
    group_id: Optional[int] = None,
    name: Optional[str] = None,
    page: int = 1,
    page_size: Optional[int] = None,
    actor: Actor = Depends(get_current_actor),
    authz: AuthorizationService = Depends(get_authorization),
    db: Session = Depends(get_db),
):
    """
    List students.

    Teachers see the students of the groups they teach; students see
    only themselves.
    """
    verdict = authz.enforce(actor, Operation.VIEW_ALL, ResourceType.STUDENT)
    return list_students(db, scope=verdict.scope, group_id=group_id, name=name, page=page, page_size=page_size)


@students_router.get("/{student_id}", response_model=StudentResponse)
async def get_student_endpoint(
    student_id: int,
    actor: Actor = Depends(get_current_actor),
    authz: AuthorizationService = Depends(get_authorization),
    db: Session = Depends(get_db),
):
    authz.enforce(actor, Operation.VIEW_ONE, ResourceType.STUDENT, student_id)
    return get_student(db, student_id)


@students_router.post("/", response_model=StudentResponse, status_code=201)
async def create_student_endpoint(
    request: StudentCreateRequest,
    actor: Actor = Depends(get_current_actor),
    authz: AuthorizationService = Depends(get_authorization),
    db: Session = Depends(get_db),
):
    """Create a student and its actor account (Administrator only)."""
    authz.enforce(actor, Operation.CREATE, ResourceType.STUDENT)
    return create_student(db, **request.model_dump())


@students_router.patch("/{student_id}", response_model=StudentResponse)
async def update_student_endpoint(
    student_id: int,
    request: StudentUpdateRequest,
    actor: Actor = Depends(get_current_actor),
    authz: AuthorizationService = Depends(get_authorization),
    db: Session = Depends(get_db),
):
    """Update a student. Students may edit their own profile but not change group."""
    changes, version = _split_update(request)
    authz.enforce(actor, Operation.UPDATE, ResourceType.STUDENT, student_id, payload=changes)
    return update_student(db, student_id, changes, version=version)


@students_router.delete("/{student_id}", status_code=204)
async def delete_student_endpoint(
    student_id: int,
    version: Optional[int] = None,
    actor: Actor = Depends(get_current_actor),
    authz: AuthorizationService = Depends(get_authorization),
    db: Session = Depends(get_db),
):
    """Delete a student and its actor account. Refused while grades reference it."""
    authz.enforce(actor, Operation.DELETE, ResourceType.STUDENT, student_id)
    delete_student(db, student_id, version=version)


# ============== Assignments ==============

@assignments_router.get("/", response_model=PageResponse)
async def list_assignments_endpoint(
    teacher_id: Optional[int] = None,
    subject_id: Optional[int] = None,
    group_id: Optional[int] = None,
    semester_id: Optional[int] = None,
    page: int = 1,
    page_size: Optional[int] = None,
    actor: Actor = Depends(get_current_actor),
    authz: AuthorizationService = Depends(get_authorization),
    db: Session = Depends(get_db),
):
    authz.enforce(actor, Operation.VIEW_ALL, ResourceType.ASSIGNMENT)
    return list_assignments(
        db,
        teacher_id=teacher_id,
        subject_id=subject_id,
        group_id=group_id,
        semester_id=semester_id,
        page=page,
        page_size=page_size,
    )


@assignments_router.get("/{assignment_id}", response_model=AssignmentResponse)
async def get_assignment_endpoint(
    assignment_id: int,
    actor: Actor = Depends(get_current_actor),
    authz: AuthorizationService = Depends(get_authorization),
    db: Session = Depends(get_db),
):
    authz.enforce(actor, Operation.VIEW_ONE, ResourceType.ASSIGNMENT, assignment_id)
    return get_assignment(db, assignment_id)


@assignments_router.post("/", response_model=AssignmentResponse, status_code=201)
async def create_assignment_endpoint(
    request: AssignmentCreateRequest,
    actor: Actor = Depends(get_current_actor),
    authz: AuthorizationService = Depends(get_authorization),
    db: Session = Depends(get_db),
):
    """Grant a teacher a group/subject/semester combination (Administrator only)."""
    authz.enforce(actor, Operation.CREATE, ResourceType.ASSIGNMENT)
    return create_assignment(db, **request.model_dump())


@assignments_router.patch("/{assignment_id}", response_model=AssignmentResponse)
async def update_assignment_endpoint(
    assignment_id: int,
    request: AssignmentUpdateRequest,
    actor: Actor = Depends(get_current_actor),
    authz: AuthorizationService = Depends(get_authorization),
    db: Session = Depends(get_db),
):
    authz.enforce(actor, Operation.UPDATE, ResourceType.ASSIGNMENT, assignment_id)
    changes, version = _split_update(request)
    return update_assignment(db, assignment_id, changes, version=version)


@assignments_router.delete("/{assignment_id}", status_code=204)
async def delete_assignment_endpoint(
    assignment_id: int,
    version: Optional[int] = None,
    actor: Actor = Depends(get_current_actor),
    authz: AuthorizationService = Depends(get_authorization),
    db: Session = Depends(get_db),
):
    """Revoke a teaching grant. Refused while grades reference it."""
    authz.enforce(actor, Operation.DELETE, ResourceType.ASSIGNMENT, assignment_id)
    delete_assignment(db, assignment_id, version=version)


# ============== Grades ==============

@grades_router.get("/", response_model=PageResponse)
async def list_grades_endpoint(
    student_id: Optional[int] = None,
    teacher_id: Optional[int] = None,
    subject_id: Optional[int] = None,
    semester_id: Optional[int] = None,
    page: int = 1,
    page_size: Optional[int] = None,
    actor: Actor = Depends(get_current_actor),
    authz: AuthorizationService = Depends(get_authorization),
    db: Session = Depends(get_db),
):
    """
    List grades visible to the caller.

    Filters narrow the caller's scope; they never widen it.
    """
    verdict = authz.enforce(actor, Operation.VIEW_ALL, ResourceType.GRADE)
    return list_grades(
        db,
        scope=verdict.scope,
        student_id=student_id,
        teacher_id=teacher_id,
        subject_id=subject_id,
        semester_id=semester_id,
        page=page,
        page_size=page_size,
    )


@grades_router.get("/{grade_id}", response_model=GradeResponse)
async def get_grade_endpoint(
    grade_id: int,
    actor: Actor = Depends(get_current_actor),
    authz: AuthorizationService = Depends(get_authorization),
    db: Session = Depends(get_db),
):
    authz.enforce(actor, Operation.VIEW_ONE, ResourceType.GRADE, grade_id)
    return get_grade(db, grade_id)


@grades_router.post("/", response_model=GradeResponse, status_code=201)
async def add_grade_endpoint(
    request: GradeCreateRequest,
    actor: Actor = Depends(get_current_actor),
    authz: AuthorizationService = Depends(get_authorization),
    db: Session = Depends(get_db),
):
    """
    Record a grade (Administrator or assigned Teacher).

    The recording teacher is derived from the covering assignment.
    """
    fields = request.model_dump()
    authz.enforce(actor, Operation.CREATE, ResourceType.GRADE, payload=fields)
    return add_grade(db, actor, **fields)


@grades_router.patch("/{grade_id}", response_model=GradeResponse)
async def update_grade_endpoint(
    grade_id: int,
    request: GradeUpdateRequest,
    actor: Actor = Depends(get_current_actor),
    authz: AuthorizationService = Depends(get_authorization),
    db: Session = Depends(get_db),
):
    """Update value, control type, status, notes or date received of a grade."""
    authz.enforce(actor, Operation.UPDATE, ResourceType.GRADE, grade_id)
    changes, version = _split_update(request)
    return update_grade(db, grade_id, changes, version=version)


@grades_router.delete("/{grade_id}", status_code=204)
async def delete_grade_endpoint(
    grade_id: int,
    version: Optional[int] = None,
    actor: Actor = Depends(get_current_actor),
    authz: AuthorizationService = Depends(get_authorization),
    db: Session = Depends(get_db),
):
    authz.enforce(actor, Operation.DELETE, ResourceType.GRADE, grade_id)
    delete_grade(db, grade_id, version=version)


# ============== Reports ==============

@reports_router.get("/grades-summary", response_model=List[GradeSummaryResponse])
async def grades_summary_endpoint(
    student_id: Optional[int] = None,
    group_id: Optional[int] = None,
    semester_id: Optional[int] = None,
    teacher_id: Optional[int] = None,
    actor: Actor = Depends(get_current_actor),
    authz: AuthorizationService = Depends(get_authorization),
    db: Session = Depends(get_db),
):
    """
    Average grade and grade count per student and subject.

    Teachers see only grades they recorded; students only their own.
    """
    filters = ReportFilters(
        student_id=student_id, group_id=group_id, semester_id=semester_id, teacher_id=teacher_id
    )
    verdict = authz.enforce(actor, Operation.VIEW_ALL, ResourceType.REPORT, payload=filters.as_payload())
    return [row.to_dict() for row in generate_grade_summary(db, filters, verdict.scope)]


# ============== Roles ==============

@roles_router.get("/", response_model=List[RoleResponse])
async def list_roles_endpoint(
    actor: Actor = Depends(get_current_actor),
    authz: AuthorizationService = Depends(get_authorization),
):
    authz.enforce(actor, Operation.VIEW_ALL, ResourceType.ROLE)
    return list_roles()


@roles_router.get("/{name}", response_model=RoleResponse)
async def get_role_endpoint(
    name: str,
    actor: Actor = Depends(get_current_actor),
    authz: AuthorizationService = Depends(get_authorization),
):
    authz.enforce(actor, Operation.VIEW_ONE, ResourceType.ROLE, name)
    return get_role(name)


# ============== Users ==============

@users_router.get("/me", response_model=ActorResponse)
async def get_me(actor: Actor = Depends(get_current_actor), db: Session = Depends(get_db)):
    """Account data of the calling actor."""
    return get_actor(db, actor.id)


@users_router.post("/me/password", status_code=204)
async def change_my_password(
    request: PasswordChangeRequest,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    change_password(db, actor.id, request.current_password, request.new_password)
