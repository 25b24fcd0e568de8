"""
Seed data script for the Student Performance system.
Creates sample data for testing and demonstration.

Run with an empty database: ``python -m database.seed``.
"""
from datetime import date, timedelta
import random

from database import get_db_context, init_db, UserRole
from student_performance import (
    Actor,
    add_grade,
    create_administrator,
    create_assignment,
    create_group,
    create_semester,
    create_student,
    create_subject,
    create_teacher,
)

DEFAULT_PASSWORD = "changeme"


def seed_database():
    """Populate database with sample data through the core operations."""

    with get_db_context() as db:
        admin = create_administrator(
            db, username="admin", password=DEFAULT_PASSWORD, first_name="System", last_name="Administrator"
        )

        # Create Groups
        groups = [
            create_group(db, name="Computer Science 1", code="CS-1"),
            create_group(db, name="Computer Science 2", code="CS-2"),
        ]

        # Create Subjects
        subjects = [
            create_subject(db, name="Mathematics", code="MATH"),
            create_subject(db, name="Programming", code="PROG"),
            create_subject(db, name="Databases", code="DB"),
        ]

        semester = create_semester(
            db, name="Fall 2024", code="2024F",
            start_date=date(2024, 9, 1), end_date=date(2024, 12, 31), is_active=True,
        )

        # Create Teachers
        teachers = [
            create_teacher(db, username="mwilson", password=DEFAULT_PASSWORD,
                           first_name="Maria", last_name="Wilson", department="Mathematics"),
            create_teacher(db, username="jsmith", password=DEFAULT_PASSWORD,
                           first_name="John", last_name="Smith", department="Computing"),
        ]

        # Create Students
        # First 3 students in CS-1, the rest in CS-2
        names = [("Alice", "Brown"), ("Bob", "Taylor"), ("Carol", "Evans"), ("Dan", "Moore"), ("Eve", "Clark")]
        students = []
        for index, (first_name, last_name) in enumerate(names):
            group = groups[0] if index < 3 else groups[1]
            students.append(create_student(
                db, username=first_name.lower(), password=DEFAULT_PASSWORD,
                first_name=first_name, last_name=last_name, group_id=group["id"],
                enrollment_date=date(2024, 9, 1),
            ))

        # Teaching assignments: Maria teaches Mathematics to both groups,
        # John teaches Programming and Databases to CS-1 only
        assignments = [
            create_assignment(db, teachers[0]["id"], subjects[0]["id"], groups[0]["id"], semester["id"]),
            create_assignment(db, teachers[0]["id"], subjects[0]["id"], groups[1]["id"], semester["id"]),
            create_assignment(db, teachers[1]["id"], subjects[1]["id"], groups[0]["id"], semester["id"]),
            create_assignment(db, teachers[1]["id"], subjects[2]["id"], groups[0]["id"], semester["id"]),
        ]

        # Create sample grades
        actor = Actor(id=admin["id"], role=UserRole.ADMINISTRATOR)
        control_types = ["Exam", "Test", "Homework"]
        base_date = date(2024, 9, 15)
        grades = []
        for assignment in assignments:
            for student in students:
                if student["group_id"] != assignment["group_id"]:
                    continue
                for control_type in control_types[:2]:
                    grades.append(add_grade(
                        db, actor,
                        student_id=student["id"],
                        subject_id=assignment["subject_id"],
                        semester_id=assignment["semester_id"],
                        value=round(random.uniform(50, 100), 1),
                        control_type=control_type,
                        date_received=base_date + timedelta(days=random.randint(1, 80)),
                        teacher_id=assignment["teacher_id"],
                    ))

        print("Database seeded successfully!")
        print(f"Created:")
        print(f"  - {len(teachers)} teachers")
        print(f"  - {len(students)} students")
        print(f"  - {len(subjects)} subjects")
        print(f"  - {len(groups)} groups")
        print(f"  - {len(assignments)} teaching assignments")
        print(f"  - {len(grades)} grades")

        # Print some IDs for reference
        print("\nReference actor IDs (use as X-Actor-Id):")
        print(f"  Administrator: {admin['id']}")
        print(f"  Teachers: {[(t['user_id'], t['username']) for t in teachers]}")
        print(f"  Students: {[(s['user_id'], s['username']) for s in students]}")
        print(f"\nAll passwords: {DEFAULT_PASSWORD}")


if __name__ == "__main__":
    print("Initializing database...")
    init_db()
    print("Seeding database...")
    seed_database()
