from datetime import date

from sqlalchemy.orm import Session
from sqlalchemy import select

from tutordesk.db.session import SessionLocal, init_db
from tutordesk.core.security import hash_password, create_access_token

from tutordesk.models.course import Course
from tutordesk.models.user import User

COURSES = [
    ("Biochemistry", "BIOCHEM", "Advanced study of molecular structures, enzyme kinetics, and metabolic pathways fundamental to life processes.", "#e74c3c", "flask", 12),
    ("Cell Biology", "CELLBIO", "Comprehensive exploration of cellular structures, organelle functions, and cellular mechanisms.", "#3498db", "microscope", 11),
    ("Animal Behavior", "ANBEHAV", "Investigation of behavioral patterns, physiological responses, and neurobiological mechanisms in animals.", "#f39c12", "paw", 10),
    ("Evolution", "EVOLUT", "Study of evolutionary processes, genetic variation, natural selection, and molecular evolution.", "#9b59b6", "dna", 12),
    ("Photosynthesis", "PHOTOS", "Analysis of photosynthetic processes, chloroplast function, and energy conversion in plants.", "#27ae60", "leaf", 10),
    ("Cell Division", "CELLDIV", "Detailed examination of mitosis, meiosis, and cellular reproduction mechanisms.", "#e67e22", "cell", 11),
    ("Cell Respiration", "CELLRESP", "Study of cellular respiration, ATP synthesis, and energy metabolism in biological systems.", "#1abc9c", "lungs", 11),
    ("General Biology", "GENBIO", "Foundational concepts in biology covering multiple biological disciplines and processes.", "#2c5aa0", "book", 9),
]

STUDENTS = [
    ("Ahmed Hassan", "ahmed.hassan@student.com", 12, "EST"),
    ("Sara Mohamed", "sara.mohamed@student.com", 11, "ACT"),
    ("Omar Ali", "omar.ali@student.com", 12, "Both"),
    ("Fatima Ibrahim", "fatima.ibrahim@student.com", 10, "EST"),
    ("Youssef Mahmoud", "youssef.mahmoud@student.com", 11, "ACT"),
]

def seed_courses(db: Session) -> int:
    existing = set(db.scalars(select(Course.name)).all())
    added = 0
    for name, code, description, color, icon, grade_level in COURSES:
        if name in existing:
            continue
        db.add(Course(name=name, code=code, description=description, color=color, icon=icon,
                      grade_level=grade_level, program="Both", is_active=True))
        added += 1
    db.flush()
    return added

def ensure_user(db: Session, email: str, pwd: str, name: str, role: str, **kwargs) -> User:
    u = db.scalar(select(User).where(User.email == email))
    if not u:
        u = User(
            email=email,
            password_hash=hash_password(pwd),
            name=name,
            role=role,
            is_active=True,
            grade=kwargs.get("grade"),
            program=kwargs.get("program"),
            enrollment_date=kwargs.get("enrollment_date"),
        )
        db.add(u)
        db.flush()
    return u

def ensure(db: Session) -> list[User]:
    seed_courses(db)
    users = [
        ensure_user(db, "admin@bioplatform.com", "Admin123!", "Platform Admin", "admin"),
        ensure_user(db, "teacher@bioplatform.com", "Teacher123!", "Biology Teacher", "teacher"),
    ]
    for name, email, grade, program in STUDENTS:
        users.append(ensure_user(db, email, "Student123!", name, "student",
                                 grade=grade, program=program, enrollment_date=date(2024, 9, 1)))
    return users

def main():
    init_db()
    with SessionLocal() as db:
        users = ensure(db)
        db.commit()
        for u in users:
            print(f"[seed] {u.role:<8} {u.email:<32} {create_access_token(u.email)}")
    print("[seed] done.")

if __name__ == "__main__":
    main()
