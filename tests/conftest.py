# tests/conftest.py

import pytest
from werkzeug.security import generate_password_hash

from app import create_app
from extensions import db
from models.user import User
from services.auth_service import issue_token
from services.grading import CallerContext

PASSWORD = "Secret@123"

STUDENTS = {
    "s1": ("Nimal Perera", "S001", "Grade-10-A"),
    "s2": ("Kamala Silva", "S002", "Grade-10-A"),
    "s3": ("Ruwan Fernando", "S003", "Grade-10-A"),
    "s4": ("Dilani Jayasuriya", "S004", "Grade-10-B"),
}


def _user(name, email, role, admission_number=None, class_name=None, is_active=True):
    return User(
        name=name,
        email=email,
        password_hash=generate_password_hash(PASSWORD, method="pbkdf2:sha256:1000"),
        role=role,
        admission_number=admission_number,
        class_name=class_name,
        is_active=is_active,
    )


@pytest.fixture
def app():
    app = create_app("config.config.TestingConfig")
    with app.app_context():
        db.create_all()
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def users(app):
    """Seed accounts and return their ids keyed by role-ish name."""
    with app.app_context():
        records = {
            "admin": _user("Admin One", "admin@school.test", "admin"),
            "staff": _user("Sunil Teacher", "staff@school.test", "staff"),
            "other_staff": _user("Malini Teacher", "staff2@school.test", "staff"),
            "inactive": _user("Old Student", "old@school.test", "student", "S099", "Grade-10-A", is_active=False),
        }
        for key, (name, admission_number, class_name) in STUDENTS.items():
            records[key] = _user(name, f"{key}@school.test", "student", admission_number, class_name)

        db.session.add_all(records.values())
        db.session.commit()
        return {key: user.user_id for key, user in records.items()}


@pytest.fixture
def app_ctx(app):
    with app.app_context():
        yield app


@pytest.fixture
def staff_ctx(users):
    return CallerContext(caller_id=users["staff"], role="staff")


@pytest.fixture
def admin_ctx(users):
    return CallerContext(caller_id=users["admin"], role="admin")


@pytest.fixture
def student_ctx(users):
    return CallerContext(caller_id=users["s1"], role="student")


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def auth_headers(app, users):
    def make(key):
        with app.app_context():
            user = db.session.get(User, users[key])
            return {"Authorization": f"Bearer {issue_token(user)}"}
    return make


def mark_entry(admission_number, subject="Mathematics", score=70, **extra):
    entry = {
        "studentName": "Student",
        "admissionNumber": admission_number,
        "subject": subject,
        "class": "Grade-10-A",
        "examPeriod": "Term 1",
        "score": score,
    }
    entry.update(extra)
    return entry


@pytest.fixture
def make_entry():
    return mark_entry
