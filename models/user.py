from extensions import db
from flask_login import UserMixin
from sqlalchemy.orm import validates
from utils.text import normalize_class_name

ROLES = ("admin", "staff", "student")


class User(UserMixin, db.Model):
    __tablename__ = "users"

    user_id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    email = db.Column(db.String(120), unique=True, nullable=False)
    password_hash = db.Column(db.String(255), nullable=False)

    role = db.Column(db.Enum(*ROLES, name="user_role"), nullable=False, default="student")

    # Student specific fields
    admission_number = db.Column(db.String(20), unique=True, nullable=True)
    class_name = db.Column(db.String(40), nullable=True)

    is_active = db.Column(db.Boolean, default=True, nullable=False)
    created_at = db.Column(db.DateTime, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime,
        server_default=db.func.now(),
        onupdate=db.func.now()
    )

    marks = db.relationship(
        "Mark",
        backref="student",
        lazy=True,
        foreign_keys="Mark.student_id",
        cascade="all, delete-orphan"
    )

    # Flask-Login looks for "id", but the column is "user_id".
    def get_id(self):
        return str(self.user_id)

    @validates("email")
    def _normalize_email(self, key, value):
        return value.strip().lower() if value else value

    @validates("class_name")
    def _normalize_class(self, key, value):
        return normalize_class_name(value) if value else value

    @property
    def is_student(self):
        return self.role == "student"

    def to_dict(self):
        data = {
            "user_id": self.user_id,
            "name": self.name,
            "email": self.email,
            "role": self.role,
            "is_active": self.is_active,
        }
        if self.is_student:
            data["admission_number"] = self.admission_number
            data["class_name"] = self.class_name
        return data

    def __repr__(self):
        return f"<User {self.email} ({self.role})>"
