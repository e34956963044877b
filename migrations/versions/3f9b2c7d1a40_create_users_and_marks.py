"""create users and marks tables

Revision ID: 3f9b2c7d1a40
Revises:
Create Date: 2026-10-18 00:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "3f9b2c7d1a40"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "users",
        sa.Column("user_id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("email", sa.String(length=120), nullable=False),
        sa.Column("password_hash", sa.String(length=255), nullable=False),
        sa.Column("role", sa.Enum("admin", "staff", "student", name="user_role"), nullable=False),
        sa.Column("admission_number", sa.String(length=20), nullable=True),
        sa.Column("class_name", sa.String(length=40), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("1")),
        sa.Column("created_at", sa.DateTime(), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=True),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=True),
        sa.UniqueConstraint("email"),
        sa.UniqueConstraint("admission_number"),
    )
    op.create_table(
        "marks",
        sa.Column("mark_id", sa.Integer(), primary_key=True),
        sa.Column("student_id", sa.Integer(), nullable=False),
        sa.Column("subject", sa.String(length=100), nullable=False),
        sa.Column("class_name", sa.String(length=40), nullable=False),
        sa.Column("exam_period", sa.String(length=20), nullable=False),
        sa.Column("score", sa.Float(), nullable=False),
        sa.Column("total_possible", sa.Float(), nullable=False),
        sa.Column("grade", sa.String(length=1), nullable=False),
        sa.Column("remarks", sa.String(length=255), nullable=True),
        sa.Column("marked_by", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=True),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=True),
        sa.ForeignKeyConstraint(["student_id"], ["users.user_id"]),
        sa.ForeignKeyConstraint(["marked_by"], ["users.user_id"]),
        sa.UniqueConstraint("student_id", "subject", "exam_period", name="unique_student_subject_period"),
        sa.CheckConstraint("total_possible > 0", name="ck_total_possible_positive"),
        sa.CheckConstraint("score >= 0 AND score <= total_possible", name="ck_score_in_range"),
    )


def downgrade():
    op.drop_table("marks")
    op.drop_table("users")
