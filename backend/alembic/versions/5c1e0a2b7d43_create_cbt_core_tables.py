"""create test code, test result, question and activity log tables

Revision ID: 5c1e0a2b7d43
Revises:
Create Date: 2026-10-19 09:12:44.318205

The questions table is owned by the question bank; it is created here so a
fresh database is usable on its own, and only if it does not exist yet.
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "5c1e0a2b7d43"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

test_type = sa.Enum("CA", "TEST", "EXAM", name="testtype")


def upgrade() -> None:
    """Create the CBT core tables with their unique constraints."""
    bind = op.get_bind()
    existing_tables = sa.inspect(bind).get_table_names()

    if "questions" not in existing_tables:
        op.create_table(
            "questions",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("class_id", sa.Integer(), nullable=False),
            sa.Column("subject_id", sa.Integer(), nullable=False),
            sa.Column("session", sa.String(length=20), nullable=False),
            sa.Column("term", sa.String(length=50), nullable=False),
            sa.Column("test_type", test_type, nullable=False),
            sa.Column("question_text", sa.Text(), nullable=False),
            sa.Column("option_a", sa.Text(), nullable=False),
            sa.Column("option_b", sa.Text(), nullable=False),
            sa.Column("option_c", sa.Text(), nullable=False),
            sa.Column("option_d", sa.Text(), nullable=False),
            sa.Column("correct_option", sa.String(length=1), nullable=False),
            sa.Column("image", sa.String(length=255), nullable=True),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_questions_id", "questions", ["id"])
        op.create_index(
            "ix_questions_classification",
            "questions",
            ["class_id", "subject_id", "session", "term", "test_type"],
        )

    op.create_table(
        "test_codes",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("code", sa.String(length=32), nullable=False),
        sa.Column("class_id", sa.Integer(), nullable=False),
        sa.Column("subject_id", sa.Integer(), nullable=False),
        sa.Column("session", sa.String(length=20), nullable=False),
        sa.Column("term", sa.String(length=50), nullable=False),
        sa.Column("test_type", test_type, nullable=False),
        sa.Column("num_questions", sa.Integer(), nullable=False),
        sa.Column("score_per_question", sa.Integer(), nullable=False),
        sa.Column("duration", sa.Integer(), nullable=False),
        sa.Column("active", sa.Boolean(), nullable=False),
        sa.Column("disabled", sa.Boolean(), nullable=False),
        sa.Column("activated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("deactivated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("disabled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_by", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("num_questions > 0", name="ck_test_codes_num_questions"),
        sa.CheckConstraint(
            "score_per_question > 0", name="ck_test_codes_score_per_question"
        ),
        sa.CheckConstraint("duration > 0", name="ck_test_codes_duration"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_test_codes_id", "test_codes", ["id"])
    # Uniqueness of generated codes
    op.create_index("ix_test_codes_code", "test_codes", ["code"], unique=True)
    op.create_index("ix_test_codes_active", "test_codes", ["active"])
    op.create_index(
        "ix_test_codes_classification",
        "test_codes",
        ["class_id", "subject_id", "session", "term", "test_type"],
    )

    op.create_table(
        "test_results",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("student_id", sa.Integer(), nullable=False),
        sa.Column("test_code_id", sa.Integer(), nullable=False),
        sa.Column("score", sa.Integer(), nullable=False),
        sa.Column("total_score", sa.Integer(), nullable=False),
        sa.Column("time_taken", sa.Integer(), nullable=False),
        sa.Column("questions_answered", sa.Integer(), nullable=False),
        sa.Column("correct_answers", sa.Integer(), nullable=False),
        sa.Column("wrong_answers", sa.Integer(), nullable=False),
        sa.Column("answers_json", sa.JSON(), nullable=False),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["test_code_id"], ["test_codes.id"]),
        sa.PrimaryKeyConstraint("id"),
        # One attempt per student per code
        sa.UniqueConstraint(
            "student_id", "test_code_id", name="uq_test_results_student_code"
        ),
    )
    op.create_index("ix_test_results_id", "test_results", ["id"])
    op.create_index("ix_test_results_student_id", "test_results", ["student_id"])
    op.create_index("ix_test_results_test_code_id", "test_results", ["test_code_id"])

    op.create_table(
        "activity_logs",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=True),
        sa.Column("action", sa.String(length=100), nullable=False),
        sa.Column("details", sa.Text(), nullable=True),
        sa.Column("ip_address", sa.String(length=45), nullable=True),
        sa.Column("user_agent", sa.String(length=255), nullable=True),
        sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_activity_logs_id", "activity_logs", ["id"])
    op.create_index("ix_activity_logs_user_id", "activity_logs", ["user_id"])


def downgrade() -> None:
    """Drop the tables owned by this service. The question bank is left alone."""
    op.drop_index("ix_activity_logs_user_id", table_name="activity_logs")
    op.drop_index("ix_activity_logs_id", table_name="activity_logs")
    op.drop_table("activity_logs")

    op.drop_index("ix_test_results_test_code_id", table_name="test_results")
    op.drop_index("ix_test_results_student_id", table_name="test_results")
    op.drop_index("ix_test_results_id", table_name="test_results")
    op.drop_table("test_results")

    op.drop_index("ix_test_codes_classification", table_name="test_codes")
    op.drop_index("ix_test_codes_active", table_name="test_codes")
    op.drop_index("ix_test_codes_code", table_name="test_codes")
    op.drop_index("ix_test_codes_id", table_name="test_codes")
    op.drop_table("test_codes")
