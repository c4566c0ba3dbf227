"""initial schema

Revision ID: 001
Revises:
Create Date: 2026-10-19

All 4 tables as defined in app/models/database_models.py:
users, templates, generation_jobs, generated_sections.
"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # ── Enum types ────────────────────────────────────────────────────────
    job_status = sa.Enum("pending", "processing", "completed", "failed", name="jobstatus")
    job_status.create(op.get_bind(), checkfirst=True)

    # ── users ─────────────────────────────────────────────────────────────
    op.create_table(
        "users",
        sa.Column("id", sa.String(255), primary_key=True),
        sa.Column("email", sa.String(255), nullable=False, unique=True, index=True),
        sa.Column("name", sa.String(255), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )

    # ── templates ─────────────────────────────────────────────────────────
    op.create_table(
        "templates",
        sa.Column("id", sa.Integer, primary_key=True, index=True),
        sa.Column("user_id", sa.String(255), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("filename", sa.String(255), nullable=False, unique=True),
        sa.Column("original_name", sa.String(255), nullable=False),
        sa.Column("file_type", sa.String(50), nullable=False),
        sa.Column("file_path", sa.String(512), nullable=False),
        sa.Column("file_size", sa.Integer, nullable=False),
        sa.Column("sections", sa.JSON, nullable=False),
        sa.Column("page_count", sa.Integer, nullable=False, server_default="1"),
        sa.Column("times_used", sa.Integer, nullable=False, server_default="0"),
        sa.Column("last_used_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )

    # ── generation_jobs ───────────────────────────────────────────────────
    op.create_table(
        "generation_jobs",
        sa.Column("id", sa.Integer, primary_key=True, index=True),
        sa.Column("user_id", sa.String(255), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("template_id", sa.Integer, sa.ForeignKey("templates.id", ondelete="SET NULL"), nullable=True, index=True),
        sa.Column("topics", sa.JSON, nullable=False),
        sa.Column("requested_pages", sa.Integer, nullable=False),
        sa.Column(
            "status",
            sa.Enum("pending", "processing", "completed", "failed", name="jobstatus", create_type=False),
            nullable=False,
            server_default="pending",
            index=True,
        ),
        sa.Column("docx_path", sa.String(512), nullable=True),
        sa.Column("pdf_path", sa.String(512), nullable=True),
        sa.Column("docx_filename", sa.String(255), nullable=True),
        sa.Column("pdf_filename", sa.String(255), nullable=True),
        sa.Column("total_word_count", sa.Integer, nullable=False, server_default="0"),
        sa.Column("generation_time_ms", sa.Integer, nullable=False, server_default="0"),
        sa.Column("error_message", sa.Text, nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
    )

    # ── generated_sections ────────────────────────────────────────────────
    op.create_table(
        "generated_sections",
        sa.Column("id", sa.Integer, primary_key=True, index=True),
        sa.Column("job_id", sa.Integer, sa.ForeignKey("generation_jobs.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("position", sa.Integer, nullable=False),
        sa.Column("section_name", sa.String(255), nullable=False),
        sa.Column("topic_name", sa.String(255), nullable=False),
        sa.Column("content", sa.Text, nullable=False),
        sa.Column("word_count", sa.Integer, nullable=False),
        sa.UniqueConstraint("job_id", "position", name="uq_generated_sections_job_position"),
    )


def downgrade() -> None:
    op.drop_table("generated_sections")
    op.drop_table("generation_jobs")
    op.drop_table("templates")
    op.drop_table("users")

    op.execute("DROP TYPE IF EXISTS jobstatus")
