"""
SQLAlchemy ORM models for the Draftsmith database.
"""
from sqlalchemy import (
    Column,
    Integer,
    String,
    Text,
    DateTime,
    ForeignKey,
    UniqueConstraint,
    Enum as SQLEnum,
    JSON,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import enum

from app.database import Base


# Enums
class JobStatus(str, enum.Enum):
    """Lifecycle states of a generation job."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class FormatStyle(str, enum.Enum):
    """How the generated content of a topic should be laid out."""

    BULLETS = "bullets"
    BULLETS_PARAGRAPH = "bullets-paragraph"
    PARAGRAPH = "paragraph"


def _enum_values(enum_cls):
    return [member.value for member in enum_cls]


# Models
class User(Base):
    """User account (identity supplied by the fronting auth layer)."""

    __tablename__ = "users"

    id = Column(String(255), primary_key=True)
    email = Column(String(255), nullable=False, unique=True, index=True)
    name = Column(String(255), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    # Relationships
    templates = relationship("Template", back_populates="user", cascade="all, delete-orphan")
    jobs = relationship("GenerationJob", back_populates="user", cascade="all, delete-orphan")


class Template(Base):
    """Uploaded document template with its detected placeholder sections."""

    __tablename__ = "templates"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(255), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    filename = Column(String(255), nullable=False, unique=True)  # UUID name on disk
    original_name = Column(String(255), nullable=False)
    file_type = Column(String(50), nullable=False)
    file_path = Column(String(512), nullable=False)
    file_size = Column(Integer, nullable=False)
    # [{"name": "OBJECTIVE", "placeholder": "{{OBJECTIVE}}", "required": true}, ...]
    sections = Column(JSON, nullable=False)
    page_count = Column(Integer, nullable=False, default=1)

    # Usage counters (the only mutable fields)
    times_used = Column(Integer, nullable=False, default=0, server_default="0")
    last_used_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    # Relationships
    user = relationship("User", back_populates="templates")
    jobs = relationship("GenerationJob", back_populates="template")


class GenerationJob(Base):
    """One request to generate a document from a template."""

    __tablename__ = "generation_jobs"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(255), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    template_id = Column(
        Integer, ForeignKey("templates.id", ondelete="SET NULL"), nullable=True, index=True
    )
    # [{"name": "...", "style": "bullets"}, ...]
    topics = Column(JSON, nullable=False)
    requested_pages = Column(Integer, nullable=False)
    status = Column(
        SQLEnum(JobStatus, name="jobstatus", values_callable=_enum_values),
        nullable=False,
        default=JobStatus.PENDING,
        index=True,
    )

    # Artifacts
    docx_path = Column(String(512), nullable=True)
    pdf_path = Column(String(512), nullable=True)
    docx_filename = Column(String(255), nullable=True)
    pdf_filename = Column(String(255), nullable=True)

    # Metadata
    total_word_count = Column(Integer, nullable=False, default=0, server_default="0")
    generation_time_ms = Column(Integer, nullable=False, default=0, server_default="0")
    error_message = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    completed_at = Column(DateTime(timezone=True), nullable=True)

    # Relationships
    user = relationship("User", back_populates="jobs")
    template = relationship("Template", back_populates="jobs")
    generated_sections = relationship(
        "GeneratedSection",
        back_populates="job",
        cascade="all, delete-orphan",
        order_by="GeneratedSection.position",
    )


class GeneratedSection(Base):
    """Content produced by one provider call, appended to its job in call order."""

    __tablename__ = "generated_sections"
    __table_args__ = (
        UniqueConstraint("job_id", "position", name="uq_generated_sections_job_position"),
    )

    id = Column(Integer, primary_key=True, index=True)
    job_id = Column(
        Integer, ForeignKey("generation_jobs.id", ondelete="CASCADE"), nullable=False, index=True
    )
    position = Column(Integer, nullable=False)
    section_name = Column(String(255), nullable=False)
    topic_name = Column(String(255), nullable=False)
    content = Column(Text, nullable=False)
    word_count = Column(Integer, nullable=False)

    # Relationships
    job = relationship("GenerationJob", back_populates="generated_sections")
