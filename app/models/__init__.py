"""Database and schema models for Draftsmith."""
from app.models.database_models import (
    User,
    Template,
    GenerationJob,
    GeneratedSection,
    JobStatus,
    FormatStyle,
)
from app.models.schemas import (
    SectionSchema,
    TemplateResponse,
    TopicInput,
    GenerateDocumentRequest,
    GenerateDocumentAccepted,
    GenerationJobResponse,
    HistoryResponse,
    StatsResponse,
    HealthCheckResponse,
)

__all__ = [
    # Database models
    "User",
    "Template",
    "GenerationJob",
    "GeneratedSection",
    "JobStatus",
    "FormatStyle",
    # Pydantic schemas
    "SectionSchema",
    "TemplateResponse",
    "TopicInput",
    "GenerateDocumentRequest",
    "GenerateDocumentAccepted",
    "GenerationJobResponse",
    "HistoryResponse",
    "StatsResponse",
    "HealthCheckResponse",
]
