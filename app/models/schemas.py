"""
Pydantic schemas for request/response validation.
"""
from pydantic import BaseModel, Field, ConfigDict
from typing import Optional, List, Dict
from datetime import datetime

from app.models.database_models import FormatStyle, JobStatus


# Template Schemas
class SectionSchema(BaseModel):
    """A placeholder section detected in a template."""

    name: str
    placeholder: str
    required: bool = True


class TemplateResponse(BaseModel):
    """Schema for template responses (the file path is never exposed)."""

    id: int
    original_name: str
    file_type: str
    file_size: int
    sections: List[SectionSchema]
    page_count: int
    times_used: int = 0
    last_used_at: Optional[datetime] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class TemplateDeleteResponse(BaseModel):
    """Schema for template deletion."""

    id: int
    message: str = "Template deleted successfully"


# Generation Schemas
class TopicInput(BaseModel):
    """One topic of a generation request."""

    name: str = Field(..., min_length=1, max_length=200)
    style: FormatStyle

    model_config = ConfigDict(str_strip_whitespace=True)


class GenerateDocumentRequest(BaseModel):
    """Schema for POST /api/generate."""

    template_id: int = Field(..., ge=1)
    topics: List[TopicInput] = Field(..., min_length=1, max_length=10)
    requested_pages: int = Field(..., ge=1, le=50)


class GenerateDocumentAccepted(BaseModel):
    """Immediate acknowledgment returned while the job runs in the background."""

    document_id: int
    status: JobStatus
    message: str = "Document generation started"


class TopicResponse(BaseModel):
    """A topic as stored on a job."""

    name: str
    style: FormatStyle


class GeneratedSectionResponse(BaseModel):
    """Schema for one generated section."""

    section_name: str
    topic_name: str
    content: str
    word_count: int

    model_config = ConfigDict(from_attributes=True)


class JobMetadata(BaseModel):
    """Aggregate figures and the failure reason of a job."""

    total_word_count: int = 0
    generation_time_ms: int = 0
    error: Optional[str] = None


class GenerationJobResponse(BaseModel):
    """Schema for job status and preview."""

    id: int
    template_id: Optional[int] = None
    topics: List[TopicResponse]
    requested_pages: int
    status: JobStatus
    generated_content: List[GeneratedSectionResponse] = Field(default_factory=list)
    docx_filename: Optional[str] = None
    pdf_filename: Optional[str] = None
    metadata: JobMetadata
    created_at: datetime
    completed_at: Optional[datetime] = None


class JobSummaryResponse(BaseModel):
    """Job row for history listings (no generated content)."""

    id: int
    template_id: Optional[int] = None
    template_name: Optional[str] = None
    topics: List[TopicResponse]
    requested_pages: int
    status: JobStatus
    metadata: JobMetadata
    created_at: datetime
    completed_at: Optional[datetime] = None


# User Schemas
class Pagination(BaseModel):
    """Pagination block for list responses."""

    page: int
    limit: int
    total: int
    pages: int


class HistoryResponse(BaseModel):
    """Schema for GET /api/users/history."""

    documents: List[JobSummaryResponse]
    pagination: Pagination


class StatsResponse(BaseModel):
    """Schema for GET /api/users/stats."""

    total_documents: int
    total_words: int
    by_status: Dict[str, int]


# Health Check Schema
class HealthCheckResponse(BaseModel):
    """Schema for health check response."""

    status: str
    database: str
    provider: str
    converter: str
    timestamp: datetime
