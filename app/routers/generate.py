"""
Document generation endpoints.

Route summary
-------------
POST /                        — accept a generation request; runs in the background.
GET  /{id}                    — job status, generated sections and metadata.
GET  /{id}/download/{format}  — download the DOCX or PDF of a completed job.
"""
from __future__ import annotations

import logging
import os
from enum import Enum

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import FileResponse
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.database import get_db
from app.dependencies.auth import get_current_user_id
from app.dependencies.generation import get_orchestrator
from app.models.database_models import GenerationJob, JobStatus
from app.models.schemas import (
    GenerateDocumentAccepted,
    GenerateDocumentRequest,
    GeneratedSectionResponse,
    GenerationJobResponse,
    JobMetadata,
    TopicResponse,
)
from app.services.content_generator import Topic
from app.services.errors import NotFound
from app.services.job_runner import JobAlreadyRunning
from app.services.orchestrator import GenerationOrchestrator, GenerationPlan

logger = logging.getLogger(__name__)

router = APIRouter()


class DownloadFormat(str, Enum):
    DOCX = "docx"
    PDF = "pdf"


_MEDIA_TYPES = {
    DownloadFormat.DOCX: "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    DownloadFormat.PDF: "application/pdf",
}


def job_metadata(job: GenerationJob) -> JobMetadata:
    return JobMetadata(
        total_word_count=job.total_word_count or 0,
        generation_time_ms=job.generation_time_ms or 0,
        error=job.error_message,
    )


def _job_to_response(job: GenerationJob) -> GenerationJobResponse:
    return GenerationJobResponse(
        id=job.id,
        template_id=job.template_id,
        topics=[TopicResponse(**t) for t in job.topics],
        requested_pages=job.requested_pages,
        status=job.status,
        generated_content=[
            GeneratedSectionResponse.model_validate(s) for s in job.generated_sections
        ],
        docx_filename=job.docx_filename,
        pdf_filename=job.pdf_filename,
        metadata=job_metadata(job),
        created_at=job.created_at,
        completed_at=job.completed_at,
    )


async def _get_owned_job(job_id: int, user_id: str, db: AsyncSession) -> GenerationJob:
    result = await db.execute(
        select(GenerationJob)
        .options(selectinload(GenerationJob.generated_sections))
        .where(GenerationJob.id == job_id, GenerationJob.user_id == user_id)
    )
    job = result.scalar_one_or_none()
    if job is None:
        raise NotFound("Document", job_id)
    return job


# ---------------------------------------------------------------------------
# POST /
# ---------------------------------------------------------------------------

@router.post(
    "/",
    response_model=GenerateDocumentAccepted,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Start generating a document from a template",
)
async def generate_document(
    body: GenerateDocumentRequest,
    user_id: str = Depends(get_current_user_id),
    orchestrator: GenerationOrchestrator = Depends(get_orchestrator),
) -> GenerateDocumentAccepted:
    """
    Create a generation job and run it in the background.

    The response is returned as soon as the job exists; poll
    ``GET /api/generate/{id}`` until the status is ``completed`` or ``failed``.
    """
    template = await orchestrator.templates.get(body.template_id, user_id)
    if template is None:
        raise NotFound("Template", body.template_id)

    topics = [Topic(name=t.name, style=t.style) for t in body.topics]
    plan = GenerationPlan.from_template(template, topics, body.requested_pages)

    job_id = await orchestrator.jobs.create(
        user_id=user_id,
        template_id=template.id,
        topics=topics,
        requested_pages=body.requested_pages,
    )

    try:
        orchestrator.start(job_id, plan)
    except JobAlreadyRunning as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))

    logger.info(
        "Document generation started: job=%d user=%s template=%d topics=%d pages=%d",
        job_id,
        user_id,
        template.id,
        len(topics),
        body.requested_pages,
    )

    return GenerateDocumentAccepted(document_id=job_id, status=JobStatus.PROCESSING)


# ---------------------------------------------------------------------------
# GET /{id}
# ---------------------------------------------------------------------------

@router.get("/{job_id}", response_model=GenerationJobResponse)
async def get_document(
    job_id: int,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> GenerationJobResponse:
    """Job status and preview; file paths are never exposed."""
    job = await _get_owned_job(job_id, user_id, db)
    return _job_to_response(job)


# ---------------------------------------------------------------------------
# GET /{id}/download/{format}
# ---------------------------------------------------------------------------

@router.get("/{job_id}/download/{file_format}")
async def download_document(
    job_id: int,
    file_format: DownloadFormat,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> FileResponse:
    """Download one artifact of a completed job."""
    job = await _get_owned_job(job_id, user_id, db)

    if job.status != JobStatus.COMPLETED:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Document is {job.status.value}",
        )

    if file_format == DownloadFormat.PDF:
        file_path, filename = job.pdf_path, job.pdf_filename
    else:
        file_path, filename = job.docx_path, job.docx_filename

    if not file_path or not filename or not os.path.exists(file_path):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="File not found",
        )

    return FileResponse(file_path, filename=filename, media_type=_MEDIA_TYPES[file_format])
