"""
Per-user generation history and statistics.
"""
import logging

from fastapi import APIRouter, Depends, Query
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.dependencies.auth import get_current_user_id
from app.models.database_models import GenerationJob, JobStatus, Template
from app.models.schemas import (
    HistoryResponse,
    JobSummaryResponse,
    Pagination,
    StatsResponse,
    TopicResponse,
)
from app.routers.generate import job_metadata
from app.utils.helpers import total_pages

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/history", response_model=HistoryResponse)
async def get_history(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> HistoryResponse:
    """
    The caller's generation jobs, newest first.

    Jobs whose template was deleted are still listed with ``template_name``
    set to ``None``.
    """
    total = await db.scalar(
        select(func.count(GenerationJob.id)).where(GenerationJob.user_id == user_id)
    ) or 0

    result = await db.execute(
        select(GenerationJob, Template.original_name)
        .outerjoin(Template, GenerationJob.template_id == Template.id)
        .where(GenerationJob.user_id == user_id)
        .order_by(GenerationJob.created_at.desc(), GenerationJob.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    )

    documents = [
        JobSummaryResponse(
            id=job.id,
            template_id=job.template_id,
            template_name=template_name,
            topics=[TopicResponse(**t) for t in job.topics],
            requested_pages=job.requested_pages,
            status=job.status,
            metadata=job_metadata(job),
            created_at=job.created_at,
            completed_at=job.completed_at,
        )
        for job, template_name in result.all()
    ]

    return HistoryResponse(
        documents=documents,
        pagination=Pagination(
            page=page,
            limit=limit,
            total=total,
            pages=total_pages(total, limit),
        ),
    )


@router.get("/stats", response_model=StatsResponse)
async def get_stats(
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> StatsResponse:
    """Document counts per status and the words produced by completed jobs."""
    rows = await db.execute(
        select(GenerationJob.status, func.count(GenerationJob.id))
        .where(GenerationJob.user_id == user_id)
        .group_by(GenerationJob.status)
    )
    by_status = {s.value: 0 for s in JobStatus}
    for job_status, count in rows.all():
        by_status[JobStatus(job_status).value] = count

    total_words = await db.scalar(
        select(func.coalesce(func.sum(GenerationJob.total_word_count), 0)).where(
            GenerationJob.user_id == user_id,
            GenerationJob.status == JobStatus.COMPLETED,
        )
    )

    return StatsResponse(
        total_documents=sum(by_status.values()),
        total_words=int(total_words or 0),
        by_status=by_status,
    )
