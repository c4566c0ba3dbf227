"""
Persistence for generation jobs and template usage.

Every write goes through a short-lived session from the injected session
factory, so the background pipeline never shares a session with a request.
All updates are partial ``UPDATE ... WHERE id = :id`` statements: appending a
section, setting the status or the artifact paths never rewrites unrelated
columns.
"""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Dict, FrozenSet, Iterable, Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import selectinload

from app.models.database_models import GeneratedSection, GenerationJob, JobStatus, Template
from app.services.content_generator import Topic
from app.services.errors import InvalidTransition

logger = logging.getLogger(__name__)


# Allowed source states for each target state.  Terminal states have no
# outgoing edges, and nothing ever returns to PENDING.
ALLOWED_TRANSITIONS: Dict[JobStatus, FrozenSet[JobStatus]] = {
    JobStatus.PROCESSING: frozenset({JobStatus.PENDING}),
    JobStatus.COMPLETED: frozenset({JobStatus.PROCESSING}),
    JobStatus.FAILED: frozenset({JobStatus.PENDING, JobStatus.PROCESSING}),
}

TERMINAL_STATUSES: FrozenSet[JobStatus] = frozenset({JobStatus.COMPLETED, JobStatus.FAILED})


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class JobStore:
    """Job Status Store backed by the ``generation_jobs`` table."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def create(
        self,
        user_id: str,
        template_id: int,
        topics: Iterable[Topic],
        requested_pages: int,
    ) -> int:
        """Insert a new job in ``pending`` and return its id."""
        async with self._session_factory() as session:
            job = GenerationJob(
                user_id=user_id,
                template_id=template_id,
                topics=[topic.to_dict() for topic in topics],
                requested_pages=requested_pages,
                status=JobStatus.PENDING,
                total_word_count=0,
                generation_time_ms=0,
            )
            session.add(job)
            await session.commit()
            logger.info("Created generation job id=%d for user=%s", job.id, user_id)
            return job.id

    async def get(self, job_id: int, user_id: Optional[str] = None) -> Optional[GenerationJob]:
        """Load a job with its generated sections; scoped to *user_id* when given."""
        stmt = (
            select(GenerationJob)
            .options(selectinload(GenerationJob.generated_sections))
            .where(GenerationJob.id == job_id)
        )
        if user_id is not None:
            stmt = stmt.where(GenerationJob.user_id == user_id)

        async with self._session_factory() as session:
            result = await session.execute(stmt)
            return result.scalar_one_or_none()

    async def update(self, job_id: int, **fields) -> None:
        """Set the given columns on one job without touching the others."""
        if not fields:
            return
        async with self._session_factory() as session:
            await session.execute(
                update(GenerationJob).where(GenerationJob.id == job_id).values(**fields)
            )
            await session.commit()

    async def append_section(
        self,
        job_id: int,
        position: int,
        section_name: str,
        topic_name: str,
        content: str,
        word_count: int,
    ) -> None:
        """Durably record one generated section."""
        async with self._session_factory() as session:
            session.add(
                GeneratedSection(
                    job_id=job_id,
                    position=position,
                    section_name=section_name,
                    topic_name=topic_name,
                    content=content,
                    word_count=word_count,
                )
            )
            await session.commit()

    async def transition(self, job_id: int, target: JobStatus, **fields) -> None:
        """
        Move a job to *target*, optionally setting more columns in the same write.

        The status check is part of the UPDATE's WHERE clause, so a terminal
        job can never be moved again even by a concurrent writer.

        Raises:
            InvalidTransition: the job is missing or not in an allowed source state.
        """
        sources = ALLOWED_TRANSITIONS.get(target)
        if not sources:
            raise InvalidTransition(job_id, target.value)

        values = dict(fields, status=target)
        if target in TERMINAL_STATUSES and "completed_at" not in values:
            values["completed_at"] = utcnow()

        async with self._session_factory() as session:
            result = await session.execute(
                update(GenerationJob)
                .where(GenerationJob.id == job_id, GenerationJob.status.in_(list(sources)))
                .values(**values)
            )
            await session.commit()

        if result.rowcount != 1:
            raise InvalidTransition(job_id, target.value)
        logger.info("Job id=%d -> %s", job_id, target.value)


class TemplateStore:
    """Template lookups and usage counters."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def get(self, template_id: int, user_id: str) -> Optional[Template]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(Template).where(Template.id == template_id, Template.user_id == user_id)
            )
            return result.scalar_one_or_none()

    async def increment_usage(self, template_id: int) -> None:
        """Atomic ``times_used + 1``; safe under concurrent job completion."""
        async with self._session_factory() as session:
            await session.execute(
                update(Template)
                .where(Template.id == template_id)
                .values(times_used=Template.times_used + 1, last_used_at=utcnow())
            )
            await session.commit()
