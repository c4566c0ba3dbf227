"""
Generation orchestrator: drives one job from ``pending`` to a terminal state.

State machine
-------------
    pending ──► processing ──► completed
       │             │
       └─────────────┴──────► failed

``processing`` is written right before the first provider call.  Provider
calls are strictly sequential (for each topic in request order, for each
section in template order) with ``call_delay`` seconds between two calls.
Each result is appended to the job as soon as it arrives, so a later failure
leaves the earlier sections on record.  Any exception inside the run is
caught here, logged, and stored as the job's error message; nothing is
raised back to the request that created the job.
"""
from __future__ import annotations

import asyncio
import dataclasses
import logging
import time
from typing import Awaitable, Callable, List, Optional, Sequence, Tuple

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.config import Settings
from app.models.database_models import JobStatus, Template
from app.services.content_generator import ContentGenerator, Topic
from app.services.content_provider import ContentProvider
from app.services.document_assembler import (
    ArtifactStore,
    DocumentAssembler,
    DocumentConverter,
    LibreOfficeConverter,
    SectionPiece,
)
from app.services.errors import InvalidTransition
from app.services.job_runner import JobRunner
from app.services.job_store import JobStore, TemplateStore
from app.services.placeholders import Section
from app.services.word_budget import allocate, words_for_pages
from app.utils.helpers import truncate_text

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Plan
# ---------------------------------------------------------------------------

@dataclasses.dataclass(frozen=True)
class GenerationPlan:
    """Everything a run needs, captured when the request is accepted."""

    template_id: int
    template_path: str
    sections: Tuple[Section, ...]
    topics: Tuple[Topic, ...]
    requested_pages: int

    @classmethod
    def from_template(
        cls,
        template: Template,
        topics: Sequence[Topic],
        requested_pages: int,
    ) -> "GenerationPlan":
        return cls(
            template_id=template.id,
            template_path=template.file_path,
            sections=tuple(Section.from_dict(s) for s in template.sections),
            topics=tuple(topics),
            requested_pages=requested_pages,
        )

    @property
    def section_names(self) -> List[str]:
        return [section.name for section in self.sections]


# ---------------------------------------------------------------------------
# Orchestrator
# ---------------------------------------------------------------------------

class GenerationOrchestrator:
    """Runs the acquisition → assembly pipeline for one job at a time per task."""

    def __init__(
        self,
        jobs: JobStore,
        templates: TemplateStore,
        generator: ContentGenerator,
        assembler: DocumentAssembler,
        runner: JobRunner,
        call_delay: float = 1.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.jobs = jobs
        self.templates = templates
        self.generator = generator
        self.assembler = assembler
        self.runner = runner
        self.call_delay = call_delay
        self._sleep = sleep

    def start(self, job_id: int, plan: GenerationPlan) -> asyncio.Task:
        """Detach the run of *job_id*; returns the background task handle."""
        return self.runner.submit(job_id, self.run(job_id, plan))

    async def run(self, job_id: int, plan: GenerationPlan) -> Optional[JobStatus]:
        """
        Execute the whole pipeline for *job_id* and return its terminal status.

        Returns None without touching the job if it is no longer pending.
        """
        started = time.monotonic()

        try:
            await self.jobs.transition(job_id, JobStatus.PROCESSING)
        except InvalidTransition:
            logger.warning("Job %d is not pending; refusing to run it", job_id)
            return None

        try:
            pieces = await self._acquire_sections(job_id, plan)
            paths = await self.assembler.assemble(
                job_id, plan.template_path, pieces, topic_count=len(plan.topics)
            )
            elapsed_ms = _elapsed_ms(started)
            await self.jobs.transition(
                job_id,
                JobStatus.COMPLETED,
                docx_path=paths.docx_path,
                pdf_path=paths.pdf_path,
                docx_filename=paths.docx_filename,
                pdf_filename=paths.pdf_filename,
                total_word_count=sum(p.word_count for p in pieces),
                generation_time_ms=elapsed_ms,
            )
        except Exception as exc:
            await self._record_failure(job_id, exc, started)
            return JobStatus.FAILED

        logger.info(
            "Document generation completed: job=%d sections=%d duration=%dms",
            job_id,
            len(pieces),
            elapsed_ms,
        )

        try:
            await self.templates.increment_usage(plan.template_id)
        except Exception as exc:
            logger.error(
                "Job %d completed but template %d usage was not recorded: %s",
                job_id,
                plan.template_id,
                exc,
            )
        return JobStatus.COMPLETED

    async def _acquire_sections(self, job_id: int, plan: GenerationPlan) -> List[SectionPiece]:
        total_words = words_for_pages(plan.requested_pages)
        budgets = allocate(total_words, plan.section_names)

        logger.info(
            "Job %d: %d topic(s) x %d section(s), %d target words",
            job_id,
            len(plan.topics),
            len(plan.sections),
            total_words,
        )

        pieces: List[SectionPiece] = []
        for topic in plan.topics:
            for section in plan.sections:
                if pieces and self.call_delay > 0:
                    await self._sleep(self.call_delay)

                result = await self.generator.generate_section(
                    topic.name, section.name, topic.style, budgets[section.name]
                )
                await self.jobs.append_section(
                    job_id,
                    position=len(pieces),
                    section_name=section.name,
                    topic_name=topic.name,
                    content=result.content,
                    word_count=result.word_count,
                )
                pieces.append(
                    SectionPiece(
                        topic_name=topic.name,
                        section_name=section.name,
                        content=result.content,
                        word_count=result.word_count,
                    )
                )
        return pieces

    async def _record_failure(self, job_id: int, exc: BaseException, started: float) -> None:
        message = truncate_text(str(exc) or exc.__class__.__name__, 1000)
        logger.error("Document generation failed: job=%d error=%s", job_id, message)
        try:
            await self.jobs.transition(
                job_id,
                JobStatus.FAILED,
                error_message=message,
                generation_time_ms=_elapsed_ms(started),
            )
        except Exception as store_exc:
            logger.error("Could not mark job %d as failed: %s", job_id, store_exc)

    async def record_crash(self, job_id: int, exc: BaseException) -> None:
        """Last-resort handler for errors that escaped ``run``."""
        try:
            await self.jobs.transition(
                job_id, JobStatus.FAILED, error_message=truncate_text(str(exc) or repr(exc), 1000)
            )
        except InvalidTransition:
            pass


def _elapsed_ms(started: float) -> int:
    return int((time.monotonic() - started) * 1000)


# ---------------------------------------------------------------------------
# Wiring
# ---------------------------------------------------------------------------

def build_orchestrator(
    config: Settings,
    provider: ContentProvider,
    session_factory: async_sessionmaker[AsyncSession],
    converter: Optional[DocumentConverter] = None,
) -> GenerationOrchestrator:
    """Assemble the orchestrator and its collaborators from settings."""
    jobs = JobStore(session_factory)
    runner = JobRunner(max_concurrent=config.MAX_CONCURRENT_JOBS)
    orchestrator = GenerationOrchestrator(
        jobs=jobs,
        templates=TemplateStore(session_factory),
        generator=ContentGenerator(provider),
        assembler=DocumentAssembler(
            ArtifactStore(config.OUTPUT_DIR),
            converter or LibreOfficeConverter(config.LIBREOFFICE_PATH, config.CONVERSION_TIMEOUT),
        ),
        runner=runner,
        call_delay=config.GENERATION_CALL_DELAY_SECONDS,
    )
    runner.set_crash_handler(orchestrator.record_crash)
    return orchestrator
