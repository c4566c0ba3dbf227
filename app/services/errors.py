"""
Domain errors raised by the generation pipeline.

Ingestion errors (``NoPlaceholdersFound``) are turned into HTTP responses by
the routers; ``NotFound`` becomes a 404 in the application exception
handler.  ``GenerationFailed`` and ``ConversionFailed`` are raised inside
the background pipeline and recorded on the job by the orchestrator.
"""
from __future__ import annotations


class DraftsmithError(Exception):
    """Base class for all domain errors."""


class NoPlaceholdersFound(DraftsmithError):
    """Template text contains no recognised section marker."""

    def __init__(self, message: str = "No section placeholders detected in template. Use {{SECTION}} format.") -> None:
        super().__init__(message)


class NotFound(DraftsmithError):
    """A template or job does not exist for the requesting owner."""

    def __init__(self, kind: str, item_id: object) -> None:
        self.kind = kind
        self.item_id = item_id
        super().__init__(f"{kind} not found")


class GenerationFailed(DraftsmithError):
    """The content provider could not produce text for a section."""

    def __init__(self, reason: str, *, topic: str = "", section: str = "") -> None:
        self.reason = reason
        self.topic = topic
        self.section = section
        if section:
            message = f"AI content generation failed for section {section}: {reason}"
        else:
            message = f"AI content generation failed: {reason}"
        super().__init__(message)


class ConversionFailed(DraftsmithError):
    """The office converter did not produce the expected output file."""


class InvalidTransition(DraftsmithError):
    """A job status change that the state machine does not allow."""

    def __init__(self, job_id: int, target: str) -> None:
        self.job_id = job_id
        self.target = target
        super().__init__(f"Job {job_id} cannot move to '{target}' from its current status")
