"""
Document assembly: fill a DOCX template with generated content, then convert
the result to PDF with the office converter.

Artifacts are job-addressed::

    OUTPUT_DIR/<job_id>/document-<job_id>.docx
    OUTPUT_DIR/<job_id>/document-<job_id>.pdf

so two jobs can never overwrite each other's files.
"""
from __future__ import annotations

import asyncio
import dataclasses
import logging
import os
import shutil
import tempfile
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Protocol, Sequence, Tuple

from docx import Document as DocxDocument
from docx.text.paragraph import Paragraph

from app.services.document_parser import iter_paragraphs
from app.services.errors import ConversionFailed
from app.services.placeholders import MARKER_PATTERN, marker_name

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Artifact locations
# ---------------------------------------------------------------------------

@dataclasses.dataclass(frozen=True)
class ArtifactPaths:
    """Where the two output formats of one job live."""

    output_dir: str
    docx_path: str
    pdf_path: str

    @property
    def docx_filename(self) -> str:
        return os.path.basename(self.docx_path)

    @property
    def pdf_filename(self) -> str:
        return os.path.basename(self.pdf_path)


class ArtifactStore:
    """Job-addressed file layout under a base output directory."""

    def __init__(self, base_dir: str) -> None:
        self.base_dir = base_dir

    def paths_for_job(self, job_id: int) -> ArtifactPaths:
        output_dir = os.path.join(self.base_dir, str(job_id))
        stem = f"document-{job_id}"
        return ArtifactPaths(
            output_dir=output_dir,
            docx_path=os.path.join(output_dir, f"{stem}.docx"),
            pdf_path=os.path.join(output_dir, f"{stem}.pdf"),
        )

    def prepare(self, job_id: int) -> ArtifactPaths:
        """Create the job directory and remove artifacts of any earlier run."""
        paths = self.paths_for_job(job_id)
        os.makedirs(paths.output_dir, exist_ok=True)
        for stale in (paths.docx_path, paths.pdf_path):
            if os.path.exists(stale):
                os.remove(stale)
                logger.info("Removed stale artifact %s", stale)
        return paths


# ---------------------------------------------------------------------------
# Content merging
# ---------------------------------------------------------------------------

@dataclasses.dataclass(frozen=True)
class SectionPiece:
    """One generated block as seen by the assembler."""

    topic_name: str
    section_name: str
    content: str
    word_count: int = 0


def merge_section_content(pieces: Sequence[SectionPiece], topic_count: int) -> Dict[str, str]:
    """
    Build the section-name -> text mapping used to fill the template.

    Content for the same section is concatenated in the order the pieces were
    generated (topic order).  With more than one topic each block is headed by
    its topic name so the reader can tell them apart.
    """
    blocks: Dict[str, List[str]] = {}
    for piece in pieces:
        text = piece.content
        if topic_count > 1:
            text = f"{piece.topic_name}\n{text}"
        blocks.setdefault(piece.section_name, []).append(text)
    return {name: "\n\n".join(parts) for name, parts in blocks.items()}


# ---------------------------------------------------------------------------
# Fill
# ---------------------------------------------------------------------------

def _replace_markers(text: str, content: Dict[str, str]) -> str:
    def _sub(match):
        name = marker_name(match)
        return content[name] if name in content else match.group(0)

    return MARKER_PATTERN.sub(_sub, text)


def _known_marker_spans(text: str, content: Dict[str, str]) -> List[Tuple[int, int]]:
    return [m.span() for m in MARKER_PATTERN.finditer(text) if marker_name(m) in content]


def _run_bounds(runs: Sequence) -> List[Tuple[int, int]]:
    bounds = []
    start = 0
    for run in runs:
        end = start + len(run.text)
        bounds.append((start, end))
        start = end
    return bounds


def _fill_paragraph(para: Paragraph, content: Dict[str, str]) -> bool:
    """Replace known markers in *para*; returns True if anything changed."""
    runs = para.runs
    if not runs:
        return False

    joined = "".join(run.text for run in runs)
    spans = _known_marker_spans(joined, content)
    if not spans:
        return False

    # Markers typed in one go sit inside a single run: keep run formatting.
    bounds = _run_bounds(runs)
    owners = []
    for start, end in spans:
        owner = next(
            (i for i, (lo, hi) in enumerate(bounds) if lo <= start and end <= hi), None
        )
        if owner is None:
            break
        owners.append(owner)
    else:
        for i in sorted(set(owners)):
            runs[i].text = _replace_markers(runs[i].text, content)
        return True

    # A marker is split across runs (spell-check, partial formatting): collapse
    # the paragraph text into its first run.
    runs[0].text = _replace_markers(joined, content)
    for run in runs[1:]:
        run.text = ""
    return True


def fill_template(template_path: str, content: Dict[str, str], output_path: str) -> int:
    """
    Write a copy of *template_path* with every known marker replaced.

    Newlines in content become line breaks.  Markers whose name is not in
    *content* are left untouched.  Returns the number of paragraphs changed.
    """
    try:
        doc = DocxDocument(template_path)
    except Exception as exc:
        raise RuntimeError(f"Cannot open template {template_path}: {exc}") from exc

    seen = set()
    changed = 0
    for para in iter_paragraphs(doc):
        if para._p in seen:
            continue
        seen.add(para._p)
        if _fill_paragraph(para, content):
            changed += 1

    doc.save(output_path)
    logger.info("DOCX template filled: %s (%d paragraph(s) changed)", output_path, changed)
    return changed


# ---------------------------------------------------------------------------
# Convert
# ---------------------------------------------------------------------------

class DocumentConverter(Protocol):
    """Turns a DOCX file into a PDF inside *output_dir*; returns the PDF path."""

    def is_available(self) -> bool:
        ...

    async def convert(self, source_path: str, output_dir: str) -> str:
        ...


class LibreOfficeConverter:
    """Headless LibreOffice ``--convert-to pdf``."""

    def __init__(self, binary: str, timeout: float = 180.0) -> None:
        self.binary = binary
        self.timeout = timeout

    def is_available(self) -> bool:
        return shutil.which(self.binary) is not None or os.path.isfile(self.binary)

    async def convert(self, source_path: str, output_dir: str) -> str:
        expected = os.path.join(output_dir, f"{Path(source_path).stem}.pdf")
        # Only a file written by this run counts as output.
        if os.path.exists(expected):
            os.remove(expected)

        # Separate profile per run: concurrent soffice processes sharing one
        # profile exit immediately without converting.
        profile_dir = tempfile.mkdtemp(prefix="lo-profile-")
        cmd = [
            self.binary,
            f"-env:UserInstallation={Path(profile_dir).resolve().as_uri()}",
            "--headless",
            "--convert-to",
            "pdf",
            "--outdir",
            output_dir,
            source_path,
        ]

        try:
            try:
                proc = await asyncio.create_subprocess_exec(
                    *cmd,
                    stdout=asyncio.subprocess.PIPE,
                    stderr=asyncio.subprocess.PIPE,
                )
            except OSError as exc:
                raise ConversionFailed(
                    f"Failed to convert DOCX to PDF. Ensure LibreOffice is installed ({exc})."
                ) from exc

            try:
                _stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=self.timeout)
            except asyncio.TimeoutError as exc:
                proc.kill()
                await proc.wait()
                raise ConversionFailed(
                    f"PDF conversion timed out after {self.timeout:.0f}s"
                ) from exc

            if proc.returncode != 0:
                logger.warning(
                    "LibreOffice exited with %d: %s",
                    proc.returncode,
                    stderr.decode(errors="replace")[:300],
                )
        finally:
            shutil.rmtree(profile_dir, ignore_errors=True)

        if not os.path.exists(expected):
            raise ConversionFailed("PDF conversion failed - output file not found")

        logger.info("DOCX converted to PDF: %s", expected)
        return expected


# ---------------------------------------------------------------------------
# Assembler
# ---------------------------------------------------------------------------

class DocumentAssembler:
    """Fill + convert for one job; both steps must succeed."""

    def __init__(self, artifacts: ArtifactStore, converter: DocumentConverter) -> None:
        self.artifacts = artifacts
        self.converter = converter

    async def assemble(
        self,
        job_id: int,
        template_path: str,
        pieces: Iterable[SectionPiece],
        topic_count: int,
    ) -> ArtifactPaths:
        """
        Produce the DOCX and PDF artifacts of *job_id*.

        Raises:
            RuntimeError:     the template could not be read or filled.
            ConversionFailed: the converter produced no PDF.
        """
        content = merge_section_content(list(pieces), topic_count)
        paths = self.artifacts.prepare(job_id)

        await asyncio.to_thread(fill_template, template_path, content, paths.docx_path)

        pdf_path: Optional[str] = await self.converter.convert(paths.docx_path, paths.output_dir)
        if not pdf_path or not os.path.exists(pdf_path):
            raise ConversionFailed("PDF conversion failed - output file not found")

        return ArtifactPaths(
            output_dir=paths.output_dir,
            docx_path=paths.docx_path,
            pdf_path=pdf_path,
        )
