"""
Template text extraction for DOCX files.

Collects the raw text a user sees in a template (body paragraphs, table
cells, headers and footers) so that placeholder markers can be detected, and
derives the word count / page estimate stored with the template.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List

from docx import Document as DocxDocument
from docx.document import Document as DocxDocumentType
from docx.table import Table
from docx.text.paragraph import Paragraph

from app.services.word_budget import pages_for_words
from app.utils.helpers import count_words

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Data structures
# ---------------------------------------------------------------------------

@dataclass
class ParsedTemplate:
    """
    Output of the TemplateParser.

    Attributes:
        full_text:  Text of every paragraph, one per line, in reading order.
        metadata:   Dict with keys: word_count, page_count, paragraph_count,
                    table_count, title, author.
    """

    full_text: str
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def word_count(self) -> int:
        return self.metadata.get("word_count", 0)

    @property
    def page_count(self) -> int:
        return self.metadata.get("page_count", 1)


# ---------------------------------------------------------------------------
# Paragraph walking (shared with the assembler)
# ---------------------------------------------------------------------------

def _table_paragraphs(table: Table) -> Iterator[Paragraph]:
    for row in table.rows:
        for cell in row.cells:
            yield from cell.paragraphs
            for nested in cell.tables:
                yield from _table_paragraphs(nested)


def iter_paragraphs(doc: DocxDocumentType) -> Iterator[Paragraph]:
    """
    Yield every paragraph of *doc*: body, tables, then headers and footers.

    Merged table cells are reported once per grid position by python-docx, so
    the same paragraph may be yielded more than once.
    """
    yield from doc.paragraphs
    for table in doc.tables:
        yield from _table_paragraphs(table)

    for section in doc.sections:
        for part in (
            section.header,
            section.first_page_header,
            section.even_page_header,
            section.footer,
            section.first_page_footer,
            section.even_page_footer,
        ):
            if part.is_linked_to_previous:
                continue
            yield from part.paragraphs
            for table in part.tables:
                yield from _table_paragraphs(table)


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------

class TemplateParser:
    """Parses DOCX templates into ParsedTemplate objects."""

    async def parse_template(self, file_path: str, file_type: str) -> ParsedTemplate:
        """
        Parse a template file and return its text and metadata.

        Args:
            file_path: Path to the file on disk.
            file_type: Extension with or without dot, e.g. ".docx".

        Raises:
            ValueError:   Unsupported file type.
            RuntimeError: Unreadable or corrupt file.
        """
        ft = file_type.lower().lstrip(".")
        if ft != "docx":
            raise ValueError(f"Unsupported file type: {file_type!r}")
        return self._parse_docx(file_path)

    def _parse_docx(self, file_path: str) -> ParsedTemplate:
        try:
            doc = DocxDocument(file_path)
        except Exception as exc:
            raise RuntimeError(f"Cannot open DOCX file: {exc}") from exc

        # Merged cells repeat the same underlying XML element
        seen = set()
        lines: List[str] = []
        for para in iter_paragraphs(doc):
            if para._p in seen:
                continue
            seen.add(para._p)
            if para.text.strip():
                lines.append(para.text)

        full_text = "\n".join(lines)
        word_count = count_words(full_text)

        core = doc.core_properties
        metadata: Dict[str, Any] = {
            "word_count": word_count,
            "page_count": max(1, pages_for_words(word_count)),
            "paragraph_count": len(doc.paragraphs),
            "table_count": len(doc.tables),
            "title": core.title or "",
            "author": core.author or "",
        }

        logger.info(
            "Parsed DOCX template %s: %d words, %d table(s)",
            file_path,
            word_count,
            metadata["table_count"],
        )
        return ParsedTemplate(full_text=full_text, metadata=metadata)
