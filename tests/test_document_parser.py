"""Tests for DOCX text extraction."""
import pytest
from docx import Document

from app.services.document_parser import TemplateParser
from app.services.placeholders import detect_placeholders


@pytest.mark.asyncio
async def test_first_and_even_page_headers_are_extracted(tmp_path):
    path = tmp_path / "template.docx"
    doc = Document()
    doc.add_paragraph("{{CONTENT}}")
    section = doc.sections[0]
    section.different_first_page_header_footer = True
    section.first_page_header.paragraphs[0].text = "{{SUMMARY}}"
    section.even_page_footer.paragraphs[0].text = "[REFERENCES]"
    doc.save(str(path))

    parsed = await TemplateParser().parse_template(str(path), ".docx")

    assert "{{SUMMARY}}" in parsed.full_text
    assert "[REFERENCES]" in parsed.full_text
    assert set(detect_placeholders(parsed.full_text)) >= {"CONTENT", "SUMMARY", "REFERENCES"}


@pytest.mark.asyncio
async def test_unsupported_type_is_rejected(tmp_path):
    with pytest.raises(ValueError, match="Unsupported"):
        await TemplateParser().parse_template(str(tmp_path / "x.pdf"), ".pdf")
