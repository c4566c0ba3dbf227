"""Tests for DOCX filling, content merging and PDF conversion."""
import os
import shutil

import pytest
from docx import Document

from app.services.document_assembler import (
    ArtifactStore,
    DocumentAssembler,
    LibreOfficeConverter,
    SectionPiece,
    fill_template,
    merge_section_content,
)
from app.services.errors import ConversionFailed
from tests.conftest import FakeConverter


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _all_text(path: str) -> str:
    doc = Document(path)
    parts = [p.text for p in doc.paragraphs]
    for table in doc.tables:
        for row in table.rows:
            for cell in row.cells:
                parts.extend(p.text for p in cell.paragraphs)
    return "\n".join(parts)


# ---------------------------------------------------------------------------
# Merge
# ---------------------------------------------------------------------------

def test_merge_single_topic_has_no_topic_heading():
    pieces = [
        SectionPiece("Solar", "OBJECTIVE", "Aim."),
        SectionPiece("Solar", "CONTENT", "Body."),
    ]
    assert merge_section_content(pieces, topic_count=1) == {
        "OBJECTIVE": "Aim.",
        "CONTENT": "Body.",
    }


def test_merge_multiple_topics_in_topic_order():
    pieces = [
        SectionPiece("Solar", "CONTENT", "Sun text."),
        SectionPiece("Wind", "CONTENT", "Wind text."),
    ]
    merged = merge_section_content(pieces, topic_count=2)
    assert merged == {"CONTENT": "Solar\nSun text.\n\nWind\nWind text."}


# ---------------------------------------------------------------------------
# Fill
# ---------------------------------------------------------------------------

def test_fill_replaces_markers_in_body_and_tables(tmp_path):
    src = tmp_path / "template.docx"
    doc = Document()
    doc.add_paragraph("Objective: {{OBJECTIVE}}")
    table = doc.add_table(rows=1, cols=1)
    table.cell(0, 0).text = "[REFERENCES]"
    doc.save(str(src))

    out = tmp_path / "filled.docx"
    changed = fill_template(
        str(src), {"OBJECTIVE": "Learn things.", "REFERENCES": "Smith (2020)."}, str(out)
    )

    assert changed == 2
    text = _all_text(str(out))
    assert "Objective: Learn things." in text
    assert "Smith (2020)." in text
    assert "{{OBJECTIVE}}" not in text
    assert "[REFERENCES]" not in text


def test_fill_keeps_run_formatting_when_marker_is_in_one_run(tmp_path):
    src = tmp_path / "template.docx"
    doc = Document()
    para = doc.add_paragraph("Intro: ")
    run = para.add_run("{{INTRODUCTION}}")
    run.bold = True
    doc.save(str(src))

    out = tmp_path / "filled.docx"
    fill_template(str(src), {"INTRODUCTION": "Hello."}, str(out))

    runs = Document(str(out)).paragraphs[0].runs
    assert [r.text for r in runs] == ["Intro: ", "Hello."]
    assert runs[1].bold is True


def test_fill_handles_marker_split_across_runs(tmp_path):
    src = tmp_path / "template.docx"
    doc = Document()
    para = doc.add_paragraph()
    para.add_run("{{CON").bold = True
    para.add_run("TENT}}")
    doc.save(str(src))

    out = tmp_path / "filled.docx"
    changed = fill_template(str(src), {"CONTENT": "Main body."}, str(out))

    assert changed == 1
    assert Document(str(out)).paragraphs[0].text == "Main body."


def test_fill_collapses_when_marker_braces_sit_in_neighbouring_runs(tmp_path):
    src = tmp_path / "template.docx"
    doc = Document()
    para = doc.add_paragraph()
    para.add_run("{")
    para.add_run("{CONTENT}").italic = True
    para.add_run("}")
    doc.save(str(src))

    out = tmp_path / "filled.docx"
    fill_template(str(src), {"CONTENT": "Body text."}, str(out))

    assert Document(str(out)).paragraphs[0].text == "Body text."


def test_fill_replaces_markers_in_first_page_header(tmp_path):
    src = tmp_path / "template.docx"
    doc = Document()
    doc.add_paragraph("{{CONTENT}}")
    section = doc.sections[0]
    section.different_first_page_header_footer = True
    section.first_page_header.paragraphs[0].text = "{{SUMMARY}}"
    doc.save(str(src))

    out = tmp_path / "filled.docx"
    fill_template(str(src), {"CONTENT": "Body.", "SUMMARY": "Short."}, str(out))

    filled = Document(str(out))
    assert filled.sections[0].first_page_header.paragraphs[0].text == "Short."
    assert filled.paragraphs[0].text == "Body."


def test_fill_leaves_unknown_markers_and_writes_line_breaks(tmp_path):
    src = tmp_path / "template.docx"
    doc = Document()
    doc.add_paragraph("{{CONTENT}} {{APPENDIX}}")
    doc.save(str(src))

    out = tmp_path / "filled.docx"
    fill_template(str(src), {"CONTENT": "line one\nline two"}, str(out))

    assert Document(str(out)).paragraphs[0].text == "line one\nline two {{APPENDIX}}"


def test_fill_unreadable_template_raises(tmp_path):
    bogus = tmp_path / "broken.docx"
    bogus.write_bytes(b"not a zip file")
    with pytest.raises(RuntimeError, match="Cannot open template"):
        fill_template(str(bogus), {}, str(tmp_path / "out.docx"))


# ---------------------------------------------------------------------------
# Convert / assemble
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_missing_libreoffice_binary_fails(tmp_path):
    converter = LibreOfficeConverter(str(tmp_path / "no-such-soffice"), timeout=5)
    assert converter.is_available() is False
    with pytest.raises(ConversionFailed, match="LibreOffice"):
        await converter.convert(str(tmp_path / "doc.docx"), str(tmp_path))


@pytest.mark.asyncio
async def test_converter_without_output_file_fails(tmp_path):
    true_bin = shutil.which("true")
    if true_bin is None:
        pytest.skip("no 'true' binary on this system")

    converter = LibreOfficeConverter(true_bin, timeout=5)
    with pytest.raises(ConversionFailed, match="output file not found"):
        await converter.convert(str(tmp_path / "doc.docx"), str(tmp_path))


@pytest.mark.asyncio
async def test_failing_converter_does_not_reuse_an_old_pdf(tmp_path):
    false_bin = shutil.which("false")
    if false_bin is None:
        pytest.skip("no 'false' binary on this system")

    stale = tmp_path / "document-1.pdf"
    stale.write_bytes(b"%PDF-1.4\n%%EOF\n")

    converter = LibreOfficeConverter(false_bin, timeout=5)
    with pytest.raises(ConversionFailed, match="output file not found"):
        await converter.convert(str(tmp_path / "document-1.docx"), str(tmp_path))
    assert not stale.exists()


@pytest.mark.asyncio
async def test_rerun_of_a_job_drops_its_previous_artifacts(tmp_path, template_file):
    store = ArtifactStore(str(tmp_path / "out"))
    old = store.prepare(9)
    with open(old.pdf_path, "wb") as fh:
        fh.write(b"%PDF-1.4\n%%EOF\n")

    assembler = DocumentAssembler(store, FakeConverter(produce=False))
    with pytest.raises(ConversionFailed):
        await assembler.assemble(
            9, template_file, [SectionPiece("Solar", "CONTENT", "x")], topic_count=1
        )
    assert not os.path.exists(old.pdf_path)


@pytest.mark.asyncio
async def test_assemble_writes_job_addressed_artifacts(tmp_path, template_file):
    assembler = DocumentAssembler(ArtifactStore(str(tmp_path / "out")), FakeConverter())
    pieces = [
        SectionPiece("Solar", "OBJECTIVE", "Aim.", 1),
        SectionPiece("Solar", "CONTENT", "Body text.", 2),
        SectionPiece("Solar", "REFERENCES", "Doe (2021).", 2),
    ]

    paths = await assembler.assemble(7, template_file, pieces, topic_count=1)

    assert paths.docx_filename == "document-7.docx"
    assert paths.pdf_filename == "document-7.pdf"
    assert os.path.dirname(paths.docx_path) == str(tmp_path / "out" / "7")
    assert os.path.exists(paths.docx_path)
    assert os.path.exists(paths.pdf_path)
    text = _all_text(paths.docx_path)
    assert "Body text." in text
    assert "{{" not in text


@pytest.mark.asyncio
async def test_assemble_fails_when_converter_produces_nothing(tmp_path, template_file):
    assembler = DocumentAssembler(
        ArtifactStore(str(tmp_path / "out")), FakeConverter(produce=False)
    )
    with pytest.raises(ConversionFailed):
        await assembler.assemble(
            8, template_file, [SectionPiece("Solar", "CONTENT", "x")], topic_count=1
        )
