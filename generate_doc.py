"""Generate a sample DOCX template with section placeholders.

Usage:
    python generate_doc.py [output.docx]

The template mixes every supported marker syntax and puts one marker inside
a table so that uploads exercise the whole placeholder detector.
"""
import sys
from typing import Iterable, Optional

from docx import Document
from docx.enum.text import WD_ALIGN_PARAGRAPH
from docx.shared import Pt

DEFAULT_SECTIONS = ("OBJECTIVE", "INTRODUCTION", "CONTENT", "CONCLUSION", "REFERENCES")

# Cycled per section so a sample template shows every syntax
MARKER_FORMATS = ("{{{{{}}}}}", "[{}]", "{{{}}}", "<<{}>>")


def build_sample_template(
    path: str,
    sections: Iterable[str] = DEFAULT_SECTIONS,
    title: str = "Sample Report",
    mixed_syntax: bool = False,
    table_section: Optional[str] = None,
) -> str:
    """Write a template with one heading and one marker paragraph per section.

    ``mixed_syntax`` cycles through every marker syntax instead of using
    ``{{NAME}}`` throughout.  ``table_section`` places that section's marker
    in a one-cell table instead of a body paragraph.
    """
    doc = Document()

    style = doc.styles['Normal']
    style.font.name = 'Calibri'
    style.font.size = Pt(11)

    heading = doc.add_heading(title, level=0)
    heading.alignment = WD_ALIGN_PARAGRAPH.CENTER

    for index, name in enumerate(sections):
        fmt = MARKER_FORMATS[index % len(MARKER_FORMATS)] if mixed_syntax else MARKER_FORMATS[0]
        text = fmt.format(name)

        doc.add_heading(name.replace('_', ' ').title(), level=1)
        if name == table_section:
            table = doc.add_table(rows=1, cols=1)
            table.cell(0, 0).text = text
        else:
            doc.add_paragraph(text)

    doc.save(path)
    return path


if __name__ == "__main__":
    out = sys.argv[1] if len(sys.argv) > 1 else "sample_template.docx"
    build_sample_template(out, mixed_syntax=True, table_section="REFERENCES")
    print(f"Sample template saved to: {out}")
