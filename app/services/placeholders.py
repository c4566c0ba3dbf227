"""
Section placeholder detection.

A template marks each section with one of four bracketing syntaxes around an
uppercase/underscore token::

    {{OBJECTIVE}}   [OBJECTIVE]   {OBJECTIVE}   <<OBJECTIVE>>

All four patterns are applied independently over the full text and the
matches are unioned, so the same name written in several syntaxes yields a
single section.  Order is first-seen (pattern order, then text position).
"""
from __future__ import annotations

import dataclasses
import logging
import re
from typing import List

from app.services.errors import NoPlaceholdersFound

logger = logging.getLogger(__name__)

PLACEHOLDER_PATTERNS = (
    re.compile(r"\{\{([A-Z_]+)\}\}"),
    re.compile(r"\[([A-Z_]+)\]"),
    re.compile(r"\{([A-Z_]+)\}"),
    re.compile(r"<<([A-Z_]+)>>"),
)

# Alternation used when filling: longest delimiters first so that
# "{{NAME}}" is consumed whole instead of as "{" + "{NAME}" + "}".
MARKER_PATTERN = re.compile(
    r"\{\{(?P<double_brace>[A-Z_]+)\}\}"
    r"|<<(?P<angle>[A-Z_]+)>>"
    r"|\[(?P<square>[A-Z_]+)\]"
    r"|\{(?P<brace>[A-Z_]+)\}"
)


@dataclasses.dataclass(frozen=True)
class Section:
    """A named placeholder section of a template."""

    name: str
    placeholder: str
    required: bool = True

    def to_dict(self) -> dict:
        return dataclasses.asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "Section":
        return cls(
            name=normalize_section_name(data["name"]),
            placeholder=data.get("placeholder") or f"{{{{{data['name']}}}}}",
            required=bool(data.get("required", True)),
        )


def normalize_section_name(name: str) -> str:
    return name.strip().upper()


def detect_placeholders(text: str) -> List[str]:
    """Return the unique section names referenced in *text*, first-seen order."""
    seen: dict = {}
    for pattern in PLACEHOLDER_PATTERNS:
        for match in pattern.finditer(text):
            name = normalize_section_name(match.group(1))
            if name and name not in seen:
                seen[name] = None
    return list(seen)


def extract_sections(text: str) -> List[Section]:
    """
    Detect the sections of a template.

    Raises:
        NoPlaceholdersFound: the text has no recognised marker; the template
            must be rejected.
    """
    names = detect_placeholders(text)
    if not names:
        raise NoPlaceholdersFound()

    logger.info("Detected %d section placeholder(s): %s", len(names), names)
    return [Section(name=name, placeholder=f"{{{{{name}}}}}") for name in names]


def marker_name(match: "re.Match[str]") -> str:
    """Section name captured by a MARKER_PATTERN match, whichever syntax matched."""
    return next(group for group in match.groups() if group is not None)
