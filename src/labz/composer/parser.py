"""
Slot parsing and type-parameter substitution for base templates.

A base file is split into literal text segments interleaved with slot
markers. Only slot names the base declares become markers; any other
``{{NAME}}`` token stays in the text untouched.
"""

import re
import textwrap
from dataclasses import dataclass
from typing import Dict, List, Mapping, Union, Iterable

from ..core.types import BaseTemplate

SLOT_PATTERN = re.compile(r"\{\{\s*([A-Za-z_][A-Za-z0-9_-]*)\s*\}\}")
TYPE_PARAM_PATTERN = re.compile(r"\[\[\s*([A-Za-z_][A-Za-z0-9_]*)\s*\]\]")
TEMPLATE_SUFFIX = ".tmpl"


@dataclass(frozen=True)
class TextSegment:
    """Literal template text."""
    text: str


@dataclass(frozen=True)
class SlotMarker:
    """A declared slot, with the indentation of the line it sits on."""
    name: str
    indent: str = ""


Segment = Union[TextSegment, SlotMarker]


@dataclass(frozen=True)
class ParsedFile:
    """One base file after type substitution and slot parsing."""
    path: str
    segments: List[Segment]

    @property
    def slot_names(self) -> List[str]:
        return [s.name for s in self.segments if isinstance(s, SlotMarker)]


def resolve_type_params(base: BaseTemplate, overrides: Mapping[str, str]) -> Dict[str, str]:
    """Base defaults with explicit overrides merged over them."""
    resolved = base.type_defaults
    for name, value in overrides.items():
        if value is not None and value != "":
            resolved[name] = value
    return resolved


def apply_type_params(text: str, params: Mapping[str, str]) -> str:
    """Replace ``[[NAME]]`` tokens with resolved values; unknown tokens stay."""
    def _sub(match: re.Match) -> str:
        name = match.group(1)
        return params[name] if name in params else match.group(0)

    return TYPE_PARAM_PATTERN.sub(_sub, text)


def _line_indent(text: str, position: int) -> str:
    line_start = text.rfind("\n", 0, position) + 1
    prefix = text[line_start:position]
    return prefix[:len(prefix) - len(prefix.lstrip(" \t"))]


def parse_text(text: str, slot_names: Iterable[str]) -> List[Segment]:
    """Split text into literal segments and markers for the given slots."""
    declared = set(slot_names)
    segments: List[Segment] = []
    cursor = 0

    for match in SLOT_PATTERN.finditer(text):
        name = match.group(1)
        if name not in declared:
            continue
        if match.start() > cursor:
            segments.append(TextSegment(text[cursor:match.start()]))
        segments.append(SlotMarker(name, _line_indent(text, match.start())))
        cursor = match.end()

    if cursor < len(text):
        segments.append(TextSegment(text[cursor:]))

    return segments


def parse_base(base: BaseTemplate, type_params: Mapping[str, str]) -> List[ParsedFile]:
    """
    Parse every file of a base template.

    Type parameters are substituted before parsing. Files are returned in
    path order so the result does not depend on metadata key order.

    Args:
        base: The base template
        type_params: Resolved type-parameter mapping

    Returns:
        Parsed files, sorted by template path
    """
    slot_names = base.slot_names
    return [
        ParsedFile(path, parse_text(apply_type_params(base.files[path], type_params), slot_names))
        for path in sorted(base.files)
    ]


def render_fragment(content: str, indent: str) -> str:
    """
    Normalise a fragment for insertion at a marker.

    The fragment is dedented and stripped of surrounding blank lines; every
    line after the first is prefixed with the marker's indentation (the
    first line inherits the whitespace already in front of the marker).
    """
    body = textwrap.dedent(content.strip("\n")).rstrip()
    lines = body.split("\n")
    return "\n".join(
        [lines[0]] + [indent + line if line.strip() else "" for line in lines[1:]]
    )


def substitute_placeholders(text: str, values: Mapping[str, str]) -> str:
    """Replace project placeholders such as ``{{CONTRACT_NAME}}``."""
    def _sub(match: re.Match) -> str:
        name = match.group(1)
        return values[name] if name in values else match.group(0)

    return SLOT_PATTERN.sub(_sub, text)


def output_path(template_path: str, values: Mapping[str, str]) -> str:
    """Output path for a template file: placeholders filled, ``.tmpl`` removed."""
    path = substitute_placeholders(template_path, values)
    if path.endswith(TEMPLATE_SUFFIX):
        path = path[:-len(TEMPLATE_SUFFIX)]
    return path


def cleanup(text: str) -> str:
    """Strip trailing whitespace per line and collapse runs of blank lines."""
    text = "\n".join(line.rstrip() for line in text.split("\n"))
    text = re.sub(r"\n{3,}", "\n\n", text)
    return text
