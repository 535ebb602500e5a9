"""pretty-dgmo: lay out .dgmo sequence diagrams as positioned draw instructions."""

from __future__ import annotations

from .types import Diagnostic, RenderOptions
from .sequence.types import SequenceDiagram, PositionedSequenceDiagram
from .sequence.parser import parse_sequence_diagram, looks_like_sequence
from .sequence.layout import layout_sequence_diagram
from .sequence.draw import DrawInstruction, to_draw_instructions

__all__ = [
    "parse_dgmo",
    "layout_dgmo",
    "draw_dgmo",
    "looks_like_sequence",
    "RenderOptions",
    "Diagnostic",
    "SequenceDiagram",
    "PositionedSequenceDiagram",
    "DrawInstruction",
]


def parse_dgmo(text: str) -> SequenceDiagram:
    """Parse .dgmo sequence text into a document model (never raises on content)."""
    return parse_sequence_diagram(text)


def layout_dgmo(
    text: str,
    options: RenderOptions | None = None,
) -> PositionedSequenceDiagram:
    """Parse and lay out .dgmo sequence text.

    Re-running with different ``options`` (collapsed sections, expanded notes)
    is a full recompute; nothing is cached between calls.
    """
    return layout_sequence_diagram(parse_sequence_diagram(text), options)


def draw_dgmo(
    text: str,
    options: RenderOptions | None = None,
) -> list[DrawInstruction]:
    """Parse, lay out and flatten .dgmo text into back-to-front draw instructions.

    Example:
        >>> instructions = draw_dgmo("User -> API: login")
        >>> [i.kind for i in instructions if i.kind in ("call", "return")]
        ['call']
    """
    return to_draw_instructions(layout_dgmo(text, options))
