from __future__ import annotations

from dataclasses import dataclass
from typing import Literal, Union

from .types import (
    Lifeline,
    PositionedActivation,
    PositionedBlock,
    PositionedBlockDivider,
    PositionedGroup,
    PositionedNote,
    PositionedParticipant,
    PositionedSection,
    PositionedSequenceDiagram,
    PositionedStep,
)

# ============================================================================
# Draw instruction flattening
#
# A painter consumes one flat list, back to front:
#   1. Group boxes (background)
#   2. Participant boxes and lifelines
#   3. Block frames, then activation bars on top of them
#   4. Block dividers and section dividers
#   5. Arrows (calls, returns, self-call loopbacks)
#   6. Notes (foreground)
# Every instruction carries its source line for click-to-source navigation.
# ============================================================================

DrawKind = Literal[
    "group",
    "participant",
    "lifeline",
    "block",
    "activation",
    "block_divider",
    "section",
    "call",
    "return",
    "self_call",
    "note",
]

DrawItem = Union[
    PositionedGroup,
    PositionedParticipant,
    Lifeline,
    PositionedBlock,
    PositionedActivation,
    PositionedBlockDivider,
    PositionedSection,
    PositionedStep,
    PositionedNote,
]


@dataclass(slots=True, frozen=True)
class DrawInstruction:
    kind: DrawKind
    line_number: int
    item: DrawItem


def _step_kind(step: PositionedStep) -> DrawKind:
    if step.is_self:
        return "self_call"
    return step.kind


def to_draw_instructions(positioned: PositionedSequenceDiagram) -> list[DrawInstruction]:
    """Flatten a positioned diagram into painter's-order draw instructions."""
    out: list[DrawInstruction] = []

    for g in positioned.groups:
        out.append(DrawInstruction("group", g.line_number, g))
    for p in positioned.participants:
        out.append(DrawInstruction("participant", p.line_number, p))
    for ll in positioned.lifelines:
        out.append(DrawInstruction("lifeline", ll.line_number, ll))
    for b in positioned.blocks:
        out.append(DrawInstruction("block", b.line_number, b))
    for a in positioned.activations:
        out.append(DrawInstruction("activation", a.line_number, a))
    for b in positioned.blocks:
        for d in b.dividers:
            out.append(DrawInstruction("block_divider", d.line_number, d))
    for s in positioned.sections:
        out.append(DrawInstruction("section", s.line_number, s))
    for st in positioned.steps:
        out.append(DrawInstruction(_step_kind(st), st.line_number, st))
    for n in positioned.notes:
        out.append(DrawInstruction("note", n.line_number, n))

    return out
