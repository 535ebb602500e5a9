from __future__ import annotations

from .types import (
    SequenceDiagram,
    Participant,
    Message,
    Block,
    ElseIfBranch,
    Section,
    Note,
    Group,
    RenderStep,
    Activation,
    PositionedSequenceDiagram,
    PositionedParticipant,
    Lifeline,
    PositionedGroup,
    PositionedStep,
    PositionedActivation,
    PositionedBlock,
    PositionedBlockDivider,
    PositionedSection,
    PositionedNote,
)
from .parser import parse_sequence_diagram, looks_like_sequence
from .inference import infer_participant_kind
from .steps import build_render_sequence, compute_activations
from .ordering import resolve_participant_order
from .spacing import resolve_vertical_layout
from .layout import layout_sequence_diagram
from .draw import DrawInstruction, to_draw_instructions

__all__ = [
    "SequenceDiagram",
    "Participant",
    "Message",
    "Block",
    "ElseIfBranch",
    "Section",
    "Note",
    "Group",
    "RenderStep",
    "Activation",
    "PositionedSequenceDiagram",
    "PositionedParticipant",
    "Lifeline",
    "PositionedGroup",
    "PositionedStep",
    "PositionedActivation",
    "PositionedBlock",
    "PositionedBlockDivider",
    "PositionedSection",
    "PositionedNote",
    "parse_sequence_diagram",
    "looks_like_sequence",
    "infer_participant_kind",
    "build_render_sequence",
    "compute_activations",
    "resolve_participant_order",
    "resolve_vertical_layout",
    "layout_sequence_diagram",
    "DrawInstruction",
    "to_draw_instructions",
]
