from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal, Union

from ..types import Diagnostic

# ============================================================================
# Sequence diagram types
#
# Models the parsed, derived and positioned representations of a .dgmo
# sequence diagram. Sequence diagrams show participant interactions over time
# (vertical timeline); return arrows are inferred, never written.
# ============================================================================

# ============================================================================
# Parsed sequence diagram -- logical structure from .dgmo text
# ============================================================================

ParticipantKind = Literal[
    "plain",
    "actor",
    "database",
    "service",
    "queue",
    "cache",
    "networking",
    "frontend",
    "external",
    "gateway",
]
BlockKind = Literal["if", "loop", "opt", "parallel"]
NotePosition = Literal["left", "right", "over"]
StepKind = Literal["call", "return"]

PARTICIPANT_KINDS: tuple[str, ...] = (
    "plain",
    "actor",
    "database",
    "service",
    "queue",
    "cache",
    "networking",
    "frontend",
    "external",
    "gateway",
)


@dataclass(slots=True)
class Participant:
    id: str
    # Display label -- the "aka" alias when given, otherwise the id
    label: str
    kind: ParticipantKind
    # Source line of the first mention (1-based)
    line_number: int
    # Explicit layout slot: 0-based from the left, negative from the right
    position: int | None = None


@dataclass(slots=True)
class Message:
    from_: str
    to: str
    label: str
    line_number: int
    # Position in SequenceDiagram.messages
    index: int
    # Label drawn on the inferred return arrow
    return_label: str | None = None
    # Fire-and-forget (~>) -- no return arrow, no activation on the target
    is_async: bool = False

    @property
    def is_self(self) -> bool:
        return self.from_ == self.to


@dataclass(slots=True)
class ElseIfBranch:
    label: str
    line_number: int
    children: list[Element] = field(default_factory=list)


@dataclass(slots=True)
class Block:
    kind: BlockKind
    label: str
    line_number: int
    children: list[Element] = field(default_factory=list)
    else_if_branches: list[ElseIfBranch] = field(default_factory=list)
    else_children: list[Element] = field(default_factory=list)
    # Source line of the "else" keyword, when present
    else_line_number: int | None = None

    def branches(self) -> list[list[Element]]:
        """Child lists in document order: then, else-if..., else."""
        return [
            self.children,
            *(b.children for b in self.else_if_branches),
            self.else_children,
        ]


@dataclass(slots=True)
class Section:
    label: str
    line_number: int
    color: str | None = None


@dataclass(slots=True)
class Note:
    position: NotePosition
    participant_ids: list[str]
    text: str
    line_number: int


Element = Union[Message, Block, Section, Note]


@dataclass(slots=True)
class Group:
    name: str
    line_number: int
    participant_ids: list[str] = field(default_factory=list)
    color: str | None = None


@dataclass(slots=True)
class SequenceDiagram:
    """Parsed sequence diagram -- logical structure from .dgmo text."""
    title: str | None = None
    # Participants in first-mention (or declaration) order
    participants: list[Participant] = field(default_factory=list)
    # Messages in chronological (document) order
    messages: list[Message] = field(default_factory=list)
    # Element forest mirroring source nesting
    elements: list[Element] = field(default_factory=list)
    groups: list[Group] = field(default_factory=list)
    # Every section, top-level or nested, in document order
    sections: list[Section] = field(default_factory=list)
    # Metadata directives ("activations", "collapse-notes", ...)
    options: dict[str, str] = field(default_factory=dict)
    diagnostics: list[Diagnostic] = field(default_factory=list)

    def participant(self, id_: str) -> Participant | None:
        for p in self.participants:
            if p.id == id_:
                return p
        return None


# ============================================================================
# Derived structures -- render sequence and activations
# ============================================================================


@dataclass(slots=True, frozen=True)
class RenderStep:
    kind: StepKind
    from_: str
    to: str
    label: str
    # Index of the originating message in SequenceDiagram.messages
    message_index: int
    is_async: bool = False


@dataclass(slots=True, frozen=True)
class Activation:
    participant_id: str
    start_step: int
    end_step: int
    # 0 = outermost call on this participant
    depth: int


# ============================================================================
# Positioned sequence diagram -- ready for a rendering stage
# ============================================================================


@dataclass(slots=True)
class PositionedParticipant:
    id: str
    label: str
    kind: ParticipantKind
    # Center x of the participant box
    x: float
    # Top y of the participant box
    y: float
    width: float
    height: float
    line_number: int


@dataclass(slots=True)
class Lifeline:
    """Vertical dashed line from participant to bottom of diagram."""
    participant_id: str
    x: float
    top_y: float
    bottom_y: float
    line_number: int


@dataclass(slots=True)
class PositionedGroup:
    name: str
    color: str | None
    x: float
    y: float
    width: float
    height: float
    line_number: int


@dataclass(slots=True)
class PositionedStep:
    """One call or return arrow."""
    kind: StepKind
    from_: str
    to: str
    label: str
    # Start point (from participant's lifeline or activation edge)
    x1: float
    # End point (to participant's lifeline or activation edge)
    x2: float
    y: float
    is_self: bool
    is_async: bool
    message_index: int
    line_number: int


@dataclass(slots=True)
class PositionedActivation:
    """Narrow rectangle on a lifeline showing active processing."""
    participant_id: str
    x: float
    top_y: float
    bottom_y: float
    width: float
    depth: int
    # Line numbers of the messages whose steps the bar spans
    message_lines: list[int]
    line_number: int


@dataclass(slots=True)
class PositionedBlockDivider:
    y: float
    label: str
    line_number: int


@dataclass(slots=True)
class PositionedBlock:
    kind: BlockKind
    label: str
    x: float
    y: float
    width: float
    height: float
    # Nesting level (0 = top-level frame)
    depth: int
    line_number: int
    # Else / else-if dividers
    dividers: list[PositionedBlockDivider] = field(default_factory=list)


@dataclass(slots=True)
class PositionedSection:
    label: str
    color: str | None
    x1: float
    x2: float
    y: float
    collapsed: bool
    # Number of messages the section owns (shown when collapsed)
    message_count: int
    line_number: int


@dataclass(slots=True)
class PositionedNote:
    text: str
    position: NotePosition
    participant_ids: list[str]
    x: float
    y: float
    width: float
    height: float
    collapsed: bool
    line_number: int


@dataclass(slots=True)
class PositionedSequenceDiagram:
    width: float
    height: float
    title: str | None = None
    participants: list[PositionedParticipant] = field(default_factory=list)
    lifelines: list[Lifeline] = field(default_factory=list)
    groups: list[PositionedGroup] = field(default_factory=list)
    steps: list[PositionedStep] = field(default_factory=list)
    activations: list[PositionedActivation] = field(default_factory=list)
    blocks: list[PositionedBlock] = field(default_factory=list)
    sections: list[PositionedSection] = field(default_factory=list)
    notes: list[PositionedNote] = field(default_factory=list)
    diagnostics: list[Diagnostic] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.participants
