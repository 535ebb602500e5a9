from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterator

from .types import Block, Element, Message, Note, Section

# ============================================================================
# Element tree projections
#
# The element forest is walked for several purposes (block spacing, frame
# bounds, section spans, note anchors). All of them reduce to "which message
# indices live under this subtree, and which comes first". SpanIndex computes
# that once per node and memoizes it for the duration of a layout pass.
# ============================================================================


@dataclass(slots=True, frozen=True)
class MessageSpan:
    # Message indices in document order
    indices: tuple[int, ...] = ()

    def first_visible(self, hidden: set[int] | frozenset[int]) -> int | None:
        for idx in self.indices:
            if idx not in hidden:
                return idx
        return None


_EMPTY = MessageSpan()


class SpanIndex:
    """Memoized subtree -> message-index projection.

    Keyed by object identity, so an index must not outlive the diagram it
    was built for.
    """

    def __init__(self) -> None:
        self._blocks: dict[int, MessageSpan] = {}
        self._lists: dict[int, MessageSpan] = {}
        # Keep the keyed objects alive so their ids stay unique
        self._pins: list[object] = []

    def element(self, el: Element) -> MessageSpan:
        if isinstance(el, Message):
            return MessageSpan((el.index,))
        if isinstance(el, Block):
            return self.block(el)
        # Sections and notes own no messages
        return _EMPTY

    def block(self, block: Block) -> MessageSpan:
        cached = self._blocks.get(id(block))
        if cached is None:
            indices: list[int] = []
            for branch in block.branches():
                indices.extend(self.elements(branch).indices)
            cached = MessageSpan(tuple(indices))
            self._blocks[id(block)] = cached
            self._pins.append(block)
        return cached

    def elements(self, elements: list[Element]) -> MessageSpan:
        cached = self._lists.get(id(elements))
        if cached is None:
            indices: list[int] = []
            for el in elements:
                indices.extend(self.element(el).indices)
            cached = MessageSpan(tuple(indices))
            self._lists[id(elements)] = cached
            self._pins.append(elements)
        return cached


# ============================================================================
# Section spans
# ============================================================================


@dataclass(slots=True)
class SectionSpan:
    section: Section
    # Messages owned by the section, in document order
    message_indices: list[int] = field(default_factory=list)


def group_messages_by_section(
    elements: list[Element],
    spans: SpanIndex | None = None,
) -> tuple[list[int], list[SectionSpan]]:
    """Split top-level messages into (pre-section messages, section spans).

    Only top-level sections are collapsible; a section nested inside a block
    neither starts a span nor splits its block's messages.
    """
    spans = spans or SpanIndex()
    before_first: list[int] = []
    regions: list[SectionSpan] = []
    target = before_first
    for el in elements:
        if isinstance(el, Section):
            region = SectionSpan(section=el)
            regions.append(region)
            target = region.message_indices
        else:
            target.extend(spans.element(el).indices)
    return before_first, regions


def hidden_message_indices(
    regions: list[SectionSpan],
    collapsed_sections: set[int] | None,
) -> set[int]:
    """Message indices owned by the collapsed sections (keyed by line number)."""
    hidden: set[int] = set()
    if not collapsed_sections:
        return hidden
    for region in regions:
        if region.section.line_number in collapsed_sections:
            hidden.update(region.message_indices)
    return hidden


# ============================================================================
# Note anchors
# ============================================================================


def walk_document(elements: list[Element]) -> Iterator[Element]:
    """Yield every element in document order, descending into blocks."""
    for el in elements:
        yield el
        if isinstance(el, Block):
            for branch in el.branches():
                yield from walk_document(branch)


@dataclass(slots=True, frozen=True)
class NoteAnchor:
    note: Note
    # Message preceding the note within its top-level section, if any
    message: Message | None
    # Top-level section the note lives under, if any
    section: Section | None


def note_anchors(elements: list[Element]) -> list[NoteAnchor]:
    """Pair each note with the message that precedes it in its own section.

    A note that opens a top-level section has no anchor message, so its
    visibility and position never depend on an earlier section.
    """
    anchors: list[NoteAnchor] = []
    last: Message | None = None
    section: Section | None = None
    for top in elements:
        if isinstance(top, Section):
            section = top
            last = None
            continue
        for el in walk_document([top]):
            if isinstance(el, Message):
                last = el
            elif isinstance(el, Note):
                anchors.append(NoteAnchor(note=el, message=last, section=section))
    return anchors

