from __future__ import annotations

from dataclasses import dataclass, field

from .steps import is_row_step
from .tree import SectionSpan, SpanIndex, group_messages_by_section, hidden_message_indices
from .types import Block, Element, Note, RenderStep, Section, SequenceDiagram

# ============================================================================
# Block/section-aware vertical spacing
#
# Turns the logical step list into Y coordinates:
#   1. Drop steps of messages owned by collapsed sections
#   2. Reserve header space above the first message of every block branch and
#      a small gap after each block
#   3. Give each top-level section divider a Y computed from the content above
#      it, so toggling a later section never moves an earlier divider
#   4. Derive block frame bounds from the rows of their descendant messages
# ============================================================================

SPACING = {
    # Vertical distance between consecutive arrow rows
    "step_spacing": 35,
    # Room for a frame label above the first message of a block branch
    "block_header_space": 30,
    # Gap between a block and the element after it
    "block_after_space": 15,
    # Space above / below a section divider line
    "section_top_pad": 35,
    "section_bottom_pad": 45,
    # Frame extent around the first / last row inside a block
    "frame_pad_top": 42,
    "frame_pad_bottom": 15,
}


@dataclass(slots=True)
class BlockFrame:
    block: Block
    # Nesting level (0 = top-level block)
    depth: int
    top_y: float
    bottom_y: float
    # Visible message indices under the block (for horizontal extent)
    message_indices: list[int]
    # (label, y, line_number) for each else-if / else divider
    dividers: list[tuple[str, float, int]] = field(default_factory=list)


@dataclass(slots=True)
class SectionPlacement:
    section: Section
    y: float
    collapsed: bool
    # Messages the section owns, visible or not
    message_count: int

    @property
    def display_label(self) -> str:
        if not self.collapsed:
            return self.section.label
        noun = "message" if self.message_count == 1 else "messages"
        return f"{self.section.label} ({self.message_count} {noun})"


@dataclass(slots=True)
class VerticalLayout:
    # Collapse-filtered steps, unlabeled returns included
    steps: list[RenderStep]
    # Y of each entry in `steps`; non-row steps sit at the next free row
    step_y: list[float]
    # Whether each entry in `steps` is drawn as its own arrow row
    rows: list[bool]
    sections: list[SectionPlacement]
    frames: list[BlockFrame]
    # Message index -> Y of its call row (visible messages only)
    message_y: dict[int, float]
    hidden: set[int]
    # Running Y after the last row or trailing section
    end_y: float


def compute_block_spacing(
    elements: list[Element],
    spans: SpanIndex,
    hidden: set[int],
) -> dict[int, float]:
    """Extra space to insert before a message's first row, by message index."""
    extra: dict[int, float] = {}

    def add(msg_idx: int | None, amount: float) -> None:
        if msg_idx is not None:
            extra[msg_idx] = extra.get(msg_idx, 0) + amount

    def mark(els: list[Element]) -> None:
        for i, el in enumerate(els):
            if not isinstance(el, Block):
                continue
            for branch in el.branches():
                add(spans.elements(branch).first_visible(hidden), SPACING["block_header_space"])
                mark(branch)
            add(_next_sibling_message(els, i, spans, hidden), SPACING["block_after_space"])

    mark(elements)
    return extra


def _next_sibling_message(
    els: list[Element],
    i: int,
    spans: SpanIndex,
    hidden: set[int],
) -> int | None:
    # Notes float beside the flow; a section brings its own padding
    for el in els[i + 1:]:
        if isinstance(el, Note):
            continue
        if isinstance(el, Section):
            return None
        return spans.element(el).first_visible(hidden)
    return None


def _section_anchor_messages(regions: list[SectionSpan]) -> list[int | None]:
    """First message at or after each section, in document order."""
    anchors: list[int | None] = []
    following: int | None = None
    for region in reversed(regions):
        if region.message_indices:
            following = region.message_indices[0]
        anchors.append(following)
    anchors.reverse()
    return anchors


def resolve_vertical_layout(
    diagram: SequenceDiagram,
    all_steps: list[RenderStep],
    collapsed_sections: set[int] | None = None,
    start_y: float = 0,
) -> VerticalLayout:
    """Assign Y positions to steps, section dividers and block frames.

    ``all_steps`` must be the unfiltered render sequence so that section
    anchors stay tied to document order regardless of what is collapsed.
    """
    spans = SpanIndex()
    _, regions = group_messages_by_section(diagram.elements, spans)
    hidden = hidden_message_indices(regions, collapsed_sections)

    first_step_of: dict[int, int] = {}
    for oi, step in enumerate(all_steps):
        first_step_of.setdefault(step.message_index, oi)

    visible = [(oi, s) for oi, s in enumerate(all_steps) if s.message_index not in hidden]
    rows = [is_row_step(s) for _, s in visible]

    # Sections keyed by the visible row they sit above
    sections_before: dict[int, list[SectionSpan]] = {}
    trailing: list[SectionSpan] = []
    for region, anchor_msg in zip(regions, _section_anchor_messages(regions)):
        anchor_step = first_step_of.get(anchor_msg) if anchor_msg is not None else None
        pos = None
        if anchor_step is not None:
            pos = next(
                (p for p, (oi, _) in enumerate(visible) if oi >= anchor_step and rows[p]),
                None,
            )
        if pos is None:
            trailing.append(region)
        else:
            sections_before.setdefault(pos, []).append(region)

    extra = compute_block_spacing(diagram.elements, spans, hidden)
    step_spacing = SPACING["step_spacing"]
    collapsed = collapsed_sections or set()

    placements: list[SectionPlacement] = []
    step_y: list[float] = []
    message_y: dict[int, float] = {}
    cur_y = start_y

    def place(region: SectionSpan) -> None:
        nonlocal cur_y
        cur_y += SPACING["section_top_pad"]
        placements.append(
            SectionPlacement(
                section=region.section,
                y=cur_y,
                collapsed=region.section.line_number in collapsed,
                message_count=len(region.message_indices),
            )
        )
        cur_y += SPACING["section_bottom_pad"]

    for pos, (_, step) in enumerate(visible):
        if not rows[pos]:
            step_y.append(cur_y)
            continue
        for region in sections_before.get(pos, ()):
            place(region)
        if step.message_index not in message_y:
            cur_y += extra.get(step.message_index, 0)
            message_y[step.message_index] = cur_y
        step_y.append(cur_y)
        cur_y += step_spacing

    for region in trailing:
        place(region)

    steps = [s for _, s in visible]
    frames = _compute_frames(diagram.elements, spans, steps, step_y, rows, hidden)

    return VerticalLayout(
        steps=steps,
        step_y=step_y,
        rows=rows,
        sections=placements,
        frames=frames,
        message_y=message_y,
        hidden=hidden,
        end_y=cur_y,
    )


def _compute_frames(
    elements: list[Element],
    spans: SpanIndex,
    steps: list[RenderStep],
    step_y: list[float],
    rows: list[bool],
    hidden: set[int],
) -> list[BlockFrame]:
    """Frame bounds for every block with at least one visible row, outer first."""
    row_positions: dict[int, list[int]] = {}
    for pos, step in enumerate(steps):
        if rows[pos]:
            row_positions.setdefault(step.message_index, []).append(pos)

    def row_range(indices: tuple[int, ...] | list[int]) -> tuple[int, int] | None:
        positions = [p for mi in indices for p in row_positions.get(mi, ())]
        if not positions:
            return None
        return min(positions), max(positions)

    frames: list[BlockFrame] = []

    def visit(els: list[Element], depth: int) -> list[BlockFrame]:
        # Returns the outermost frames placed under `els`
        placed: list[BlockFrame] = []
        for el in els:
            if not isinstance(el, Block):
                continue
            span = spans.block(el)
            bounds = row_range(span.indices)
            frame: BlockFrame | None = None
            if bounds is not None:
                first, last = bounds
                frame = BlockFrame(
                    block=el,
                    depth=depth,
                    top_y=step_y[first] - SPACING["frame_pad_top"],
                    bottom_y=step_y[last] + SPACING["frame_pad_bottom"],
                    message_indices=[mi for mi in span.indices if mi not in hidden],
                )
                branches = [(f"else if {b.label}", b.line_number, b.children) for b in el.else_if_branches]
                branches.append(("else", el.else_line_number or el.line_number, el.else_children))
                for label, line_number, children in branches:
                    branch_range = row_range(spans.elements(children).indices)
                    if branch_range is None:
                        continue
                    y = step_y[branch_range[0]] - SPACING["step_spacing"] / 2
                    frame.dividers.append((label, y, line_number))
                frames.append(frame)
                placed.append(frame)

            inner: list[BlockFrame] = []
            for branch in el.branches():
                inner.extend(visit(branch, depth + 1))
            if frame is None:
                placed.extend(inner)
                continue
            # An inner frame sharing our first or last row must sit inside us
            for child in inner:
                frame.top_y = min(frame.top_y, child.top_y - SPACING["block_header_space"])
                frame.bottom_y = max(frame.bottom_y, child.bottom_y + SPACING["frame_pad_bottom"])
        return placed

    visit(elements, 0)
    return frames
