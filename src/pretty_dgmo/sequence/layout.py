from __future__ import annotations

import logging

from ..styles import FONT_SIZES, FONT_WEIGHTS, LINE_HEIGHT, estimate_block_width, estimate_text_width
from ..types import RenderOptions
from .ordering import resolve_participant_order
from .spacing import SPACING, VerticalLayout, resolve_vertical_layout
from .steps import build_render_sequence, compute_activations
from .tree import note_anchors
from .types import (
    Activation,
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
    SequenceDiagram,
)

# ============================================================================
# Sequence diagram layout engine
#
# Custom timeline-based layout (sequence diagrams aren't graphs).
#
# Layout strategy:
#   1. Order participants (position overrides, then group adjacency)
#   2. Space participants horizontally based on label widths + min gap
#   3. Infer calls/returns, then Y positions with block/section spacing
#   4. Derive activation bars from the step list and snap arrows to them
#   5. Position block frames, section dividers, notes and group boxes
#   6. Shift everything right if notes stick out past the left margin
# ============================================================================

logger = logging.getLogger(__name__)

# Layout constants specific to sequence diagrams
SEQ = {
    # Padding around the entire diagram
    "padding": 20,
    # Space reserved for the title line
    "title_height": 30,
    # Gap between the top margin (or title) and the participant row
    "participant_y_offset": 10,
    # Minimum distance between participant centers
    "participant_gap": 160,
    "participant_width": 120,
    "participant_height": 50,
    # Horizontal padding inside participant boxes
    "participant_pad_x": 16,
    # Space between the participant row and the first message
    "message_start_offset": 30,
    # Actors draw their label below the figure, so messages start lower
    "actor_label_extra": 20,
    # Lifeline extension below the last content
    "lifeline_tail": 30,
    # Activation bar width and per-depth horizontal shift
    "activation_width": 10,
    "activation_nest_offset": 6,
    # Block frames extend this far past the outermost involved lifelines
    "frame_pad_x": 30,
    # Section divider overhang past the outer participant boxes
    "section_overhang": 10,
    # Clearance around message, block header and section labels
    "message_label_pad": 20,
    "block_label_pad": 10,
    "section_label_pad": 10,
    # Group boxes around participant boxes
    "group_pad_x": 15,
    "group_pad_top": 22,
    "group_pad_bottom": 8,
    # Notes
    "note_min_width": 80,
    "note_padding": 8,
    "note_gap": 10,
    "note_stack_gap": 6,
    "note_collapsed_width": 30,
}

COLLAPSED_NOTE_TEXT = "…"


def layout_sequence_diagram(
    diagram: SequenceDiagram,
    options: RenderOptions | None = None,
) -> PositionedSequenceDiagram:
    """Lay out a parsed sequence diagram.

    Returns a fully positioned diagram ready for a rendering stage. A diagram
    without participants yields a zero-sized result ("nothing to render").
    """
    if options is None:
        options = RenderOptions()
    diagnostics = list(diagram.diagnostics)

    if len(diagram.participants) == 0:
        return PositionedSequenceDiagram(width=0, height=0, title=diagram.title, diagnostics=diagnostics)

    # 1. Participant order
    participants = resolve_participant_order(diagram.participants, diagram.groups, diagnostics)

    # 2. Participant widths and center X positions
    widths: list[float] = []
    for p in participants:
        text_w = estimate_text_width(
            p.label, FONT_SIZES["participant_label"], FONT_WEIGHTS["participant_label"]
        )
        widths.append(max(text_w + SEQ["participant_pad_x"] * 2, SEQ["participant_width"]))

    # Widest call/return label between each pair of neighbours
    index_of = {p.id: i for i, p in enumerate(participants)}
    label_gap = [0.0] * len(participants)
    for msg in diagram.messages:
        if msg.is_self or msg.from_ not in index_of or msg.to not in index_of:
            continue
        lo, hi = sorted((index_of[msg.from_], index_of[msg.to]))
        if hi != lo + 1:
            continue
        label_w = estimate_text_width(msg.label, FONT_SIZES["message_label"], FONT_WEIGHTS["message_label"])
        if msg.return_label:
            label_w = max(
                label_w,
                estimate_text_width(msg.return_label, FONT_SIZES["return_label"], FONT_WEIGHTS["return_label"]),
            )
        if label_w:
            label_gap[hi] = max(label_gap[hi], label_w + SEQ["message_label_pad"] * 2)

    center_x: list[float] = []
    current_x = SEQ["padding"] + widths[0] / 2
    for i in range(len(participants)):
        if i > 0:
            current_x += max(
                SEQ["participant_gap"],
                (widths[i - 1] + widths[i]) / 2 + 40,
                label_gap[i],
            )
        center_x.append(current_x)

    participant_x = {p.id: center_x[i] for i, p in enumerate(participants)}
    participant_w = {p.id: widths[i] for i, p in enumerate(participants)}

    # 3. Vertical origin
    participant_y = SEQ["padding"] + SEQ["participant_y_offset"]
    if diagram.title:
        participant_y += SEQ["title_height"]
    if diagram.groups:
        participant_y += SEQ["group_pad_top"] + FONT_SIZES["group_label"]
    lifeline_top = participant_y + SEQ["participant_height"]
    message_start_y = lifeline_top + SEQ["message_start_offset"]
    if any(p.kind == "actor" for p in participants):
        message_start_y += SEQ["actor_label_extra"]

    # 4. Render sequence + vertical layout
    all_steps = build_render_sequence(diagram.messages)
    vertical = resolve_vertical_layout(
        diagram, all_steps, options.collapsed_sections, start_y=message_start_y
    )
    activations_off = diagram.options.get("activations", "").lower() == "off"
    activations = [] if activations_off else compute_activations(vertical.steps)
    logger.debug(
        "sequence layout: %d participants, %d steps (%d visible), %d hidden messages",
        len(participants),
        len(all_steps),
        len(vertical.steps),
        len(vertical.hidden),
    )

    positioned_activations = _position_activations(diagram, vertical, activations, participant_x)
    steps = _position_steps(diagram, vertical, activations, participant_x)

    # 5. Block frames
    blocks: list[PositionedBlock] = []
    for frame in vertical.frames:
        involved = {
            pid
            for mi in frame.message_indices
            for pid in (diagram.messages[mi].from_, diagram.messages[mi].to)
        }
        xs = [participant_x[pid] for pid in involved if pid in participant_x]
        if not xs:
            continue
        left = min(xs) - SEQ["frame_pad_x"]
        right = max(xs) + SEQ["frame_pad_x"]
        header = f"{frame.block.kind} [{frame.block.label}]" if frame.block.label else frame.block.kind
        header_w = estimate_text_width(header, FONT_SIZES["block_label"], FONT_WEIGHTS["block_label"])
        right = max(right, left + header_w + SEQ["block_label_pad"] * 2)
        blocks.append(
            PositionedBlock(
                kind=frame.block.kind,
                label=frame.block.label,
                x=left,
                y=frame.top_y,
                width=right - left,
                height=frame.bottom_y - frame.top_y,
                depth=frame.depth,
                line_number=frame.block.line_number,
                dividers=[
                    PositionedBlockDivider(y=y, label=label, line_number=line)
                    for label, y, line in frame.dividers
                ],
            )
        )

    # Section dividers span every participant
    section_x1 = center_x[0] - widths[0] / 2 - SEQ["section_overhang"]
    section_x2 = center_x[-1] + widths[-1] / 2 + SEQ["section_overhang"]
    for placement in vertical.sections:
        label_w = estimate_text_width(
            placement.display_label, FONT_SIZES["section_label"], FONT_WEIGHTS["section_label"]
        )
        section_x2 = max(section_x2, section_x1 + label_w + SEQ["section_label_pad"] * 2)
    sections = [
        PositionedSection(
            label=placement.display_label,
            color=placement.section.color,
            x1=section_x1,
            x2=section_x2,
            y=placement.y,
            collapsed=placement.collapsed,
            message_count=placement.message_count,
            line_number=placement.section.line_number,
        )
        for placement in vertical.sections
    ]

    notes = _position_notes(diagram, vertical, options, participant_x, participant_w, lifeline_top)

    # Group boxes behind the participant row
    groups: list[PositionedGroup] = []
    for group in diagram.groups:
        member_ids = [pid for pid in group.participant_ids if pid in participant_x]
        if not member_ids:
            continue
        left = min(participant_x[pid] - participant_w[pid] / 2 for pid in member_ids) - SEQ["group_pad_x"]
        right = max(participant_x[pid] + participant_w[pid] / 2 for pid in member_ids) + SEQ["group_pad_x"]
        top = participant_y - SEQ["group_pad_top"]
        groups.append(
            PositionedGroup(
                name=group.name,
                color=group.color,
                x=left,
                y=top,
                width=right - left,
                height=SEQ["participant_height"] + SEQ["group_pad_top"] + SEQ["group_pad_bottom"],
                line_number=group.line_number,
            )
        )

    positioned_participants = [
        PositionedParticipant(
            id=p.id,
            label=p.label,
            kind=p.kind,
            x=center_x[i],
            y=participant_y,
            width=widths[i],
            height=SEQ["participant_height"],
            line_number=p.line_number,
        )
        for i, p in enumerate(participants)
    ]

    # 6. Bounding-box post-processing
    #
    # Notes "left of" the first participant can extend beyond the left margin.
    # Compute the true horizontal extent, then shift everything right if
    # anything sits left of the padding and widen the diagram to fit.
    content_bottom = vertical.end_y
    for n in notes:
        content_bottom = max(content_bottom, n.y + n.height)
    lifeline_bottom = content_bottom + SEQ["lifeline_tail"]
    diagram_height = lifeline_bottom + SEQ["padding"] * 2

    global_min_x: float = SEQ["padding"]
    global_max_x: float = 0
    for pp in positioned_participants:
        global_min_x = min(global_min_x, pp.x - pp.width / 2)
        global_max_x = max(global_max_x, pp.x + pp.width / 2)
    for g in groups:
        global_min_x = min(global_min_x, g.x)
        global_max_x = max(global_max_x, g.x + g.width)
    for b in blocks:
        global_min_x = min(global_min_x, b.x)
        global_max_x = max(global_max_x, b.x + b.width)
    for n in notes:
        global_min_x = min(global_min_x, n.x)
        global_max_x = max(global_max_x, n.x + n.width)
    for s in sections:
        global_min_x = min(global_min_x, s.x1)
        global_max_x = max(global_max_x, s.x2)
    if diagram.title:
        title_w = estimate_text_width(diagram.title, FONT_SIZES["title"], FONT_WEIGHTS["title"])
        global_max_x = max(global_max_x, global_min_x + title_w)

    shift_x = SEQ["padding"] - global_min_x if global_min_x < SEQ["padding"] else 0
    if shift_x > 0:
        for pp in positioned_participants:
            pp.x += shift_x
        for g in groups:
            g.x += shift_x
        for st in steps:
            st.x1 += shift_x
            st.x2 += shift_x
        for act in positioned_activations:
            act.x += shift_x
        for b in blocks:
            b.x += shift_x
        for n in notes:
            n.x += shift_x
        for s in sections:
            s.x1 += shift_x
            s.x2 += shift_x

    # 7. Lifelines (after shift so X positions are correct)
    lifelines = [
        Lifeline(
            participant_id=pp.id,
            x=pp.x,
            top_y=lifeline_top,
            bottom_y=lifeline_bottom,
            line_number=pp.line_number,
        )
        for pp in positioned_participants
    ]

    return PositionedSequenceDiagram(
        width=global_max_x + shift_x + SEQ["padding"],
        height=diagram_height,
        title=diagram.title,
        participants=positioned_participants,
        lifelines=lifelines,
        groups=groups,
        steps=steps,
        activations=positioned_activations,
        blocks=blocks,
        sections=sections,
        notes=notes,
        diagnostics=diagnostics,
    )


# ============================================================================
# Activations and arrows
# ============================================================================


def _position_activations(
    diagram: SequenceDiagram,
    vertical: VerticalLayout,
    activations: list[Activation],
    participant_x: dict[str, float],
) -> list[PositionedActivation]:
    positioned: list[PositionedActivation] = []
    width = SEQ["activation_width"]
    for act in activations:
        px = participant_x.get(act.participant_id)
        if px is None:
            continue
        covered: list[int] = []
        for si in range(act.start_step, act.end_step + 1):
            line = diagram.messages[vertical.steps[si].message_index].line_number
            if line not in covered:
                covered.append(line)
        positioned.append(
            PositionedActivation(
                participant_id=act.participant_id,
                x=px - width / 2 + act.depth * SEQ["activation_nest_offset"],
                top_y=vertical.step_y[act.start_step],
                bottom_y=vertical.step_y[act.end_step],
                width=width,
                depth=act.depth,
                message_lines=covered,
                line_number=diagram.messages[vertical.steps[act.start_step].message_index].line_number,
            )
        )
    return positioned


def _position_steps(
    diagram: SequenceDiagram,
    vertical: VerticalLayout,
    activations: list[Activation],
    participant_x: dict[str, float],
) -> list[PositionedStep]:
    by_participant: dict[str, list[Activation]] = {}
    for act in activations:
        by_participant.setdefault(act.participant_id, []).append(act)

    def active_depth(pid: str, pos: int) -> int:
        depth = -1
        for act in by_participant.get(pid, ()):
            if act.start_step <= pos <= act.end_step and act.depth > depth:
                depth = act.depth
        return depth

    def edge_x(pid: str, pos: int, right: bool) -> float:
        # Snap to the side of the deepest activation bar covering this row
        px = participant_x[pid]
        depth = active_depth(pid, pos)
        if depth < 0:
            return px
        offset = depth * SEQ["activation_nest_offset"]
        half = SEQ["activation_width"] / 2
        return px + half + offset if right else px - half + offset

    positioned: list[PositionedStep] = []
    for pos, step in enumerate(vertical.steps):
        if not vertical.rows[pos]:
            continue
        if step.from_ not in participant_x or step.to not in participant_x:
            continue
        is_self = step.from_ == step.to
        if is_self:
            x1 = x2 = edge_x(step.from_, pos, right=True)
        else:
            going_right = participant_x[step.from_] < participant_x[step.to]
            x1 = edge_x(step.from_, pos, right=going_right)
            x2 = edge_x(step.to, pos, right=not going_right)
        positioned.append(
            PositionedStep(
                kind=step.kind,
                from_=step.from_,
                to=step.to,
                label=step.label,
                x1=x1,
                x2=x2,
                y=vertical.step_y[pos],
                is_self=is_self,
                is_async=step.is_async,
                message_index=step.message_index,
                line_number=diagram.messages[step.message_index].line_number,
            )
        )
    return positioned


# ============================================================================
# Notes
# ============================================================================


def _position_notes(
    diagram: SequenceDiagram,
    vertical: VerticalLayout,
    options: RenderOptions,
    participant_x: dict[str, float],
    participant_w: dict[str, float],
    lifeline_top: float,
) -> list[PositionedNote]:
    collapsed_sections = options.collapsed_sections or set()
    force_expanded = diagram.options.get("collapse-notes", "").lower() in ("no", "off", "false")
    font_size = FONT_SIZES["note_text"]
    pad = SEQ["note_padding"]

    notes: list[PositionedNote] = []
    # Top-level section line -> divider Y
    divider_y = {p.section.line_number: p.y for p in vertical.sections}
    # Next free Y per anchor, so stacked notes don't overlap
    next_y: dict[tuple[str, int], float] = {}

    for anchor in note_anchors(diagram.elements):
        note = anchor.note
        if anchor.section is not None and anchor.section.line_number in collapsed_sections:
            continue
        msg = anchor.message
        pids = [pid for pid in note.participant_ids if pid in participant_x]
        if not pids:
            continue

        collapsed = (
            not force_expanded
            and options.expanded_note_lines is not None
            and note.line_number not in options.expanded_note_lines
        )
        if collapsed:
            text = COLLAPSED_NOTE_TEXT
            width = SEQ["note_collapsed_width"]
            height = font_size + pad * 2
        else:
            text = note.text
            width = max(
                SEQ["note_min_width"],
                estimate_block_width(text, font_size, FONT_WEIGHTS["note_text"]) + pad * 2,
            )
            height = len(text.split("\n")) * font_size * LINE_HEIGHT + pad * 2

        if msg is not None:
            key = ("message", msg.index)
        elif anchor.section is not None:
            key = ("section", anchor.section.line_number)
        else:
            key = ("top", 0)
        if key not in next_y:
            if msg is not None and msg.index in vertical.message_y:
                next_y[key] = vertical.message_y[msg.index] + SEQ["note_gap"]
            elif anchor.section is not None and anchor.section.line_number in divider_y:
                # Opens its section: sit below that section's divider
                next_y[key] = divider_y[anchor.section.line_number] + SPACING["section_bottom_pad"]
            else:
                next_y[key] = lifeline_top + SEQ["note_gap"]
        y = next_y[key]
        next_y[key] = y + height + SEQ["note_stack_gap"]

        first = pids[0]
        if note.position == "left":
            x = participant_x[first] - SEQ["activation_width"] / 2 - SEQ["note_gap"] - width
        elif note.position == "right":
            x = participant_x[first] + SEQ["activation_width"] / 2 + SEQ["note_gap"]
        else:
            # over -- center between first and last participant
            xs = [participant_x[pid] for pid in pids]
            span_left = min(xs) - participant_w[first] / 4
            span_right = max(xs) + participant_w[first] / 4
            width = max(width, span_right - span_left)
            x = (min(xs) + max(xs)) / 2 - width / 2

        notes.append(
            PositionedNote(
                text=text,
                position=note.position,
                participant_ids=pids,
                x=x,
                y=y,
                width=width,
                height=height,
                collapsed=collapsed,
                line_number=note.line_number,
            )
        )
    return notes
