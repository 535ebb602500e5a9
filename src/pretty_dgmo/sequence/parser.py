from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field

from ..types import Diagnostic
from .inference import infer_participant_kind
from .types import (
    PARTICIPANT_KINDS,
    Block,
    BlockKind,
    Element,
    ElseIfBranch,
    Group,
    Message,
    Note,
    NotePosition,
    Participant,
    ParticipantKind,
    Section,
    SequenceDiagram,
)

# ============================================================================
# Sequence diagram parser
#
# Parses .dgmo sequence syntax into a SequenceDiagram structure. Nesting is
# indentation-based (tabs count as 4 spaces); `end` may close a block early.
# Bad lines never abort the parse: they are recorded as diagnostics and
# skipped.
#
# Supported syntax:
#   chart: sequence              title: Checkout
#   activations: off             collapse-notes: no
#   API is a service aka Gateway position -1
#   DB position 0
#   ## Backend(blue)             (indented members follow)
#   == Phase 1 ==                == Phase 2(red) ==
#   A -> B: label                A ~> B: fire and forget
#   A -> B: label <- returned    A -> B: get(id): User    A -> B: ask : answer
#   if cond / else if cond / else / loop cond / opt cond / parallel [label] / end
#   note: text                   note left of A: text
#   note over A, B: text         note right of A   (indented body below)
#   // comment
# ============================================================================

logger = logging.getLogger(__name__)

_GROUP_HEADING_RE = re.compile(r"^##\s+(.+?)(?:\(([^)]+)\))?\s*$")
_SECTION_RE = re.compile(r"^==\s+(.+?)(?:\s*==)?\s*$")
_SECTION_COLOR_RE = re.compile(r"^(.+?)\(([^)]+)\)$")
_METADATA_RE = re.compile(r"^([A-Za-z][\w-]*)\s*:\s*(.*)$")
_IS_A_RE = re.compile(r"^(\S+)\s+is\s+an?\s+(\w+)(?:\s+(.+))?$", re.IGNORECASE)
_AKA_RE = re.compile(r"\baka\s+(.+?)(?:\s+position\s+-?\d+\s*$|$)", re.IGNORECASE)
_POSITION_RE = re.compile(r"\bposition\s+(-?\d+)", re.IGNORECASE)
_POSITION_ONLY_RE = re.compile(r"^(\S+)\s+position\s+(-?\d+)$", re.IGNORECASE)
_BARE_ID_RE = re.compile(r"^\S+$")
_ASYNC_PREFIX_RE = re.compile(r"^async\s+(.+)$", re.IGNORECASE)
_ASYNC_MSG_RE = re.compile(r"^(\S+?)\s*~>\s*([^\s:]+)\s*(?::\s*(.*))?$")
_SYNC_MSG_RE = re.compile(r"^(\S+?)\s*->\s*([^\s:]+)\s*(?::\s*(.*))?$")
_ARROW_RE = re.compile(r"\S+\s*(?:->|~>)\s*\S+")
_BLOCK_RE = re.compile(r"^(if|loop|opt)\s+(.+)$", re.IGNORECASE)
_PARALLEL_RE = re.compile(r"^parallel(?:\s+(.+))?$", re.IGNORECASE)
_ELSE_IF_RE = re.compile(r"^else\s+if\s+(.+)$", re.IGNORECASE)
_NOTE_SINGLE_RE = re.compile(
    r"^note(?:\s+(left|right|over)(?:\s+of)?\s+([^:]+?))?\s*:\s*(.+)$", re.IGNORECASE
)
_NOTE_MULTI_RE = re.compile(
    r"^note(?:\s+(left|right|over)(?:\s+of)?\s+([^:]+?))?\s*$", re.IGNORECASE
)
_RETURN_ARROW_RE = re.compile(r"^(.+?)\s*<-\s*(.+)$")
_UML_RETURN_RE = re.compile(r"^(\w+\([^)]*\))\s*:\s*(.+)$")

# Directives that may appear anywhere, not only before the first structural line
_ANYWHERE_DIRECTIVES = {"chart"}


@dataclass(slots=True)
class _OpenBlock:
    block: Block
    indent: int
    in_else: bool = False
    else_if: ElseIfBranch | None = None


@dataclass(slots=True)
class _ParserState:
    """Mutable cursor threaded through the line handlers."""
    diagram: SequenceDiagram
    block_stack: list[_OpenBlock] = field(default_factory=list)
    active_group: Group | None = None
    # participant id -> name of the group it already belongs to
    group_of: dict[str, str] = field(default_factory=dict)
    participant_ids: set[str] = field(default_factory=set)
    last_sender: str | None = None
    content_started: bool = False
    has_explicit_chart: bool = False

    def report(self, line: int, message: str) -> None:
        logger.debug("dgmo line %d: %s", line, message)
        self.diagram.diagnostics.append(Diagnostic(line=line, message=message))

    def container(self) -> list[Element]:
        """Element list that new elements are appended to."""
        if not self.block_stack:
            return self.diagram.elements
        top = self.block_stack[-1]
        if top.else_if is not None:
            return top.else_if.children
        return top.block.else_children if top.in_else else top.block.children


def measure_indent(line: str) -> int:
    """Leading whitespace width, with tabs counted as 4 spaces."""
    indent = 0
    for ch in line:
        if ch == " ":
            indent += 1
        elif ch == "\t":
            indent += 4
        else:
            break
    return indent


def parse_return_label(raw_label: str) -> tuple[str, str | None]:
    """Split a message label into (label, return_label).

    Priority: ``call <- result``, then UML ``method(args): Type``, then a split
    on the last colon. A colon followed by ``//`` (URL scheme) is not a split.
    """
    if not raw_label:
        return "", None

    m = _RETURN_ARROW_RE.match(raw_label)
    if m:
        return m.group(1).strip(), m.group(2).strip()

    m = _UML_RETURN_RE.match(raw_label)
    if m:
        return m.group(1).strip(), m.group(2).strip()

    last_colon = raw_label.rfind(":")
    if 0 < last_colon < len(raw_label) - 1:
        after = raw_label[last_colon + 1:]
        if not after.startswith("//"):
            request = raw_label[:last_colon].strip()
            response = after.strip()
            if request and response:
                return request, response

    return raw_label, None


def looks_like_sequence(text: str) -> bool:
    """True when any non-comment line has an arrow between two bare names."""
    if not text:
        return False
    for line in text.split("\n"):
        trimmed = line.strip()
        if trimmed.startswith("//"):
            continue
        if _ARROW_RE.search(trimmed):
            return True
    return False


def parse_sequence_diagram(text: str) -> SequenceDiagram:
    """Parse .dgmo sequence diagram text.

    Never raises on document content; problems are collected in
    ``diagram.diagnostics`` and the offending line is skipped.
    """
    if not isinstance(text, str):
        raise TypeError(f"expected str, got {type(text).__name__}")

    diagram = SequenceDiagram()
    state = _ParserState(diagram=diagram)

    if not text.strip():
        state.report(0, "Empty content")
        return diagram

    lines = text.split("\n")
    i = 0
    while i < len(lines):
        raw = lines[i].rstrip("\r")
        line_number = i + 1
        i += 1
        trimmed = raw.strip()
        indent = measure_indent(raw)

        # --- Blank line: ends the active group ---
        if not trimmed:
            state.active_group = None
            continue

        # --- Group heading: "## Backend" / "## Backend(blue)" ---
        # Checked before comments since "##" would otherwise look like one
        group_match = _GROUP_HEADING_RE.match(trimmed)
        if group_match:
            _parse_group_heading(state, group_match, line_number)
            continue

        if state.active_group is not None and indent == 0:
            state.active_group = None

        # --- Comments ---
        if trimmed.startswith("//"):
            continue
        if trimmed.startswith("#"):
            state.report(line_number, "Use // for comments. # is reserved for group headings (##)")
            continue

        # --- Section divider: "== Label ==" ---
        section_match = _SECTION_RE.match(trimmed)
        if section_match:
            _parse_section(state, section_match, indent, line_number)
            continue

        # --- Metadata directive: "key: value" ---
        if "->" not in trimmed and "~>" not in trimmed:
            meta_match = _METADATA_RE.match(trimmed)
            if meta_match and meta_match.group(1).lower() != "note":
                _parse_metadata(state, meta_match, line_number)
                continue

        # --- "Name is a service [aka Alias] [position N]" ---
        is_a_match = _IS_A_RE.match(trimmed)
        if is_a_match:
            _parse_declaration(state, is_a_match, line_number)
            continue

        # --- "Name position N" ---
        position_match = _POSITION_ONLY_RE.match(trimmed)
        if position_match:
            state.content_started = True
            id_ = position_match.group(1)
            _ensure_participant(state, id_, line_number, position=int(position_match.group(2)))
            _join_active_group(state, id_, line_number)
            continue

        # --- Bare participant id inside a group ---
        if state.active_group is not None and indent > 0 and _BARE_ID_RE.match(trimmed):
            state.content_started = True
            _ensure_participant(state, trimmed, line_number)
            _join_active_group(state, trimmed, line_number)
            continue

        # ---- Indent-aware lines: messages, blocks, notes ----
        lower = trimmed.lower()

        if lower == "end":
            _close_block_explicitly(state, indent, line_number)
            continue

        _close_finished_blocks(state, indent, lower)

        async_prefix = _ASYNC_PREFIX_RE.match(trimmed)
        if async_prefix and _ARROW_RE.search(async_prefix.group(1)):
            state.report(line_number, "Use ~> for async messages: A ~> B: message")
            continue

        # --- Message: arrows take priority over keywords ---
        async_match = _ASYNC_MSG_RE.match(trimmed)
        msg_match = async_match or _SYNC_MSG_RE.match(trimmed)
        if msg_match:
            _parse_message(state, msg_match, async_match is not None, line_number)
            continue

        # --- Block openers ---
        block_match = _BLOCK_RE.match(trimmed)
        if block_match:
            _open_block(state, block_match.group(1).lower(), block_match.group(2).strip(), indent, line_number)  # type: ignore[arg-type]
            continue

        parallel_match = _PARALLEL_RE.match(trimmed)
        if parallel_match:
            _open_block(state, "parallel", (parallel_match.group(1) or "").strip(), indent, line_number)
            continue

        # --- Branch dividers: "else if cond" / "else" ---
        else_if_match = _ELSE_IF_RE.match(trimmed)
        if else_if_match:
            _parse_else(state, indent, line_number, else_if_match.group(1).strip())
            continue

        if lower == "else":
            _parse_else(state, indent, line_number, None)
            continue

        # --- Notes ---
        note_match = _NOTE_SINGLE_RE.match(trimmed)
        if note_match:
            _add_note(state, note_match, note_match.group(3).strip(), line_number)
            continue

        note_match = _NOTE_MULTI_RE.match(trimmed)
        if note_match:
            body: list[str] = []
            while i < len(lines):
                next_raw = lines[i].rstrip("\r")
                if not next_raw.strip() or measure_indent(next_raw) <= indent:
                    break
                body.append(next_raw.strip())
                i += 1
            if body:
                _add_note(state, note_match, "\n".join(body), line_number)
            continue

        state.report(line_number, f"Unrecognized line: {trimmed}")

    if not state.has_explicit_chart and not diagram.messages and not looks_like_sequence(text):
        state.report(0, 'No "chart: sequence" header and no sequence content detected')

    return diagram


# ============================================================================
# Line handlers
# ============================================================================


def _parse_group_heading(state: _ParserState, match: re.Match[str], line_number: int) -> None:
    color = (match.group(2) or "").strip() or None
    if color and color.startswith("#"):
        state.report(line_number, "Use a named color instead of hex (e.g., blue, red, teal)")
        state.active_group = None
        return
    state.content_started = True
    group = Group(name=match.group(1).strip(), line_number=line_number, color=color)
    state.diagram.groups.append(group)
    state.active_group = group


def _parse_section(state: _ParserState, match: re.Match[str], indent: int, line_number: int) -> None:
    # A section at or left of a block's indent ends that block
    while state.block_stack and indent <= state.block_stack[-1].indent:
        state.block_stack.pop()

    label_raw = match.group(1).strip()
    color_match = _SECTION_COLOR_RE.match(label_raw)
    if color_match and color_match.group(2).strip().startswith("#"):
        state.report(line_number, "Use a named color instead of hex (e.g., blue, red, teal)")
        return

    state.content_started = True
    section = Section(
        label=color_match.group(1).strip() if color_match else label_raw,
        line_number=line_number,
        color=color_match.group(2).strip() if color_match else None,
    )
    state.diagram.sections.append(section)
    state.container().append(section)


def _parse_metadata(state: _ParserState, match: re.Match[str], line_number: int) -> None:
    key = match.group(1).lower()
    value = match.group(2).strip()

    if key == "chart":
        state.has_explicit_chart = True
        if value.lower() != "sequence":
            state.report(line_number, f'Expected chart type "sequence", got "{value}"')
        return

    if state.content_started and key not in _ANYWHERE_DIRECTIVES:
        state.report(
            line_number,
            f"Options like '{key}: {value}' must appear before the first message or declaration",
        )
        return

    if key == "title":
        state.diagram.title = value
        return
    state.diagram.options[key] = value


def _parse_declaration(state: _ParserState, match: re.Match[str], line_number: int) -> None:
    state.content_started = True
    id_ = match.group(1)
    kind_str = match.group(2).lower()
    remainder = (match.group(3) or "").strip()

    kind: ParticipantKind = kind_str if kind_str in PARTICIPANT_KINDS else "plain"  # type: ignore[assignment]
    aka_match = _AKA_RE.search(remainder)
    pos_match = _POSITION_RE.search(remainder)
    _ensure_participant(
        state,
        id_,
        line_number,
        kind=kind,
        label=aka_match.group(1).strip() if aka_match else None,
        position=int(pos_match.group(1)) if pos_match else None,
    )
    _join_active_group(state, id_, line_number)


def _parse_message(
    state: _ParserState,
    match: re.Match[str],
    is_async: bool,
    line_number: int,
) -> None:
    state.content_started = True
    from_ = match.group(1)
    to = match.group(2)
    raw_label = (match.group(3) or "").strip()

    # Async messages never return, so the whole text is the label
    if is_async:
        label, return_label = raw_label, None
    else:
        label, return_label = parse_return_label(raw_label)

    diagram = state.diagram
    msg = Message(
        from_=from_,
        to=to,
        label=label,
        line_number=line_number,
        index=len(diagram.messages),
        return_label=return_label,
        is_async=is_async,
    )
    diagram.messages.append(msg)
    state.container().append(msg)
    state.last_sender = from_

    _ensure_participant(state, from_, line_number)
    _ensure_participant(state, to, line_number)


def _open_block(
    state: _ParserState,
    kind: BlockKind,
    label: str,
    indent: int,
    line_number: int,
) -> None:
    state.content_started = True
    block = Block(kind=kind, label=label, line_number=line_number)
    state.container().append(block)
    state.block_stack.append(_OpenBlock(block=block, indent=indent))


def _close_finished_blocks(state: _ParserState, indent: int, lower: str) -> None:
    """Pop blocks whose indented body has ended."""
    is_branch = lower == "else" or lower.startswith("else if ")
    while state.block_stack:
        top = state.block_stack[-1]
        if indent > top.indent:
            break
        # Keep the block open so a same-indent else can attach to it
        if indent == top.indent and is_branch and top.block.kind in ("if", "parallel"):
            break
        state.block_stack.pop()


def _close_block_explicitly(state: _ParserState, indent: int, line_number: int) -> None:
    while state.block_stack and state.block_stack[-1].indent > indent:
        state.block_stack.pop()
    if not state.block_stack:
        state.report(line_number, "Unmatched 'end' with no open block")
        return
    state.block_stack.pop()


def _parse_else(
    state: _ParserState,
    indent: int,
    line_number: int,
    else_if_label: str | None,
) -> None:
    keyword = "else if" if else_if_label is not None else "else"
    top = state.block_stack[-1] if state.block_stack else None
    if top is None or top.indent != indent:
        state.report(line_number, f"'{keyword}' without a matching 'if'")
        return
    if top.block.kind == "parallel":
        state.report(
            line_number,
            f"parallel blocks don't support {keyword} -- list all concurrent "
            "messages directly inside the block",
        )
        return
    if top.block.kind != "if":
        state.report(line_number, f"'{keyword}' without a matching 'if'")
        return

    if else_if_label is None:
        top.in_else = True
        top.else_if = None
        top.block.else_line_number = line_number
        return

    if top.in_else:
        state.report(line_number, "'else if' cannot follow 'else'")
        return
    branch = ElseIfBranch(label=else_if_label, line_number=line_number)
    top.block.else_if_branches.append(branch)
    top.else_if = branch


def _add_note(
    state: _ParserState,
    match: re.Match[str],
    text: str,
    line_number: int,
) -> None:
    position: NotePosition = (match.group(1) or "right").lower()  # type: ignore[assignment]
    targets_raw = match.group(2)
    if targets_raw:
        participant_ids = [s.strip() for s in targets_raw.split(",") if s.strip()]
    elif state.last_sender is not None:
        participant_ids = [state.last_sender]
    else:
        state.report(line_number, "Note has no participant and no preceding message to attach to")
        return

    # Notes may introduce participants, same as messages do
    for pid in participant_ids:
        _ensure_participant(state, pid, line_number)

    state.content_started = True
    state.container().append(
        Note(
            position=position,
            participant_ids=participant_ids,
            text=text,
            line_number=line_number,
        )
    )


# ============================================================================
# Participant helpers
# ============================================================================


def _ensure_participant(
    state: _ParserState,
    id_: str,
    line_number: int,
    kind: ParticipantKind | None = None,
    label: str | None = None,
    position: int | None = None,
) -> None:
    """Register a participant on first mention.

    Later plain mentions are no-ops; a later explicit declaration refines the
    kind, label and position without moving the participant.
    """
    if id_ in state.participant_ids:
        existing = state.diagram.participant(id_)
        if existing is not None:
            if kind is not None:
                existing.kind = kind
            if label is not None:
                existing.label = label
            if position is not None:
                existing.position = position
        return
    state.participant_ids.add(id_)
    state.diagram.participants.append(
        Participant(
            id=id_,
            label=label or id_,
            kind=kind or infer_participant_kind(id_),
            line_number=line_number,
            position=position,
        )
    )


def _join_active_group(state: _ParserState, id_: str, line_number: int) -> None:
    group = state.active_group
    if group is None or id_ in group.participant_ids:
        return
    existing = state.group_of.get(id_)
    if existing is not None:
        state.report(
            line_number,
            f"Participant '{id_}' is already in group '{existing}' -- "
            "participants can only belong to one group",
        )
        return
    group.participant_ids.append(id_)
    state.group_of[id_] = group.name
