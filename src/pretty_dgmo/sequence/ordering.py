from __future__ import annotations

import logging

from ..types import Diagnostic
from .types import Group, Participant

# ============================================================================
# Participant ordering
#
# Decides left-to-right participant order before any X coordinate exists.
# Two independent hints are composed: explicit `position N` overrides first,
# then group adjacency on top of that result.
# ============================================================================

logger = logging.getLogger(__name__)


def _resolve_index(position: int, total: int) -> int:
    # -1 -> last, -2 -> second-to-last; out-of-range targets clamp to the ends
    idx = total + position if position < 0 else position
    return max(0, min(total - 1, idx))


def _nearest_free_slot(target: int, used: set[int], total: int) -> int:
    """Search outward from target; at equal distance the higher slot wins."""
    for offset in range(1, total):
        if target + offset < total and target + offset not in used:
            return target + offset
        if target - offset >= 0 and target - offset not in used:
            return target - offset
    return target


def apply_position_overrides(
    participants: list[Participant],
    diagnostics: list[Diagnostic] | None = None,
) -> list[Participant]:
    """Reorder participants according to their ``position`` overrides.

    Positioned participants are placed in order of their resolved target
    index; a taken slot sends the participant to the nearest free slot and
    records a diagnostic. Unpositioned participants fill the remaining slots
    in their original relative order.
    """
    if not any(p.position is not None for p in participants):
        return list(participants)

    total = len(participants)
    positioned: list[tuple[int, Participant]] = []
    unpositioned: list[Participant] = []
    for p in participants:
        if p.position is not None:
            positioned.append((_resolve_index(p.position, total), p))
        else:
            unpositioned.append(p)

    # Stable: equal targets keep first-mention order
    positioned.sort(key=lambda item: item[0])

    slots: list[Participant | None] = [None] * total
    used: set[int] = set()
    for target, p in positioned:
        idx = target
        if idx in used:
            idx = _nearest_free_slot(target, used, total)
            holder = slots[target]
            message = (
                f"Participant '{p.id}' wants position {p.position} but it is taken"
                f" by '{holder.id if holder else '?'}'; placed at {idx} instead"
            )
            logger.debug(message)
            if diagnostics is not None:
                diagnostics.append(Diagnostic(line=p.line_number, message=message))
        slots[idx] = p
        used.add(idx)

    remaining = iter(unpositioned)
    return [slot if slot is not None else next(remaining) for slot in slots]


def apply_group_ordering(
    participants: list[Participant],
    groups: list[Group],
) -> list[Participant]:
    """Pull group members together.

    Groups appear in declaration order, followed by ungrouped participants in
    their prior relative order.
    """
    if not groups:
        return list(participants)

    by_id = {p.id: p for p in participants}
    result: list[Participant] = []
    placed: set[str] = set()

    for group in groups:
        for id_ in group.participant_ids:
            p = by_id.get(id_)
            if p is not None and id_ not in placed:
                result.append(p)
                placed.add(id_)

    for p in participants:
        if p.id not in placed:
            result.append(p)
            placed.add(p.id)

    return result


def resolve_participant_order(
    participants: list[Participant],
    groups: list[Group],
    diagnostics: list[Diagnostic] | None = None,
) -> list[Participant]:
    """Position overrides first, then group adjacency on the result."""
    return apply_group_ordering(
        apply_position_overrides(participants, diagnostics),
        groups,
    )
