"""Tests for participant ordering: position overrides and group adjacency."""
from __future__ import annotations

import logging

from pretty_dgmo.sequence.ordering import (
    apply_group_ordering,
    apply_position_overrides,
    resolve_participant_order,
)
from pretty_dgmo.sequence.types import Group, Participant
from pretty_dgmo.types import Diagnostic


def participants(*entries) -> list[Participant]:
    """Helper: build participants from ids or (id, position) pairs."""
    out = []
    for line, entry in enumerate(entries, start=1):
        id_, position = entry if isinstance(entry, tuple) else (entry, None)
        out.append(Participant(id=id_, label=id_, kind="plain", line_number=line, position=position))
    return out


def ids(ps: list[Participant]) -> list[str]:
    return [p.id for p in ps]


class TestPositionOverrides:
    def test_no_overrides_keeps_order(self):
        assert ids(apply_position_overrides(participants("A", "B", "C"))) == ["A", "B", "C"]

    def test_last_position_already_last(self):
        ps = participants("A", "B", ("C", -1))
        assert ids(apply_position_overrides(ps)) == ["A", "B", "C"]

    def test_negative_position_moves_to_the_end(self):
        ps = participants(("A", -1), "B", "C")
        assert ids(apply_position_overrides(ps)) == ["B", "C", "A"]

    def test_zero_moves_to_the_front(self):
        ps = participants("A", "B", ("C", 0))
        assert ids(apply_position_overrides(ps)) == ["C", "A", "B"]

    def test_out_of_range_positions_clamp(self):
        ps = participants(("A", 99), "B", ("C", -99))
        assert ids(apply_position_overrides(ps)) == ["C", "B", "A"]

    def test_conflict_goes_to_nearest_free_slot_with_diagnostic(self):
        ps = participants(("A", 0), ("B", 0), "C")
        diagnostics: list[Diagnostic] = []
        assert ids(apply_position_overrides(ps, diagnostics)) == ["A", "B", "C"]
        assert diagnostics == [
            Diagnostic(
                line=2,
                message="Participant 'B' wants position 0 but it is taken by 'A'; placed at 1 instead",
            )
        ]

    def test_conflict_tie_prefers_the_higher_slot(self):
        ps = participants(("A", 1), ("B", 1), "C")
        diagnostics: list[Diagnostic] = []
        assert ids(apply_position_overrides(ps, diagnostics)) == ["C", "A", "B"]
        assert len(diagnostics) == 1

    def test_conflict_falls_back_to_lower_slot_when_higher_is_taken(self):
        ps = participants(("A", 2), ("B", -1), "C")
        assert ids(apply_position_overrides(ps)) == ["C", "B", "A"]

    def test_conflict_is_logged(self, caplog):
        ps = participants(("A", 0), ("B", 0))
        with caplog.at_level(logging.DEBUG, logger="pretty_dgmo.sequence.ordering"):
            apply_position_overrides(ps)
        assert "wants position 0" in caplog.text

    def test_input_list_is_not_mutated(self):
        ps = participants(("A", -1), "B")
        apply_position_overrides(ps)
        assert ids(ps) == ["A", "B"]


class TestGroupOrdering:
    def test_groups_come_first_in_declaration_order(self):
        ps = participants("A", "B", "C", "D")
        groups = [
            Group(name="G1", line_number=1, participant_ids=["C"]),
            Group(name="G2", line_number=2, participant_ids=["D", "A"]),
        ]
        assert ids(apply_group_ordering(ps, groups)) == ["C", "D", "A", "B"]

    def test_unknown_group_members_are_ignored(self):
        ps = participants("A", "B")
        groups = [Group(name="G", line_number=1, participant_ids=["Z", "B"])]
        assert ids(apply_group_ordering(ps, groups)) == ["B", "A"]

    def test_no_groups(self):
        assert ids(apply_group_ordering(participants("A", "B"), [])) == ["A", "B"]


class TestResolveOrder:
    def test_overrides_then_groups(self):
        ps = participants("A", "B", ("C", 0), "D")
        groups = [Group(name="G", line_number=1, participant_ids=["B", "D"])]
        # Overrides give [C, A, B, D]; grouping pulls B and D ahead
        assert ids(resolve_participant_order(ps, groups)) == ["B", "D", "C", "A"]
