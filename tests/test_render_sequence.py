"""Tests for return inference and activation computation.

The render sequence is built from messages alone: every synchronous non-self
call gets exactly one return, placed by a single call stack.
"""
from __future__ import annotations

import pytest

from pretty_dgmo.sequence.parser import parse_sequence_diagram
from pretty_dgmo.sequence.steps import (
    build_render_sequence,
    compute_activations,
    is_row_step,
    renderable_steps,
)
from pretty_dgmo.sequence.types import Activation, RenderStep


def steps_for(text: str) -> list[RenderStep]:
    """Helper: parse text and build its render sequence."""
    return build_render_sequence(parse_sequence_diagram(text).messages)


def compact(steps: list[RenderStep]) -> list[tuple[str, str, str]]:
    return [(s.kind, s.from_, s.to) for s in steps]


# ============================================================================
# Render sequence
# ============================================================================


class TestRenderSequence:
    def test_single_call_gets_one_return(self):
        steps = steps_for("A -> B: hello")
        assert compact(steps) == [("call", "A", "B"), ("return", "B", "A")]
        assert steps[1].message_index == 0

    def test_return_label_is_carried(self):
        steps = steps_for("A -> B: fetch <- rows")
        assert steps[1].label == "rows"
        assert steps[0].label == "fetch"

    def test_reply_from_callee_nests_inside_the_call(self):
        # B is still A's pending callee when it speaks
        steps = steps_for("A -> B: hello\nB -> A: world")
        assert compact(steps) == [
            ("call", "A", "B"),
            ("call", "B", "A"),
            ("return", "A", "B"),
            ("return", "B", "A"),
        ]

    def test_unrelated_sender_closes_pending_calls(self):
        steps = steps_for("A -> B: one\nC -> D: two")
        assert compact(steps) == [
            ("call", "A", "B"),
            ("return", "B", "A"),
            ("call", "C", "D"),
            ("return", "D", "C"),
        ]

    def test_caller_speaking_again_closes_its_call(self):
        steps = steps_for("A -> B: one\nA -> C: two")
        assert compact(steps) == [
            ("call", "A", "B"),
            ("return", "B", "A"),
            ("call", "A", "C"),
            ("return", "C", "A"),
        ]

    def test_delegation_chain_closes_innermost_first(self):
        steps = steps_for(
            "A -> B: setup\n"
            "B -> C: delegate\n"
            "C -> B: result\n"
            "B -> A: done"
        )
        assert compact(steps) == [
            ("call", "A", "B"),
            ("call", "B", "C"),
            ("call", "C", "B"),
            ("call", "B", "A"),
            ("return", "A", "B"),
            ("return", "B", "C"),
            ("return", "C", "B"),
            ("return", "B", "A"),
        ]
        assert [s.message_index for s in steps if s.kind == "return"] == [3, 2, 1, 0]

    def test_delegation_then_new_caller(self):
        steps = steps_for(
            "A -> B: setup\n"
            "B -> C: delegate\n"
            "A -> D: next"
        )
        assert compact(steps) == [
            ("call", "A", "B"),
            ("call", "B", "C"),
            ("return", "C", "B"),
            ("return", "B", "A"),
            ("call", "A", "D"),
            ("return", "D", "A"),
        ]

    def test_self_call_returns_immediately(self):
        steps = steps_for("A -> A: validate")
        assert compact(steps) == [("call", "A", "A"), ("return", "A", "A")]

    def test_self_call_inside_a_call(self):
        steps = steps_for("A -> B: go\nB -> B: think\nB -> C: ask")
        assert compact(steps) == [
            ("call", "A", "B"),
            ("call", "B", "B"),
            ("return", "B", "B"),
            ("call", "B", "C"),
            ("return", "C", "B"),
            ("return", "B", "A"),
        ]

    def test_async_call_has_no_return(self):
        steps = steps_for("A ~> B: notify")
        assert compact(steps) == [("call", "A", "B")]
        assert steps[0].is_async

    def test_async_call_does_not_become_pending(self):
        steps = steps_for("A -> B: go\nB ~> C: fire\nB -> D: ask")
        kinds = compact(steps)
        assert kinds.count(("return", "C", "B")) == 0
        assert kinds[-1] == ("return", "B", "A")

    def test_empty_message_list(self):
        assert build_render_sequence([]) == []

    @pytest.mark.parametrize(
        "text",
        [
            "A -> B: 1\nB -> C: 2\nC -> A: 3\nA -> C: 4\nB -> A: 5",
            "A -> B: 1\nB -> A: 2\nA -> B: 3\nB -> A: 4",
            "X -> Y: 1\nZ -> X: 2\nY -> Z: 3\nX -> Z: 4\nZ -> Y: 5\nY -> X: 6",
        ],
    )
    def test_every_call_gets_exactly_one_matching_return(self, text):
        messages = parse_sequence_diagram(text).messages
        steps = build_render_sequence(messages)
        calls = [s for s in steps if s.kind == "call"]
        returns = [s for s in steps if s.kind == "return"]
        assert len(calls) == len(messages)
        assert len(returns) == len(messages)
        by_message = {s.message_index: s for s in calls}
        for r in returns:
            call = by_message[r.message_index]
            assert r.from_ == call.to
            assert r.to == call.from_
        # A return never precedes its call
        for mi in range(len(messages)):
            first = next(i for i, s in enumerate(steps) if s.message_index == mi)
            assert steps[first].kind == "call"


class TestRowSteps:
    def test_calls_are_rows(self):
        assert is_row_step(RenderStep("call", "A", "B", "", 0))

    def test_unlabeled_returns_are_not_rows(self):
        assert not is_row_step(RenderStep("return", "B", "A", "", 0))

    def test_labeled_returns_are_rows(self):
        assert is_row_step(RenderStep("return", "B", "A", "ok", 0))

    def test_self_call_return_is_never_a_row(self):
        assert not is_row_step(RenderStep("return", "A", "A", "done", 0))

    def test_renderable_steps(self):
        steps = steps_for("A -> B: get <- data\nA -> C: ping\nA -> A: check <- ok")
        assert compact(renderable_steps(steps)) == [
            ("call", "A", "B"),
            ("return", "B", "A"),
            ("call", "A", "C"),
            ("call", "A", "A"),
        ]


# ============================================================================
# Activations
# ============================================================================


def assert_well_formed(activations: list[Activation]) -> None:
    by_participant: dict[str, list[Activation]] = {}
    for act in activations:
        assert act.start_step <= act.end_step
        by_participant.setdefault(act.participant_id, []).append(act)
    for acts in by_participant.values():
        depths = sorted({a.depth for a in acts})
        assert depths == list(range(len(depths)))
        for i, a in enumerate(acts):
            for b in acts[i + 1:]:
                if a.depth == b.depth:
                    assert a.end_step < b.start_step or b.end_step < a.start_step


class TestActivations:
    def test_single_call_activates_callee(self):
        acts = compute_activations(steps_for("A -> B: hello"))
        assert acts == [Activation(participant_id="B", start_step=0, end_step=1, depth=0)]

    def test_async_call_does_not_activate(self):
        acts = compute_activations(steps_for("A ~> B: notify"))
        assert acts == []

    def test_self_call_activation(self):
        acts = compute_activations(steps_for("A -> A: validate"))
        assert acts == [Activation(participant_id="A", start_step=0, end_step=1, depth=0)]

    def test_delegation_depths(self):
        acts = compute_activations(
            steps_for(
                "A -> B: setup\n"
                "B -> C: delegate\n"
                "C -> B: result\n"
                "B -> A: done"
            )
        )
        assert sorted((a.participant_id, a.start_step, a.end_step, a.depth) for a in acts) == [
            ("A", 3, 4, 0),
            ("B", 0, 7, 0),
            ("B", 2, 5, 1),
            ("C", 1, 6, 0),
        ]

    def test_recursive_ping_pong_nests_without_gaps(self):
        text = "\n".join(
            "A -> B: ping" if i % 2 == 0 else "B -> A: pong" for i in range(12)
        )
        acts = compute_activations(steps_for(text))
        assert_well_formed(acts)
        assert max(a.depth for a in acts if a.participant_id == "B") == 5

    def test_return_with_nothing_open_is_ignored(self):
        acts = compute_activations([RenderStep("return", "B", "A", "", 0)])
        assert acts == []

    @pytest.mark.parametrize(
        "text",
        [
            "A -> B: 1\nB -> C: 2\nC -> A: 3\nA -> C: 4\nB -> A: 5",
            "A -> B: 1\nB -> B: 2\nB -> B: 3\nB -> C: 4\nC -> B: 5",
            "A -> B: 1\nB ~> C: 2\nC -> B: 3\nB -> A: 4",
        ],
    )
    def test_intervals_are_well_formed(self, text):
        assert_well_formed(compute_activations(steps_for(text)))
