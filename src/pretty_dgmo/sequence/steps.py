from __future__ import annotations

from dataclasses import dataclass

from .types import Activation, Message, RenderStep

# ============================================================================
# Render sequence builder (stack-based return placement)
#
# Users only write calls. Returns are inferred: a pending call stays open
# while its callee keeps sending; as soon as somebody else speaks, the calls
# nested under that speaker are closed, innermost first.
# ============================================================================


@dataclass(slots=True)
class _PendingCall:
    from_: str
    to: str
    return_label: str | None
    message_index: int


def _return_step(call: _PendingCall) -> RenderStep:
    # The callee answers its caller
    return RenderStep(
        kind="return",
        from_=call.to,
        to=call.from_,
        label=call.return_label or "",
        message_index=call.message_index,
    )


def build_render_sequence(messages: list[Message]) -> list[RenderStep]:
    """Build the ordered call/return step list from chronological messages.

    Every synchronous non-self call receives exactly one return step; async
    calls receive none; self-calls return immediately after their call.
    """
    steps: list[RenderStep] = []
    stack: list[_PendingCall] = []

    for mi, msg in enumerate(messages):
        # Close out calls whose callee is not the one speaking now
        while stack and stack[-1].to != msg.from_:
            steps.append(_return_step(stack.pop()))

        steps.append(
            RenderStep(
                kind="call",
                from_=msg.from_,
                to=msg.to,
                label=msg.label,
                message_index=mi,
                is_async=msg.is_async,
            )
        )

        if msg.is_async:
            continue

        pending = _PendingCall(
            from_=msg.from_,
            to=msg.to,
            return_label=msg.return_label,
            message_index=mi,
        )
        if msg.is_self:
            steps.append(_return_step(pending))
        else:
            stack.append(pending)

    while stack:
        steps.append(_return_step(stack.pop()))

    return steps


def is_row_step(step: RenderStep) -> bool:
    """Whether a step is drawn as its own arrow row.

    Unlabeled returns add noise without information, and a self-call's return
    is part of its loopback arrow.
    """
    if step.kind == "call":
        return True
    return bool(step.label) and step.from_ != step.to


def renderable_steps(steps: list[RenderStep]) -> list[RenderStep]:
    """Drop the steps that never become arrows."""
    return [s for s in steps if is_row_step(s)]


# ============================================================================
# Activation computation
# ============================================================================


def compute_activations(steps: list[RenderStep]) -> list[Activation]:
    """Compute nested activation intervals from a step list.

    A call opens an interval on its callee; a return closes the innermost open
    interval of the participant returning. Depth is the number of intervals
    still open beneath it, so recursion nests without gaps.
    """
    activations: list[Activation] = []
    stacks: dict[str, list[int]] = {}

    for i, step in enumerate(steps):
        if step.kind == "call":
            if step.is_async:
                continue
            stacks.setdefault(step.to, []).append(i)
            continue

        stack = stacks.get(step.from_)
        if not stack:
            continue
        start = stack.pop()
        activations.append(
            Activation(
                participant_id=step.from_,
                start_step=start,
                end_step=i,
                depth=len(stack),
            )
        )

    return activations
