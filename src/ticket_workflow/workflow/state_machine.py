from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Literal

from .events import Event, EventKind, UnknownEventKind, parse_event_kind
from .models import AppliedEventView, InstanceSnapshot

logger = logging.getLogger(__name__)

__all__ = [
    "TicketState",
    "TransitionRule",
    "TRANSITION_TABLE",
    "Effect",
    "AppliedEvent",
    "WorkflowInstance",
    "UnknownEventKind",
    "create",
    "apply_event",
    "record_event",
    "allowed_events",
    "is_terminal",
    "missing_rules",
]


class TicketState(str, Enum):
    NEW = "new"
    IN_PROGRESS = "in_progress"
    RESOLVED = "resolved"
    CLOSED = "closed"


INITIAL_STATE = TicketState.NEW

Outcome = Literal["accepted", "rejected"]


@dataclass(frozen=True, slots=True)
class TransitionRule:
    """What happens when an event arrives in a given state.

    `accepted=False` means the event is rejected and the state is left alone;
    `next_state` is only meaningful for accepted rules and may equal the
    current state (e.g. replying while in progress).
    """

    accepted: bool
    narration: str
    next_state: TicketState | None = None
    reason: str | None = None


def _accept(narration: str, next_state: TicketState) -> TransitionRule:
    return TransitionRule(accepted=True, narration=narration, next_state=next_state)


def _reject(reason: str, narration: str) -> TransitionRule:
    return TransitionRule(accepted=False, narration=narration, reason=reason)


_S = TicketState
_E = EventKind

TRANSITION_TABLE: dict[tuple[TicketState, EventKind], TransitionRule] = {
    (_S.NEW, _E.ASSIGN_AGENT): _accept("Assigned to agent: {agent}", _S.IN_PROGRESS),
    (_S.NEW, _E.REPLY): _accept(
        "Replying to customer and starting work: {message}", _S.IN_PROGRESS
    ),
    (_S.NEW, _E.RESOLVE): _reject(
        "not started", "Can't resolve immediately. Assign and work on it first."
    ),
    (_S.NEW, _E.CLOSE): _reject(
        "not resolved", "Can't close a new ticket directly. Resolve it first."
    ),
    (_S.IN_PROGRESS, _E.ASSIGN_AGENT): _accept(
        "Already assigned. Agent can continue working.", _S.IN_PROGRESS
    ),
    (_S.IN_PROGRESS, _E.REPLY): _accept("Updating customer: {message}", _S.IN_PROGRESS),
    (_S.IN_PROGRESS, _E.RESOLVE): _accept("Marking ticket as resolved.", _S.RESOLVED),
    (_S.IN_PROGRESS, _E.CLOSE): _reject(
        "not resolved", "Cannot close directly. Resolve it first."
    ),
    (_S.RESOLVED, _E.ASSIGN_AGENT): _reject(
        "already resolved", "Already resolved. Reassign only if reopened."
    ),
    (_S.RESOLVED, _E.REPLY): _accept(
        "Informing customer that ticket is already resolved: {message}", _S.RESOLVED
    ),
    (_S.RESOLVED, _E.RESOLVE): _reject("already resolved", "Ticket already resolved."),
    (_S.RESOLVED, _E.CLOSE): _accept("Closing ticket.", _S.CLOSED),
    (_S.CLOSED, _E.ASSIGN_AGENT): _reject(
        "closed", "Ticket is closed. Cannot assign a new agent."
    ),
    (_S.CLOSED, _E.REPLY): _reject("closed", "Ticket is closed. Cannot reply."),
    (_S.CLOSED, _E.RESOLVE): _reject("closed", "Ticket is closed. Cannot resolve."),
    (_S.CLOSED, _E.CLOSE): _reject("already closed", "Already closed."),
}


def missing_rules(
    table: dict[tuple[TicketState, EventKind], TransitionRule],
) -> list[tuple[TicketState, EventKind]]:
    return [(s, e) for s in TicketState for e in EventKind if (s, e) not in table]


_missing = missing_rules(TRANSITION_TABLE)
if _missing:
    raise RuntimeError(f"Transition table is not total; missing: {_missing}")


def allowed_events(state: TicketState) -> list[EventKind]:
    """Event kinds that would be accepted in `state`, in declaration order."""

    return [e for e in EventKind if TRANSITION_TABLE[(state, e)].accepted]


def is_terminal(state: TicketState) -> bool:
    return not allowed_events(state)


class _NarrationValues(dict[str, object]):
    def __missing__(self, key: str) -> str:
        return ""


@dataclass(frozen=True, slots=True)
class Effect:
    outcome: Outcome
    from_state: TicketState
    to_state: TicketState
    message: str
    reason: str | None = None

    @property
    def accepted(self) -> bool:
        return self.outcome == "accepted"

    @property
    def changed(self) -> bool:
        return self.from_state != self.to_state

    @property
    def description(self) -> str:
        if self.accepted:
            return "accepted"
        return f"rejected: {self.reason}"


@dataclass(frozen=True, slots=True)
class AppliedEvent:
    """One entry of an instance's event log."""

    sequence: int
    kind: EventKind
    event: Event
    effect: Effect

    def to_view(self) -> AppliedEventView:
        return AppliedEventView.model_validate(
            {
                "sequence": self.sequence,
                "kind": self.kind.value,
                "payload": dict(self.event.payload),
                "effect": {
                    "outcome": self.effect.outcome,
                    "reason": self.effect.reason,
                    "description": self.effect.description,
                    "from_state": self.effect.from_state.value,
                    "to_state": self.effect.to_state.value,
                    "changed": self.effect.changed,
                    "message": self.effect.message,
                },
            }
        )


class WorkflowInstance:
    """A single ticket tracked by the workflow.

    State and log are only mutated through `apply_event`. The instance carries
    its own re-entrant lock so concurrent callers are serialised per ticket.
    """

    __slots__ = ("_id", "_state", "_log", "_lock", "__weakref__")

    def __init__(self, instance_id: str) -> None:
        self._id = instance_id
        self._state = INITIAL_STATE
        self._log: list[AppliedEvent] = []
        self._lock = threading.RLock()

    def __repr__(self) -> str:
        return f"WorkflowInstance(id={self._id!r}, state={self._state.value}, events={len(self._log)})"

    @property
    def id(self) -> str:  # noqa: A003
        return self._id

    @property
    def state(self) -> TicketState:
        return self._state

    @property
    def events(self) -> tuple[AppliedEvent, ...]:
        with self._lock:
            return tuple(self._log)

    def snapshot(self) -> InstanceSnapshot:
        with self._lock:
            return InstanceSnapshot(
                id=self._id,
                state=self._state.value,
                terminal=is_terminal(self._state),
                allowed_events=[e.value for e in allowed_events(self._state)],
                events=[entry.to_view() for entry in self._log],
            )


def create(instance_id: str) -> WorkflowInstance:
    return WorkflowInstance(instance_id)


def apply_event(instance: WorkflowInstance, event: Event) -> Effect:
    """Apply `event` to `instance` and return what happened.

    Rejected transitions are a normal outcome, never an exception. Only an
    event kind outside the closed set raises (UnknownEventKind), in which case
    nothing is mutated or logged.
    """

    return record_event(instance, event).effect


def record_event(instance: WorkflowInstance, event: Event) -> AppliedEvent:
    """Same as `apply_event` but returns the full log entry."""

    with instance._lock:
        kind = parse_event_kind(event.kind)
        rule = TRANSITION_TABLE[(instance._state, kind)]

        current = instance._state
        target = rule.next_state if rule.accepted and rule.next_state is not None else current
        message = rule.narration.format_map(_NarrationValues(event.payload))
        effect = Effect(
            outcome="accepted" if rule.accepted else "rejected",
            from_state=current,
            to_state=target,
            message=message,
            reason=rule.reason,
        )

        instance._state = target
        applied = AppliedEvent(
            sequence=len(instance._log) + 1, kind=kind, event=event, effect=effect
        )
        instance._log.append(applied)

        log = logger.info if effect.accepted else logger.debug
        log(
            "Event %s",
            effect.outcome,
            extra={
                "instance_id": instance._id,
                "event_kind": kind.value,
                "from_state": current.value,
                "to_state": target.value,
                "outcome": effect.outcome,
                "reason": effect.reason,
            },
        )
        return applied
