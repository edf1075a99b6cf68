"""Ticket workflow domain.

This package provides:
- A closed set of ticket states and event kinds
- A total transition table, so every (state, event) pair has a defined outcome
- Per-ticket subscribers notified in registration order
- Interchangeable renderers for applied events
"""

from .engine import WorkflowEngine
from .events import Event, EventKind, UnknownEventKind, parse_event_kind
from .notifications import ALL_INSTANCES, LoggingNotifier, SubscriberRegistry
from .rendering import RENDERERS, get_renderer
from .state_machine import (
    TRANSITION_TABLE,
    AppliedEvent,
    Effect,
    TicketState,
    TransitionRule,
    WorkflowInstance,
    allowed_events,
    apply_event,
    create,
    is_terminal,
    record_event,
)

__all__ = [
    "ALL_INSTANCES",
    "AppliedEvent",
    "Effect",
    "Event",
    "EventKind",
    "LoggingNotifier",
    "RENDERERS",
    "SubscriberRegistry",
    "TRANSITION_TABLE",
    "TicketState",
    "TransitionRule",
    "UnknownEventKind",
    "WorkflowEngine",
    "WorkflowInstance",
    "allowed_events",
    "apply_event",
    "create",
    "get_renderer",
    "is_terminal",
    "parse_event_kind",
    "record_event",
]
