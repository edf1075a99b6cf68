from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType


class EventKind(str, Enum):
    ASSIGN_AGENT = "assign_agent"
    REPLY = "reply"
    RESOLVE = "resolve"
    CLOSE = "close"


class UnknownEventKind(ValueError):
    """Raised when an event kind is outside the closed set."""

    def __init__(self, kind: object) -> None:
        self.kind = kind
        allowed = ", ".join(k.value for k in EventKind)
        super().__init__(f"Unknown event kind: {kind!r} (expected one of: {allowed})")


def _normalise(value: str) -> str:
    return "".join(ch for ch in value.lower() if ch.isalnum())


_KIND_LOOKUP: dict[str, EventKind] = {_normalise(k.value): k for k in EventKind}


def parse_event_kind(value: object) -> EventKind:
    """Resolve `value` to an EventKind.

    Accepts enum members and strings in any common spelling, e.g.
    "assign_agent", "AssignAgent" or "assign-agent".
    """

    if isinstance(value, EventKind):
        return value
    if isinstance(value, str):
        kind = _KIND_LOOKUP.get(_normalise(value))
        if kind is not None:
            return kind
    raise UnknownEventKind(value)


@dataclass(frozen=True, slots=True)
class Event:
    """A request to move a ticket through its lifecycle.

    The payload only feeds narration (agent name, reply text). It never
    influences which transition is taken. It is copied into a read-only
    mapping on construction, so later changes to the caller's dict do not
    leak into the event log.
    """

    kind: EventKind | str
    payload: Mapping[str, object] = field(default_factory=dict)

    def __post_init__(self) -> None:
        payload = self.payload if self.payload is not None else {}
        if not isinstance(payload, Mapping):
            raise TypeError(f"Event payload must be a mapping, got {type(payload).__name__}")
        object.__setattr__(self, "payload", MappingProxyType(dict(payload)))

    @staticmethod
    def assign_agent(agent: str) -> Event:
        return Event(kind=EventKind.ASSIGN_AGENT, payload={"agent": agent})

    @staticmethod
    def reply(message: str) -> Event:
        return Event(kind=EventKind.REPLY, payload={"message": message})

    @staticmethod
    def resolve() -> Event:
        return Event(kind=EventKind.RESOLVE)

    @staticmethod
    def close() -> Event:
        return Event(kind=EventKind.CLOSE)

    def to_json(self) -> dict[str, object]:
        kind = self.kind.value if isinstance(self.kind, EventKind) else self.kind
        return {"kind": kind, "payload": dict(self.payload)}
