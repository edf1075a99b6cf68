"""Fan-out of applied events to subscribers.

Subscribers are plain callables registered per instance id. They are invoked
in insertion order; subscribers registered under ``ALL_INSTANCES`` run after
the instance-specific ones.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass

from .state_machine import AppliedEvent, WorkflowInstance

logger = logging.getLogger(__name__)

ALL_INSTANCES = "*"

Subscriber = Callable[[WorkflowInstance, AppliedEvent], None]


class SubscriberRegistry:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._subscribers: dict[str, list[Subscriber]] = {}

    def subscribe(self, instance_id: str, subscriber: Subscriber) -> None:
        with self._lock:
            current = self._subscribers.setdefault(instance_id, [])
            if subscriber in current:
                return
            current.append(subscriber)
        logger.debug("Subscriber added", extra={"instance_id": instance_id})

    def unsubscribe(self, instance_id: str, subscriber: Subscriber) -> bool:
        """Remove `subscriber`; returns False if it was not registered."""

        with self._lock:
            current = self._subscribers.get(instance_id, [])
            if subscriber not in current:
                return False
            current.remove(subscriber)
            if not current:
                del self._subscribers[instance_id]
        logger.debug("Subscriber removed", extra={"instance_id": instance_id})
        return True

    def subscribers(self, instance_id: str) -> list[Subscriber]:
        with self._lock:
            own = list(self._subscribers.get(instance_id, []))
            if instance_id == ALL_INSTANCES:
                return own
            return own + list(self._subscribers.get(ALL_INSTANCES, []))

    def notify(self, instance: WorkflowInstance, applied: AppliedEvent) -> int:
        # Snapshot first so subscribers may (un)subscribe while being notified.
        targets = self.subscribers(instance.id)
        for subscriber in targets:
            subscriber(instance, applied)
        return len(targets)


@dataclass(frozen=True, slots=True)
class LoggingNotifier:
    """Subscriber that records a notification line via logging.

    Nothing is delivered anywhere; `channel` is a label such as "email" or
    "mobile" and `recipient` is whoever would have been notified.
    """

    channel: str
    recipient: str

    def __call__(self, instance: WorkflowInstance, applied: AppliedEvent) -> None:
        logger.info(
            "[%s] %s: ticket %s %s",
            self.channel,
            self.recipient,
            instance.id,
            applied.effect.description,
            extra={
                "channel": self.channel,
                "recipient": self.recipient,
                "instance_id": instance.id,
                "event_kind": applied.kind.value,
                "to_state": applied.effect.to_state.value,
            },
        )

    @staticmethod
    def parse(value: str) -> LoggingNotifier:
        """Build a notifier from "channel:recipient"."""

        channel, sep, recipient = value.partition(":")
        if not sep or not channel.strip() or not recipient.strip():
            raise ValueError(f"Expected 'channel:recipient', got {value!r}")
        return LoggingNotifier(channel=channel.strip(), recipient=recipient.strip())
