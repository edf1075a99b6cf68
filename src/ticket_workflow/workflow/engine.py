from __future__ import annotations

import logging
import threading
import weakref
from collections import deque
from dataclasses import dataclass, field

from .events import Event
from .notifications import Subscriber, SubscriberRegistry
from .state_machine import AppliedEvent, WorkflowInstance, create, record_event

logger = logging.getLogger(__name__)


@dataclass
class _Dispatch:
    """Pending notifications for one instance, in sequence order."""

    lock: threading.Lock = field(default_factory=threading.Lock)
    pending: deque[AppliedEvent] = field(default_factory=deque)
    draining: bool = False


class WorkflowEngine:
    """Applies events to ticket instances and fans them out to subscribers.

    Instances are owned by the caller; the engine does not keep track of them.
    Recording an event is serialised per instance. Subscribers run with no lock
    held: applied events are queued per instance and delivered in sequence
    order by whichever caller is currently draining that queue. An `apply`
    made while another caller (or an enclosing subscriber) is draining returns
    once the event is recorded; its notification follows in order.
    """

    def __init__(self, registry: SubscriberRegistry | None = None) -> None:
        self.registry = registry or SubscriberRegistry()
        self._lock = threading.Lock()
        self._dispatch: weakref.WeakKeyDictionary[WorkflowInstance, _Dispatch] = (
            weakref.WeakKeyDictionary()
        )

    def create(self, instance_id: str) -> WorkflowInstance:
        instance = create(instance_id)
        logger.debug("Workflow instance created", extra={"instance_id": instance_id})
        return instance

    def _dispatch_for(self, instance: WorkflowInstance) -> _Dispatch:
        with self._lock:
            dispatch = self._dispatch.get(instance)
            if dispatch is None:
                dispatch = self._dispatch[instance] = _Dispatch()
            return dispatch

    def apply(self, instance: WorkflowInstance, event: Event) -> AppliedEvent:
        dispatch = self._dispatch_for(instance)
        with dispatch.lock:
            applied = record_event(instance, event)
            dispatch.pending.append(applied)
            if dispatch.draining:
                return applied
            dispatch.draining = True

        self._drain(instance, dispatch)
        return applied

    def _drain(self, instance: WorkflowInstance, dispatch: _Dispatch) -> None:
        while True:
            with dispatch.lock:
                if not dispatch.pending:
                    dispatch.draining = False
                    return
                applied = dispatch.pending.popleft()
            try:
                self.registry.notify(instance, applied)
            except BaseException:
                # Whatever is still queued goes out with the next apply.
                with dispatch.lock:
                    dispatch.draining = False
                raise

    def subscribe(self, instance_id: str, subscriber: Subscriber) -> None:
        self.registry.subscribe(instance_id, subscriber)

    def unsubscribe(self, instance_id: str, subscriber: Subscriber) -> bool:
        return self.registry.unsubscribe(instance_id, subscriber)
