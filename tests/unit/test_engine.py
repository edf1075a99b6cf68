"""Unit tests for the workflow engine and subscriber fan-out."""

from __future__ import annotations

import logging
import threading

import pytest

from ticket_workflow.workflow.engine import WorkflowEngine
from ticket_workflow.workflow.events import Event, EventKind
from ticket_workflow.workflow.notifications import (
    ALL_INSTANCES,
    LoggingNotifier,
    SubscriberRegistry,
)
from ticket_workflow.workflow.state_machine import AppliedEvent, TicketState, WorkflowInstance


def _recorder(name: str, calls: list[tuple[str, str, int]]):
    def subscriber(instance: WorkflowInstance, applied: AppliedEvent) -> None:
        calls.append((name, instance.id, applied.sequence))

    return subscriber


def test_subscribers_are_called_in_insertion_order(engine: WorkflowEngine) -> None:
    calls: list[tuple[str, str, int]] = []
    ticket = engine.create("T1")
    for name in ("mobile-luffy", "mobile-zoro", "email-sanji", "email-chopper"):
        engine.subscribe("T1", _recorder(name, calls))

    engine.apply(ticket, Event.assign_agent("Alice"))

    assert [c[0] for c in calls] == ["mobile-luffy", "mobile-zoro", "email-sanji", "email-chopper"]


def test_unsubscribe_keeps_remaining_order(engine: WorkflowEngine) -> None:
    calls: list[tuple[str, str, int]] = []
    ticket = engine.create("T1")
    subs = {name: _recorder(name, calls) for name in ("a", "b", "c")}
    for sub in subs.values():
        engine.subscribe("T1", sub)

    engine.apply(ticket, Event.assign_agent("Alice"))
    assert engine.unsubscribe("T1", subs["b"]) is True
    assert engine.unsubscribe("T1", subs["b"]) is False
    engine.apply(ticket, Event.resolve())

    assert calls == [("a", "T1", 1), ("b", "T1", 1), ("c", "T1", 1), ("a", "T1", 2), ("c", "T1", 2)]


def test_subscribers_are_keyed_by_instance(engine: WorkflowEngine) -> None:
    calls: list[tuple[str, str, int]] = []
    t1 = engine.create("T1")
    t2 = engine.create("T2")
    engine.subscribe("T1", _recorder("t1", calls))
    engine.subscribe(ALL_INSTANCES, _recorder("all", calls))

    engine.apply(t1, Event.reply("hi"))
    engine.apply(t2, Event.reply("hi"))

    assert calls == [("t1", "T1", 1), ("all", "T1", 1), ("all", "T2", 1)]


def test_duplicate_subscription_is_ignored() -> None:
    registry = SubscriberRegistry()
    calls: list[tuple[str, str, int]] = []
    sub = _recorder("x", calls)
    registry.subscribe("T1", sub)
    registry.subscribe("T1", sub)
    assert registry.subscribers("T1") == [sub]


def test_rejected_events_are_also_notified(engine: WorkflowEngine) -> None:
    seen: list[str] = []
    ticket = engine.create("T1")
    engine.subscribe("T1", lambda _i, applied: seen.append(applied.effect.description))

    engine.apply(ticket, Event.close())

    assert seen == ["rejected: not resolved"]


def test_subscriber_error_propagates_after_commit(engine: WorkflowEngine) -> None:
    ticket = engine.create("T1")

    def boom(_instance: WorkflowInstance, _applied: AppliedEvent) -> None:
        raise RuntimeError("subscriber failed")

    engine.subscribe("T1", boom)
    with pytest.raises(RuntimeError):
        engine.apply(ticket, Event.assign_agent("Alice"))

    assert ticket.state == TicketState.IN_PROGRESS
    assert len(ticket.events) == 1


def test_subscriber_may_apply_to_same_instance(engine: WorkflowEngine) -> None:
    ticket = engine.create("T1")

    def auto_resolve(instance: WorkflowInstance, applied: AppliedEvent) -> None:
        if applied.kind == EventKind.REPLY and instance.state == TicketState.IN_PROGRESS:
            engine.apply(instance, Event.resolve())

    engine.subscribe("T1", auto_resolve)
    engine.apply(ticket, Event.reply("Fixed, please confirm"))

    assert ticket.state == TicketState.RESOLVED
    assert [e.kind for e in ticket.events] == [EventKind.REPLY, EventKind.RESOLVE]


def test_concurrent_applies_are_serialised_per_instance(engine: WorkflowEngine) -> None:
    ticket = engine.create("T1")
    engine.apply(ticket, Event.assign_agent("Alice"))
    order: list[int] = []
    engine.subscribe("T1", lambda _i, applied: order.append(applied.sequence))

    def worker() -> None:
        for _ in range(50):
            engine.apply(ticket, Event.reply("update"))

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(ticket.events) == 1 + 8 * 50
    assert [e.sequence for e in ticket.events] == list(range(1, 402))
    assert order == list(range(2, 402))
    assert ticket.state == TicketState.IN_PROGRESS


def test_logging_notifier_logs_notification(
    engine: WorkflowEngine, caplog: pytest.LogCaptureFixture
) -> None:
    ticket = engine.create("T1")
    engine.subscribe("T1", LoggingNotifier(channel="email", recipient="sanji@example.com"))

    with caplog.at_level(logging.INFO, logger="ticket_workflow.workflow.notifications"):
        engine.apply(ticket, Event.assign_agent("Alice"))

    records = [r for r in caplog.records if r.name == "ticket_workflow.workflow.notifications"]
    assert len(records) == 1
    assert records[0].getMessage() == "[email] sanji@example.com: ticket T1 accepted"
    assert records[0].channel == "email"


@pytest.mark.parametrize("value", ["email", ":x", "email:", ""])
def test_logging_notifier_parse_rejects_malformed(value: str) -> None:
    with pytest.raises(ValueError):
        LoggingNotifier.parse(value)


def test_logging_notifier_parse() -> None:
    assert LoggingNotifier.parse("mobile: Luffy") == LoggingNotifier(
        channel="mobile", recipient="Luffy"
    )


def test_linked_instances_do_not_deadlock(engine: WorkflowEngine) -> None:
    first = engine.create("A")
    second = engine.create("B")
    for instance in (first, second):
        engine.apply(instance, Event.assign_agent("Alice"))
    barrier = threading.Barrier(2, timeout=5)
    seen: list[tuple[str, EventKind]] = []

    def relay_to(other: WorkflowInstance):
        def subscriber(instance: WorkflowInstance, applied: AppliedEvent) -> None:
            seen.append((instance.id, applied.kind))
            if applied.kind == EventKind.RESOLVE:
                barrier.wait()
                engine.apply(other, Event.reply(f"{instance.id} resolved"))

        return subscriber

    engine.subscribe("A", relay_to(second))
    engine.subscribe("B", relay_to(first))

    threads = [
        threading.Thread(target=engine.apply, args=(instance, Event.resolve()))
        for instance in (first, second)
    ]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=5)

    assert not any(t.is_alive() for t in threads)
    for instance in (first, second):
        assert [e.kind for e in instance.events] == [
            EventKind.ASSIGN_AGENT,
            EventKind.RESOLVE,
            EventKind.REPLY,
        ]
        assert instance.state == TicketState.RESOLVED
    assert sorted(seen) == [
        ("A", EventKind.REPLY),
        ("A", EventKind.RESOLVE),
        ("B", EventKind.REPLY),
        ("B", EventKind.RESOLVE),
    ]


def test_nested_apply_is_notified_after_current_event(engine: WorkflowEngine) -> None:
    ticket = engine.create("T1")
    order: list[tuple[str, int]] = []

    def auto_resolve(instance: WorkflowInstance, applied: AppliedEvent) -> None:
        order.append(("auto", applied.sequence))
        if applied.kind == EventKind.REPLY:
            engine.apply(instance, Event.resolve())

    engine.subscribe("T1", auto_resolve)
    engine.subscribe("T1", lambda _i, applied: order.append(("audit", applied.sequence)))
    engine.apply(ticket, Event.reply("Fixed"))

    assert order == [("auto", 1), ("audit", 1), ("auto", 2), ("audit", 2)]


def test_queued_notifications_survive_subscriber_error(engine: WorkflowEngine) -> None:
    ticket = engine.create("T1")
    delivered: list[int] = []
    failures = iter([True])

    def flaky(_instance: WorkflowInstance, applied: AppliedEvent) -> None:
        if next(failures, False):
            raise RuntimeError("subscriber failed")
        delivered.append(applied.sequence)

    engine.subscribe("T1", flaky)
    with pytest.raises(RuntimeError):
        engine.apply(ticket, Event.assign_agent("Alice"))
    engine.apply(ticket, Event.resolve())

    assert delivered == [2]
    assert ticket.state == TicketState.RESOLVED
