"""CLI entrypoint for the ticket workflow.

A thin harness over the in-process API: it applies events to a ticket and
prints each outcome using the selected renderer.
"""

from __future__ import annotations

import argparse
import logging
import sys
from collections.abc import Sequence

from pydantic import ValidationError

from ticket_workflow import __version__
from ticket_workflow.config import WorkflowSettings
from ticket_workflow.logging import configure_logging
from ticket_workflow.workflow.engine import WorkflowEngine
from ticket_workflow.workflow.events import Event, EventKind, UnknownEventKind, parse_event_kind
from ticket_workflow.workflow.notifications import LoggingNotifier
from ticket_workflow.workflow.rendering import RENDERERS, Renderer, get_renderer
from ticket_workflow.workflow.state_machine import TRANSITION_TABLE, TicketState

logger = logging.getLogger(__name__)

_PAYLOAD_KEYS: dict[EventKind, str] = {
    EventKind.ASSIGN_AGENT: "agent",
    EventKind.REPLY: "message",
}

DEMO_TICKET_ID = "#5678"


def _demo_events() -> list[Event]:
    return [
        Event.assign_agent("Alice"),
        Event.reply("We are investigating your login issue."),
        Event.resolve(),
        Event.close(),
    ]


def parse_event_arg(value: str) -> Event:
    """Parse "kind" or "kind:payload" into an Event.

    The payload becomes the agent name for assign_agent and the message text
    for reply; other kinds ignore it.
    """

    raw_kind, sep, raw_payload = value.partition(":")
    kind = parse_event_kind(raw_kind.strip())
    payload: dict[str, object] = {}
    key = _PAYLOAD_KEYS.get(kind)
    if sep and key is not None:
        payload[key] = raw_payload.strip()
    return Event(kind=kind, payload=payload)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ticket-workflow",
        description="Drive support tickets through their lifecycle",
    )
    parser.add_argument("--version", action="version", version=f"ticket-workflow {__version__}")

    subparsers = parser.add_subparsers(dest="command", required=True)

    def add_output_options(sub: argparse.ArgumentParser) -> None:
        sub.add_argument(
            "--format",
            dest="output_format",
            choices=sorted(RENDERERS),
            default=None,
            help="How to print each applied event (defaults to TICKET_WORKFLOW_OUTPUT_FORMAT)",
        )
        sub.add_argument(
            "--notify",
            action="append",
            default=[],
            metavar="CHANNEL:RECIPIENT",
            help="Log a notification for every applied event, e.g. 'email:sanji@example.com'",
        )

    run = subparsers.add_parser("run", help="Apply events to a new ticket")
    run.add_argument("--id", dest="instance_id", required=True, help="Ticket identifier")
    run.add_argument(
        "events",
        nargs="+",
        metavar="EVENT",
        help="Event as 'kind' or 'kind:payload', e.g. assign_agent:Alice reply:'On it' resolve",
    )
    add_output_options(run)

    demo = subparsers.add_parser("demo", help=f"Replay the sample lifecycle of ticket {DEMO_TICKET_ID}")
    add_output_options(demo)

    subparsers.add_parser("table", help="Print the transition table")

    return parser


def _print_table() -> None:
    kinds = list(EventKind)
    width = max(len(k.value) for k in kinds) + 2
    header = "state".ljust(14) + "".join(k.value.ljust(width + 14) for k in kinds)
    print(header.rstrip())
    for state in TicketState:
        cells = []
        for kind in kinds:
            rule = TRANSITION_TABLE[(state, kind)]
            if rule.accepted and rule.next_state is not None:
                cell = f"-> {rule.next_state.value}"
            else:
                cell = f"reject ({rule.reason})"
            cells.append(cell.ljust(width + 14))
        print((state.value.ljust(14) + "".join(cells)).rstrip())


def _run_events(
    *,
    engine: WorkflowEngine,
    instance_id: str,
    events: Sequence[Event],
    renderer: Renderer,
) -> None:
    instance = engine.create(instance_id)
    for event in events:
        applied = engine.apply(instance, event)
        print(renderer(instance_id, applied))
    logger.info(
        "Run finished",
        extra={
            "instance_id": instance_id,
            "final_state": instance.state.value,
            "event_count": len(instance.events),
        },
    )


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        settings = WorkflowSettings()
    except ValidationError as e:
        # Logging isn't configured yet; keep it simple and actionable.
        print("Configuration error (check your .env):", file=sys.stderr)
        print(e, file=sys.stderr)
        return 2

    configure_logging(settings.log_level, json_output=settings.log_json, stream=sys.stderr)

    try:
        if args.command == "table":
            _print_table()
            return 0

        renderer = get_renderer(args.output_format or settings.output_format)
        engine = WorkflowEngine()
        notifiers = [LoggingNotifier.parse(value) for value in args.notify]

        if args.command == "run":
            events = [parse_event_arg(value) for value in args.events]
            instance_id = args.instance_id
        elif args.command == "demo":
            events = _demo_events()
            instance_id = DEMO_TICKET_ID
        else:
            logger.error("Unknown command", extra={"command": args.command})
            return 2

        for notifier in notifiers:
            engine.subscribe(instance_id, notifier)

        _run_events(engine=engine, instance_id=instance_id, events=events, renderer=renderer)
        return 0

    except UnknownEventKind as e:
        logger.warning(str(e), extra={"kind": str(e.kind)})
        print(str(e), file=sys.stderr)
        return 2

    except ValueError as e:
        print(str(e), file=sys.stderr)
        return 2

    except Exception:
        logger.exception("Command failed")
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
