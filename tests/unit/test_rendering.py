"""Unit tests for applied-event renderers."""

from __future__ import annotations

import json

import pytest

from ticket_workflow.workflow.events import Event
from ticket_workflow.workflow.rendering import (
    RENDERERS,
    get_renderer,
    render_json,
    render_summary,
    render_text,
)
from ticket_workflow.workflow.state_machine import WorkflowInstance, record_event


def test_render_text_matches_narration(ticket: WorkflowInstance) -> None:
    applied = record_event(ticket, Event.assign_agent("Alice"))
    assert render_text(ticket.id, applied) == "[T1] Assigned to agent: Alice"


def test_render_summary(ticket: WorkflowInstance) -> None:
    applied = record_event(ticket, Event.resolve())
    assert render_summary(ticket.id, applied) == "T1 resolve: rejected: not started (new -> new)"


def test_render_json(ticket: WorkflowInstance) -> None:
    applied = record_event(ticket, Event.reply("Looking into it"))
    data = json.loads(render_json(ticket.id, applied))

    assert data["instance_id"] == "T1"
    assert data["sequence"] == 1
    assert data["kind"] == "reply"
    assert data["payload"] == {"message": "Looking into it"}
    assert data["effect"]["description"] == "accepted"
    assert data["effect"]["from_state"] == "new"
    assert data["effect"]["to_state"] == "in_progress"
    assert data["effect"]["changed"] is True


def test_get_renderer() -> None:
    assert set(RENDERERS) == {"text", "summary", "json"}
    assert get_renderer("summary") is render_summary
    with pytest.raises(KeyError, match="available"):
        get_renderer("yaml")
