"""Test configuration and fixtures."""

from pathlib import Path

import pytest

from ticket_workflow.workflow.engine import WorkflowEngine
from ticket_workflow.workflow.events import Event
from ticket_workflow.workflow.state_machine import WorkflowInstance, apply_event, create

_SETTINGS_ENV_VARS = (
    "LOG_LEVEL",
    "TICKET_WORKFLOW_LOG_JSON",
    "TICKET_WORKFLOW_OUTPUT_FORMAT",
)


@pytest.fixture
def isolated_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Run from an empty directory with no settings in the environment."""
    for name in _SETTINGS_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
    return tmp_path


@pytest.fixture
def ticket() -> WorkflowInstance:
    """Provide a fresh ticket in the `new` state."""
    return create("T1")


@pytest.fixture
def engine() -> WorkflowEngine:
    return WorkflowEngine()


@pytest.fixture
def closed_ticket() -> WorkflowInstance:
    """Provide a ticket that has been driven all the way to `closed`."""
    instance = create("T-closed")
    for event in (Event.assign_agent("Alice"), Event.resolve(), Event.close()):
        apply_event(instance, event)
    return instance
