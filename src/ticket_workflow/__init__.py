"""Ticket workflow.

A small finite-state workflow engine for support tickets with:
- a closed set of states and events and a total transition table
- per-ticket subscribers and pluggable output renderers
- configuration loaded from `.env`
- structured logging
"""

__version__ = "0.1.0"

from ticket_workflow.config import WorkflowSettings

__all__ = ["__version__", "WorkflowSettings"]
