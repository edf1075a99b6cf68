"""Pydantic read models for inspecting workflow instances."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field


class EffectView(BaseModel):
    outcome: Literal["accepted", "rejected"]
    reason: str | None = None
    description: str
    from_state: str
    to_state: str
    changed: bool
    message: str


class AppliedEventView(BaseModel):
    sequence: int = Field(ge=1)
    kind: str
    payload: dict[str, object] = Field(default_factory=dict)
    effect: EffectView


class InstanceSnapshot(BaseModel):
    id: str
    state: str
    terminal: bool
    allowed_events: list[str] = Field(default_factory=list)
    events: list[AppliedEventView] = Field(default_factory=list)
