"""Renderers turning applied events into output lines.

A renderer is just a function; callers pick one per call.
"""

from __future__ import annotations

import json
from collections.abc import Callable

from .state_machine import AppliedEvent

Renderer = Callable[[str, AppliedEvent], str]


def render_text(instance_id: str, applied: AppliedEvent) -> str:
    return f"[{instance_id}] {applied.effect.message}"


def render_summary(instance_id: str, applied: AppliedEvent) -> str:
    effect = applied.effect
    return (
        f"{instance_id} {applied.kind.value}: {effect.description} "
        f"({effect.from_state.value} -> {effect.to_state.value})"
    )


def render_json(instance_id: str, applied: AppliedEvent) -> str:
    payload = {"instance_id": instance_id, **applied.to_view().model_dump(mode="json")}
    return json.dumps(payload, ensure_ascii=False)


RENDERERS: dict[str, Renderer] = {
    "text": render_text,
    "summary": render_summary,
    "json": render_json,
}


def get_renderer(name: str) -> Renderer:
    try:
        return RENDERERS[name]
    except KeyError:
        raise KeyError(
            f"Unknown renderer {name!r}; available: {', '.join(sorted(RENDERERS))}"
        ) from None
