"""
Layer visibility for the drawing overlay.

Each finding category is a layer that can be hidden from the visualization;
the base drawing can be dimmed independently. State is an immutable value and
every operation returns a new one.
"""
from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Iterable

from app.models.findings import ComplianceFinding


@dataclass(frozen=True)
class LayerState:
    categories: tuple[str, ...] = ()          # known layers for the current report
    hidden: frozenset[str] = field(default_factory=frozenset)
    show_base: bool = True

    def is_hidden(self, category: str) -> bool:
        return category in self.hidden


def initial_state(categories: Iterable[str]) -> LayerState:
    return LayerState(categories=tuple(sorted(set(categories))))


def toggle_layer(state: LayerState, category: str) -> LayerState:
    """Flip one category's visibility. Unknown categories leave state unchanged."""
    if category not in state.categories:
        return state
    if category in state.hidden:
        return replace(state, hidden=state.hidden - {category})
    return replace(state, hidden=state.hidden | {category})


def toggle_base(state: LayerState) -> LayerState:
    return replace(state, show_base=not state.show_base)


def reset(state: LayerState) -> LayerState:
    return replace(state, hidden=frozenset(), show_base=True)


def layer_menu(state: LayerState, findings: Iterable[ComplianceFinding]) -> list[dict]:
    """Entries for the layer menu; counts are over the whole report."""
    counts: dict[str, int] = {}
    for f in findings:
        counts[f.category_name] = counts.get(f.category_name, 0) + 1
    return [
        {"category": cat, "hidden": cat in state.hidden, "count": counts.get(cat, 0)}
        for cat in state.categories
    ]
