from __future__ import annotations

from dataclasses import dataclass, field
import logging
from typing import Any, Callable, Iterable, Mapping, Optional

from .rules.eligibility import EligibilityConflict, validate_eligibility

logger = logging.getLogger(__name__)


@dataclass
class SelectionState:
    selected_ids: list[int] = field(default_factory=list)
    conflicts: dict[int, list[EligibilityConflict]] = field(default_factory=dict)


@dataclass(frozen=True)
class SelectionChange:
    """What changed, and the selection as it stands afterwards."""

    kind: str  # "added", "removed", "cleared" or "conflicts"
    athlete_ids: tuple[int, ...]
    selected_ids: tuple[int, ...]
    conflicted_ids: frozenset[int]


SelectionListener = Callable[[SelectionChange], None]


class RosterSelection:
    """Session-only roster selection. Nothing here is written to disk."""

    def __init__(self, initial_state: Optional[SelectionState] = None) -> None:
        self._state = initial_state or SelectionState()
        self._listeners: list[SelectionListener] = []

    @property
    def state(self) -> SelectionState:
        return self._state

    def on_change(self, listener: SelectionListener) -> Callable[[], None]:
        """Register ``listener``; call the returned function to detach it."""
        self._listeners.append(listener)

        def detach() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return detach

    def _notify(self, kind: str, athlete_ids: Iterable[int] = ()) -> None:
        change = SelectionChange(
            kind=kind,
            athlete_ids=tuple(athlete_ids),
            selected_ids=tuple(self._state.selected_ids),
            conflicted_ids=frozenset(k for k, v in self._state.conflicts.items() if v),
        )
        for listener in list(self._listeners):
            try:
                listener(change)
            except Exception:
                logger.exception("Selection listener failed on %s change", kind)

    @property
    def selected_ids(self) -> list[int]:
        return list(self._state.selected_ids)

    def is_selected(self, athlete_id: int) -> bool:
        return int(athlete_id) in self._state.selected_ids

    def add(self, athlete_id: int) -> None:
        if self.is_selected(athlete_id):
            return
        self._state.selected_ids.append(int(athlete_id))
        self._notify("added", [int(athlete_id)])

    def remove(self, athlete_id: int) -> None:
        athlete_id = int(athlete_id)
        if athlete_id not in self._state.selected_ids:
            return
        self._state.selected_ids.remove(athlete_id)
        self._state.conflicts.pop(athlete_id, None)
        self._notify("removed", [athlete_id])

    def toggle(self, athlete_id: int) -> bool:
        if self.is_selected(athlete_id):
            self.remove(athlete_id)
            return False
        self.add(athlete_id)
        return True

    def add_multiple(self, athlete_ids: Iterable[int]) -> None:
        added: list[int] = []
        for athlete_id in athlete_ids:
            if not self.is_selected(athlete_id):
                self._state.selected_ids.append(int(athlete_id))
                added.append(int(athlete_id))
        if added:
            self._notify("added", added)

    def clear(self) -> None:
        dropped = list(self._state.selected_ids)
        self._state = SelectionState()
        self._notify("cleared", dropped)

    def set_conflicts(self, athlete_id: int, conflicts: Iterable[EligibilityConflict]) -> None:
        conflicts = list(conflicts)
        if conflicts:
            self._state.conflicts[int(athlete_id)] = conflicts
        else:
            self._state.conflicts.pop(int(athlete_id), None)
        self._notify("conflicts", [int(athlete_id)])

    def get_conflicts(self, athlete_id: int) -> list[EligibilityConflict]:
        return list(self._state.conflicts.get(int(athlete_id), []))

    def has_conflicts(self, athlete_id: int) -> bool:
        return bool(self._state.conflicts.get(int(athlete_id)))

    def all_conflicts(self) -> list[EligibilityConflict]:
        out: list[EligibilityConflict] = []
        for athlete_id in self._state.selected_ids:
            out.extend(self._state.conflicts.get(athlete_id, []))
        return out

    def clear_conflicts(self) -> None:
        cleared = list(self._state.conflicts)
        self._state.conflicts = {}
        self._notify("conflicts", cleared)

    def revalidate(
        self,
        athletes_by_id: Mapping[int, Any],
        ruleset: Any,
        reference_year: Optional[int] = None,
    ) -> dict[int, list[EligibilityConflict]]:
        """Recompute conflicts for every selected athlete against ``ruleset``.

        Selected ids with no athlete record are dropped from the conflict map.
        """
        conflicts: dict[int, list[EligibilityConflict]] = {}
        for athlete_id in self._state.selected_ids:
            athlete = athletes_by_id.get(athlete_id)
            if athlete is None:
                continue
            found = validate_eligibility(athlete, ruleset, reference_year)
            if found:
                conflicts[athlete_id] = found
        self._state.conflicts = conflicts
        self._notify("conflicts", self._state.selected_ids)
        return dict(conflicts)
