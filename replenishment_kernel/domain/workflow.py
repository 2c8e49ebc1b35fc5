"""
Canonical workflow types (``replenishment_kernel.domain.workflow``).

Responsibility
--------------
Pure value objects for workflow state machines, so that Guard,
Transition, and Workflow are defined once and the order lifecycle is
declared as data rather than as branching code.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.  No imports
from ``repositories/``, ``services/``, or outer layers.

Invariants enforced
-------------------
* Transitions reference only states in ``Workflow.states``.
* ``initial_states`` are members of ``states``.
* ``(from_state, action)`` identifies at most one transition.
* Terminal states have no outgoing transitions.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Guard:
    """A condition that must be satisfied before a transition fires.

    Descriptive only; the owning service evaluates the condition.
    """
    name: str
    description: str


@dataclass(frozen=True)
class Transition:
    """A valid state transition in a workflow."""
    from_state: str
    to_state: str
    action: str
    guard: Guard | None = None
    requires_reason_code: bool = False


@dataclass(frozen=True)
class Workflow:
    """A state machine definition for a document lifecycle.

    Contract: frozen; ``transitions`` reference only states in ``states``.
    Construction fails with ``ValueError`` when the definition is
    inconsistent, so a broken table never reaches a running service.
    """
    name: str
    description: str
    initial_states: tuple[str, ...]
    states: tuple[str, ...]
    transitions: tuple[Transition, ...]
    terminal_states: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        known = set(self.states)
        for state in self.initial_states:
            if state not in known:
                raise ValueError(f"{self.name}: unknown initial state {state}")
        seen: set[tuple[str, str]] = set()
        for t in self.transitions:
            if t.from_state not in known or t.to_state not in known:
                raise ValueError(
                    f"{self.name}: transition {t.action} references unknown state"
                )
            if t.from_state in self.terminal_states:
                raise ValueError(
                    f"{self.name}: terminal state {t.from_state} has outgoing "
                    f"transition {t.action}"
                )
            key = (t.from_state, t.action)
            if key in seen:
                raise ValueError(
                    f"{self.name}: duplicate transition {t.action} from {t.from_state}"
                )
            seen.add(key)

    def find(self, from_state: str, action: str) -> Transition | None:
        """Return the transition for ``action`` out of ``from_state``, if any."""
        for t in self.transitions:
            if t.from_state == from_state and t.action == action:
                return t
        return None

    def actions_from(self, state: str) -> tuple[str, ...]:
        """Actions defined out of ``state``, in declaration order."""
        return tuple(t.action for t in self.transitions if t.from_state == state)

    def is_terminal(self, state: str) -> bool:
        return state in self.terminal_states
