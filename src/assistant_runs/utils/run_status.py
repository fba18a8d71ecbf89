"""Run status values and the transition table shared by the API and the worker.

Every status write in the codebase goes through ``ensure_transition`` (or a
conditional UPDATE whose expected statuses come from ``sources_for``), so
this table is the single definition of the run lifecycle:

    queued ──► in_progress ──► requires_action ──► queued (tool outputs)
      │             │                 │
      └─────────────┴─────────────────┴──► cancelling ──► cancelled

plus the worker-only terminal edges to completed / failed / expired.
"""

from typing import Literal

from fastapi import HTTPException

RunStatusValue = Literal[
    "queued",
    "in_progress",
    "requires_action",
    "cancelling",
    "cancelled",
    "completed",
    "failed",
    "expired",
]

RUN_STATUSES: frozenset[str] = frozenset(
    {
        "queued",
        "in_progress",
        "requires_action",
        "cancelling",
        "cancelled",
        "completed",
        "failed",
        "expired",
    }
)

TERMINAL_RUN_STATUSES: frozenset[str] = frozenset(
    {"cancelled", "completed", "failed", "expired"}
)

RUN_TRANSITIONS: dict[str, frozenset[str]] = {
    "queued": frozenset({"in_progress", "cancelling", "failed", "expired"}),
    "in_progress": frozenset(
        {"requires_action", "completed", "failed", "expired", "cancelling"}
    ),
    "requires_action": frozenset({"queued", "cancelling", "failed", "expired"}),
    # Re-cancelling a cancelling run only refreshes the signal
    "cancelling": frozenset(
        {"cancelling", "cancelled", "completed", "failed", "expired"}
    ),
    "cancelled": frozenset(),
    "completed": frozenset(),
    "failed": frozenset(),
    "expired": frozenset(),
}

TOOL_OUTPUT_STATUSES: frozenset[str] = frozenset({"requires_action"})


def validate_run_status(status: str) -> str:
    """Return ``status`` if it is a known run status, raise ``ValueError`` otherwise."""
    if status not in RUN_STATUSES:
        raise ValueError(
            f"Invalid run status '{status}'. Must be one of: {sorted(RUN_STATUSES)}"
        )
    return status


def can_transition(current: str, target: str) -> bool:
    return target in RUN_TRANSITIONS.get(current, frozenset())


def sources_for(target: str) -> frozenset[str]:
    """All statuses from which ``target`` is reachable in one step."""
    return frozenset(
        status for status, targets in RUN_TRANSITIONS.items() if target in targets
    )


def is_terminal(status: str) -> bool:
    return status in TERMINAL_RUN_STATUSES


def ensure_status_in(status: str, allowed: frozenset[str], action: str) -> None:
    """Reject ``action`` with a 400 naming ``status`` unless it is allowed."""
    if status not in allowed:
        raise HTTPException(400, f'Run status is "{status}", cannot {action}')


def ensure_transition(current: str, target: str, action: str) -> None:
    ensure_status_in(current, sources_for(target), action)
