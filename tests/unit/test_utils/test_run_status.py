"""Unit tests for the run status table"""

import pytest
from fastapi import HTTPException

from assistant_runs.utils.run_status import (
    RUN_STATUSES,
    RUN_TRANSITIONS,
    TERMINAL_RUN_STATUSES,
    can_transition,
    ensure_status_in,
    ensure_transition,
    is_terminal,
    sources_for,
    validate_run_status,
)


def test_every_status_has_a_transition_entry():
    assert set(RUN_TRANSITIONS) == RUN_STATUSES


def test_terminal_statuses_have_no_outgoing_edges():
    for status in TERMINAL_RUN_STATUSES:
        assert RUN_TRANSITIONS[status] == frozenset()
        assert is_terminal(status)


@pytest.mark.parametrize(
    "current,target",
    [
        ("queued", "in_progress"),
        ("queued", "cancelling"),
        ("in_progress", "requires_action"),
        ("requires_action", "queued"),
        ("requires_action", "cancelling"),
        ("cancelling", "cancelled"),
        ("cancelling", "cancelling"),
    ],
)
def test_allowed_transitions(current, target):
    assert can_transition(current, target)


@pytest.mark.parametrize(
    "current,target",
    [
        ("queued", "cancelled"),
        ("queued", "requires_action"),
        ("in_progress", "queued"),
        ("completed", "cancelling"),
        ("cancelled", "cancelling"),
        ("requires_action", "completed"),
    ],
)
def test_rejected_transitions(current, target):
    assert not can_transition(current, target)


def test_sources_for_cancelling():
    assert sources_for("cancelling") == {
        "queued",
        "in_progress",
        "requires_action",
        "cancelling",
    }


def test_sources_for_cancelled_is_only_cancelling():
    assert sources_for("cancelled") == {"cancelling"}


def test_validate_run_status_rejects_unknown_values():
    assert validate_run_status("queued") == "queued"
    with pytest.raises(ValueError, match="Invalid run status 'running'"):
        validate_run_status("running")


def test_ensure_status_in_names_the_rejected_status():
    with pytest.raises(HTTPException) as exc_info:
        ensure_status_in("in_progress", frozenset({"requires_action"}), "submit tool outputs")

    assert exc_info.value.status_code == 400
    assert exc_info.value.detail == 'Run status is "in_progress", cannot submit tool outputs'


def test_ensure_transition_accepts_legal_edge():
    ensure_transition("requires_action", "cancelling", "cancel run")


def test_ensure_transition_rejects_terminal_source():
    with pytest.raises(HTTPException) as exc_info:
        ensure_transition("completed", "cancelling", "cancel run")

    assert exc_info.value.status_code == 400
    assert '"completed"' in exc_info.value.detail
