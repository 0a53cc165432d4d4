from datetime import datetime, timezone
from itertools import product

import pytest

from core.errors import InvalidTransition, ValidationError
from core.lifecycle import TRANSITIONS, TaskStatus, can_transition, parse_status, transition
from core.priorities import Priority, parse_priority, priority_rank

ALLOWED = {
    ("todo", "in-progress"),
    ("todo", "archived"),
    ("in-progress", "todo"),
    ("in-progress", "completed"),
    ("in-progress", "archived"),
    ("completed", "todo"),
    ("completed", "archived"),
    ("archived", "todo"),
}
STATUSES = ["todo", "in-progress", "completed", "archived"]


def test_table_matches_documented_transitions():
    table = {(src.value, dst.value) for src, targets in TRANSITIONS.items() for dst in targets}
    assert table == ALLOWED


@pytest.mark.parametrize("source,target", sorted(product(STATUSES, STATUSES)))
def test_every_pair_is_accepted_or_rejected(source, target):
    if (source, target) in ALLOWED:
        status, _ = transition(source, target)
        assert status.value == target
        assert can_transition(source, target)
    else:
        with pytest.raises(InvalidTransition) as exc:
            transition(source, target)
        assert exc.value.source == source
        assert exc.value.target == target
        assert not can_transition(source, target)


def test_archived_to_completed_names_both_states():
    with pytest.raises(InvalidTransition) as exc:
        transition(TaskStatus.ARCHIVED, TaskStatus.COMPLETED)
    assert "archived" in exc.value.message
    assert "completed" in exc.value.message


def test_completed_at_only_set_when_entering_completed():
    now = datetime(2030, 1, 1, tzinfo=timezone.utc)
    status, completed_at = transition("in-progress", "completed", now=now)
    assert status is TaskStatus.COMPLETED
    assert completed_at == now

    for source, target in ALLOWED:
        _, completed_at = transition(source, target, now=now)
        assert (completed_at is not None) == (target == "completed")


def test_unknown_status_is_validation_error():
    with pytest.raises(ValidationError):
        parse_status("done")
    with pytest.raises(ValidationError):
        transition("todo", "done")


def test_priority_enum():
    assert parse_priority("high") is Priority.HIGH
    with pytest.raises(ValidationError):
        parse_priority("urgent")
    with pytest.raises(ValidationError):
        parse_priority(None)
    assert priority_rank("low") < priority_rank("medium") < priority_rank("high")
