from __future__ import annotations

import pytest

from job_autopilot.core.models import ApplicationEventType, ApplicationStatus
from job_autopilot.errors import ApplicationNotFoundError, InvalidTransitionError
from job_autopilot.tracker.state_machine import (
    STATUS_EVENT_TYPES,
    can_transition,
    ensure_transition,
    is_terminal,
)


S = ApplicationStatus


def test_every_status_has_an_event_type() -> None:
    assert set(STATUS_EVENT_TYPES) == set(ApplicationStatus)


@pytest.mark.parametrize(
    "current, requested",
    [
        (S.QUEUED, S.SUBMISSION_IN_PROGRESS),
        (S.SUBMISSION_IN_PROGRESS, S.SUBMITTED),
        (S.SUBMISSION_IN_PROGRESS, S.FAILED),
        (S.SUBMITTED, S.CONFIRMED),
        (S.SUBMITTED, S.RESPONDED),
        (S.CONFIRMED, S.RESPONDED),
        (S.FAILED, S.ARCHIVED),
        (S.QUEUED, S.CANCELLED),
    ],
)
def test_allowed_transitions(current, requested) -> None:
    assert can_transition(current, requested)


@pytest.mark.parametrize(
    "current, requested",
    [
        (S.QUEUED, S.SUBMITTED),
        (S.FAILED, S.SUBMITTED),
        (S.RESPONDED, S.QUEUED),
        (S.ARCHIVED, S.CANCELLED),
        (S.CANCELLED, S.ARCHIVED),
    ],
)
def test_forbidden_transitions(current, requested) -> None:
    assert not can_transition(current, requested)
    with pytest.raises(InvalidTransitionError, match=f"Cannot move application from {current.value} to {requested.value}"):
        ensure_transition(current, requested)


def test_terminal_statuses() -> None:
    assert is_terminal(S.RESPONDED)
    assert is_terminal(S.FAILED)
    assert not is_terminal(S.SUBMITTED)


def test_create_application_records_queued_event(tracker, posting) -> None:
    application = tracker.create_application("alice", posting.id)

    assert application.status == S.QUEUED
    assert [event.type for event in application.events] == [ApplicationEventType.APPLICATION_QUEUED]


def test_each_status_change_appends_exactly_one_event(tracker, posting) -> None:
    application = tracker.create_application("alice", posting.id)

    tracker.update_application_status(application.id, S.SUBMISSION_IN_PROGRESS)
    tracker.update_application_status(application.id, S.SUBMITTED, {"confirmation": "abc"})
    updated = tracker.update_application_status(application.id, S.CONFIRMED)

    assert [event.type for event in updated.events] == [
        ApplicationEventType.APPLICATION_QUEUED,
        ApplicationEventType.SUBMISSION_STARTED,
        ApplicationEventType.SUBMISSION_SUCCEEDED,
        ApplicationEventType.SUBMISSION_CONFIRMED,
    ]
    assert updated.events[2].payload == {"confirmation": "abc"}
    assert updated.response_metadata is None


def test_responded_stores_response_metadata(tracker, posting) -> None:
    application = tracker.create_application("alice", posting.id)
    for status in (S.SUBMISSION_IN_PROGRESS, S.SUBMITTED):
        tracker.update_application_status(application.id, status)

    updated = tracker.update_application_status(application.id, S.RESPONDED, {"outcome": "interview"})

    assert updated.response_metadata == {"outcome": "interview"}
    assert updated.events[-1].type == ApplicationEventType.RESPONSE_RECEIVED


def test_illegal_transition_leaves_record_untouched(tracker, posting) -> None:
    application = tracker.create_application("alice", posting.id)

    with pytest.raises(InvalidTransitionError):
        tracker.update_application_status(application.id, S.SUBMITTED)

    unchanged = tracker.get_application("alice", application.id)
    assert unchanged.status == S.QUEUED
    assert len(unchanged.events) == 1


def test_lookup_is_scoped_to_owner(tracker, posting) -> None:
    application = tracker.create_application("alice", posting.id)

    with pytest.raises(ApplicationNotFoundError):
        tracker.get_application("bob", application.id)
    with pytest.raises(ApplicationNotFoundError):
        tracker.update_application_status(application.id, S.CANCELLED, user_id="bob")
    assert tracker.find_application(application.id).user_id == "alice"
    assert tracker.find_application("missing") is None


def test_listeners_run_after_commit_and_failures_are_contained(tracker, posting) -> None:
    seen = []

    def broken(application, previous, event):
        raise RuntimeError("listener down")

    tracker.add_listener(broken)
    tracker.add_listener(lambda application, previous, event: seen.append((previous, application.status)))
    application = tracker.create_application("alice", posting.id)

    updated = tracker.update_application_status(application.id, S.CANCELLED)

    assert updated.status == S.CANCELLED
    assert seen == [(S.QUEUED, S.CANCELLED)]


def test_reorder_sets_priorities_without_touching_status(tracker, posting) -> None:
    first = tracker.create_application("alice", posting.id)
    second = tracker.create_application("alice", posting.id)
    third = tracker.create_application("alice", posting.id)

    tracker.reorder_applications("alice", [third.id, first.id, second.id])

    queue = tracker.list_application_queue("alice")
    assert [app.id for app in queue] == [third.id, first.id, second.id]
    assert [app.priority for app in queue] == [3, 2, 1]
    assert {app.status for app in queue} == {S.QUEUED}


def test_reorder_with_foreign_id_rolls_back(tracker, posting) -> None:
    mine = tracker.create_application("alice", posting.id)
    theirs = tracker.create_application("bob", posting.id)

    with pytest.raises(ApplicationNotFoundError):
        tracker.reorder_applications("alice", [mine.id, theirs.id])

    assert tracker.get_application("alice", mine.id).priority == 0


def test_queue_view_keeps_latest_five_events(tracker, posting) -> None:
    application = tracker.create_application("alice", posting.id)
    for i in range(6):
        tracker.add_note("alice", application.id, f"note {i}")

    queued = tracker.list_application_queue("alice")[0]
    full = tracker.get_application("alice", application.id)

    assert len(full.events) == 7
    assert [event.payload["note"] for event in queued.events] == [f"note {i}" for i in range(1, 6)]


def test_statistics(tracker, posting) -> None:
    responded = tracker.create_application("alice", posting.id)
    for status in (S.SUBMISSION_IN_PROGRESS, S.SUBMITTED, S.RESPONDED):
        tracker.update_application_status(responded.id, status)
    submitted = tracker.create_application("alice", posting.id)
    for status in (S.SUBMISSION_IN_PROGRESS, S.SUBMITTED):
        tracker.update_application_status(submitted.id, status)
    tracker.create_application("alice", posting.id)

    stats = tracker.get_statistics("alice")

    assert stats["total"] == 3
    assert stats["by_status"]["QUEUED"] == 1
    assert stats["response_rate"] == 50
