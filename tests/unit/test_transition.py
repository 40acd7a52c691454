# tests/unit/test_transition.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

from unittest.mock import Mock

import pytest

from transitory.core.errors import AlreadyResolvedError, InvalidArgumentError
from transitory.core.transitions import TERMINAL_STATUSES, Transition, TransitionStatus, Vector


@pytest.fixture
def make_transition(scheduler):
    def _make(action=None, default_expiry=5.0):
        return Transition(("STOPPED", "PLAYING"), action, scheduler=scheduler, default_expiry=default_expiry)

    return _make


def record_statuses(transition):
    seen = []
    transition.on("status:*", lambda event, *payload: seen.append((event.name, payload)))
    return seen


# -----------------------------------------------------------------------------
# CONSTRUCTION
# -----------------------------------------------------------------------------
def test_status_ordering_and_labels():
    assert TransitionStatus.PENDING < TransitionStatus.EXPIRED < TransitionStatus.INTERRUPTED < TransitionStatus.COMPLETED
    assert [status.label for status in TransitionStatus] == ["pending", "expired", "interrupted", "completed"]
    assert TransitionStatus.PENDING not in TERMINAL_STATUSES


def test_ids_are_monotonic(make_transition):
    first, second = make_transition(), make_transition()
    assert second.id == first.id + 1


def test_vector_renders_with_arrow(make_transition):
    transition = make_transition()

    assert transition.vector == Vector("STOPPED", "PLAYING")
    assert transition.vector.source == "STOPPED"
    assert str(transition.vector) == "STOPPED>PLAYING"
    assert transition.to_dict() == {"id": transition.id, "vector": "STOPPED>PLAYING", "status": "pending"}


@pytest.mark.parametrize("vector", [None, "AB", ("A",), ("A", "B", "C"), ("A", ""), ("A", 1)])
def test_invalid_vector_rejected(vector):
    with pytest.raises(InvalidArgumentError):
        Transition(vector)


def test_invalid_action_rejected():
    with pytest.raises(InvalidArgumentError):
        Transition(("A", "B"), action="not callable")


def test_invalid_default_expiry_rejected():
    with pytest.raises(InvalidArgumentError):
        Transition(("A", "B"), default_expiry=0)
    with pytest.raises(InvalidArgumentError):
        Transition(("A", "B"), default_expiry=float("inf"))


# -----------------------------------------------------------------------------
# PERFORM
# -----------------------------------------------------------------------------
def test_perform_without_action_completes(make_transition, scheduler):
    transition = make_transition()
    seen = record_statuses(transition)

    assert transition.perform() is TransitionStatus.COMPLETED
    assert transition.is_terminal
    assert seen == [("status:completed", ())]
    assert scheduler.timers == []


def test_perform_relays_arguments_to_action(make_transition):
    action = Mock(side_effect=lambda transition, *args: transition.complete(*args))
    transition = make_transition(action)
    seen = record_statuses(transition)

    assert transition.perform("A", "B", "C") is TransitionStatus.COMPLETED
    action.assert_called_once_with(transition, "A", "B", "C")
    assert seen == [("status:completed", ("A", "B", "C"))]


def test_perform_with_synchronous_interrupt(make_transition):
    transition = make_transition(lambda t: t.interrupt("stopped early"))
    seen = record_statuses(transition)

    assert transition.perform() is TransitionStatus.INTERRUPTED
    assert seen == [("status:interrupted", ("stopped early",))]


def test_perform_leaves_deferred_action_pending(make_transition, scheduler):
    transition = make_transition(lambda t: None)
    seen = record_statuses(transition)

    assert transition.perform() is TransitionStatus.PENDING
    assert transition.is_pending
    assert len(scheduler.pending) == 1
    assert seen == [("status:pending", (5.0,))]


def test_perform_runs_only_once(make_transition):
    transition = make_transition()
    transition.perform()

    with pytest.raises(AlreadyResolvedError):
        transition.perform()


def test_action_error_interrupts_and_propagates(make_transition, scheduler):
    def broken(transition):
        raise RuntimeError("device unavailable")

    transition = make_transition(broken)
    seen = record_statuses(transition)

    with pytest.raises(RuntimeError, match="device unavailable"):
        transition.perform()

    assert transition.status is TransitionStatus.INTERRUPTED
    assert seen == [("status:interrupted", ())]
    assert scheduler.timers == []


def test_action_error_after_completing_keeps_completed(make_transition):
    def complete_then_fail(transition):
        transition.complete()
        raise RuntimeError("late failure")

    transition = make_transition(complete_then_fail)

    with pytest.raises(RuntimeError):
        transition.perform()
    assert transition.status is TransitionStatus.COMPLETED


# -----------------------------------------------------------------------------
# EXPIRY
# -----------------------------------------------------------------------------
def test_default_expiry_honoured(make_transition, scheduler):
    transition = make_transition(lambda t: None, default_expiry=2.0)
    transition.perform()

    scheduler.advance(1.5)
    assert transition.is_pending

    scheduler.advance(0.5)
    assert transition.status is TransitionStatus.EXPIRED


def test_expiry_override_honoured(make_transition, scheduler):
    transition = make_transition(lambda t: None)
    seen = record_statuses(transition)
    transition.perform(expiry=0.5)

    scheduler.advance(0.5)

    assert transition.status is TransitionStatus.EXPIRED
    assert seen == [("status:pending", (0.5,)), ("status:expired", ())]


@pytest.mark.parametrize("expiry", [0, -1, None, "soon", float("inf"), float("nan")])
def test_unusable_expiry_falls_back_to_default(make_transition, scheduler, expiry):
    transition = make_transition(lambda t: None, default_expiry=3.0)
    transition.perform(expiry=expiry)

    assert scheduler.pending[0].deadline == 3.0


def test_resolution_cancels_timer(make_transition, scheduler):
    transition = make_transition(lambda t: None)
    transition.perform()
    timer = scheduler.pending[0]

    transition.complete()

    assert timer.cancelled
    scheduler.advance(10)
    assert transition.status is TransitionStatus.COMPLETED


# -----------------------------------------------------------------------------
# RESOLUTION
# -----------------------------------------------------------------------------
def test_complete_twice_rejected(make_transition):
    transition = make_transition(lambda t: None)
    transition.perform()
    transition.complete()

    with pytest.raises(AlreadyResolvedError, match="already completed"):
        transition.complete()
    with pytest.raises(AlreadyResolvedError):
        transition.interrupt()


def test_interrupt_after_interrupt_rejected(make_transition):
    transition = make_transition(lambda t: None)
    transition.perform()
    transition.interrupt()

    with pytest.raises(AlreadyResolvedError, match="already interrupted"):
        transition.interrupt()
    with pytest.raises(AlreadyResolvedError):
        transition.complete()
    assert transition.status is TransitionStatus.INTERRUPTED


def test_expired_transition_is_final(make_transition, scheduler):
    transition = make_transition(lambda t: None)
    transition.perform(expiry=1)
    scheduler.advance(1)

    with pytest.raises(AlreadyResolvedError, match="already expired"):
        transition.interrupt()
    with pytest.raises(AlreadyResolvedError):
        transition.complete()
    assert transition.status is TransitionStatus.EXPIRED


def test_when_terminal_fires_once_after_resolution(make_transition):
    transition = make_transition(lambda t: None)
    callback = Mock()
    transition.perform()

    transition.when_terminal(callback)
    callback.assert_not_called()

    transition.complete()
    callback.assert_called_once_with(transition)


def test_when_terminal_fires_immediately_if_terminal(make_transition):
    transition = make_transition()
    transition.perform()
    callback = Mock()

    transition.when_terminal(callback)

    callback.assert_called_once_with(transition)


def test_repr_mentions_vector_and_status(make_transition):
    transition = make_transition()
    assert "STOPPED>PLAYING" in repr(transition)
    assert "PENDING" in repr(transition)


def test_defer_until_terminal_never_calls_on_the_spot(make_transition):
    settled = make_transition()
    settled.perform()
    callback = Mock()

    assert settled.defer_until_terminal(callback) is False
    callback.assert_not_called()

    pending = make_transition(lambda t: None)
    pending.perform()

    assert pending.defer_until_terminal(callback) is True
    pending.interrupt()
    callback.assert_called_once_with(pending)


def test_scheduler_failure_interrupts_and_propagates():
    failing = Mock()
    failing.schedule.side_effect = RuntimeError("no running event loop")
    transition = Transition(("STOPPED", "PLAYING"), lambda t: None, scheduler=failing)
    seen = record_statuses(transition)

    with pytest.raises(RuntimeError, match="no running event loop"):
        transition.perform()

    assert transition.status is TransitionStatus.INTERRUPTED
    assert seen == [("status:interrupted", ())]
