# tests/conftest.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

from typing import Any, Callable, List

import pytest


class ManualTimer:
    """Timer handle fired only when the owning scheduler's clock is advanced."""

    def __init__(self, deadline: float, callback: Callable[[], Any]) -> None:
        self.deadline = deadline
        self.callback = callback
        self.cancelled = False
        self.fired = False

    def cancel(self) -> None:
        self.cancelled = True

    @property
    def active(self) -> bool:
        return not (self.cancelled or self.fired)


class ManualScheduler:
    """Deterministic scheduler driven by a virtual clock."""

    def __init__(self) -> None:
        self.now = 0.0
        self.timers: List[ManualTimer] = []

    def schedule(self, delay: float, callback: Callable[[], Any]) -> ManualTimer:
        timer = ManualTimer(self.now + delay, callback)
        self.timers.append(timer)
        return timer

    @property
    def pending(self) -> List[ManualTimer]:
        return [timer for timer in self.timers if timer.active]

    def advance(self, seconds: float) -> None:
        self.now += seconds
        due = sorted((t for t in self.pending if t.deadline <= self.now), key=lambda t: t.deadline)
        for timer in due:
            if timer.active:
                timer.fired = True
                timer.callback()


@pytest.fixture
def scheduler() -> ManualScheduler:
    return ManualScheduler()


@pytest.fixture
def simple_definition():
    """Player without actions: every transition completes synchronously."""
    return {
        "STOPPED": {"play": "PLAYING"},
        "PLAYING": {"pause": "PAUSED", "stop": "STOPPED"},
        "PAUSED": {"play": "PLAYING", "stop": "STOPPED"},
        "FORWARDING": {},
        "REWINDING": {},
    }


@pytest.fixture
def advanced_definition():
    """Player whose "play" buffers: its action leaves the transition pending."""
    buffering: List[Any] = []

    def buffer(transition, *args):
        buffering.append((transition, args))

    return {
        "STOPPED": {
            "play": {"target": "PLAYING", "action": buffer},
            "forward": "FORWARDING",
            "rewind": "REWINDING",
        },
        "PLAYING": {"pause": "PAUSED", "stop": "STOPPED"},
        "PAUSED": {"play": "PLAYING", "stop": "STOPPED"},
        "FORWARDING": {},
        "REWINDING": {},
    }


@pytest.fixture
def machine_factory(scheduler):
    """Build machines wired to the manual scheduler."""
    from transitory.core.state_machine import StateMachine

    def _make(definition, initial_state, **overrides):
        overrides.setdefault("scheduler", scheduler)
        return StateMachine(definition, initial_state, **overrides)

    return _make
