# transitory/core/transitions.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

from __future__ import annotations

import itertools
import logging
import threading
from enum import IntEnum
from typing import Any, Callable, Dict, NamedTuple, Optional, Sequence

from transitory.core.config import DEFAULT_EXPIRY, is_duration
from transitory.core.errors import AlreadyResolvedError, InvalidArgumentError
from transitory.core.events import EventEmitter, Handler
from transitory.runtime.timers import ThreadingTimerScheduler, TimerHandle, TimerScheduler

logger = logging.getLogger(__name__)

_ids = itertools.count(1)


class TransitionStatus(IntEnum):
    """
    Lifecycle of a transition. Anything but PENDING is terminal.
    """

    PENDING = 0
    EXPIRED = 1
    INTERRUPTED = 2
    COMPLETED = 3

    @property
    def label(self) -> str:
        """Lower-case name used in ``status:<label>`` topics."""
        return self.name.lower()


TERMINAL_STATUSES = frozenset({TransitionStatus.EXPIRED, TransitionStatus.INTERRUPTED, TransitionStatus.COMPLETED})


class Vector(NamedTuple):
    """
    Direction of a transition. Renders as ``source>target``.
    """

    source: str
    target: str

    def __str__(self) -> str:
        return f"{self.source}>{self.target}"


class Transition:
    """
    One attempt to move a machine from one state to another.

    A transition is performed exactly once. Without an action it completes on
    the spot. With an action, the action receives the transition as its first
    argument and is responsible for calling :meth:`complete` or
    :meth:`interrupt`, either before returning or later. A transition left
    pending expires once its expiry timer fires.

    Every status change is published on the transition's own emitter under
    ``status:<label>``.
    """

    def __init__(
        self,
        vector: Sequence[str],
        action: Optional[Callable[..., Any]] = None,
        scheduler: Optional[TimerScheduler] = None,
        default_expiry: float = DEFAULT_EXPIRY,
    ) -> None:
        """
        :param vector: ``(source, target)`` state names.
        :param action: Optional callable invoked as ``action(transition, *args)``.
        :param scheduler: Source of the expiry timer.
        :param default_expiry: Seconds used when :meth:`perform` gets no expiry.
        :raises InvalidArgumentError: If the vector or the action is malformed.
        """
        if (
            isinstance(vector, str)
            or not isinstance(vector, Sequence)
            or len(vector) != 2
            or not all(isinstance(state, str) and state for state in vector)
        ):
            raise InvalidArgumentError(f"Transition vector must be a pair of state names, got {vector!r}")
        if action is not None and not callable(action):
            raise InvalidArgumentError("Transition action must be callable")
        if not is_duration(default_expiry):
            raise InvalidArgumentError(f"default_expiry must be a positive finite number, got {default_expiry!r}")

        self._id = next(_ids)
        self._vector = Vector(*vector)
        self._action = action
        self._status = TransitionStatus.PENDING
        self._scheduler = scheduler or ThreadingTimerScheduler()
        self._default_expiry = default_expiry
        self._timer: Optional[TimerHandle] = None
        self._performed = False
        self._lock = threading.RLock()
        self._emitter = EventEmitter(self)

    @property
    def id(self) -> int:
        return self._id

    @property
    def vector(self) -> Vector:
        return self._vector

    @property
    def action(self) -> Optional[Callable[..., Any]]:
        return self._action

    @property
    def status(self) -> TransitionStatus:
        return self._status

    @property
    def is_pending(self) -> bool:
        return self._status is TransitionStatus.PENDING

    @property
    def is_terminal(self) -> bool:
        return self._status in TERMINAL_STATUSES

    def on(self, pattern: str, handler: Handler) -> None:
        """Subscribe to this transition's ``status:*`` stream."""
        self._emitter.on(pattern, handler)

    def once(self, pattern: str, handler: Handler) -> None:
        self._emitter.once(pattern, handler)

    def off(self, pattern: str, handler: Optional[Handler] = None) -> None:
        self._emitter.off(pattern, handler)

    def when_terminal(self, callback: Callable[["Transition"], Any]) -> None:
        """
        Call ``callback(transition)`` exactly once, as soon as the transition
        is terminal: immediately if it already is, otherwise right after the
        observers registered before it have seen the terminal status.
        """
        if not self.defer_until_terminal(callback):
            callback(self)

    def defer_until_terminal(self, callback: Callable[["Transition"], Any]) -> bool:
        """
        Like :meth:`when_terminal`, but never calls ``callback`` on the spot.

        :return: False if the transition is already terminal, in which case
            ``callback`` is not registered.
        """

        def observer(event: Any, *payload: Any) -> bool:
            if not self.is_terminal:
                return False
            callback(self)
            return True

        # Blocks while another thread is still publishing the terminal status.
        with self._lock:
            if self.is_terminal:
                return False
            self._emitter.on("status:*", observer)
            return True

    def perform(self, *args: Any, expiry: Optional[float] = None) -> TransitionStatus:
        """
        Run the transition. Positional arguments are relayed to the action.

        :param expiry: Seconds before a still-pending transition expires. Falls
            back to the default expiry unless it is a positive finite number.
        :return: The status once the action has returned.
        :raises AlreadyResolvedError: If the transition was already performed.
        :raises Exception: Whatever the action raised, after interrupting.
        """
        with self._lock:
            if self._performed:
                raise AlreadyResolvedError(f"Transition {self._vector} has already been performed")
            self._performed = True

        if self._action is not None:
            try:
                self._action(self, *args)
            except Exception:
                logger.warning("Action of transition %s raised, interrupting it", self._vector, exc_info=True)
                self._resolve(TransitionStatus.INTERRUPTED, ())
                raise
        else:
            self.complete()

        delay = expiry if is_duration(expiry) else self._default_expiry
        with self._lock:
            status = self._status
            if status is TransitionStatus.PENDING:
                try:
                    self._timer = self._scheduler.schedule(delay, self._expire)
                except Exception:
                    logger.warning("Could not arm expiry of transition %s, interrupting it", self._vector)
                    self._resolve(TransitionStatus.INTERRUPTED, ())
                    raise
                logger.debug("Transition %s pending, expires in %ss", self._vector, delay)
                self._emitter.emit("status:pending", delay)
        return status

    def complete(self, *payload: Any) -> None:
        """
        Resolve the transition successfully; ``payload`` is published with
        ``status:completed``.

        :raises AlreadyResolvedError: If the transition is already terminal.
        """
        if not self._resolve(TransitionStatus.COMPLETED, payload):
            raise AlreadyResolvedError(f"Cannot complete {self._vector}: already {self._status.label}")

    def interrupt(self, *payload: Any) -> None:
        """
        Abort the transition; ``payload`` is published with ``status:interrupted``.

        :raises AlreadyResolvedError: If the transition is already terminal.
        """
        if not self._resolve(TransitionStatus.INTERRUPTED, payload):
            raise AlreadyResolvedError(f"Cannot interrupt {self._vector}: already {self._status.label}")

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self._id, "vector": str(self._vector), "status": self._status.label}

    def __repr__(self) -> str:
        return f"Transition(id={self._id}, vector='{self._vector}', status={self._status.name})"

    def _expire(self) -> None:
        if self._resolve(TransitionStatus.EXPIRED, ()):
            logger.info("Transition %s expired", self._vector)

    def _resolve(self, status: TransitionStatus, payload: Sequence[Any]) -> bool:
        # Held while publishing so observers see terminal statuses in order.
        with self._lock:
            if self.is_terminal:
                return False
            self._status = status
            timer, self._timer = self._timer, None
            if timer is not None:
                timer.cancel()
            self._emitter.emit(f"status:{status.label}", *payload)
        return True
