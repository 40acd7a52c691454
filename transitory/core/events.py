# transitory/core/events.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

from __future__ import annotations

import logging
import threading
from typing import Any, Callable, List, Optional, Sequence, Tuple

logger = logging.getLogger(__name__)

DELIMITER = ":"
WILDCARD = "*"
MULTI_WILDCARD = "**"

Handler = Callable[..., Any]


class Event:
    """
    Describes one emission: the concrete topic that was emitted and the object
    that emitted it. Passed as the first argument to every handler.
    """

    __slots__ = ("_name", "_source")

    def __init__(self, name: str, source: Any = None) -> None:
        """
        :param name: The emitted topic, e.g. ``state:PLAYING``.
        :param source: The object owning the emitter.
        """
        self._name = name
        self._source = source

    @property
    def name(self) -> str:
        """The emitted topic."""
        return self._name

    @property
    def source(self) -> Any:
        """The object on whose behalf the event was emitted."""
        return self._source

    def __repr__(self) -> str:
        return f"Event(name={self._name!r})"


def split_topic(topic: str) -> Tuple[str, ...]:
    return tuple(topic.split(DELIMITER))


def topic_matches(pattern: Sequence[str], topic: Sequence[str]) -> bool:
    """
    Match a split topic against a split pattern. ``*`` matches exactly one
    segment; ``**`` matches any number of segments, including none.

    :param pattern: Pattern segments.
    :param topic: Topic segments.
    :return: True if the topic is covered by the pattern.
    """
    if not pattern:
        return not topic
    head = pattern[0]
    if head == MULTI_WILDCARD:
        return any(topic_matches(pattern[1:], topic[i:]) for i in range(len(topic) + 1))
    if not topic:
        return False
    if head != WILDCARD and head != topic[0]:
        return False
    return topic_matches(pattern[1:], topic[1:])


class _Listener:
    """
    Internal registration record binding a split pattern to a handler.
    """

    __slots__ = ("pattern", "segments", "handler", "once")

    def __init__(self, pattern: str, handler: Handler, once: bool) -> None:
        self.pattern = pattern
        self.segments = split_topic(pattern)
        self.handler = handler
        self.once = once


class EventEmitter:
    """
    Publish/subscribe hub with ``:``-delimited hierarchical topics and wildcard
    subscriptions. A handler that returns a truthy value is deregistered, which
    gives callers an "observe until" primitive without bookkeeping.

    Handlers run synchronously, in registration order, on the emitting thread.
    Exceptions raised by handlers propagate to the caller of :meth:`emit`.
    """

    def __init__(self, source: Any = None) -> None:
        """
        :param source: Object reported as ``event.source`` to handlers.
        """
        self._source = source
        self._listeners: List[_Listener] = []
        self._lock = threading.RLock()

    def on(self, pattern: str, handler: Handler) -> None:
        """
        Subscribe ``handler`` to every topic matched by ``pattern``.

        :param pattern: Topic or wildcard pattern, e.g. ``status:*``.
        :param handler: Callable invoked as ``handler(event, *payload)``.
        """
        self._add(pattern, handler, once=False)

    def once(self, pattern: str, handler: Handler) -> None:
        """
        Subscribe ``handler`` for the first matching emission only.
        """
        self._add(pattern, handler, once=True)

    def off(self, pattern: str, handler: Optional[Handler] = None) -> None:
        """
        Remove subscriptions registered under ``pattern``. Without a handler,
        every subscription for that pattern is removed.
        """
        with self._lock:
            self._listeners = [
                listener
                for listener in self._listeners
                if not (listener.pattern == pattern and (handler is None or listener.handler == handler))
            ]

    def listeners(self, topic: str) -> List[Handler]:
        """
        Return the handlers an emission of ``topic`` would reach right now.
        """
        segments = split_topic(topic)
        with self._lock:
            return [listener.handler for listener in self._listeners if topic_matches(listener.segments, segments)]

    def emit(self, topic: str, *payload: Any) -> int:
        """
        Deliver ``payload`` to every handler whose pattern matches ``topic``.

        :param topic: Concrete topic, without wildcards.
        :return: Number of handlers invoked.
        """
        segments = split_topic(topic)
        with self._lock:
            matched = [listener for listener in self._listeners if topic_matches(listener.segments, segments)]

        event = Event(topic, self._source)
        invoked = 0
        for listener in matched:
            with self._lock:
                if not any(registered is listener for registered in self._listeners):
                    # Deregistered by an earlier handler, or claimed by a nested emission.
                    continue
                if listener.once:
                    self._discard(listener)
            invoked += 1
            if listener.handler(event, *payload) and not listener.once:
                with self._lock:
                    self._discard(listener)
        logger.debug("Emitted %s to %d handler(s)", topic, invoked)
        return invoked

    def _add(self, pattern: str, handler: Handler, once: bool) -> None:
        if not isinstance(pattern, str) or not pattern:
            raise TypeError("Event pattern must be a non-empty string")
        if not callable(handler):
            raise TypeError("Event handler must be callable")
        with self._lock:
            self._listeners.append(_Listener(pattern, handler, once))

    def _discard(self, listener: _Listener) -> None:
        self._listeners = [registered for registered in self._listeners if registered is not listener]
