# transitory/runtime/timers.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

from __future__ import annotations

import asyncio
import logging
import threading
from typing import Any, Callable, Optional, Protocol

logger = logging.getLogger(__name__)


class TimerHandle(Protocol):
    """
    A scheduled callback that can be cancelled before it fires.
    """

    def cancel(self) -> None:
        ...


class TimerScheduler(Protocol):
    """
    Arms one-shot timers. Durations are always expressed in seconds.
    """

    def schedule(self, delay: float, callback: Callable[[], Any]) -> TimerHandle:
        ...


class ThreadingTimerScheduler:
    """
    Fires callbacks from daemon ``threading.Timer`` threads. Suitable for
    plain synchronous programs; callers must expect callbacks on another thread.
    """

    def __init__(self, name_prefix: str = "transitory-expiry") -> None:
        self._name_prefix = name_prefix

    def schedule(self, delay: float, callback: Callable[[], Any]) -> threading.Timer:
        """
        Arm a timer that calls ``callback`` after ``delay`` seconds.

        :param delay: Seconds to wait.
        :param callback: Zero-argument callable.
        :return: The started timer, cancellable via ``cancel()``.
        """
        timer = threading.Timer(delay, callback)
        timer.name = f"{self._name_prefix}-{timer.name}"
        timer.daemon = True
        timer.start()
        logger.debug("Armed %s for %.3fs", timer.name, delay)
        return timer


class AsyncioTimerScheduler:
    """
    Fires callbacks on an asyncio event loop via ``loop.call_later``, keeping
    expiry on the same thread as the rest of an asyncio program.
    """

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None) -> None:
        """
        :param loop: Loop to schedule on. Defaults to the loop running at the
            time each timer is armed.
        """
        self._loop = loop

    def schedule(self, delay: float, callback: Callable[[], Any]) -> asyncio.TimerHandle:
        """
        Arm a timer that calls ``callback`` after ``delay`` seconds.

        :raises RuntimeError: If no loop was given and none is running.
        """
        loop = self._loop or asyncio.get_running_loop()
        return loop.call_later(delay, callback)
