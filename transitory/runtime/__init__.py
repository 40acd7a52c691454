"""
Runtime support: timer schedulers used to expire pending transitions.
"""

from .timers import AsyncioTimerScheduler, ThreadingTimerScheduler, TimerScheduler

__all__ = ["AsyncioTimerScheduler", "ThreadingTimerScheduler", "TimerScheduler"]
