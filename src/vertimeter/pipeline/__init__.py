"""Session orchestration and wall-clock timers."""

from vertimeter.pipeline.session import JumpSession
from vertimeter.pipeline.timers import CountdownTimer, Watchdog

__all__ = ["JumpSession", "CountdownTimer", "Watchdog"]
