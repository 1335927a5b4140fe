from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .constants import ROLLOFF_DURATION_S


class Motion(str, Enum):
    IDLE = "idle"
    OPENING = "opening"
    CLOSING = "closing"
    TIMED_OUT_OPEN = "timed_out_open"
    TIMED_OUT_CLOSE = "timed_out_close"
    PARKED = "parked"
    UNPARKED = "unparked"

    @property
    def busy(self) -> bool:
        return self in (Motion.OPENING, Motion.CLOSING)


class RoofStatus(str, Enum):
    """Roof status derived from switches, motion flags and the last timeout."""
    OPENED = "opened"
    CLOSED = "closed"
    OPENING = "opening"
    CLOSING = "closing"
    STATIONARY = "stationary"
    TIMED_OUT_OPEN = "timed_out_open"
    TIMED_OUT_CLOSE = "timed_out_close"

    @property
    def alert(self) -> bool:
        return self in (RoofStatus.STATIONARY, RoofStatus.TIMED_OUT_OPEN, RoofStatus.TIMED_OUT_CLOSE)


class Reply(str, Enum):
    """Answer to an operator command."""
    OK = "ok"
    BUSY = "busy"
    ALERT = "alert"


OPEN = "open"
CLOSE = "close"


@dataclass
class RoofState:
    """Holds mutable runtime state for the roof controller.

    Switch values are the last successful reads and are kept (not reset) when a
    read fails. ``motion_start`` is only meaningful while the roof is moving."""
    motion: Motion = Motion.IDLE
    parked: Optional[bool] = None

    opened_switch: bool = False
    closed_switch: bool = False

    roof_opening: bool = False
    roof_closing: bool = False
    timed_out: str = ""          # "", OPEN or CLOSE

    timeout_s: float = float(ROLLOFF_DURATION_S)
    motion_timeout_s: float = 0.0
    motion_start: float = 0.0

    interlocked: bool = False
    anomaly: str = ""

    connected: bool = False
    simulation: bool = False
    serial_port: str = ""
    baud: int = 0


def derive_status(
    opened: bool,
    closed: bool,
    opening: bool,
    closing: bool,
    timed_out: str = "",
) -> RoofStatus:
    """Compute RoofStatus from the current switch and motion values.

    Both switches on counts as opened."""
    if opened:
        return RoofStatus.OPENED
    if closed:
        return RoofStatus.CLOSED
    if opening:
        return RoofStatus.OPENING
    if closing:
        return RoofStatus.CLOSING
    if timed_out == OPEN:
        return RoofStatus.TIMED_OUT_OPEN
    if timed_out == CLOSE:
        return RoofStatus.TIMED_OUT_CLOSE
    return RoofStatus.STATIONARY
