"""Exceptions raised while talking to the roof controller.

Everything derives from RoofError. LinkError and its subclasses are raised by
the controller link and caught by the roof controller, which logs them and
answers the caller with an alert. MotionTimeout and AmbiguousSwitchState are
never raised across the caller boundary; they describe alerts.
"""

from __future__ import annotations

from typing import Optional


class RoofError(Exception):
    """Base exception for all roll-off roof errors."""

    event = "roof_error"

    def fields(self) -> dict:
        return {"error": str(self)}


class LinkError(RoofError):
    """A controller link operation failed."""

    event = "link_error"


class TransportError(LinkError):
    """The serial port could not be written or read."""

    event = "transport_error"


class IoTimeout(TransportError):
    """No complete frame arrived within the per-byte wait."""

    event = "io_timeout"


class ProtocolError(LinkError):
    """A frame could not be built or understood."""

    event = "protocol_error"


class EncodingError(ProtocolError):
    """An outgoing request does not fit the controller's command buffer."""

    event = "encoding_error"


class MalformedFrame(ProtocolError):
    """An incoming frame is missing its command, target or value."""

    event = "malformed_frame"

    def __init__(self, frame: str):
        super().__init__(f"malformed frame: {frame!r}")
        self.frame = frame


class NegativeAck(ProtocolError):
    """The controller answered with NAK.

    ``is_on`` is always False: a refused request never reports a switch as set.
    """

    event = "negative_ack"
    is_on = False

    def __init__(self, target: str, reason: str):
        super().__init__(f"negative response for {target}: {reason}")
        self.target = target
        self.reason = reason

    def fields(self) -> dict:
        return {"target": self.target, "reason": self.reason}


class NotContacted(LinkError):
    """No handshake has succeeded yet."""

    event = "not_contacted"

    def __init__(self, message: str = "no contact with the roof controller has been established"):
        super().__init__(message)


class RoofLocked(LinkError):
    """The external roof lock switch prevents relay operation."""

    event = "roof_locked"

    def __init__(self, target: str):
        super().__init__(f"roof lock prevents operating {target}")
        self.target = target

    def fields(self) -> dict:
        return {"target": self.target}


class MotionTimeout(RoofError):
    """Travel time expired before the destination limit switch closed."""

    event = "motion_timeout"

    def __init__(self, direction: str, timeout_s: float):
        super().__init__(f"time allowed for {direction} the roof has expired")
        self.direction = direction
        self.timeout_s = timeout_s

    def fields(self) -> dict:
        return {"direction": self.direction, "timeout_s": self.timeout_s}


class AmbiguousSwitchState(RoofError):
    """Both limit switches are on, or neither is while nothing moves."""

    event = "ambiguous_switches"

    def __init__(self, opened: bool, closed: bool, detail: Optional[str] = None):
        if detail is None:
            if opened and closed:
                detail = "roof shows both opened and closed"
            else:
                detail = "roof stationary, matches neither position"
        super().__init__(detail)
        self.opened = opened
        self.closed = closed

    def fields(self) -> dict:
        return {"opened": self.opened, "closed": self.closed, "detail": str(self)}
