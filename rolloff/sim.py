from __future__ import annotations

from .constants import (
    ROOF_AUX_SWITCH,
    ROOF_CLOSE_RELAY,
    ROOF_CLOSED_SWITCH,
    ROOF_LOCKED_SWITCH,
    ROOF_OPEN_RELAY,
    ROOF_OPENED_SWITCH,
)
from .errors import LinkError
from .state import CLOSE, OPEN


class SimulatedLink:
    """In-memory stand-in for ControllerLink.

    Limit switches are two booleans. Pushing OPEN or CLOSE moves the roof off
    its current end stop; ``arrive()`` sets the destination switch, which the
    roof controller calls as the motion deadline approaches. The serial port
    is never touched, so contact is always established and errors never
    accumulate.
    """
    def __init__(self, logger, opened: bool = False, closed: bool = True):
        self.logger = logger
        self.roof_open = bool(opened)
        self.roof_closed = bool(closed)
        self.contact_established = False
        self.communication_errors = 0

    def connect(self) -> bool:
        return self.handshake()

    def disconnect(self):
        self.contact_established = False
        self.logger.emit("disconnected", simulation=True)

    def handshake(self) -> bool:
        self.contact_established = True
        self.logger.emit("contact_established", simulation=True)
        return True

    def query_limit_switch(self, switch_id: str) -> bool:
        if switch_id == ROOF_OPENED_SWITCH:
            return self.roof_open
        if switch_id == ROOF_CLOSED_SWITCH:
            return self.roof_closed
        if switch_id in (ROOF_LOCKED_SWITCH, ROOF_AUX_SWITCH):
            return False
        raise LinkError(f"unknown switch {switch_id!r}")

    def push_button(self, target: str, on: bool, ignore_lock: bool = False) -> bool:
        if target == ROOF_OPEN_RELAY:
            self.roof_closed = False
        elif target == ROOF_CLOSE_RELAY:
            self.roof_open = False
        else:
            raise LinkError(f"{target} relay is not available in simulation")
        self.logger.emit("button_pushed", level="debug", target=target, simulation=True)
        return True

    def arrive(self, direction: str):
        if direction == OPEN:
            self.roof_open = True
            self.roof_closed = False
        elif direction == CLOSE:
            self.roof_closed = True
            self.roof_open = False

    def ceiling_crossed(self) -> bool:
        return False

    def reset_errors(self):
        self.communication_errors = 0
