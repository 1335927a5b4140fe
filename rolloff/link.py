from __future__ import annotations

from .constants import (
    HANDSHAKE_RETRY_S,
    MAX_BYTE_WAIT_S,
    MAX_COMM_ERRORS,
    PRESS_SETTLE_S,
    ROOF_LOCKED_SWITCH,
)
from .errors import IoTimeout, LinkError, NotContacted, ProtocolError, RoofLocked, TransportError
from .protocol import Frame, FrameScanner, decode, encode_command, encode_handshake, encode_query
from .util import sleep_s


class ControllerLink:
    """Request/response exchanges with the roof microcontroller.

    Owns the contact-established gate and the consecutive communication error
    counter. Every operation except the handshake requires contact. Any failed
    exchange bumps the error counter; any successful one resets it. Crossing
    MAX_COMM_ERRORS is reported once through ``ceiling_crossed()``; acting on
    it is left to the caller.
    """
    def __init__(
        self,
        transport,
        logger,
        byte_timeout_s: float = MAX_BYTE_WAIT_S,
        press_settle_s: float = PRESS_SETTLE_S,
        retry_delay_s: float = HANDSHAKE_RETRY_S,
        max_errors: int = MAX_COMM_ERRORS,
    ):
        self.transport = transport
        self.logger = logger
        self.byte_timeout_s = float(byte_timeout_s)
        self.press_settle_s = float(press_settle_s)
        self.retry_delay_s = float(retry_delay_s)
        self.max_errors = int(max_errors)

        self.contact_established = False
        self.communication_errors = 0
        self._ceiling_reported = False
        self._ceiling_pending = False

    # ---------------- Connection ----------------

    def connect(self) -> bool:
        """Open the transport and establish contact."""
        try:
            self.transport.open()
        except TransportError as e:
            self.logger.emit("connect_failed", level="error", error=str(e))
            return False
        return self.handshake()

    def disconnect(self):
        self.contact_established = False
        self.transport.close()
        self.logger.emit("disconnected")

    def handshake(self) -> bool:
        """Initial contact, retried once after a settle delay."""
        if self.initial_contact():
            return True
        self.logger.emit("handshake_retry", level="warn")
        # The controller may still be resetting after a firmware upload.
        sleep_s(self.retry_delay_s)
        if self.initial_contact():
            return True
        self.logger.emit("contact_failed", level="error")
        return False

    def initial_contact(self) -> bool:
        self.contact_established = False
        try:
            self._exchange(encode_handshake())
        except LinkError as e:
            self.logger.emit("handshake_failed", level="debug", error=str(e))
            return False
        self.contact_established = True
        self.logger.emit("contact_established")
        return True

    # ---------------- Operations ----------------

    def query_limit_switch(self, switch_id: str) -> bool:
        """Return True if the switch reads ON.

        Raises:
            NotContacted, TransportError, ProtocolError
        """
        self._require_contact()
        frame = self._exchange(encode_query(switch_id))
        return frame.is_on

    def push_button(self, target: str, on: bool, ignore_lock: bool = False) -> bool:
        """Operate a relay and return the state the controller acknowledged.

        The LOCKED switch is consulted first unless ``ignore_lock``. Success
        only means the acknowledgement was read; its contents are logged and
        an undecodable or negative acknowledgement reads as False.

        Raises:
            NotContacted, RoofLocked, TransportError, ProtocolError
        """
        self._require_contact()
        if not ignore_lock and self.query_limit_switch(ROOF_LOCKED_SWITCH):
            raise RoofLocked(target)

        request = encode_command(target, on)
        self.logger.emit("button_pushed", level="debug", request=request)
        try:
            self._write(request)
            sleep_s(self.press_settle_s)
            reply = self._read_frame()
        except TransportError:
            self._record_failure()
            raise
        self._record_success()

        try:
            return decode(reply).is_on
        except ProtocolError as e:
            self.logger.emit("button_response", level="warn", request=request, error=str(e))
            return False

    # ---------------- Error accounting ----------------

    def ceiling_crossed(self) -> bool:
        """True exactly once after the error counter passes the ceiling."""
        pending, self._ceiling_pending = self._ceiling_pending, False
        return pending

    def reset_errors(self):
        self.communication_errors = 0
        self._ceiling_reported = False
        self._ceiling_pending = False

    def _record_failure(self):
        self.communication_errors += 1
        if self.communication_errors > self.max_errors and not self._ceiling_reported:
            self._ceiling_reported = True
            self._ceiling_pending = True
            self.logger.emit("comm_error_ceiling", level="error", errors=self.communication_errors)

    def _record_success(self):
        self.reset_errors()

    # ---------------- Framing ----------------

    def _require_contact(self):
        if not self.contact_established:
            self.logger.emit("not_contacted", level="warn")
            raise NotContacted()

    def _exchange(self, request: str) -> Frame:
        try:
            self._write(request)
            reply = self._read_frame()
            frame = decode(reply)
        except (TransportError, ProtocolError) as e:
            self._record_failure()
            self.logger.emit("exchange_failed", level="debug", request=request, error=str(e),
                             errors=self.communication_errors)
            raise
        self._record_success()
        self.logger.emit("exchange", level="debug", request=request, cmd=frame.cmd,
                         target=frame.target, value=frame.value)
        return frame

    def _write(self, request: str):
        self.logger.emit("sent", level="debug", frame=request)
        self.transport.write(request.encode("ascii"))

    def _read_frame(self) -> str:
        scanner = FrameScanner()
        while True:
            b = self.transport.read_byte(self.byte_timeout_s)
            if b is None:
                raise IoTimeout(f"no complete frame within {self.byte_timeout_s}s per byte")
            frame = scanner.feed(b)
            if frame is not None:
                self.logger.emit("received", level="debug", frame=frame, noise=scanner.discarded)
                return frame
