from __future__ import annotations

from typing import Optional

import serial  # pyserial

from .constants import DEFAULT_BAUD, MAX_BYTE_WAIT_S
from .errors import TransportError


class SerialTransport:
    """Byte-level access to the roof controller's serial port.

    Knows nothing about frames: it writes whole requests and hands back single
    bytes, waiting at most ``timeout_s`` for each one."""
    def __init__(self, port: str, baud: int = DEFAULT_BAUD, ser=None):
        """Create the transport.

        Args:
            port: Serial device (e.g. /dev/ttyUSB0).
            baud: Baud rate configured on the controller.
            ser: An already-open pyserial Serial instance (optional).
        """
        self.port = port
        self.baud = int(baud)
        self._ser = ser

    @property
    def is_open(self) -> bool:
        return self._ser is not None and bool(getattr(self._ser, "is_open", True))

    def open(self):
        if self.is_open:
            return
        try:
            self._ser = serial.Serial(self.port, self.baud, timeout=MAX_BYTE_WAIT_S)
        except (serial.SerialException, OSError) as e:
            self._ser = None
            raise TransportError(f"cannot open {self.port}: {e}") from e

    def close(self):
        ser, self._ser = self._ser, None
        if ser is not None:
            try:
                ser.close()
            except (serial.SerialException, OSError):
                pass

    def write(self, data: bytes):
        """Discard stale buffered bytes, then send ``data``."""
        if not self.is_open:
            raise TransportError("serial port is not open")
        try:
            self._ser.reset_input_buffer()
            self._ser.reset_output_buffer()
            self._ser.write(data)
            self._ser.flush()
        except (serial.SerialException, OSError) as e:
            raise TransportError(f"roof control connection error: {e}") from e

    def read_byte(self, timeout_s: float = MAX_BYTE_WAIT_S) -> Optional[bytes]:
        """Read one byte. Returns None if nothing arrived within ``timeout_s``."""
        if not self.is_open:
            raise TransportError("serial port is not open")
        try:
            if self._ser.timeout != timeout_s:
                self._ser.timeout = timeout_s
            b = self._ser.read(1)
        except (serial.SerialException, OSError) as e:
            raise TransportError(f"roof control connection error: {e}") from e
        return b or None
