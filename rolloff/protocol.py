from __future__ import annotations

from typing import NamedTuple, Optional

from .constants import MAX_BUF, MAX_LINE, RELAY_TARGETS
from .errors import EncodingError, MalformedFrame, NegativeAck

FRAME_START = "("
FRAME_END = ")"
HANDSHAKE = "(CON:0:0)"


class Frame(NamedTuple):
    """A decoded controller response: (CMD:TARGET:VALUE)."""
    cmd: str
    target: str
    value: str

    @property
    def is_on(self) -> bool:
        return self.value == "ON"


def _checked(msg: str) -> str:
    if len(msg) >= MAX_LINE:
        raise EncodingError(f"roof controller command message too long ({len(msg)} bytes)")
    return msg


def encode_query(target: str) -> str:
    """Request the state of a switch, e.g. ``(GET:OPENED:0)``."""
    if not target:
        raise EncodingError("missing switch id")
    return _checked(f"(GET:{target}:0)")


def encode_command(target: str, on: bool) -> str:
    """Push a relay, e.g. ``(SET:OPEN:ON)``."""
    if target not in RELAY_TARGETS:
        raise EncodingError(f"unknown relay id: {target!r}")
    return _checked(f"(SET:{target}:{'ON' if on else 'OFF'})")


def encode_handshake() -> str:
    return HANDSHAKE


def decode(frame: str) -> Frame:
    """Split a response frame into its three tokens.

    Anything before the first ``(`` is ignored, as is anything after the first
    ``)``. The value token may contain ``:`` (NAK reasons are free text).

    Raises:
        MalformedFrame: a token is missing.
        NegativeAck: the controller answered NAK; the value is the reason.
    """
    start = frame.find(FRAME_START)
    if start < 0:
        raise MalformedFrame(frame)
    body = frame[start + 1:]
    end = body.find(FRAME_END)
    if end >= 0:
        body = body[:end]

    parts = body.split(":", 2)
    if len(parts) != 3 or not all(parts):
        raise MalformedFrame(frame)

    cmd, target, value = parts
    if cmd == "NAK":
        raise NegativeAck(target, value)
    return Frame(cmd, target, value)


class FrameScanner:
    """Byte-at-a-time frame capture.

    Bytes before the first ``(`` are framing noise from earlier partial frames
    and are dropped. Capture stops at the first ``)`` or when the buffer
    ceiling is reached; a truncated frame is still returned (``decode`` will
    reject it).
    """

    def __init__(self, limit: int = MAX_BUF - 2):
        self._limit = limit
        self._buf = bytearray()
        self._started = False
        self.discarded = 0

    def feed(self, b: bytes) -> Optional[str]:
        """Add one byte. Returns the captured frame once it is complete."""
        for ch in b:
            if not self._started:
                if ch != ord(FRAME_START):
                    self.discarded += 1
                    continue
                self._started = True
            self._buf.append(ch)
            if ch == ord(FRAME_END) or len(self._buf) >= self._limit:
                return self._buf.decode("ascii", errors="replace")
        return None
