import importlib.util
import sys
import builtins
import time
from pathlib import Path

import pytest

from rolloff.errors import TransportError


def load_module():
    script = Path(__file__).resolve().parents[1] / "rolloff-roof.py"
    spec = importlib.util.spec_from_file_location("rolloff_roof", script)
    mod = importlib.util.module_from_spec(spec)
    sys.modules["rolloff_roof"] = mod
    assert spec.loader is not None
    spec.loader.exec_module(mod)
    return mod

# Expose helper for tests without explicit imports.
builtins.load_module = load_module


class CapturingLogger:
    """Minimal logger that matches the .emit(event, level=..., **fields) contract."""
    def __init__(self):
        self.events = []

    def emit(self, event: str, level: str = "info", **fields):
        self.events.append((event, dict(fields, level=level)))

    def names(self):
        return [e for e, _ in self.events]


class FakeFirmware:
    """Roof microcontroller behind the transport interface.

    Answers GET/SET/CON requests from its switch table. ``drop`` silently
    ignores that many upcoming requests; ``silent`` ignores all of them.
    """
    def __init__(self, opened=False, closed=True, locked=False, aux=False):
        self.switches = {"OPENED": opened, "CLOSED": closed, "LOCKED": locked, "AUX": aux}
        self.writes = []
        self.relays = []
        self.nak = {}
        self.noise = b""
        self.drop = 0
        self.silent = False
        self.fail_writes = False
        self.is_open = False
        self._out = bytearray()

    def open(self):
        self.is_open = True

    def close(self):
        self.is_open = False

    def write(self, data: bytes):
        if self.fail_writes:
            raise TransportError("write failed")
        req = data.decode()
        self.writes.append(req)
        self._out = bytearray()
        if self.silent:
            return
        if self.drop:
            self.drop -= 1
            return
        cmd, target, value = req.strip("()").split(":")
        if target in self.nak:
            reply = f"(NAK:{target}:{self.nak[target]})"
        elif cmd == "CON":
            reply = "(ACK:0:V1.3)"
        elif cmd == "GET":
            reply = f"(ACK:{target}:{'ON' if self.switches[target] else 'OFF'})"
        else:
            self.relays.append((target, value))
            reply = f"(ACK:{target}:{value})"
        self._out = bytearray(self.noise + reply.encode())

    def read_byte(self, timeout_s):
        if not self._out:
            return None
        b = bytes(self._out[:1])
        del self._out[:1]
        return b

    def set_writes(self):
        return [w for w in self.writes if w.startswith("(SET:")]


class DummyNotifier:
    title = "Roll-off roof"

    def __init__(self):
        self.alerts = []
        self.sent = []

    def alert(self, err):
        self.alerts.append(err)

    def send(self, title, message, priority=0):
        self.sent.append((title, message, priority))


@pytest.fixture
def logger():
    return CapturingLogger()


@pytest.fixture
def firmware():
    return FakeFirmware()


@pytest.fixture
def clock(monkeypatch):
    t = {"now": 1000.0}
    monkeypatch.setattr(time, "monotonic", lambda: t["now"], raising=True)
    return t


@pytest.fixture
def notifier():
    return DummyNotifier()
