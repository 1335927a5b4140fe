from __future__ import annotations

from .constants import QUERY_TARGETS
from .errors import LinkError
from .link import ControllerLink
from .logging import JsonLogger
from .serialio import SerialTransport


def run_doctor(args, link=None, out=print) -> int:
    """Contact the roof controller and report every switch. Never operates a relay.

    Returns a process exit code: 0 when contact was made and every switch
    answered, 1 otherwise."""
    out("Doctor Mode (safe):")
    out("  - No relay is operated.")
    out("  - Reports the handshake and every controller switch.")
    out()

    if link is None:
        if not args.port:
            raise SystemExit("--doctor requires -p/--port")
        logger = JsonLogger(enable_json=False, verbose=bool(getattr(args, "verbose", False)))
        link = ControllerLink(SerialTransport(args.port, args.baud), logger)
        out(f"  Port: {args.port} @ {args.baud} baud")

    if not link.connect():
        out("  FAIL: no answer to the handshake (check port, baud and controller firmware)")
        return 1
    out("  OK: controller answered the handshake")

    failures = 0
    try:
        for switch in QUERY_TARGETS:
            try:
                on = link.query_limit_switch(switch)
            except LinkError as e:
                failures += 1
                out(f"  WARN: {switch:<7} unreadable: {e}")
                continue
            out(f"  {switch:<7} {'ON' if on else 'OFF'}")
    finally:
        link.disconnect()

    if failures:
        out(f"  WARN: {failures} switch(es) did not answer")
        return 1
    out("Doctor complete.")
    return 0
