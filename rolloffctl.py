#!/usr/bin/env python3
"""Local control client for rolloff-roof.

The daemon holds the roof controller's serial port, so nothing else can talk
to the controller directly. rolloffctl talks to the daemon over a local UNIX
socket instead.

Commands:
  status | open | close | park | unpark | abort | connect | disconnect
  timeout SECONDS | lock on|off | aux on|off | interlock on|off

Socket path:
  - default: /run/rolloff/rolloff.sock
  - override: --socket PATH or ROLLOFF_SOCKET env var
"""

from __future__ import annotations

import argparse
import json
import os
import socket
import sys

DEFAULT_SOCK = "/run/rolloff/rolloff.sock"
COMMANDS = ["status", "open", "close", "park", "unpark", "abort", "connect", "disconnect",
            "timeout", "lock", "aux", "interlock"]


def _send(sock_path: str, cmd: str) -> dict:
    s = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
    try:
        s.settimeout(30.0)
        s.connect(sock_path)
        s.sendall((cmd.strip() + "\n").encode("utf-8"))
        data = b""
        while b"\n" not in data and len(data) < 65536:
            chunk = s.recv(4096)
            if not chunk:
                break
            data += chunk
    except OSError as e:
        return {"ok": False, "error": f"{sock_path}: {e}"}
    finally:
        s.close()

    line = data.decode("utf-8", errors="replace").strip()
    if not line:
        return {"ok": False, "error": "empty response"}
    try:
        return json.loads(line)
    except ValueError:
        return {"ok": False, "error": "non-json response", "raw": line}


def format_response(command: str, resp: dict) -> str:
    if command == "status":
        state = resp.get("state", {})
        return (f"ok  version={resp.get('version', '')} status={resp.get('status')} "
                f"motion={state.get('motion')} parked={state.get('parked')} "
                f"timeout_s={state.get('timeout_s')} errors={resp.get('communication_errors')}")
    if "reply" in resp:
        return f"{resp['reply']}  motion={resp.get('motion')} status={resp.get('status')}"
    if "timeout_s" in resp:
        return f"ok  timeout_s={resp['timeout_s']}"
    return "ok"


def main(argv=None) -> int:
    ap = argparse.ArgumentParser(description="Control rolloff-roof via its local UNIX socket")
    ap.add_argument("command", choices=COMMANDS, help="Command to send to the daemon")
    ap.add_argument("value", nargs="?", help="Argument for timeout (seconds) or lock/aux/interlock (on|off)")
    ap.add_argument("--socket", default=os.environ.get("ROLLOFF_SOCKET", DEFAULT_SOCK),
                    help=f"Control socket path (default: {DEFAULT_SOCK})")
    ap.add_argument("--json", action="store_true", help="Print raw JSON response")
    args = ap.parse_args(argv)

    needs_value = args.command in ("timeout", "lock", "aux", "interlock")
    if needs_value and args.value is None:
        ap.error(f"{args.command} needs a value")
    if not needs_value and args.value is not None:
        ap.error(f"{args.command} takes no value")

    cmd = args.command if args.value is None else f"{args.command} {args.value}"
    resp = _send(args.socket, cmd)
    if args.json:
        print(json.dumps(resp, indent=2, sort_keys=True))
    elif resp.get("ok"):
        print(format_response(args.command, resp))

    if not resp.get("ok"):
        if not args.json:
            print(f"error: {resp.get('error') or resp.get('reply', 'unknown error')}", file=sys.stderr)
            raw = resp.get("raw")
            if raw:
                print(raw, file=sys.stderr)
        return 2
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
