from __future__ import annotations

import json
import sys
import time


class JsonLogger:
    """Minimal structured logger.

    Emits single-line events for roof transitions (opening, opened, timed out,
    reconnect) so logs are easy to grep and machine-parse. Debug events (wire
    frames) are dropped unless verbose."""
    def __init__(self, enable_json: bool, verbose: bool = False, stream=None):
        """Create a logger.

        Args:
            enable_json: Emit JSON lines instead of plain text.
            verbose: Also emit debug events.
            stream: A file-like object (defaults to stdout) used for event output.
        """
        self.enable_json = enable_json
        self.verbose = bool(verbose)
        self.stream = stream

    def emit(self, event: str, level: str = "info", **fields):
        """Emit an event with a name, a level and optional key/value fields."""
        if level == "debug" and not self.verbose:
            return
        out = self.stream if self.stream is not None else sys.stdout
        t = time.time()
        # ts: float seconds since epoch. ts_iso is local time with milliseconds.
        ts_iso = time.strftime('%Y-%m-%d %H:%M:%S', time.localtime(t)) + f'.{int((t - int(t))*1000):03d}'
        if self.enable_json:
            payload = {"ts": t, "ts_iso": ts_iso, "event": event, "level": level, **fields}
            print(json.dumps(payload, sort_keys=True, default=str), file=out, flush=True)
        else:
            msg = f"[{ts_iso}] {event}"
            if level != "info":
                msg = f"[{ts_iso}] {level.upper()} {event}"
            if fields:
                msg += " " + " ".join(f"{k}={v}" for k, v in fields.items())
            print(msg, file=out, flush=True)

