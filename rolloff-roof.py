#!/usr/bin/env python3
#
# Roll-off roof controller
#
# Drives a two-position rolling observatory roof through a microcontroller
# that owns the motor relays and the limit switches. The daemon talks to it
# over serial with short ASCII frames, e.g. (GET:OPENED:0) or (SET:OPEN:ON),
# supervises roof travel against a timeout, and takes open/close/park/abort
# commands from a local control socket (see rolloffctl.py).
#

from __future__ import annotations

from rolloff.cli import build_controller, main
from rolloff.config import apply_config_file, build_arg_parser
from rolloff.constants import VERSION


if __name__ == "__main__":
    raise SystemExit(main())
