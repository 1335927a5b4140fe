from __future__ import annotations

VERSION = "1.0.0"

# Roof switches (read only)
ROOF_OPENED_SWITCH = "OPENED"
ROOF_CLOSED_SWITCH = "CLOSED"
ROOF_LOCKED_SWITCH = "LOCKED"
ROOF_AUX_SWITCH = "AUX"

# Roof relays (write only)
ROOF_OPEN_RELAY = "OPEN"
ROOF_CLOSE_RELAY = "CLOSE"
ROOF_LOCK_RELAY = "LOCK"
ROOF_AUX_RELAY = "AUX"

QUERY_TARGETS = (ROOF_OPENED_SWITCH, ROOF_CLOSED_SWITCH, ROOF_LOCKED_SWITCH, ROOF_AUX_SWITCH)
RELAY_TARGETS = (ROOF_OPEN_RELAY, ROOF_CLOSE_RELAY, ROOF_LOCK_RELAY, ROOF_AUX_RELAY)

# Controller interface limits
MAX_LINE = 63          # outgoing command requests
MAX_BUF = 255          # overall incoming frame ceiling
MAX_BYTE_WAIT_S = 2.0  # per byte read

# Timing
ROLLOFF_DURATION_S = 15     # default motion timeout
TIMEOUT_MIN_S = 1
TIMEOUT_MAX_S = 300
INACTIVE_STATUS_S = 5.0     # tick period while idle
ACTIVE_STATUS_S = 1.0       # tick period while moving
PRESS_SETTLE_S = 1.0        # relay settle after a button push
HANDSHAKE_RETRY_S = 1.0     # controller may still be rebooting after an upload
SIM_SETTLE_LEAD_S = 5.0     # simulated switches arrive this long before the deadline

MAX_COMM_ERRORS = 10

DEFAULT_BAUD = 38400
DEFAULT_SOCKET = "/run/rolloff/rolloff.sock"


USAGE_EXAMPLES = """\
Usage examples:
  # Run normally (roof controller connected over USB)
  python rolloff-roof.py -p /dev/ttyUSB0

  # Longer travel time and JSON event output
  python rolloff-roof.py -p /dev/ttyUSB0 --timeout 40 --verbose --json

  # No hardware: simulated limit switches
  python rolloff-roof.py --simulation

  # Read-only controller diagnostic (no relays are operated)
  python rolloff-roof.py --doctor -p /dev/ttyUSB0

  # Drive the running daemon
  python rolloffctl.py open
"""
