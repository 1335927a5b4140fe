from __future__ import annotations

import argparse
import os
from argparse import RawDescriptionHelpFormatter

try:
    import tomllib  # py3.11+
except ModuleNotFoundError:  # pragma: no cover
    import tomli as tomllib

from .constants import (
    DEFAULT_BAUD,
    DEFAULT_SOCKET,
    ROLLOFF_DURATION_S,
    TIMEOUT_MAX_S,
    TIMEOUT_MIN_S,
    USAGE_EXAMPLES,
)


def get_bool_env(name: str, default: bool = False) -> bool:
    val = os.getenv(name)
    if val is None:
        return default
    val = val.lower()
    if val in ("1", "true", "yes", "on"):
        return True
    if val in ("0", "false", "no", "off"):
        return False
    return default


def get_notifier_config():
    return {
        "enabled": get_bool_env("ROLLOFF_NOTIFY", False),
        "pushover_token": os.getenv("PUSHOVER_TOKEN"),
        "pushover_user": os.getenv("PUSHOVER_USER"),
    }


def load_toml_config(path: str) -> dict:
    """Load TOML configuration from path."""
    with open(path, "rb") as f:
        return tomllib.load(f)


def _get_cfg(cfg: dict, section: str, key: str, default=None):
    sec = cfg.get(section, {})
    if not isinstance(sec, dict):
        return default
    return sec.get(key, default)


def config_defaults_from(cfg: dict) -> dict:
    """Map TOML config into argparse defaults."""
    return {
        "port": _get_cfg(cfg, "serial", "port", None),
        "baud": _get_cfg(cfg, "serial", "baud", DEFAULT_BAUD),
        "timeout": _get_cfg(cfg, "roof", "timeout", ROLLOFF_DURATION_S),
        "simulation": _get_cfg(cfg, "roof", "simulation", False),
        "verbose": _get_cfg(cfg, "logging", "verbose", False),
        "no_banner": _get_cfg(cfg, "logging", "no_banner", False),
        "json": _get_cfg(cfg, "logging", "json", False),
        "control_socket": _get_cfg(cfg, "control", "socket", DEFAULT_SOCKET),
    }


def resolved_config_dict(args) -> dict:
    return {
        "serial": {"port": args.port, "baud": args.baud},
        "roof": {"timeout": args.timeout, "simulation": bool(args.simulation)},
        "logging": {
            "verbose": args.verbose,
            "no_banner": args.no_banner,
            "json": bool(args.json),
        },
        "control": {
            "socket": getattr(args, "control_socket", None),
        },
    }


def motion_timeout(value) -> float:
    """argparse type for the roof travel timeout."""
    try:
        seconds = float(value)
    except (TypeError, ValueError):
        raise argparse.ArgumentTypeError(f"invalid timeout: {value!r}")
    if not TIMEOUT_MIN_S <= seconds <= TIMEOUT_MAX_S:
        raise argparse.ArgumentTypeError(f"timeout must be between {TIMEOUT_MIN_S} and {TIMEOUT_MAX_S} seconds")
    return seconds


def baud_rate(value) -> int:
    """argparse type for the serial baud rate."""
    try:
        baud = int(value)
    except (TypeError, ValueError):
        raise argparse.ArgumentTypeError(f"invalid baud rate: {value!r}")
    if isinstance(value, bool) or baud <= 0:
        raise argparse.ArgumentTypeError(f"invalid baud rate: {value!r}")
    return baud


def build_arg_parser(defaults=None):
    """Construct the CLI argument parser for the daemon."""
    # No prefix matching: apply_config_file only recognizes options spelled in full.
    ap = argparse.ArgumentParser(epilog=USAGE_EXAMPLES, formatter_class=RawDescriptionHelpFormatter,
                                 allow_abbrev=False)
    # Defaults are sourced from the built-in defaults, and optionally overridden by TOML config
    # (we backfill unset CLI args after parsing).
    if defaults is None:
        defaults = config_defaults_from({})
    ap.set_defaults(**defaults)
    ap.add_argument("-p", "--port", help="Serial device for the roof controller (e.g., /dev/ttyUSB0).")
    ap.add_argument("--baud", type=baud_rate, help="Serial baud rate configured on the roof controller.")
    ap.add_argument("--timeout", type=motion_timeout,
                    help=f"Seconds allowed for the roof to open or close ({TIMEOUT_MIN_S}-{TIMEOUT_MAX_S}).")
    ap.add_argument("--simulation", dest="simulation", action="store_true",
                    help="Run without hardware using simulated limit switches.")

    ap.add_argument("--verbose", dest="verbose", action="store_true", help="Verbose logging (includes serial frames).")
    ap.add_argument("--no-verbose", dest="verbose", action="store_false", help="Disable verbose logging.")
    json_group = ap.add_mutually_exclusive_group()
    json_group.add_argument("--json", dest="json", action="store_true", help="Emit JSON log events.")
    json_group.add_argument("--no-json", dest="json", action="store_false", help="Disable JSON log output.")
    ap.add_argument("--no-banner", dest="no_banner", action="store_true", help="Disable the startup banner.")
    ap.add_argument("--banner", dest="no_banner", action="store_false", help="Enable the startup banner.")
    ap.add_argument("--doctor", action="store_true",
                    help="Contact the roof controller, report every switch and exit (no relays are operated).")
    sock_group = ap.add_mutually_exclusive_group()
    sock_group.add_argument("--control-socket", dest="control_socket",
                            help="Path to the local UNIX control socket used by rolloffctl.")
    sock_group.add_argument("--no-control-socket", dest="control_socket", action="store_const", const="",
                            help="Disable the local control socket.")
    ap.add_argument("--config", help="Path to a TOML config file. CLI args override config values.")
    ap.add_argument("--print-config", action="store_true", help="Print the resolved configuration and exit.")
    ap.add_argument("--version", action="store_true", help="Print version and exit.")
    return ap


def apply_config_file(args, argv) -> list:
    """Backfill options not given on the command line from ``args.config``.

    Returns the names of the options taken from the file."""
    if not getattr(args, "config", None):
        return []
    cfg = load_toml_config(args.config)
    given = set()
    for a in argv:
        if a.startswith("--"):
            given.add(a.split("=", 1)[0])
        elif a.startswith("-p"):
            given.add("-p")
    flags = {
        "port": ("-p", "--port"),
        "baud": ("--baud",),
        "timeout": ("--timeout",),
        "simulation": ("--simulation",),
        "verbose": ("--verbose", "--no-verbose"),
        "no_banner": ("--no-banner", "--banner"),
        "json": ("--json", "--no-json"),
        "control_socket": ("--control-socket", "--no-control-socket"),
    }
    taken = []
    defaults = config_defaults_from({})
    for k, v in config_defaults_from(cfg).items():
        if any(f in given for f in flags[k]):
            continue
        if v != defaults[k]:
            if k == "timeout":
                v = motion_timeout(v)
            elif k == "baud":
                v = baud_rate(v)
            setattr(args, k, v)
            taken.append(k)
    return taken
