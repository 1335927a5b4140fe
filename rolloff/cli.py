from __future__ import annotations

import argparse
import json
import signal
import sys
import threading

from .config import apply_config_file, build_arg_parser, get_notifier_config, resolved_config_dict
from .constants import VERSION
from .controller import RoofController
from .doctor import run_doctor
from .link import ControllerLink
from .logging import JsonLogger
from .notify import Notifier
from .serialio import SerialTransport
from .sim import SimulatedLink
from .state import RoofState


def build_controller(args, logger, notifier=None) -> RoofController:
    """Wire state, link (real or simulated) and controller from parsed args."""
    state = RoofState(timeout_s=float(args.timeout), serial_port=args.port or "", baud=args.baud)
    if args.simulation:
        link = SimulatedLink(logger)
    else:
        link = ControllerLink(SerialTransport(args.port, args.baud), logger)
    return RoofController(state=state, link=link, logger=logger, notifier=notifier,
                          simulation=args.simulation)


def main(argv=None):
    """CLI entry point. Parses args, connects to the roof controller and runs the daemon."""
    argv = sys.argv[1:] if argv is None else argv
    ap = build_arg_parser()
    if not argv:
        ap.print_help()
        return 0

    args = ap.parse_args(argv)

    # Apply TOML configuration (if provided). CLI arguments take precedence.
    try:
        apply_config_file(args, argv)
    except (OSError, ValueError, argparse.ArgumentTypeError) as e:
        print(f"ERROR: cannot use config {args.config}: {e}", file=sys.stderr)
        return 2

    if args.print_config:
        print(json.dumps(resolved_config_dict(args), indent=2, sort_keys=True))
        return 0

    if args.version:
        print(VERSION)
        return 0

    if args.doctor:
        return run_doctor(args)

    if not args.port and not args.simulation:
        raise SystemExit("Normal mode requires -p/--port (or --simulation)")

    logger = JsonLogger(enable_json=bool(args.json), verbose=bool(args.verbose))
    notifier = Notifier(**get_notifier_config())
    ctl = build_controller(args, logger, notifier)

    if not args.no_banner:
        print(f"rolloff-roof {VERSION}")
        print("Roll-off roof controller" + (" (simulation)" if args.simulation else ""))
        # Structured startup event for log scraping
        logger.emit(
            "startup",
            version=VERSION,
            port=args.port,
            baud=args.baud,
            timeout_s=args.timeout,
            simulation=bool(args.simulation),
            verbose=args.verbose,
            control_socket=args.control_socket,
        )

    if not ctl.connect():
        logger.emit("startup_failed", level="error", detail="unable to contact the roof controller")
        return 3

    if args.control_socket:
        ctl.start_control_socket(args.control_socket)
    ctl.start()

    stop = threading.Event()
    signal.signal(signal.SIGINT, lambda *_: stop.set())
    signal.signal(signal.SIGTERM, lambda *_: stop.set())

    while not stop.is_set():
        stop.wait(0.2)

    ctl.stop()
    if ctl._thread is not None:
        ctl._thread.join(timeout=3.0)
    ctl.disconnect()
    logger.emit("shutdown")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
