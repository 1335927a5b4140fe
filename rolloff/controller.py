from __future__ import annotations

import json
import os
import socket
import threading
from dataclasses import asdict
from typing import Callable, Optional

from .constants import (
    ACTIVE_STATUS_S,
    INACTIVE_STATUS_S,
    ROOF_AUX_RELAY,
    ROOF_CLOSE_RELAY,
    ROOF_CLOSED_SWITCH,
    ROOF_LOCK_RELAY,
    ROOF_OPEN_RELAY,
    ROOF_OPENED_SWITCH,
    SIM_SETTLE_LEAD_S,
    TIMEOUT_MAX_S,
    TIMEOUT_MIN_S,
    VERSION,
)
from .errors import AmbiguousSwitchState, LinkError, MotionTimeout, RoofError, RoofLocked
from .state import CLOSE, OPEN, Motion, Reply, RoofState, RoofStatus, derive_status
from .util import now_s


class RoofController:
    """Roll-off roof motion state machine.

    Turns limit switch samples into opened/closed/moving/timed-out status,
    starts and supervises roof travel, and reconnects when the controller link
    reports too many consecutive errors. ``tick()`` must run at least once per
    second while the roof moves; ``start()`` runs it on a background thread.
    All commands and ticks are serialized behind one lock."""
    def __init__(
        self,
        state: RoofState,
        link,
        logger,
        notifier=None,
        simulation: bool = False,
        external_lock: Optional[Callable[[], bool]] = None,
    ):
        """
        Initialize the controller.

        Args:
            state: RoofState to update.
            link: ControllerLink (or SimulatedLink when ``simulation``).
            logger: JsonLogger for transition and alert events.
            notifier: Optional Notifier for operator alerts.
            simulation: Drive the simulated limit switches from the tick.
            external_lock: Returns True while something else (e.g. an unparked
                mount) forbids closing. Defaults to the state's interlock flag.
        """
        self.state = state
        self.link = link
        self.logger = logger
        self.notifier = notifier
        self.simulation = bool(simulation)
        self.state.simulation = self.simulation
        self._external_lock = external_lock

        self._lock = threading.RLock()
        self._stop_evt = threading.Event()
        self._rearm_evt = threading.Event()
        self._thread = None

        # Optional local control socket
        self._control_thread = None
        self._control_stop_evt = threading.Event()
        self._control_sock_path: Optional[str] = None

    # ---------------- Connection ----------------

    def connect(self) -> bool:
        """Establish contact and reconcile park status with the switches."""
        with self._lock:
            self.state.connected = self.link.connect()
            if self.state.connected:
                self._setup_conditions()
            return self.state.connected

    def disconnect(self):
        with self._lock:
            self.link.disconnect()
            self.state.connected = False

    def _setup_conditions(self):
        self.update_status()
        s = self.state
        if s.parked:
            if s.opened_switch:
                self._set_parked(False)
            elif not s.closed_switch:
                self.logger.emit("park_mismatch", level="warn", parked=True,
                                 detail="roof closed switch not set, manual intervention needed")
            else:
                s.motion = Motion.PARKED
        elif s.parked is False:
            if s.closed_switch:
                self._set_parked(True)
            elif not s.opened_switch:
                self.logger.emit("park_mismatch", level="warn", parked=False,
                                 detail="roof opened switch not set, manual intervention needed")
            else:
                s.motion = Motion.UNPARKED
        else:
            # Park status unknown until the switches say otherwise.
            if s.closed_switch and not s.opened_switch:
                self._set_parked(True)
            elif s.opened_switch:
                self._set_parked(False)
        self.logger.emit("conditions", motion=s.motion.value, parked=s.parked,
                         status=self.current_status().value)

    # ---------------- Status ----------------

    def current_status(self) -> RoofStatus:
        s = self.state
        return derive_status(s.opened_switch, s.closed_switch, s.roof_opening, s.roof_closing, s.timed_out)

    def update_status(self) -> RoofStatus:
        """Sample both limit switches and refresh the derived status.

        A failed read keeps the previous switch value."""
        s = self.state
        try:
            s.opened_switch = self.link.query_limit_switch(ROOF_OPENED_SWITCH)
        except LinkError as e:
            self.logger.emit("switch_read_failed", level="warn", switch=ROOF_OPENED_SWITCH, error=str(e))
        try:
            s.closed_switch = self.link.query_limit_switch(ROOF_CLOSED_SWITCH)
        except LinkError as e:
            self.logger.emit("switch_read_failed", level="warn", switch=ROOF_CLOSED_SWITCH, error=str(e))

        anomaly = None
        if s.opened_switch and s.closed_switch:
            anomaly = AmbiguousSwitchState(True, True)
        elif not s.opened_switch and not s.closed_switch and not s.roof_opening and not s.roof_closing:
            anomaly = AmbiguousSwitchState(False, False)
        self._note_anomaly(anomaly)

        # The opened slot is settled first, so both-on reads as opened.
        if s.opened_switch:
            s.roof_opening = False
        elif s.closed_switch:
            s.roof_closing = False
        return self.current_status()

    def _note_anomaly(self, anomaly: Optional[AmbiguousSwitchState]):
        text = str(anomaly) if anomaly is not None else ""
        if text == self.state.anomaly:
            return
        self.state.anomaly = text
        if anomaly is not None:
            self.logger.emit(anomaly.event, level="warn", **anomaly.fields())

    def _time_left(self) -> float:
        # Elapsed since motion start, sub-second resolution.
        return self.state.motion_timeout_s - (now_s() - self.state.motion_start)

    # ---------------- Commands ----------------

    def open(self) -> Reply:
        return self._move(OPEN)

    def close(self) -> Reply:
        return self._move(CLOSE)

    def unpark(self) -> Reply:
        rc = self._move(OPEN)
        if rc is Reply.BUSY:
            self.logger.emit("unparking")
        return rc

    def park(self) -> Reply:
        rc = self._move(CLOSE)
        if rc is Reply.BUSY:
            self.logger.emit("parking")
        return rc

    def abort(self) -> Reply:
        """Stop supervising motion. The next tick re-derives status from the switches."""
        with self._lock:
            s = self.state
            was = s.motion
            self._finish()
            s.motion = Motion.IDLE
            self.logger.emit("aborted", level="warn", was=was.value)
            return Reply.OK

    def set_timeout_s(self, seconds: float) -> float:
        seconds = float(seconds)
        if not TIMEOUT_MIN_S <= seconds <= TIMEOUT_MAX_S:
            raise ValueError(f"timeout must be between {TIMEOUT_MIN_S} and {TIMEOUT_MAX_S} seconds")
        with self._lock:
            self.state.timeout_s = seconds
            self.logger.emit("timeout_set", timeout_s=seconds)
            return seconds

    def set_lock(self, on: bool) -> Reply:
        return self._push_aux(ROOF_LOCK_RELAY, on)

    def set_aux(self, on: bool) -> Reply:
        return self._push_aux(ROOF_AUX_RELAY, on)

    def set_interlock(self, on: bool) -> Reply:
        with self._lock:
            self.state.interlocked = bool(on)
            self.logger.emit("interlock", on=self.state.interlocked)
            return Reply.OK

    def _is_externally_locked(self) -> bool:
        if self._external_lock is not None:
            return bool(self._external_lock())
        return self.state.interlocked

    def _push_aux(self, relay: str, on: bool) -> Reply:
        with self._lock:
            try:
                self.link.push_button(relay, on, ignore_lock=True)
            except LinkError as e:
                self.logger.emit("relay_failed", level="warn", relay=relay, error=str(e))
                return Reply.ALERT
            self.logger.emit("relay_set", relay=relay, on=bool(on))
            return Reply.OK

    def _move(self, direction: str) -> Reply:
        with self._lock:
            s = self.state
            self.update_status()

            if s.roof_opening:
                self.logger.emit("move_ignored", level="warn", direction=direction,
                                 detail="roof is opening, wait for completion or abort")
                return Reply.BUSY
            if s.roof_closing:
                self.logger.emit("move_ignored", level="warn", direction=direction,
                                 detail="roof is closing, wait for completion or abort")
                return Reply.BUSY

            if direction == OPEN:
                if s.opened_switch:
                    self.logger.emit("already_opened", level="warn")
                    self._set_parked(False)
                    return Reply.ALERT
                relay = ROOF_OPEN_RELAY
            else:
                if s.closed_switch:
                    self.logger.emit("already_closed", level="warn")
                    self._set_parked(True)
                    return Reply.ALERT
                if self._is_externally_locked():
                    self.logger.emit("close_blocked", level="warn",
                                     detail="cannot close roof while the interlock is engaged")
                    return Reply.ALERT
                relay = ROOF_CLOSE_RELAY

            try:
                self.link.push_button(relay, True)
            except RoofLocked as e:
                self._alert(e)
                return Reply.ALERT
            except LinkError as e:
                self.logger.emit("move_failed", level="warn", direction=direction, error=str(e))
                return Reply.ALERT

            s.roof_opening = direction == OPEN
            s.roof_closing = direction == CLOSE
            s.motion = Motion.OPENING if direction == OPEN else Motion.CLOSING
            s.timed_out = ""
            s.motion_timeout_s = s.timeout_s
            s.motion_start = now_s()
            self.logger.emit("roof_" + s.motion.value, timeout_s=s.motion_timeout_s)
            self._rearm_evt.set()
            return Reply.BUSY

    def _set_parked(self, parked: bool):
        s = self.state
        s.parked = parked
        s.motion = Motion.PARKED if parked else Motion.UNPARKED

    def _finish(self):
        s = self.state
        s.roof_opening = False
        s.roof_closing = False
        s.motion_timeout_s = 0.0
        s.motion_start = 0.0

    def _alert(self, err: RoofError):
        self.logger.emit(err.event, level="warn", **err.fields())
        if self.notifier is not None:
            self.notifier.alert(err)

    # ---------------- Tick ----------------

    def tick(self) -> float:
        """Refresh status, supervise motion. Returns the delay until the next tick."""
        with self._lock:
            s = self.state
            if not s.connected:
                return INACTIVE_STATUS_S

            delay = INACTIVE_STATUS_S
            time_left = self._time_left()

            if self.simulation and s.motion.busy and time_left - SIM_SETTLE_LEAD_S <= 0:
                self.link.arrive(OPEN if s.motion is Motion.OPENING else CLOSE)

            self.update_status()

            if s.motion is Motion.OPENING:
                if s.opened_switch:
                    self._finish()
                    self._set_parked(False)
                    self.logger.emit("roof_opened")
                elif time_left <= 0:
                    timeout_s = s.motion_timeout_s
                    self._finish()
                    s.timed_out = OPEN
                    s.motion = Motion.TIMED_OUT_OPEN
                    self._alert(MotionTimeout("opening", timeout_s))
                else:
                    delay = ACTIVE_STATUS_S
            elif s.motion is Motion.CLOSING:
                if s.closed_switch:
                    self._finish()
                    self._set_parked(True)
                    self.logger.emit("roof_closed")
                elif time_left <= 0:
                    timeout_s = s.motion_timeout_s
                    self._finish()
                    s.timed_out = CLOSE
                    s.motion = Motion.TIMED_OUT_CLOSE
                    self._alert(MotionTimeout("closing", timeout_s))
                else:
                    delay = ACTIVE_STATUS_S

            if self.link.ceiling_crossed():
                self._recover()
                delay = INACTIVE_STATUS_S
            return delay

    def _recover(self):
        """Forced disconnect and reinitialize after too many communication errors."""
        self.logger.emit("too_many_errors", level="error",
                         detail="check communication equipment and the roof controller")
        if self.notifier is not None:
            self.notifier.send(self.notifier.title, "Too many errors communicating with the roof controller", 1)
        self.link.disconnect()
        self.link.reset_errors()

        # Back to the initial state; park status is re-derived on connect.
        self.state.motion = Motion.IDLE
        self.state.parked = None
        self._finish()
        self.state.timed_out = ""
        self.state.anomaly = ""

        self.state.connected = self.link.connect()
        if self.state.connected:
            self._setup_conditions()
        self.logger.emit("reconnect", ok=self.state.connected)

    def start(self):
        """Start the periodic tick loop."""
        self._thread = threading.Thread(target=self._loop, daemon=True)
        self._thread.start()

    def stop(self):
        self._stop_evt.set()
        self._rearm_evt.set()
        self._control_stop_evt.set()

    def _loop(self):
        """Tick, then sleep for whatever the tick asked for.

        Starting a motion re-arms the wait so the next refresh comes one
        second after the command rather than at the idle cadence."""
        delay = self.tick()
        while not self._stop_evt.is_set():
            if self._rearm_evt.wait(delay):
                self._rearm_evt.clear()
                delay = ACTIVE_STATUS_S
                continue
            delay = self.tick()

    # ---------------- Local control socket ----------------
    # The daemon owns the controller's serial port. A local UNIX socket lets
    # operators and automation drive the roof without sharing it.

    def start_control_socket(self, sock_path: str):
        """Start a local control socket.

        The socket accepts single-line commands and returns a single-line JSON response.
        Supported commands: status, open, close, park, unpark, abort, timeout N,
        lock on|off, aux on|off, interlock on|off, connect, disconnect.
        """
        if not sock_path:
            return
        self._control_sock_path = sock_path
        t = threading.Thread(target=self._control_loop, daemon=True)
        t.start()
        self._control_thread = t
        self.logger.emit("control_socket_started", path=sock_path)

    def _control_loop(self):
        path = self._control_sock_path
        if not path:
            return

        srv = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
        try:
            # Parent may be a systemd RuntimeDirectory; drop any stale socket.
            parent = os.path.dirname(path)
            if parent:
                os.makedirs(parent, exist_ok=True)
            if os.path.exists(path):
                os.remove(path)
            srv.bind(path)
            os.chmod(path, 0o660)
            srv.listen(4)
            srv.settimeout(0.5)
        except OSError as e:
            self.logger.emit("control_socket_error", level="error", error=str(e), path=path)
            srv.close()
            return

        while not self._stop_evt.is_set() and not self._control_stop_evt.is_set():
            try:
                conn, _ = srv.accept()
            except socket.timeout:
                continue
            except OSError:
                break

            try:
                conn.settimeout(2.0)
                data = b""
                while b"\n" not in data and len(data) < 4096:
                    chunk = conn.recv(4096)
                    if not chunk:
                        break
                    data += chunk
                cmd = data.decode("utf-8", errors="replace").strip()
                resp = self._handle_control_command(cmd)
                conn.sendall((json.dumps(resp, sort_keys=True) + "\n").encode("utf-8"))
            except OSError as e:
                self.logger.emit("control_socket_error", level="warn", error=str(e))
            finally:
                conn.close()

        srv.close()
        if os.path.exists(path):
            os.remove(path)

    def _handle_control_command(self, cmd: str) -> dict:
        words = (cmd or "").strip().lower().split()
        if not words:
            return {"ok": False, "error": "empty command"}
        name, args = words[0], words[1:]

        if name in ("status", "state"):
            with self._lock:
                return {
                    "ok": True,
                    "state": asdict(self.state),
                    "status": self.current_status().value,
                    "communication_errors": self.link.communication_errors,
                    "version": VERSION,
                }

        actions = {
            "open": self.open,
            "close": self.close,
            "park": self.park,
            "unpark": self.unpark,
            "abort": self.abort,
        }
        if name in actions:
            return self._reply(actions[name]())

        if name == "timeout":
            if len(args) != 1:
                return {"ok": False, "error": "usage: timeout SECONDS"}
            try:
                return {"ok": True, "timeout_s": self.set_timeout_s(float(args[0]))}
            except ValueError as e:
                return {"ok": False, "error": str(e)}

        toggles = {"lock": self.set_lock, "aux": self.set_aux, "interlock": self.set_interlock}
        if name in toggles:
            if len(args) != 1 or args[0] not in ("on", "off"):
                return {"ok": False, "error": f"usage: {name} on|off"}
            return self._reply(toggles[name](args[0] == "on"))

        if name == "connect":
            return {"ok": self.connect()}
        if name == "disconnect":
            self.disconnect()
            return {"ok": True}

        return {"ok": False, "error": f"unknown command: {name}"}

    def _reply(self, rc: Reply) -> dict:
        return {
            "ok": rc is not Reply.ALERT,
            "reply": rc.value,
            "motion": self.state.motion.value,
            "status": self.current_status().value,
        }
