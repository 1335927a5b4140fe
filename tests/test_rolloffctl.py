import json
import time

import pytest

import rolloffctl
from rolloff.controller import RoofController
from rolloff.sim import SimulatedLink
from rolloff.state import RoofState


def test_format_status():
    resp = {
        "ok": True,
        "version": "1.0.0",
        "status": "closed",
        "state": {"motion": "parked", "parked": True, "timeout_s": 15.0},
        "communication_errors": 0,
    }
    line = rolloffctl.format_response("status", resp)
    assert line == "ok  version=1.0.0 status=closed motion=parked parked=True timeout_s=15.0 errors=0"


def test_format_reply_and_timeout():
    assert rolloffctl.format_response(
        "open", {"ok": True, "reply": "busy", "motion": "opening", "status": "opening"}
    ) == "busy  motion=opening status=opening"
    assert rolloffctl.format_response("timeout", {"ok": True, "timeout_s": 40.0}) == "ok  timeout_s=40.0"


@pytest.mark.parametrize("argv", [["timeout"], ["lock"], ["open", "now"]])
def test_value_arity_checked(argv):
    with pytest.raises(SystemExit):
        rolloffctl.main(argv)


def test_missing_socket_is_an_error(tmp_path, capsys):
    assert rolloffctl.main(["status", "--socket", str(tmp_path / "none.sock")]) == 2
    assert "error:" in capsys.readouterr().err


def test_round_trip_against_daemon(logger, tmp_path, capsys):
    ctl = RoofController(RoofState(), SimulatedLink(logger), logger, simulation=True)
    assert ctl.connect()
    sock_path = tmp_path / "rolloff.sock"
    ctl.start_control_socket(str(sock_path))
    deadline = time.time() + 2.0
    while time.time() < deadline and not sock_path.exists():
        time.sleep(0.01)

    try:
        assert rolloffctl.main(["timeout", "25", "--socket", str(sock_path)]) == 0
        assert capsys.readouterr().out.strip() == "ok  timeout_s=25.0"

        assert rolloffctl.main(["status", "--json", "--socket", str(sock_path)]) == 0
        resp = json.loads(capsys.readouterr().out)
        assert resp["state"]["timeout_s"] == 25.0

        assert rolloffctl.main(["aux", "on", "--socket", str(sock_path)]) == 2
        assert "alert" in capsys.readouterr().err
    finally:
        ctl.stop()
