from rolloff.doctor import run_doctor
from rolloff.link import ControllerLink

from conftest import FakeFirmware


def _run(link):
    lines = []
    rc = run_doctor(None, link=link, out=lambda *a: lines.append(a[0] if a else ""))
    return rc, lines


def test_doctor_reports_every_switch(logger):
    fw = FakeFirmware(opened=False, closed=True, locked=False, aux=True)
    link = ControllerLink(fw, logger, press_settle_s=0.0)

    rc, lines = _run(link)

    assert rc == 0
    assert "  OK: controller answered the handshake" in lines
    assert "  OPENED  OFF" in lines
    assert "  CLOSED  ON" in lines
    assert "  LOCKED  OFF" in lines
    assert "  AUX     ON" in lines
    assert lines[-1] == "Doctor complete."
    # Read-only: no relay requests.
    assert fw.set_writes() == []
    assert fw.is_open is False


def test_doctor_warns_on_unreadable_switch(logger):
    fw = FakeFirmware()
    fw.nak["AUX"] = "NOSWITCH"
    link = ControllerLink(fw, logger, press_settle_s=0.0)

    rc, lines = _run(link)

    assert rc == 1
    assert any(line.startswith("  WARN: AUX") for line in lines)
    assert "  WARN: 1 switch(es) did not answer" in lines


def test_doctor_fails_without_handshake(logger, monkeypatch):
    monkeypatch.setattr("rolloff.link.sleep_s", lambda s: None)
    fw = FakeFirmware()
    fw.silent = True
    link = ControllerLink(fw, logger, press_settle_s=0.0)

    rc, lines = _run(link)

    assert rc == 1
    assert lines[-1].startswith("  FAIL: no answer to the handshake")
    assert fw.writes == ["(CON:0:0)", "(CON:0:0)"]
