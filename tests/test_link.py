import pytest

from rolloff.errors import IoTimeout, NegativeAck, NotContacted, RoofLocked, TransportError
from rolloff.link import ControllerLink

from conftest import FakeFirmware


def _make_link(logger, firmware, connect=True):
    link = ControllerLink(firmware, logger, press_settle_s=0.0, retry_delay_s=0.0)
    if connect:
        assert link.connect() is True
        firmware.writes.clear()
    return link


def test_handshake_success(logger, firmware):
    link = _make_link(logger, firmware, connect=False)
    assert link.connect() is True
    assert link.contact_established is True
    assert firmware.is_open is True
    assert firmware.writes == ["(CON:0:0)"]


def test_handshake_retries_once_after_settle(logger, firmware, monkeypatch):
    sleeps = []
    monkeypatch.setattr("rolloff.link.sleep_s", sleeps.append)
    firmware.drop = 1
    link = _make_link(logger, firmware, connect=False)

    assert link.connect() is True
    assert firmware.writes == ["(CON:0:0)", "(CON:0:0)"]
    assert sleeps == [0.0]
    assert "handshake_retry" in logger.names()
    # The successful retry resets the error counter.
    assert link.communication_errors == 0


def test_handshake_gives_up_after_retry(logger, firmware):
    firmware.silent = True
    link = _make_link(logger, firmware, connect=False)

    assert link.connect() is False
    assert link.contact_established is False
    assert len(firmware.writes) == 2
    assert "contact_failed" in logger.names()


def test_handshake_nak_is_not_contact(logger, firmware):
    firmware.nak["0"] = "booting"
    link = _make_link(logger, firmware, connect=False)
    assert link.connect() is False


def test_operations_fail_fast_without_contact(logger, firmware):
    link = _make_link(logger, firmware, connect=False)
    with pytest.raises(NotContacted):
        link.query_limit_switch("OPENED")
    with pytest.raises(NotContacted):
        link.push_button("OPEN", True)
    assert firmware.writes == []
    assert link.communication_errors == 0


def test_query_limit_switch(logger):
    fw = FakeFirmware(opened=True, closed=False)
    link = _make_link(logger, fw)
    assert link.query_limit_switch("OPENED") is True
    assert link.query_limit_switch("CLOSED") is False
    assert fw.writes == ["(GET:OPENED:0)", "(GET:CLOSED:0)"]


def test_query_failure_counts_and_success_resets(logger, firmware):
    link = _make_link(logger, firmware)

    firmware.silent = True
    for _ in range(3):
        with pytest.raises(IoTimeout):
            link.query_limit_switch("OPENED")
    assert link.communication_errors == 3

    firmware.silent = False
    firmware.nak["CLOSED"] = "jam"
    with pytest.raises(NegativeAck):
        link.query_limit_switch("CLOSED")
    assert link.communication_errors == 4

    assert link.query_limit_switch("OPENED") is False
    assert link.communication_errors == 0


def test_write_failure_counts(logger, firmware):
    link = _make_link(logger, firmware)
    firmware.fail_writes = True
    with pytest.raises(TransportError):
        link.query_limit_switch("OPENED")
    assert link.communication_errors == 1


def test_error_ceiling_reported_once_until_success(logger, firmware):
    link = _make_link(logger, firmware)
    firmware.silent = True

    crossings = 0
    for _ in range(11):
        with pytest.raises(IoTimeout):
            link.query_limit_switch("OPENED")
        crossings += link.ceiling_crossed()
    assert link.communication_errors == 11
    assert crossings == 1

    # Further failures do not report again.
    for _ in range(5):
        with pytest.raises(IoTimeout):
            link.query_limit_switch("OPENED")
        assert link.ceiling_crossed() is False
    assert logger.names().count("comm_error_ceiling") == 1

    # A success resets the counter and re-enables reporting.
    firmware.silent = False
    link.query_limit_switch("OPENED")
    assert link.communication_errors == 0
    firmware.silent = True
    for _ in range(11):
        with pytest.raises(IoTimeout):
            link.query_limit_switch("OPENED")
    assert link.ceiling_crossed() is True


def test_push_button_refused_when_locked(logger):
    fw = FakeFirmware(locked=True)
    link = _make_link(logger, fw)

    with pytest.raises(RoofLocked):
        link.push_button("CLOSE", True, ignore_lock=False)
    # Only the lock query went out; no relay frame.
    assert fw.writes == ["(GET:LOCKED:0)"]
    assert fw.relays == []


def test_push_button_checks_lock_then_sets(logger, firmware, monkeypatch):
    sleeps = []
    monkeypatch.setattr("rolloff.link.sleep_s", sleeps.append)
    link = ControllerLink(firmware, logger, press_settle_s=1.0, retry_delay_s=0.0)
    assert link.connect()
    firmware.writes.clear()

    assert link.push_button("OPEN", True) is True
    assert firmware.writes == ["(GET:LOCKED:0)", "(SET:OPEN:ON)"]
    assert firmware.relays == [("OPEN", "ON")]
    # Relay settle delay between command and acknowledgement.
    assert sleeps == [1.0]


def test_push_button_ignore_lock(logger):
    fw = FakeFirmware(locked=True)
    link = _make_link(logger, fw)
    assert link.push_button("LOCK", False, ignore_lock=True) is False
    assert fw.writes == ["(SET:LOCK:OFF)"]


def test_push_button_success_is_the_read_not_the_value(logger, firmware):
    link = _make_link(logger, firmware)
    firmware.nak["OPEN"] = "motor fault"
    # The lock query is fine; the relay NAK is only logged.
    assert link.push_button("OPEN", True) is False
    assert link.communication_errors == 0
    assert "button_response" in logger.names()


def test_push_button_read_timeout_fails(logger, firmware):
    link = _make_link(logger, firmware)

    def silent_after_lock(data, _orig=firmware.write):
        _orig(data)
        if data.startswith(b"(SET"):
            firmware._out = bytearray()

    firmware.write = silent_after_lock
    with pytest.raises(IoTimeout):
        link.push_button("OPEN", True)
    assert link.communication_errors == 1


def test_noise_before_frame_is_discarded(logger, firmware):
    link = _make_link(logger, firmware)
    firmware.noise = b"OFF)\r\n"
    firmware.switches["AUX"] = True
    assert link.query_limit_switch("AUX") is True
