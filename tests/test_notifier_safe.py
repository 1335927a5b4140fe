import requests

from rolloff.errors import AmbiguousSwitchState, MotionTimeout


def test_notifier_never_raises(monkeypatch):
    from rolloff.notify import Notifier

    def boom(*a, **k):
        raise requests.ConnectionError("fail")

    monkeypatch.setattr("requests.post", boom)

    n = Notifier(enabled=True, pushover_token="t", pushover_user="u")

    # Call the sync path to deterministically exercise exception handling.
    n._send_sync("t", "m", 1)


def test_notifier_disabled_without_credentials():
    from rolloff.notify import Notifier

    assert Notifier(enabled=True, pushover_token=None, pushover_user="u").enabled is False
    assert Notifier(enabled=False, pushover_token="t", pushover_user="u").enabled is False


def test_alert_priority(monkeypatch):
    from rolloff.notify import Notifier

    n = Notifier(enabled=True, pushover_token="t", pushover_user="u")
    sent = []
    monkeypatch.setattr(n, "send", lambda title, message, priority=0: sent.append((title, message, priority)))

    n.alert(MotionTimeout("opening", 15.0))
    n.alert(AmbiguousSwitchState(True, True))

    assert sent[0][0] == "Roll-off roof"
    assert sent[0][2] == 1
    assert sent[1] == ("Roll-off roof", "roof shows both opened and closed", 0)


def test_send_posts_to_pushover(monkeypatch):
    from rolloff.notify import PUSHOVER_URL, Notifier

    calls = []
    monkeypatch.setattr("requests.post", lambda url, data, timeout: calls.append((url, data, timeout)))

    n = Notifier(enabled=True, pushover_token="t", pushover_user="u", timeout_s=3.0)
    n._send_sync("Roll-off roof", "roof timed out", 1)

    url, data, timeout = calls[0]
    assert url == PUSHOVER_URL
    assert data["priority"] == 1
    assert data["token"] == "t"
    assert timeout == 3.0
