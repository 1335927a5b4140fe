from __future__ import annotations
import threading
from typing import Optional
import requests

from .errors import MotionTimeout, RoofError

PUSHOVER_URL = "https://api.pushover.net/1/messages.json"


class Notifier:
    """Pushes roof alerts to the operator's phone (Pushover)."""
    def __init__(self, enabled: bool, pushover_token: Optional[str], pushover_user: Optional[str],
                 timeout_s: float = 5.0, title: str = "Roll-off roof"):
        self.enabled = enabled and bool(pushover_token and pushover_user)
        self._token = pushover_token
        self._user = pushover_user
        self._timeout = timeout_s
        self.title = title

    def alert(self, err: RoofError):
        # A timed-out roof is in an unknown position: high priority.
        priority = 1 if isinstance(err, MotionTimeout) else 0
        self.send(self.title, str(err), priority=priority)

    def send(self, title: str, message: str, priority: int = 0):
        if not self.enabled:
            return
        threading.Thread(target=self._send_sync, args=(title, message, priority), daemon=True).start()

    def _send_sync(self, title: str, message: str, priority: int):
        try:
            requests.post(
                PUSHOVER_URL,
                data={
                    "token": self._token,
                    "user": self._user,
                    "title": title,
                    "message": message,
                    "priority": priority,
                },
                timeout=self._timeout,
            )
        except requests.RequestException:
            pass
