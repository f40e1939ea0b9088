from typing import Dict, List, Optional, Tuple

from courierhub.utils.log import get_logger

log = get_logger("courierhub.push", "push")


class PushError(Exception):
    pass


class LoggingPushNotifier:
    """
    Push side channel. `notify` is fire-and-forget: there is no return
    contract, delivery transport is outside this service, so this default
    implementation only logs the call.
    """

    def notify(self, user_id: int, event: str, payload: Optional[Dict] = None) -> None:
        log.info("push user=%s event=%s payload=%s", user_id, event, payload or {})

    def health_check(self) -> bool:
        return True


class RecordingPushNotifier(LoggingPushNotifier):
    """Keeps every call in memory; handy for tests and local debugging."""

    def __init__(self):
        self.sent: List[Tuple[int, str, Dict]] = []

    def notify(self, user_id: int, event: str, payload: Optional[Dict] = None) -> None:
        self.sent.append((user_id, event, dict(payload or {})))
        super().notify(user_id, event, payload)
