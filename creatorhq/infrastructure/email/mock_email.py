from __future__ import annotations

import logging
import threading
from dataclasses import dataclass

from creatorhq.application.ports.email import EmailPort


@dataclass(frozen=True)
class SentEmail:
    to: str
    subject: str
    html: str


class MockEmail(EmailPort):
    def __init__(self, fail_for: set[str] | None = None) -> None:
        self.sent: list[SentEmail] = []
        self.fail_for = fail_for or set()
        self._lock = threading.Lock()
        self._logger = logging.getLogger(__name__)

    def send(self, to: str, subject: str, html: str) -> bool:
        if to in self.fail_for:
            self._logger.info("Mock email rejected", extra={"status": "failed"})
            return False
        with self._lock:
            self.sent.append(SentEmail(to=to, subject=subject, html=html))
        self._logger.info("Mock email sent", extra={"event": subject})
        return True

    def to(self, address: str) -> list[SentEmail]:
        return [m for m in self.sent if m.to == address]
