from __future__ import annotations

import logging
import re

import resend

from creatorhq.application.ports.email import EmailPort
from creatorhq.core.config import settings


def html_to_text(html: str) -> str:
    text = re.sub(r"<br\s*/?>|</p>", "\n", html)
    text = re.sub(r"<[^>]+>", "", text)
    return re.sub(r"[ \t]+", " ", text).strip()


class ResendEmail(EmailPort):
    def __init__(self, api_key: str | None = None, sender: str | None = None) -> None:
        self._api_key = api_key or settings.RESEND_API_KEY
        self._sender = sender or f"{settings.BUSINESS_NAME} <{settings.EMAIL_FROM}>"
        self._logger = logging.getLogger(__name__)

        if not self._api_key:
            raise ValueError("RESEND_API_KEY is required for Resend email")
        resend.api_key = self._api_key

    def send(self, to: str, subject: str, html: str) -> bool:
        params: resend.Emails.SendParams = {
            "from": self._sender,
            "to": [to],
            "subject": subject,
            "html": html,
            "text": html_to_text(html),
        }
        try:
            response = resend.Emails.send(params)
        except Exception as e:
            self._logger.error("Email send failed", extra={"error": str(e), "status": "failed"})
            return False
        self._logger.info("Email sent", extra={"event": response.get("id") if response else None})
        return True
