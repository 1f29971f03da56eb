import logging
from abc import ABC, abstractmethod

import requests

logger = logging.getLogger(__name__)

RESEND_URL = "https://api.resend.com/emails"


class Mailer(ABC):
    """Delivers one plain-text message; returns True when accepted."""

    @abstractmethod
    def send(self, to, subject, body):
        ...


class ResendMailer(Mailer):
    def __init__(self, api_key, sender, timeout=15):
        self.api_key = api_key
        self.sender = sender
        self.timeout = timeout

    def send(self, to, subject, body):
        try:
            response = requests.post(
                RESEND_URL,
                headers={"Authorization": f"Bearer {self.api_key}"},
                json={"from": self.sender, "to": [to], "subject": subject, "text": body},
                timeout=self.timeout,
            )
        except requests.exceptions.RequestException as exc:
            logger.error("Email to %s failed: %s", to, exc)
            return False
        if not response.ok:
            logger.error("Email to %s rejected (%s): %s", to, response.status_code, response.text[:200])
            return False
        return True


class LogMailer(Mailer):
    """Used when no mail provider is configured."""

    def send(self, to, subject, body):
        logger.warning("Mail provider not configured; dropping email to %s: %s", to, subject)
        return False
