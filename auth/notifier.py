"""
auth/notifier.py -- Outbound e-mail channel for second-factor codes.

The orchestrator hands (recipient, subject, content) to an EmailClient after
it has stored a challenge. Delivery guarantees belong to the concrete client.

LoggingEmailClient is the development channel: it writes the message to the
"authservice.email" logger instead of sending it. Swap in a real SMTP/API
client for production.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod

from auth.credentials import Email

logger = logging.getLogger("authservice.email")


class EmailClient(ABC):
    @abstractmethod
    async def send_email(self, recipient: Email, subject: str, content: str) -> None: ...


class LoggingEmailClient(EmailClient):
    async def send_email(self, recipient: Email, subject: str, content: str) -> None:
        logger.info("Sending email to %s | subject=%r | content=%r", recipient, subject, content)
