"""Outgoing account emails.

Delivery is owned by a separate mail service; this module defines the
interface the account flows call and a sender that only logs, used when
no mail service is wired in.
"""

import logging
from typing import Protocol

logger = logging.getLogger(__name__)


class EmailSender(Protocol):
    async def send_verification(self, email: str, first_name: str, token: str) -> None: ...

    async def send_recovery_code(self, email: str, first_name: str, code: str) -> None: ...

    async def send_password_changed(self, email: str, first_name: str) -> None: ...


class LoggingEmailSender:
    """Logs that a message would have been sent.

    Tokens and codes are never written to the log.
    """

    async def send_verification(self, email: str, first_name: str, token: str) -> None:
        logger.info(f"Verification email queued for {email}")

    async def send_recovery_code(self, email: str, first_name: str, code: str) -> None:
        logger.info(f"Password recovery email queued for {email}")

    async def send_password_changed(self, email: str, first_name: str) -> None:
        logger.info(f"Password change confirmation queued for {email}")
