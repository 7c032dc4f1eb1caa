from email.message import EmailMessage
from email.utils import make_msgid
from typing import Any, Dict, Optional, Protocol
import logging

import aiosmtplib

from ..errors import EmailError

logger = logging.getLogger(__name__)


class EmailTransport(Protocol):
    async def send(self, to: str, subject: str, body: str) -> Dict[str, Any]: ...


class SmtpEmailTransport:
    """Sends plain text mail through an SMTP relay"""

    def __init__(
        self,
        host: str,
        port: int = 587,
        username: Optional[str] = None,
        password: Optional[str] = None,
        sender: str = "no-reply@localhost",
        timeout: float = 30,
    ):
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.sender = sender
        self.timeout = timeout

    async def send(self, to: str, subject: str, body: str) -> Dict[str, Any]:
        message = EmailMessage()
        message["From"] = self.sender
        message["To"] = to
        message["Subject"] = subject
        message["Message-ID"] = make_msgid()
        message.set_content(body)

        try:
            await aiosmtplib.send(
                message,
                hostname=self.host,
                port=self.port,
                username=self.username,
                password=self.password,
                use_tls=self.port == 465,
                start_tls=self.port == 587,
                timeout=self.timeout,
            )
        except (aiosmtplib.SMTPException, OSError) as e:
            logger.error(f"Email to {to} failed: {e}")
            raise EmailError(f"Email sending failed: {e}")

        logger.info(f"Email sent to {to}")
        return {"success": True, "messageId": message["Message-ID"]}
