"""Plain-text template mailer over SMTP."""

from __future__ import annotations

import logging
import smtplib
import time
from email.mime.text import MIMEText
from string import Template
from typing import Dict, Mapping, Tuple

from greenlight.config import GreenlightConfig, default_config

logger = logging.getLogger(__name__)

SEND_ATTEMPTS = 3
RETRY_DELAY_SECONDS = 0.5

TEMPLATES: Dict[str, Tuple[str, str]] = {
    "user_welcome": (
        "Welcome to Greenlight!",
        "Hi $name,\n\n"
        "Thanks for signing up for a Greenlight account. We're excited to have you on board!\n\n"
        "For future reference, your user ID number is $id.\n\n"
        "Thanks,\n\nThe Greenlight Team\n",
    ),
}


class MailerError(Exception):
    """Raised when an email could not be rendered or delivered."""


def render(template_name: str, data: Mapping[str, object]) -> Tuple[str, str]:
    try:
        subject, body = TEMPLATES[template_name]
    except KeyError:
        raise MailerError(f"unknown email template {template_name!r}") from None
    try:
        return Template(subject).substitute(data), Template(body).substitute(data)
    except (KeyError, ValueError) as exc:
        raise MailerError(f"template {template_name!r} could not be rendered: {exc}") from exc


class Mailer:
    def __init__(
        self,
        config: GreenlightConfig = default_config,
        *,
        attempts: int = SEND_ATTEMPTS,
        retry_delay: float = RETRY_DELAY_SECONDS,
    ) -> None:
        self.host = config.smtp_host
        self.port = config.smtp_port
        self.username = config.smtp_username
        self.password = config.smtp_password
        self.sender = config.smtp_sender
        self.attempts = max(1, attempts)
        self.retry_delay = retry_delay

    def send(self, recipient: str, template_name: str, data: Mapping[str, object]) -> None:
        """
        Render ``template_name`` and deliver it to ``recipient``.

        Blocking; meant to run as background work. Delivery is retried a
        few times before giving up.

        Raises:
            MailerError: if rendering fails or every attempt fails.
        """
        subject, body = render(template_name, data)
        message = MIMEText(body)
        message["Subject"] = subject
        message["From"] = self.sender
        message["To"] = recipient

        last_error: Exception | None = None
        for attempt in range(1, self.attempts + 1):
            try:
                with smtplib.SMTP(self.host, self.port, timeout=10) as client:
                    if self.username and self.password:
                        client.starttls()
                        client.login(self.username, self.password)
                    client.sendmail(self.sender, [recipient], message.as_string())
                logger.info("mail template=%s outcome=sent attempt=%d", template_name, attempt)
                return
            except (smtplib.SMTPException, OSError) as exc:
                last_error = exc
                logger.debug("mail template=%s attempt=%d error=%s", template_name, attempt, exc)
                if attempt < self.attempts:
                    time.sleep(self.retry_delay)
        raise MailerError(f"sending {template_name!r} failed after {self.attempts} attempts: {last_error}")
