"""
SMTP delivery of alert emails.

Messages are multipart/mixed:
- multipart/alternative with the plaintext and HTML bodies
- report.json attachment with the submitted report
"""
import logging
from email.errors import MessageError
from dataclasses import dataclass, field
from datetime import datetime, timezone
from email.mime.application import MIMEApplication
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import format_datetime, make_msgid
from typing import List, Optional

import aiosmtplib

from tlsrpt_notifier.config import Settings

logger = logging.getLogger(__name__)

# Ports where the connection is TLS from the first byte (SMTP2GO's port set)
IMPLICIT_TLS_PORTS = frozenset({465, 8465, 443})

REPORT_ATTACHMENT_NAME = "report.json"


class AlertError(Exception):
    """Base class for alert dispatch failures"""


class ConfigurationError(AlertError):
    """Mail delivery is not configured"""


class DeliveryError(AlertError):
    """The SMTP server could not be reached or refused the message"""


@dataclass
class SMTPConfig:
    """SMTP configuration container"""
    host: str
    port: int
    username: str
    password: str
    from_address: str
    recipients: List[str] = field(default_factory=list)

    @property
    def implicit_tls(self) -> bool:
        return self.port in IMPLICIT_TLS_PORTS

    @classmethod
    def from_settings(cls, settings: Settings) -> Optional["SMTPConfig"]:
        """Build the config, or None when mail is not enabled"""
        if not settings.mail_enabled:
            return None

        return cls(
            host=settings.smtp_host,
            port=settings.smtp_port,
            username=settings.smtp_username,
            password=settings.smtp_password,
            from_address=settings.from_address,
            recipients=settings.recipients,
        )


class Mailer:
    """Builds and sends alert emails over SMTP"""

    def __init__(self, config: Optional[SMTPConfig]):
        self.config = config

    @property
    def enabled(self) -> bool:
        return self.config is not None

    @property
    def recipients(self) -> List[str]:
        return list(self.config.recipients) if self.config else []

    def build_message(
        self,
        subject: str,
        text_body: str,
        html_body: str,
        report_json: str,
    ) -> MIMEMultipart:
        """Compose the alert email with the report attached"""
        if not self.enabled:
            raise ConfigurationError("Can't send alert - mail is not enabled.")

        msg = MIMEMultipart('mixed')
        msg['Subject'] = subject
        msg['From'] = self.config.from_address
        msg['To'] = ", ".join(self.config.recipients)
        msg['Date'] = format_datetime(datetime.now(timezone.utc))
        msg['Message-ID'] = make_msgid()

        body = MIMEMultipart('alternative')
        body.attach(MIMEText(text_body, 'plain', 'utf-8'))
        body.attach(MIMEText(html_body, 'html', 'utf-8'))
        msg.attach(body)

        attachment = MIMEApplication(report_json.encode("utf-8"), _subtype="json")
        attachment.add_header('Content-Disposition', 'attachment', filename=REPORT_ATTACHMENT_NAME)
        msg.attach(attachment)

        return msg

    async def send(self, msg: MIMEMultipart) -> str:
        """
        Deliver a message to the configured recipients.

        Returns:
            The Message-ID of the delivered message

        Raises:
            ConfigurationError: mail is not enabled
            DeliveryError: connection, TLS, authentication, SMTP or message encoding failure
        """
        if not self.enabled:
            raise ConfigurationError("Can't send alert - mail is not enabled.")

        config = self.config
        try:
            await aiosmtplib.send(
                msg,
                sender=config.from_address,
                recipients=config.recipients,
                hostname=config.host,
                port=config.port,
                username=config.username,
                password=config.password,
                use_tls=config.implicit_tls,
                # None upgrades with STARTTLS when the server offers it
                start_tls=False if config.implicit_tls else None,
            )
        except (aiosmtplib.SMTPException, OSError, MessageError) as e:
            raise DeliveryError(f"Failed to deliver alert via {config.host}:{config.port}: {e}") from e

        return msg['Message-ID']
