"""Email transport."""

import smtplib
import ssl
from abc import ABC, abstractmethod
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Optional

from ..config import SmtpConfig, get_config
from ..exceptions import ErrorCode, ExternalServiceError


class EmailSender(ABC):
    """Delivers one rendered email. Raises on transport failure."""

    @abstractmethod
    def send(self, to_address: str, to_name: Optional[str], subject: str, html_body: str) -> None:
        ...


class SmtpEmailSender(EmailSender):
    def __init__(self, smtp_config: Optional[SmtpConfig] = None, from_address: Optional[str] = None):
        app_config = get_config()
        self.smtp_config = smtp_config or app_config.smtp
        self.from_address = from_address or app_config.notifications.from_address
        self.from_name = app_config.notifications.company_name

    def _build_message(
        self, to_address: str, to_name: Optional[str], subject: str, html_body: str
    ) -> MIMEMultipart:
        msg = MIMEMultipart("alternative")
        msg["From"] = f"{self.from_name} <{self.from_address}>"
        msg["To"] = f"{to_name} <{to_address}>" if to_name else to_address
        msg["Subject"] = subject
        msg.attach(MIMEText(html_body, "html"))
        return msg

    def send(self, to_address: str, to_name: Optional[str], subject: str, html_body: str) -> None:
        msg = self._build_message(to_address, to_name, subject, html_body)
        cfg = self.smtp_config
        try:
            with smtplib.SMTP(cfg.host, cfg.port, timeout=cfg.timeout) as server:
                if cfg.use_tls:
                    server.starttls(context=ssl.create_default_context())
                if cfg.username and cfg.password:
                    server.login(cfg.username, cfg.password)
                server.send_message(msg)
        except (smtplib.SMTPException, OSError) as e:
            raise ExternalServiceError(
                f"Email delivery failed: {e}",
                service_name="smtp",
                error_code=ErrorCode.EMAIL_DELIVERY_ERROR,
                cause=e,
                recipient=to_address,
            ) from e
