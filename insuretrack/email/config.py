import logging
from typing import Optional

from pydantic import BaseModel

from insuretrack.config import Settings

logger = logging.getLogger("insuretrack.email.config")


class EmailSettings(BaseModel):
    """
    Email configuration derived from Settings.
    Supports SMTP and an optional SendGrid API key.
    """

    enabled: bool = True

    from_address: Optional[str] = None
    from_name: str = "InsureTrack Team"

    smtp_host: str = "smtp.gmail.com"
    smtp_port: int = 587
    smtp_secure: bool = False
    smtp_timeout: float = 30.0
    smtp_username: Optional[str] = None
    smtp_password: Optional[str] = None

    sendgrid_api_key: Optional[str] = None

    @property
    def has_smtp_credentials(self) -> bool:
        return bool(self.smtp_host and self.smtp_username and self.smtp_password)

    @property
    def sender(self) -> Optional[str]:
        """Envelope sender: EMAIL_FROM, falling back to the SMTP login."""
        return self.from_address or self.smtp_username


def email_settings_from(settings: Settings) -> EmailSettings:
    email_settings = EmailSettings(
        enabled=settings.email_enabled,
        from_address=str(settings.email_from_address) if settings.email_from_address else None,
        from_name=settings.email_from_name,
        smtp_host=settings.email_smtp_host,
        smtp_port=settings.email_smtp_port,
        smtp_secure=settings.email_smtp_secure,
        smtp_timeout=settings.email_smtp_timeout,
        smtp_username=settings.email_smtp_username,
        smtp_password=settings.email_smtp_password,
        sendgrid_api_key=settings.sendgrid_api_key,
    )

    logger.info(
        "EmailSettings initialized (enabled=%s, host=%s, port=%s, secure=%s, smtp_credentials=%s, sendgrid=%s)",
        email_settings.enabled,
        email_settings.smtp_host,
        email_settings.smtp_port,
        email_settings.smtp_secure,
        email_settings.has_smtp_credentials,
        bool(email_settings.sendgrid_api_key),
    )
    return email_settings

