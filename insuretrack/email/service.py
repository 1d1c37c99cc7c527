from __future__ import annotations

import logging
import smtplib
import ssl
import time
from dataclasses import asdict, dataclass, field
from email.message import EmailMessage
from email.utils import formataddr, make_msgid
from typing import Any, Dict, Optional, Tuple

from sendgrid import SendGridAPIClient
from sendgrid.helpers.mail import Content, Mail

from insuretrack.email.config import EmailSettings
from insuretrack.errors import DispatchError
from insuretrack.services.expiry import utc_now_iso

logger = logging.getLogger("insuretrack.email.service")

STATUS_SUCCESS = "success"
STATUS_FAILED = "failed"
STATUS_SIMULATED = "simulated"


# ---------------------------------------------------------------------------
# Transports
# ---------------------------------------------------------------------------


class EmailTransport:
    """A delivery channel. `send` returns (message_id, response) or raises DispatchError."""

    name = "transport"

    def send(
        self,
        to_email: str,
        subject: str,
        text_body: str,
        html_body: Optional[str] = None,
    ) -> Tuple[str, str]:
        raise NotImplementedError


class SmtpTransport(EmailTransport):
    """SMTP delivery with STARTTLS (or implicit TLS when `secure`)."""

    name = "smtp"

    def __init__(
        self,
        host: str,
        port: int,
        username: str,
        password: str,
        *,
        from_address: Optional[str] = None,
        from_name: Optional[str] = None,
        secure: bool = False,
        timeout: float = 30.0,
    ) -> None:
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.from_address = from_address or username
        self.from_name = from_name
        self.secure = secure
        self.timeout = timeout

    def _build_message(
        self,
        to_email: str,
        subject: str,
        text_body: str,
        html_body: Optional[str],
    ) -> EmailMessage:
        msg = EmailMessage()
        msg["From"] = formataddr((self.from_name or "", self.from_address))
        msg["To"] = to_email
        msg["Subject"] = subject
        domain = self.from_address.rpartition("@")[2] or None
        msg["Message-ID"] = make_msgid(domain=domain)
        msg.set_content(text_body)
        if html_body:
            msg.add_alternative(html_body, subtype="html")
        return msg

    def send(
        self,
        to_email: str,
        subject: str,
        text_body: str,
        html_body: Optional[str] = None,
    ) -> Tuple[str, str]:
        msg = self._build_message(to_email, subject, text_body, html_body)

        try:
            if self.secure:
                server = smtplib.SMTP_SSL(
                    self.host,
                    self.port,
                    timeout=self.timeout,
                    context=ssl.create_default_context(),
                )
            else:
                server = smtplib.SMTP(self.host, self.port, timeout=self.timeout)

            with server:
                if not self.secure:
                    server.starttls(context=ssl.create_default_context())
                server.login(self.username, self.password)
                refused = server.send_message(msg)
        except (smtplib.SMTPException, OSError) as exc:
            raise DispatchError(str(exc) or exc.__class__.__name__) from exc

        if refused:
            raise DispatchError(f"Recipient refused: {refused}")

        return msg["Message-ID"], f"250 Message accepted by {self.host}"


class SendGridTransport(EmailTransport):
    """SendGrid Web API delivery."""

    name = "sendgrid"

    def __init__(self, api_key: str, from_address: str, from_name: Optional[str] = None) -> None:
        self.api_key = api_key
        self.from_address = from_address
        self.from_name = from_name

    def send(
        self,
        to_email: str,
        subject: str,
        text_body: str,
        html_body: Optional[str] = None,
    ) -> Tuple[str, str]:
        message = Mail(
            from_email=(self.from_address, self.from_name),
            to_emails=to_email,
            subject=subject,
        )
        message.add_content(Content("text/plain", text_body))
        if html_body:
            message.add_content(Content("text/html", html_body))

        try:
            client = SendGridAPIClient(self.api_key)
            response = client.send(message)
        except Exception as exc:  # network / API errors
            raise DispatchError(str(exc) or exc.__class__.__name__) from exc

        if response.status_code >= 400:
            raise DispatchError(
                f"SendGrid responded with status {response.status_code}: "
                f"{getattr(response, 'body', b'')[:500]!r}"
            )

        headers = getattr(response, "headers", None) or {}
        message_id = headers.get("X-Message-Id") or make_msgid()
        return message_id, f"SendGrid status {response.status_code}"


def build_transport(email_settings: EmailSettings) -> Optional[EmailTransport]:
    """
    Pick a transport from configuration.

    SendGrid wins when SENDGRID_API_KEY and a sender are set; otherwise SMTP
    when a login and password are present; otherwise none (simulated mode).
    """
    if email_settings.sendgrid_api_key and email_settings.sender:
        return SendGridTransport(
            api_key=email_settings.sendgrid_api_key,
            from_address=email_settings.sender,
            from_name=email_settings.from_name,
        )

    if email_settings.has_smtp_credentials:
        return SmtpTransport(
            host=email_settings.smtp_host,
            port=email_settings.smtp_port,
            username=email_settings.smtp_username,
            password=email_settings.smtp_password,
            from_address=email_settings.sender,
            from_name=email_settings.from_name,
            secure=email_settings.smtp_secure,
            timeout=email_settings.smtp_timeout,
        )

    return None


# ---------------------------------------------------------------------------
# Dispatcher
# ---------------------------------------------------------------------------


@dataclass
class DispatchResult:
    """Outcome of one send attempt, shaped so it can be logged as-is."""

    recipient: str
    subject: str
    status: str
    message: str
    message_id: Optional[str] = None
    response: Optional[str] = None
    error: Optional[str] = None
    timestamp: str = field(default_factory=utc_now_iso)

    @property
    def success(self) -> bool:
        return self.status != STATUS_FAILED

    @property
    def simulated(self) -> bool:
        return self.status == STATUS_SIMULATED

    def to_log_entry(self) -> Dict[str, Any]:
        log: Dict[str, Any] = {
            "recipient": self.recipient,
            "subject": self.subject,
            "status": self.status,
            "message": self.message,
            "timestamp": self.timestamp,
        }
        if self.message_id:
            log["messageId"] = self.message_id
        if self.status == STATUS_FAILED:
            log["error"] = self.error or "Unknown error"
        return log

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        return {
            "success": self.success,
            "status": self.status,
            "simulated": self.simulated,
            "email": data["recipient"],
            "subject": data["subject"],
            "message": data["message"],
            "messageId": data["message_id"],
            "response": data["response"],
            "error": data["error"],
            "timestamp": data["timestamp"],
        }


class EmailDispatcher:
    """
    Sends rendered messages, or simulates delivery.

    Delivery is simulated (no network I/O) when no transport is configured
    or when email is disabled; disablement wins over configuration. `send`
    never raises: transport failures come back as a failed result. The
    caller decides whether to persist `result.to_log_entry()`.
    """

    def __init__(self, transport: Optional[EmailTransport] = None, enabled: bool = True) -> None:
        self.transport = transport
        self.enabled = enabled

    @property
    def configured(self) -> bool:
        return self.transport is not None

    @property
    def mode(self) -> str:
        if not self.enabled:
            return "disabled"
        if not self.configured:
            return "simulated"
        return self.transport.name

    def reconfigure(self, transport: Optional[EmailTransport]) -> None:
        self.transport = transport
        logger.info("Email transport reconfigured (mode=%s)", self.mode)

    def _simulate(self, to_email: str, subject: str) -> DispatchResult:
        if not self.enabled:
            message = "Email sending is disabled - email was simulated"
        else:
            message = "Email sent successfully (simulated)"

        logger.info("[SIMULATED] Sending email to %s (subject=%s)", to_email, subject)
        return DispatchResult(
            recipient=to_email,
            subject=subject,
            status=STATUS_SIMULATED,
            message=message,
            message_id=f"simulated-{int(time.time() * 1000)}",
            response=message,
        )

    def send(
        self,
        to_email: str,
        subject: str,
        text_body: str,
        html_body: Optional[str] = None,
    ) -> DispatchResult:
        if not self.enabled or self.transport is None:
            return self._simulate(to_email, subject)

        try:
            message_id, response = self.transport.send(to_email, subject, text_body, html_body)
        except Exception as exc:  # noqa: BLE001 - any transport failure is a failed send
            if isinstance(exc, DispatchError):
                logger.error(
                    "Failed to send email via %s to %s: %s",
                    self.transport.name,
                    to_email,
                    exc,
                )
            else:
                logger.exception("Unexpected error sending email to %s", to_email)
            return DispatchResult(
                recipient=to_email,
                subject=subject,
                status=STATUS_FAILED,
                message="Failed to send email",
                error=str(exc),
            )

        logger.info(
            "Email sent successfully: to=%s subject=%s via=%s",
            to_email,
            subject,
            self.transport.name,
        )
        return DispatchResult(
            recipient=to_email,
            subject=subject,
            status=STATUS_SUCCESS,
            message="Email sent successfully",
            message_id=message_id,
            response=response,
        )


def build_dispatcher(email_settings: EmailSettings) -> EmailDispatcher:
    transport = build_transport(email_settings)
    dispatcher = EmailDispatcher(transport=transport, enabled=email_settings.enabled)

    if not email_settings.enabled:
        logger.warning("ENABLE_EMAIL is false; reminder emails will be simulated.")
    elif transport is None:
        logger.warning(
            "Email credentials not configured (EMAIL_USER/EMAIL_PASSWORD or SENDGRID_API_KEY); "
            "email sending will be simulated."
        )
    else:
        logger.info("Email dispatcher ready (mode=%s)", dispatcher.mode)
    return dispatcher
