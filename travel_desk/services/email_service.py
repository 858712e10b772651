"""
Travel Desk
Email Service — SMTP delivery with an audit row per attempt.

SMTP parameters come from the settings document (``email.smtp``), not from
app config, so administrators can change them at runtime.  When no SMTP host
is configured, emails are recorded with status ``logged`` and not delivered.

Connection security is decided by port:
    465                  implicit TLS (SMTP_SSL)
    587                  STARTTLS
    MAIL_DEV_PORT (1025) plain, for a local catch-all mail server
    anything else        ``secure`` → implicit TLS, otherwise STARTTLS when offered

Config:
    MAIL_TIMEOUT      socket timeout in seconds (default 30)
    MAIL_DEV_PORT     plain-text local test port (default 1025)
    MAIL_TLS_VERIFY   verify server certificates (default true)
"""

from __future__ import annotations

import logging
import smtplib
import ssl
from dataclasses import dataclass, field
from datetime import datetime, timezone
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formataddr, make_msgid, parseaddr

from flask import current_app

from travel_desk.core.exceptions import NotificationFailure
from travel_desk.models import db
from travel_desk.models.email_log import EmailLog

logger = logging.getLogger(__name__)

MODE_SSL = "ssl"
MODE_STARTTLS = "starttls"
MODE_STARTTLS_IF_OFFERED = "starttls_if_offered"
MODE_PLAIN = "plain"


def resolve_connection_mode(port, secure: bool, dev_port: int = 1025) -> str:
    """Pick the connection security for an SMTP port."""
    port = int(port or 0)
    if port == 465:
        return MODE_SSL
    if port == 587:
        return MODE_STARTTLS
    if port == int(dev_port):
        return MODE_PLAIN
    return MODE_SSL if secure else MODE_STARTTLS_IF_OFFERED


@dataclass(frozen=True)
class DeliveryReceipt:
    message_id: str
    recipients: tuple[str, ...] = field(default_factory=tuple)
    transport: str = "smtp"


class LogTransport:
    """Records the email in the application log instead of delivering it."""

    name = "log"

    def send(self, to: str, subject: str, html: str, reply_to: str | None = None) -> DeliveryReceipt:
        logger.info(
            "Email (log only): to=%s subject='%s'", to, subject,
            extra={"event_type": "email_logged", "recipient": to},
        )
        return DeliveryReceipt(message_id=make_msgid(domain="travel-desk.local"),
                               recipients=(to,), transport=self.name)


class SmtpTransport:
    """Delivers through an SMTP server described by ``email.smtp`` settings."""

    name = "smtp"

    def __init__(self, smtp_settings: dict, *, timeout: float = 30,
                 dev_port: int = 1025, verify_tls: bool = True):
        self.host = smtp_settings.get("host") or ""
        self.port = int(smtp_settings.get("port") or 587)
        self.username = smtp_settings.get("username") or ""
        self.password = smtp_settings.get("password") or ""
        self.sender = smtp_settings.get("from") or ""
        self.sender_name = smtp_settings.get("fromName") or ""
        self.reply_to = smtp_settings.get("replyTo") or ""
        self.mode = resolve_connection_mode(self.port, bool(smtp_settings.get("secure")), dev_port)
        self.timeout = timeout
        self.verify_tls = verify_tls

    def _tls_context(self) -> ssl.SSLContext:
        context = ssl.create_default_context()
        if not self.verify_tls:
            context.check_hostname = False
            context.verify_mode = ssl.CERT_NONE
        return context

    def _from_header(self) -> str:
        name, address = parseaddr(self.sender)
        return formataddr((self.sender_name or name, address or self.sender))

    def _build_message(self, to: str, subject: str, html: str, reply_to: str | None) -> MIMEMultipart:
        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = self._from_header()
        msg["To"] = to
        if reply_to or self.reply_to:
            msg["Reply-To"] = reply_to or self.reply_to
        msg["Message-ID"] = make_msgid()
        msg.attach(MIMEText(html, "html", "utf-8"))
        return msg

    def _connect(self) -> smtplib.SMTP:
        if self.mode == MODE_SSL:
            return smtplib.SMTP_SSL(self.host, self.port, timeout=self.timeout,
                                    context=self._tls_context())
        return smtplib.SMTP(self.host, self.port, timeout=self.timeout)

    def send(self, to: str, subject: str, html: str, reply_to: str | None = None) -> DeliveryReceipt:
        """Deliver one message.

        Raises:
            NotificationFailure: connection, TLS, auth or delivery error.
        """
        msg = self._build_message(to, subject, html, reply_to)
        try:
            with self._connect() as smtp:
                if self.mode == MODE_STARTTLS:
                    smtp.starttls(context=self._tls_context())
                elif self.mode == MODE_STARTTLS_IF_OFFERED:
                    smtp.ehlo()
                    if smtp.has_extn("starttls"):
                        smtp.starttls(context=self._tls_context())
                if self.username and self.password:
                    smtp.login(self.username, self.password)
                smtp.send_message(msg)
        except (smtplib.SMTPException, OSError) as exc:
            raise NotificationFailure(f"SMTP delivery to {to} failed: {exc}") from exc
        return DeliveryReceipt(message_id=msg["Message-ID"], recipients=(to,), transport=self.name)


class EmailService:
    """
    Email sending with an EmailLog row per attempt.

    ``send`` flushes the log row; committing it is the caller's job.
    """

    @staticmethod
    def get_transport(smtp_settings: dict | None):
        """SMTP transport when a host is configured, log-only transport otherwise."""
        smtp_settings = smtp_settings or {}
        if not smtp_settings.get("host"):
            return LogTransport()
        cfg = current_app.config
        return SmtpTransport(
            smtp_settings,
            timeout=cfg.get("MAIL_TIMEOUT", 30),
            dev_port=cfg.get("MAIL_DEV_PORT", 1025),
            verify_tls=cfg.get("MAIL_TLS_VERIFY", True),
        )

    @classmethod
    def send(
        cls,
        *,
        to_email: str,
        subject: str,
        html_body: str,
        smtp_settings: dict | None = None,
        reply_to: str | None = None,
        template_name: str | None = None,
        category: str = "decision",
        application_id: str | None = None,
        raise_on_error: bool = False,
    ) -> EmailLog:
        """
        Send an email and record the attempt.

        Delivery errors mark the row ``failed``.  They are re-raised only
        when ``raise_on_error`` is set.

        Returns:
            The EmailLog record for this email.
        """
        log = EmailLog(
            recipient_email=to_email,
            subject=subject[:500],
            template_name=template_name,
            category=category,
            status="queued",
            application_id=application_id,
        )
        db.session.add(log)
        db.session.flush()

        transport = cls.get_transport(smtp_settings)
        try:
            receipt = transport.send(to_email, subject, html_body, reply_to=reply_to)
        except Exception as exc:
            log.status = "failed"
            log.error_message = str(exc)[:1000]
            logger.error(
                "Email failed: to=%s error=%s", to_email, exc,
                extra={"event_type": "email_failed", "recipient": to_email,
                       "application_id": application_id},
            )
            if raise_on_error:
                if isinstance(exc, NotificationFailure):
                    raise
                raise NotificationFailure(str(exc)) from exc
            return log

        log.status = "logged" if transport.name == LogTransport.name else "sent"
        log.message_id = receipt.message_id
        log.sent_at = datetime.now(timezone.utc)
        logger.info(
            "Email %s: to=%s subject='%s'", log.status, to_email, subject,
            extra={"event_type": "email_" + log.status, "recipient": to_email,
                   "application_id": application_id},
        )
        return log
