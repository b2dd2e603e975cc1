"""SMTP delivery of the rendered digest using aiosmtplib."""

from __future__ import annotations

from datetime import datetime, timezone
from email.message import EmailMessage
from email.utils import make_msgid
import logging

import aiosmtplib

from ..config import EmailConfig
from ..errors import ConfigurationError, DeliveryError
from ..utils.logging import log_event
from .renderer import format_date

logger = logging.getLogger(__name__)


def build_subject(cfg: EmailConfig, when: datetime | None = None) -> str:
    when = when or datetime.now(timezone.utc)
    return f"{cfg.subject} - {format_date(when)}"


def build_message(html: str, text: str, cfg: EmailConfig, when: datetime | None = None) -> EmailMessage:
    """Build a multipart message: plain text body with an HTML alternative."""
    if not cfg.sender or not cfg.recipients:
        raise ConfigurationError("email.sender and email.recipients are required to send")
    msg = EmailMessage()
    msg["Subject"] = build_subject(cfg, when)
    msg["From"] = cfg.sender
    msg["To"] = ", ".join(cfg.recipients)
    msg["Message-ID"] = make_msgid(domain=cfg.sender.rpartition("@")[2] or None)
    msg.set_content(text)
    msg.add_alternative(html, subtype="html")
    return msg


def _tls_options(cfg: EmailConfig) -> dict[str, bool]:
    # Implicit TLS on 465 unless configured; STARTTLS otherwise.
    secure = cfg.smtp_secure if cfg.smtp_secure is not None else cfg.smtp_port == 465
    return {"use_tls": secure, "start_tls": not secure}


async def send_digest(html: str, text: str, cfg: EmailConfig, when: datetime | None = None) -> str:
    """Send the digest and return the Message-ID header.

    Raises:
        DeliveryError: If the SMTP exchange fails
    """
    if not cfg.smtp_host:
        raise ConfigurationError("email.smtp_host is required to send")
    msg = build_message(html, text, cfg, when)
    log_event(
        logger,
        "Sending digest",
        event="email_send",
        recipients=len(cfg.recipients),
        smtp_host=cfg.smtp_host,
    )
    try:
        await aiosmtplib.send(
            msg,
            hostname=cfg.smtp_host,
            port=cfg.smtp_port,
            username=cfg.smtp_user or None,
            password=cfg.smtp_password or None,
            **_tls_options(cfg),
        )
    except (aiosmtplib.SMTPException, OSError) as exc:
        raise DeliveryError(f"SMTP delivery failed: {type(exc).__name__}: {exc}") from exc
    message_id = msg.get("Message-ID") or ""
    log_event(logger, "Digest sent", event="email_sent", message_id=message_id)
    return message_id


async def verify_smtp_connection(cfg: EmailConfig) -> bool:
    """Connect (and log in when credentials are set) without sending."""
    if not cfg.smtp_host:
        log_event(logger, "SMTP host not configured", level=logging.ERROR, event="smtp_verify_failed")
        return False
    client = aiosmtplib.SMTP(hostname=cfg.smtp_host, port=cfg.smtp_port, **_tls_options(cfg))
    try:
        await client.connect()
        if cfg.smtp_user and cfg.smtp_password:
            await client.login(cfg.smtp_user, cfg.smtp_password)
        await client.quit()
    except (aiosmtplib.SMTPException, OSError) as exc:
        log_event(
            logger,
            "SMTP verification failed",
            level=logging.ERROR,
            event="smtp_verify_failed",
            error=f"{type(exc).__name__}: {exc}",
        )
        return False
    finally:
        if client.is_connected:
            client.close()
    log_event(logger, "SMTP connection verified", event="smtp_verified", smtp_host=cfg.smtp_host)
    return True
