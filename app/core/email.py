"""
Outgoing email — Jinja2 templates rendered to HTML and sent over SMTP.

Sending is blocking, so endpoints hand ``Mailer.send`` to FastAPI
``BackgroundTasks`` (run in a worker thread after the response is sent).
"""

from __future__ import annotations

import logging
import smtplib
from email.message import EmailMessage
from pathlib import Path

import jinja2

from app.core.config import settings

logger = logging.getLogger(__name__)

TEMPLATES_DIR = Path(__file__).resolve().parent.parent / "templates"

_env = jinja2.Environment(
    loader=jinja2.FileSystemLoader(str(TEMPLATES_DIR)),
    autoescape=jinja2.select_autoescape(["html"]),
)


def render_template(name: str, **context: object) -> str:
    return _env.get_template(name).render(**context)


def build_reset_link(user_id: int, token: str) -> str:
    return f"{settings.CLIENT_URL.rstrip('/')}/{user_id}/reset-password/{token}/"


class Mailer:
    """SMTP sender configured from settings."""

    def __init__(
        self,
        host: str = settings.SMTP_HOST,
        port: int = settings.SMTP_PORT,
        username: str = settings.EMAIL_ADDRESS,
        password: str = settings.EMAIL_PASSWORD,
        use_tls: bool = settings.SMTP_USE_TLS,
    ) -> None:
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.use_tls = use_tls

    def _message(self, to: str, subject: str, html: str) -> EmailMessage:
        msg = EmailMessage()
        msg["From"] = self.username
        msg["To"] = to
        msg["Subject"] = subject
        msg.set_content("This message requires an HTML-capable mail client.")
        msg.add_alternative(html, subtype="html")
        return msg

    def send(self, to: str, subject: str, html: str) -> None:
        """Deliver one message. Failures are logged, never raised to the caller."""
        msg = self._message(to, subject, html)
        try:
            with smtplib.SMTP(self.host, self.port, timeout=30) as smtp:
                if self.use_tls:
                    smtp.starttls()
                if self.password:
                    smtp.login(self.username, self.password)
                smtp.send_message(msg)
        except (smtplib.SMTPException, OSError) as e:
            logger.warning("Could not send '%s' email to %s: %s", subject, to, e)
            return
        logger.info("Sent '%s' email to %s", subject, to)


def get_mailer() -> Mailer:
    """FastAPI dependency, overridden with a recording fake in tests."""
    return Mailer()
