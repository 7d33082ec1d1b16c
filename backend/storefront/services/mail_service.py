# Overview: Outbound email: SMTP delivery, an in-memory outbox, and the order-stock message.

"""
Email delivery.

Two transports share one interface:
- SMTPMailer: synchronous smtplib delivery (STARTTLS + login when configured)
- MemoryMailer: keeps messages in an outbox list; used by tests and local dev

The mailer is built once from the app config by build_mailer() and handed
to the services that send mail. Failures surface as DeliveryError so the
caller can undo whatever it staged for the message.
"""

from __future__ import annotations

import logging
import smtplib
from abc import ABC, abstractmethod
from email.message import EmailMessage
from typing import Optional

from markupsafe import escape

from ..errors import DeliveryError


class Mailer(ABC):
    """Composes messages; subclasses decide how they are delivered."""

    def __init__(self, sender: str, logger: logging.Logger):
        self.sender = sender
        self._logger = logger

    def compose(self, to_address: str, subject: str, body_text: str, body_html: str | None = None) -> EmailMessage:
        msg = EmailMessage()
        msg["Subject"] = subject
        msg["From"] = self.sender
        msg["To"] = to_address
        msg.set_content(body_text)
        if body_html is not None:
            msg.add_alternative(body_html, subtype="html")
        return msg

    @abstractmethod
    def send(self, msg: EmailMessage) -> None:
        """Deliver msg or raise DeliveryError."""


class MemoryMailer(Mailer):
    """Collects messages instead of delivering them."""

    def __init__(self, sender: str, logger: logging.Logger):
        super().__init__(sender, logger)
        self.outbox: list[EmailMessage] = []

    def send(self, msg: EmailMessage) -> None:
        self.outbox.append(msg)
        self._logger.info("Email queued in memory outbox for %s", msg["To"])


class SMTPMailer(Mailer):

    def __init__(
        self,
        sender: str,
        logger: logging.Logger,
        *,
        server: str,
        port: int,
        username: str = "",
        password: str = "",
        use_tls: bool = True,
        timeout: float = 10.0,
    ):
        super().__init__(sender, logger)
        self.server = server
        self.port = port
        self.username = username
        self.password = password
        self.use_tls = use_tls
        self.timeout = timeout

    def send(self, msg: EmailMessage) -> None:
        smtp: Optional[smtplib.SMTP] = None
        try:
            smtp = smtplib.SMTP(self.server, self.port, timeout=self.timeout)
            if self.use_tls:
                smtp.starttls()
            if self.username:
                smtp.login(self.username, self.password)
            smtp.send_message(msg)
            self._logger.info("Email sent successfully to %s", msg["To"])

        except smtplib.SMTPAuthenticationError as exc:
            self._logger.error("SMTP authentication failed for '%s': %s", self.username, exc)
            raise DeliveryError() from exc

        except smtplib.SMTPException as exc:
            self._logger.error("SMTP error sending to %s: %s", msg["To"], exc)
            raise DeliveryError() from exc

        except OSError as exc:
            self._logger.error("Network error connecting to %s:%d: %s", self.server, self.port, exc)
            raise DeliveryError() from exc

        finally:
            if smtp is not None:
                try:
                    smtp.quit()
                except (smtplib.SMTPException, OSError):
                    self._logger.debug("SMTP quit failed", exc_info=True)


def build_mailer(config, logger: logging.Logger) -> Mailer:
    backend = config.get("MAIL_BACKEND", "smtp")
    sender = config.get("MAIL_SENDER")
    if backend == "memory":
        return MemoryMailer(sender, logger)
    if backend == "smtp":
        return SMTPMailer(
            sender,
            logger,
            server=config["MAIL_SERVER"],
            port=config["MAIL_PORT"],
            username=config.get("MAIL_USERNAME", ""),
            password=config.get("MAIL_PASSWORD", ""),
            use_tls=config.get("MAIL_USE_TLS", True),
            timeout=config.get("MAIL_TIMEOUT_SECONDS", 10.0),
        )
    raise ValueError(f"Unknown MAIL_BACKEND: {backend}")


def compose_order_stock_email(
    mailer: Mailer,
    *,
    supplier_name: str,
    supplier_email: str,
    item_id: str,
    quantity: int,
    required_date: str,
    confirmation_url: str,
    valid_hours: int,
) -> EmailMessage:
    subject = f"Stock order request: {item_id}"
    text = (
        f"Hello {supplier_name},\n\n"
        f"We would like to order {quantity} unit(s) of item {item_id}, "
        f"required by {required_date}.\n\n"
        f"Please accept or decline this order here:\n{confirmation_url}\n\n"
        f"This link can be used once and expires in {valid_hours} hours.\n"
    )
    html = (
        f"<p>Hello {escape(supplier_name)},</p>"
        f"<p>We would like to order <strong>{quantity}</strong> unit(s) of item "
        f"<strong>{escape(item_id)}</strong>, required by {escape(required_date)}.</p>"
        f'<p><a href="{escape(confirmation_url)}">Review this order</a></p>'
        f"<p>This link can be used once and expires in {valid_hours} hours.</p>"
    )
    return mailer.compose(supplier_email, subject, text, html)
