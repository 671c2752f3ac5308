"""Outbound email delivery for account workflows."""

from __future__ import annotations

import logging
import smtplib
from concurrent.futures import Future, ThreadPoolExecutor
from email.message import EmailMessage

from .config import Settings
from .domain.contracts import Notifier

logger = logging.getLogger(__name__)


class SmtpNotifier:
    """Send HTML email synchronously over SMTP."""

    def __init__(self, settings: Settings, timeout: float = 10.0) -> None:
        self._host = settings.mail_host
        self._port = settings.mail_port
        self._user = settings.mail_user
        self._password = settings.mail_password
        self._sender = settings.mail_from
        self._use_tls = settings.mail_use_tls
        self._timeout = timeout

    def send(self, to_email: str, subject: str, body_html: str) -> None:
        message = EmailMessage()
        message["From"] = self._sender
        message["To"] = to_email
        message["Subject"] = subject
        message.set_content("This message requires an HTML-capable mail client.")
        message.add_alternative(body_html, subtype="html")

        with smtplib.SMTP(self._host, self._port, timeout=self._timeout) as smtp:
            if self._use_tls:
                smtp.starttls()
            if self._user:
                smtp.login(self._user, self._password)
            smtp.send_message(message)
        logger.info("email %r sent", subject)


class BackgroundNotifier:
    """Hand sends to a worker thread so callers never wait on the mail server.

    Failures are logged from the worker and never reach the caller.
    """

    def __init__(self, delegate: Notifier, max_workers: int = 2) -> None:
        self._delegate = delegate
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="mail")

    def send(self, to_email: str, subject: str, body_html: str) -> None:
        future = self._executor.submit(self._delegate.send, to_email, subject, body_html)
        future.add_done_callback(lambda done: self._log_failure(done, subject))

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)

    @staticmethod
    def _log_failure(future: Future[None], subject: str) -> None:
        exc = future.exception()
        if exc is not None:
            logger.error("failed to send %r email: %s", subject, exc, exc_info=exc)
