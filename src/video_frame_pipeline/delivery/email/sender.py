"""
SMTP-отправка email.

Важно:
- Не логировать тело письма
- Логировать только метаданные (кому, статус, message-id)
"""

from __future__ import annotations

import smtplib
from email.message import EmailMessage
from email.utils import make_msgid

from video_frame_pipeline.common.config import get_settings
from video_frame_pipeline.common.logging import get_project_logger
from video_frame_pipeline.delivery.base import DeliveryResult
from video_frame_pipeline.delivery.results import fail_result, ok_result

log = get_project_logger()


class SMTPEmailProvider:
    def __init__(self) -> None:
        self.s = get_settings()

    def send(self, to: str, subject: str, body: str) -> DeliveryResult:
        if not to:
            return fail_result("smtp", "recipient_empty")

        if not self.s.smtp_host:
            log.warning("email_skipped_smtp_not_set", extra={"payload": {"to": to}})
            return fail_result("smtp", "SMTP_HOST_not_set")

        msg = EmailMessage()
        msg["From"] = self.s.email_from
        msg["To"] = to
        msg["Subject"] = subject
        msg["Message-ID"] = make_msgid()
        msg.set_content(body)

        try:
            with smtplib.SMTP(self.s.smtp_host, self.s.smtp_port, timeout=self.s.smtp_timeout_sec) as smtp:
                smtp.ehlo()
                if smtp.has_extn("starttls"):
                    smtp.starttls()
                    smtp.ehlo()

                if self.s.smtp_user and self.s.smtp_pass:
                    smtp.login(self.s.smtp_user, self.s.smtp_pass)

                smtp.send_message(msg)

            log.info("email_sent", extra={"payload": {"to": to, "provider": "smtp"}})
            return ok_result("smtp", message_id=msg.get("Message-ID"))
        except (smtplib.SMTPException, OSError) as e:
            log.error("email_send_failed", extra={"payload": {"to": to, "err": str(e)[:200]}})
            return fail_result("smtp", str(e))
