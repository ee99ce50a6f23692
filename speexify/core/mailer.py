"""
Mailer — sends email via SMTP or logs it.

MAIL_BACKEND chooses the transport:
  - "log" (default): writes the email to the application log
  - "smtp": sends via SMTP using the MAIL_* settings
"""
from __future__ import annotations

import logging
import smtplib
from email.mime.text import MIMEText

from . import config

logger = logging.getLogger(__name__)


def send_mail(to: str, subject: str, body: str) -> bool:
    """Send a plain-text email. Returns True on success."""
    if config.MAIL_BACKEND == "log":
        logger.info("EMAIL [to=%s] subject=%s\n%s", to, subject, body)
        return True

    msg = MIMEText(body, "plain")
    msg["Subject"] = subject
    msg["From"] = config.MAIL_FROM
    msg["To"] = to
    try:
        with smtplib.SMTP(config.MAIL_SERVER, config.MAIL_PORT) as smtp:
            smtp.starttls()
            if config.MAIL_USERNAME and config.MAIL_PASSWORD:
                smtp.login(config.MAIL_USERNAME, config.MAIL_PASSWORD)
            smtp.send_message(msg)
        return True
    except (smtplib.SMTPException, OSError) as e:
        logger.error("SMTP send to %s failed: %s", to, e)
        return False


def send_code(to: str, code: str, purpose: str) -> bool:
    if purpose == "register":
        subject = "Your Speexify verification code"
        intro = "Use this code to finish creating your Speexify account:"
    else:
        subject = "Your Speexify password reset code"
        intro = "Use this code to reset your Speexify password:"
    body = (
        f"{intro}\n\n    {code}\n\n"
        f"The code expires in {config.CODE_TTL_MINUTES} minutes. "
        "If you did not request it, you can ignore this email."
    )
    return send_mail(to, subject, body)
