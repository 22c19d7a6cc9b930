# Overview: Outbound email; SMTP in production, in-process outbox for development and tests.

"""
Mail delivery.

send_mail() raises MailDeliveryError when a message cannot be handed to the
transport. Callers decide whether a failure matters:

- OTP mails that the user is actively waiting on (signup, resend, password
  change) propagate the error so the request fails with 500.
- Status notifications (partner approved/rejected, delivery login codes,
  forgot-password) go through notify(), which logs and continues.
"""

import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText

from flask import current_app
from markupsafe import escape


class MailDeliveryError(Exception):
    """Raised when a message could not be sent."""
    pass


def _outbox() -> list:
    return current_app.extensions.setdefault("mail_outbox", [])


def _build_message(sender: str, to: str, subject: str, text: str | None, html: str | None):
    if html:
        msg = MIMEMultipart("alternative")
        if text:
            msg.attach(MIMEText(text, "plain", "utf-8"))
        msg.attach(MIMEText(html, "html", "utf-8"))
    else:
        msg = MIMEText(text or "", "plain", "utf-8")
    msg["Subject"] = subject
    msg["From"] = sender
    msg["To"] = to
    return msg


def send_mail(to: str, subject: str, text: str | None = None, html: str | None = None) -> None:
    """
    Send one message to one recipient.

    MAIL_BACKEND:
    - "memory": append {to, subject, text, html} to app.extensions["mail_outbox"]
    - "smtp": STARTTLS + login against SMTP_HOST:SMTP_PORT
    """
    if not to:
        raise MailDeliveryError("Recipient address is required")

    cfg = current_app.config
    backend = cfg.get("MAIL_BACKEND", "smtp")

    if backend == "memory":
        _outbox().append({"to": to, "subject": subject, "text": text, "html": html})
        return

    host = cfg.get("SMTP_HOST")
    user = cfg.get("SMTP_USER")
    password = cfg.get("SMTP_PASS")
    if not (host and user and password):
        raise MailDeliveryError("SMTP is not configured")

    sender = cfg.get("MAIL_FROM") or user
    msg = _build_message(f'{cfg.get("APP_NAME")} <{sender}>', to, subject, text, html)

    try:
        with smtplib.SMTP(host, cfg.get("SMTP_PORT", 587), timeout=10) as smtp:
            smtp.starttls()
            smtp.login(user, password)
            smtp.sendmail(sender, [to], msg.as_string())
    except (smtplib.SMTPException, OSError) as e:
        raise MailDeliveryError(f"Failed to send mail: {e}") from e


def notify(to: str, subject: str, text: str | None = None, html: str | None = None) -> bool:
    """Best-effort send. Failures are logged, never raised."""
    try:
        send_mail(to, subject, text=text, html=html)
        return True
    except MailDeliveryError:
        current_app.logger.warning("Notification to %s failed (%s)", to, subject, exc_info=True)
        return False


def otp_email(name: str | None, code: str, purpose: str) -> tuple[str, str]:
    """Plain + HTML bodies for a one-time code mail."""
    app_name = current_app.config.get("APP_NAME")
    ttl = current_app.config.get("OTP_TTL_MINUTES", 10)
    greeting = f"Hello {name}," if name else "Hello,"
    text = (
        f"{greeting}\n\n"
        f"Your {app_name} code for {purpose} is: {code}\n"
        f"It expires in {ttl} minutes.\n"
    )
    # Names and purposes carry user input
    html = (
        f"<p>{escape(greeting)}</p>"
        f"<p>Your {escape(app_name)} code for {escape(purpose)} is:</p>"
        f"<h2 style=\"letter-spacing:4px\">{escape(code)}</h2>"
        f"<p>It expires in {escape(ttl)} minutes.</p>"
    )
    return text, html
