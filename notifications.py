import html
import logging
import smtplib
from datetime import datetime, timezone
from email.message import EmailMessage

from config import settings

logger = logging.getLogger(__name__)

SMTP_TIMEOUT = 10


def build_email(message: dict) -> EmailMessage:
    # header values cannot carry line breaks
    subject = " ".join((message.get("subject") or "").split()) or "No Subject"
    name = html.escape(message.get("name", ""))
    sender = html.escape(message.get("email", ""))
    phone = message.get("phone")
    body = html.escape(message.get("message", "")).replace("\n", "<br>")
    sent_on = datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M UTC")

    msg = EmailMessage()
    msg["Subject"] = f"New Portfolio Message: {subject}"
    msg["From"] = settings.smtp_user
    msg["To"] = settings.notify_address
    if message.get("email"):
        msg["Reply-To"] = message["email"]
    msg.set_content(
        f"Name: {message.get('name')}\nEmail: {message.get('email')}\n"
        f"Subject: {subject}\n\nMessage:\n{message.get('message')}"
    )
    msg.add_alternative(
        "<h3>New Message from Portfolio Contact Form</h3>"
        f"<p><strong>Name:</strong> {name}</p>"
        f"<p><strong>Email:</strong> {sender}</p>"
        + (f"<p><strong>Phone:</strong> {html.escape(phone)}</p>" if phone else "")
        + f"<p><strong>Subject:</strong> {html.escape(subject)}</p>"
        f"<p><strong>Message:</strong></p><p>{body}</p>"
        f"<hr><p><small>Sent on {sent_on}</small></p>",
        subtype="html",
    )
    return msg


def notify_new_message(message: dict) -> None:
    """Email the admin about a contact message. Never raises; one attempt only."""
    if not settings.smtp_configured:
        logger.debug("SMTP not configured, skipping notification for message %s", message.get("_id"))
        return
    try:
        msg = build_email(message)
        with smtplib.SMTP(settings.smtp_host, settings.smtp_port, timeout=SMTP_TIMEOUT) as server:
            server.starttls()
            server.login(settings.smtp_user, settings.smtp_pass)
            server.send_message(msg)
        logger.info("Sent notification for message %s", message.get("_id"))
    except Exception:
        logger.exception("Email sending failed for message %s", message.get("_id"))
