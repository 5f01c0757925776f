# utils/alerts.py
import logging
import smtplib
from email.message import EmailMessage
import os
from dotenv import load_dotenv

load_dotenv()

SMTP_HOST = os.getenv("SMTP_HOST", "localhost")
SMTP_PORT = int(os.getenv("SMTP_PORT", "25"))
SMTP_USER = os.getenv("SMTP_USER")
SMTP_PASS = os.getenv("SMTP_PASS")
ALERT_EMAIL = os.getenv("ALERT_EMAIL")
FROM_EMAIL = os.getenv("FROM_EMAIL")

logger = logging.getLogger("alerts")


def send_alert(subject, body, attachments=None):
    """
    Send an email alert with optional file attachments.

    Uses SMTP_SSL for port 465 and STARTTLS when the server offers it on
    other ports. Does nothing when ALERT_EMAIL is not configured.

    Args:
        subject (str): Email subject line
        body (str): Email body content
        attachments (list, optional): File paths attached as
            application/octet-stream

    Returns:
        bool: True if the message was handed to the SMTP server

    Note:
        Failures are logged, not raised.
    """
    if not ALERT_EMAIL:
        logger.info(f"ALERT_EMAIL not set, skipping alert '{subject}'")
        return False

    msg = EmailMessage()
    msg["Subject"] = subject
    msg["From"] = FROM_EMAIL or ALERT_EMAIL
    msg["To"] = ALERT_EMAIL
    msg.set_content(body)

    for file_path in attachments or []:
        try:
            with open(file_path, "rb") as f:
                data = f.read()
        except OSError as e:
            logger.warning(f"Failed to attach {file_path}: {e}")
            continue
        msg.add_attachment(
            data,
            maintype="application",
            subtype="octet-stream",
            filename=os.path.basename(file_path),
        )

    try:
        if SMTP_PORT == 465:
            with smtplib.SMTP_SSL(SMTP_HOST, SMTP_PORT) as server:
                if SMTP_USER and SMTP_PASS:
                    server.login(SMTP_USER, SMTP_PASS)
                server.send_message(msg)
                return True

        with smtplib.SMTP(SMTP_HOST, SMTP_PORT) as server:
            server.ehlo()
            if server.has_extn("starttls"):
                server.starttls()
                server.ehlo()
            if SMTP_USER and SMTP_PASS:
                server.login(SMTP_USER, SMTP_PASS)
            server.send_message(msg)
        return True
    except (smtplib.SMTPException, OSError) as e:
        logger.error(f"SMTP error sending '{subject}': {e}")
        return False
