"""
Transactional email over SMTP.

Used for password reset links and for sending quotations to clients.
Messages are rendered from Jinja templates under templates/emails/ and
delivered from a background thread so the request never waits on SMTP.
Without MAIL_USERNAME / MAIL_PASSWORD nothing is sent; a warning is logged.

Usage:
    from crm.services.email_service import send_email

    send_email(
        to="client@example.com",
        subject="Quotation Q-2024-001",
        template="emails/quotation_sent.html",
        context={"quotation": quotation},
    )
"""

import logging
import smtplib
import threading
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText

from flask import current_app, render_template

logger = logging.getLogger(__name__)


def _send_smtp(app, msg):
    """Deliver one message. Runs in a worker thread; never raises."""
    with app.app_context():
        host = app.config.get("MAIL_SMTP_HOST", "smtp.gmail.com")
        port = app.config.get("MAIL_SMTP_PORT", 587)
        username = app.config.get("MAIL_USERNAME")
        password = app.config.get("MAIL_PASSWORD")

        if not username or not password:
            logger.warning("Email not sent: MAIL_USERNAME or MAIL_PASSWORD not configured.")
            return

        try:
            with smtplib.SMTP(host, port, timeout=30) as server:
                server.ehlo()
                server.starttls()
                server.ehlo()
                server.login(username, password)
                server.send_message(msg)
            logger.info("Email sent to %s: %s", msg["To"], msg["Subject"])
        except Exception as e:
            logger.error("Failed to send email to %s: %s", msg["To"], e)


def build_message(to, subject, template, context=None, reply_to=None):
    app = current_app._get_current_object()

    from_name = app.config.get("MAIL_FROM_NAME", "CRM")
    from_email = app.config.get("MAIL_FROM_ADDRESS") or app.config.get("MAIL_USERNAME") or ""

    html_body = render_template(template, **(context or {}))

    msg = MIMEMultipart("alternative")
    msg["Subject"] = subject
    msg["From"] = f"{from_name} <{from_email}>"
    msg["To"] = to if isinstance(to, str) else ", ".join(to)
    if reply_to:
        msg["Reply-To"] = reply_to

    msg.attach(MIMEText(html_body, "html"))
    return msg


def send_email(to, subject, template, context=None, reply_to=None):
    """
    Send a templated HTML email in the background.

    Template rendering happens in the caller's thread, so a broken template
    raises here; SMTP failures are only logged.
    """
    app = current_app._get_current_object()
    msg = build_message(to, subject, template, context, reply_to)

    thread = threading.Thread(target=_send_smtp, args=(app, msg))
    thread.daemon = True
    thread.start()
