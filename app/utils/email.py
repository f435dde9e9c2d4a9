import smtplib
import logging
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart
from app.config import settings
from typing import Optional

logger = logging.getLogger(__name__)


def build_message(to_email: str, subject: str, body: str, html_body: Optional[str] = None) -> MIMEMultipart:
    """Plain text part always present; HTML added as the preferred alternative"""
    msg = MIMEMultipart("alternative")
    msg['From'] = settings.EMAIL_FROM
    msg['To'] = to_email
    msg['Subject'] = subject
    msg.attach(MIMEText(body, 'plain'))
    if html_body:
        msg.attach(MIMEText(html_body, 'html'))
    return msg


def send_email(to_email: str, subject: str, body: str, html_body: Optional[str] = None) -> bool:
    """Send through the configured SMTP relay; False when unconfigured or on failure"""
    if not to_email:
        return False
    if not settings.SMTP_USER or not settings.SMTP_PASSWORD:
        logger.info(f"Email not configured. Would send to {to_email}: {subject}")
        return False

    msg = build_message(to_email, subject, body, html_body)
    try:
        with smtplib.SMTP(settings.SMTP_HOST, settings.SMTP_PORT, timeout=10) as server:
            server.starttls()
            server.login(settings.SMTP_USER, settings.SMTP_PASSWORD)
            server.send_message(msg)
    except (smtplib.SMTPException, OSError) as e:
        logger.error(f"Error sending email to {to_email}: {e}")
        return False
    return True


def send_delivery_otp_email(email: str, order_number: str, code: str) -> bool:
    """Send the delivery OTP the customer shows to the delivery person"""
    subject = f"Your delivery code for order {order_number}"
    body = (
        f"Share this code with the delivery person when you receive order {order_number}: {code}\n"
        "Do not share it before the parcel is in your hands."
    )
    html_body = f"""
    <html>
        <body>
            <h2>Your order is on its way</h2>
            <p>Share this code with the delivery person when you receive order <b>{order_number}</b>:</p>
            <p style="font-size: 24px; letter-spacing: 4px;"><b>{code}</b></p>
            <p>Do not share it before the parcel is in your hands.</p>
        </body>
    </html>
    """
    return send_email(email, subject, body, html_body)


def send_order_status_email(email: str, order_number: str, status: str) -> bool:
    """Tell the customer their order moved to a new status"""
    subject = f"Order {order_number}: {status}"
    body = f"Your order {order_number} is now: {status}."
    return send_email(email, subject, body)
