"""Email utilities for password reset links."""
import os
import logging
import smtplib
from typing import Optional
from urllib.parse import quote
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart


logger = logging.getLogger(__name__)


def get_smtp_settings() -> Optional[dict]:
    """SMTP settings from env, or None when credentials are missing."""
    user = os.environ.get('SMTP_USER', '')
    password = os.environ.get('SMTP_PASSWORD', '')
    if not user or not password:
        return None
    return {
        'host': os.environ.get('SMTP_HOST', 'smtp.gmail.com'),
        'port': int(os.environ.get('SMTP_PORT', '587')),
        'user': user,
        'password': password,
        'sender': os.environ.get('SMTP_FROM', user),
    }


def is_email_enabled() -> bool:
    """Check if email sending is configured."""
    return get_smtp_settings() is not None


def build_reset_link(token: str) -> str:
    app_url = os.environ.get('APP_URL', 'http://localhost:3000').rstrip('/')
    return f"{app_url}/reset-password?token={quote(token)}"


def send_email(to_email: str, subject: str, html_body: str, text_body: str) -> bool:
    """Deliver a multipart message. Returns False when SMTP is off or delivery fails."""
    smtp = get_smtp_settings()
    if smtp is None:
        logger.warning('SMTP is not configured, email to %s dropped', to_email)
        return False

    msg = MIMEMultipart('alternative')
    msg['Subject'] = subject
    msg['From'] = smtp['sender']
    msg['To'] = to_email
    msg.attach(MIMEText(text_body, 'plain', 'utf-8'))
    msg.attach(MIMEText(html_body, 'html', 'utf-8'))

    try:
        with smtplib.SMTP(smtp['host'], smtp['port'], timeout=10) as server:
            server.starttls()
            server.login(smtp['user'], smtp['password'])
            server.send_message(msg, from_addr=smtp['sender'], to_addrs=[to_email])
    except (smtplib.SMTPException, OSError):
        logger.warning('SMTP delivery to %s via %s failed', to_email, smtp['host'], exc_info=True)
        return False
    return True


def send_password_reset_link(to_email: str, token: str, lifetime_minutes: int) -> bool:
    """Send password reset link."""
    link = build_reset_link(token)
    subject = "Reset your Carpool password"

    html_body = f"""
    <div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
        <h2>Password reset</h2>
        <p>Someone asked to reset the password for your Carpool account.</p>
        <p style="margin: 24px 0;">
            <a href="{link}" style="background: #2563eb; color: #fff; padding: 12px 20px;
               border-radius: 6px; text-decoration: none;">Choose a new password</a>
        </p>
        <p style="color: #666; font-size: 14px;">
            The link is valid for {lifetime_minutes} minutes. If you did not request a reset, ignore this email.
        </p>
    </div>
    """

    text_body = f"Reset your Carpool password: {link}"

    return send_email(to_email, subject, html_body, text_body)
