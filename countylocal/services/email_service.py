# countylocal/services/email_service.py
# This service is responsible for all email notifications.

import smtplib
from email.message import EmailMessage
from flask import current_app
from countylocal.config import Config


def _send_email(app, msg):
    """
    Sends an email synchronously (blocking).

    Serverless runtimes freeze after the response is sent, so there is no
    background thread here.
    """
    smtp = smtplib.SMTP(app.config['MAIL_SERVER'], app.config['MAIL_PORT'])
    try:
        if app.config.get('MAIL_USE_TLS'):
            smtp.starttls()
        smtp.login(app.config['MAIL_USERNAME'], app.config['MAIL_PASSWORD'])
        smtp.send_message(msg)
    finally:
        smtp.quit()

    app.logger.info(f"Email sent to {msg['To']}")


def send_email(to_addresses, subject, body_text):
    """
    Public-facing function to send an email.

    Returns:
        bool: True when the message was handed to the SMTP server
    """
    app = current_app._get_current_object()

    try:
        Config.validate_email_config(app.config)
    except ValueError as e:
        # Mail is optional; an unconfigured server just skips delivery
        app.logger.info(f"{e}. Skipping email.")
        return False

    msg = EmailMessage()
    msg['Subject'] = subject
    msg['From'] = app.config['MAIL_USERNAME']

    # Handle list of recipients or a single recipient string
    if isinstance(to_addresses, list):
        msg['To'] = ', '.join(to_addresses)
    else:
        msg['To'] = to_addresses

    msg.set_content(body_text)
    _send_email(app, msg)
    return True


# --- Specific Email Functions ---

def send_voucher_email(voucher, deal, recipient_email):
    """
    Delivers a voucher's QR token to the customer.

    Delivery failures are logged and swallowed: the voucher is already
    issued and must not be rolled back because a mail server is down.
    """
    if not recipient_email:
        return False

    subject = f"Your voucher for {deal.title}"
    body = (
        f"Thanks for your purchase!\n\n"
        f"Deal: {deal.title}\n"
        f"Voucher code: {voucher.qr_token}\n"
        f"Valid until: {voucher.expires_at.strftime('%Y-%m-%d') if voucher.expires_at else 'no expiry'}\n\n"
        f"Show this code at the business to redeem it."
    )

    try:
        return send_email(recipient_email, subject, body)
    except Exception as e:
        current_app.logger.error(f"Failed to send voucher {voucher.id} to {recipient_email}: {str(e)}")
        return False
