"""
Email Utilities for the CLM platform
File: app/core/email.py
Workflow e-mails (approvals, counterparty delivery, expiry reminders,
password resets) with a logging fallback when SMTP is not configured
"""

from fastapi_mail import FastMail, MessageSchema, ConnectionConfig
from html import escape
from typing import List, Optional
import logging

from app.core.config import settings

logger = logging.getLogger(__name__)

EMAIL_CONFIGURED = settings.mail_configured

conf = None
fm = None

if EMAIL_CONFIGURED:
    try:
        conf = ConnectionConfig(
            MAIL_USERNAME=settings.MAIL_USERNAME,
            MAIL_PASSWORD=settings.MAIL_PASSWORD,
            MAIL_FROM=settings.MAIL_FROM,
            MAIL_PORT=settings.MAIL_PORT,
            MAIL_SERVER=settings.MAIL_SERVER,
            MAIL_STARTTLS=True,
            MAIL_SSL_TLS=False,
            USE_CREDENTIALS=True,
            VALIDATE_CERTS=True
        )
        fm = FastMail(conf)
        logger.info(" Email service configured successfully")
    except Exception as e:
        logger.warning(f" Email configuration failed: {str(e)}")
        EMAIL_CONFIGURED = False
else:
    logger.warning(" Email credentials not found in environment. Email features will be simulated.")


def _layout(heading: str, body: str, action_url: Optional[str] = None, action_label: Optional[str] = None) -> str:
    button = ""
    if action_url:
        button = f'<p><a href="{escape(action_url, quote=True)}" class="button">{escape(action_label or "Open")}</a></p>'

    return f"""
    <!DOCTYPE html>
    <html>
    <head>
        <style>
            body {{ font-family: Arial, sans-serif; line-height: 1.6; color: #333; }}
            .container {{ max-width: 600px; margin: 0 auto; padding: 20px; }}
            .header {{ background: #1f3a68; color: white; padding: 24px; text-align: center; border-radius: 8px 8px 0 0; }}
            .content {{ background: #f8f9fa; padding: 24px; border-radius: 0 0 8px 8px; }}
            .button {{ display: inline-block; padding: 12px 30px; background: #1f3a68;
                      color: white; text-decoration: none; border-radius: 5px; margin: 16px 0; }}
            .footer {{ text-align: center; color: #666; font-size: 12px; padding: 16px; }}
        </style>
    </head>
    <body>
        <div class="container">
            <div class="header"><h1>{escape(heading)}</h1></div>
            <div class="content">
                {body}
                {button}
            </div>
            <div class="footer">
                <p>{escape(settings.COMPANY_DISPLAY_NAME)}. This is an automated email. Please do not reply.</p>
            </div>
        </div>
    </body>
    </html>
    """


async def send_email(recipients: List[str], subject: str, html_content: str, preview: str = "") -> dict:
    """
    Send one HTML e-mail. Without SMTP credentials, or when delivery fails,
    the message is written to the log instead and the caller carries on.
    """
    recipients = [r for r in recipients if r]
    if not recipients:
        return {"status": "skipped", "message": "No recipients"}

    if not EMAIL_CONFIGURED or fm is None:
        logger.info("=" * 70)
        logger.info("📧 EMAIL SIMULATION (No SMTP configured)")
        logger.info("=" * 70)
        logger.info(f"To: {', '.join(recipients)}")
        logger.info(f"Subject: {subject}")
        if preview:
            logger.info(preview)
        logger.info("=" * 70)
        return {"status": "simulated", "message": "Email simulation logged to console"}

    try:
        message = MessageSchema(
            subject=subject,
            recipients=recipients,
            body=html_content,
            subtype="html"
        )
        await fm.send_message(message)
        logger.info(f" Email '{subject}' sent to {len(recipients)} recipient(s)")
        return {"status": "sent", "message": "Email sent successfully"}
    except Exception as e:
        logger.error(f" Failed to send email '{subject}': {str(e)}")
        return {"status": "fallback", "message": "Email sending failed, logged to console"}


def contract_link(contract_id: int) -> str:
    return f"{settings.FRONTEND_URL}/dashboard/contracts/{contract_id}"


async def send_approval_request(recipients: List[str], contract_title: str, reference: str,
                                approval_type: str, contract_id: int, submitted_by: str):
    link = contract_link(contract_id)
    body = (
        f"<p>{escape(submitted_by)} submitted <strong>{escape(contract_title)}</strong> "
        f"({escape(reference)}) for {escape(approval_type.lower())} review.</p>"
    )
    return await send_email(
        recipients,
        f"Approval required: {reference} - {contract_title}",
        _layout("Approval Required", body, link, "Review Contract"),
        preview=f"{approval_type} approval requested for {reference}: {link}"
    )


async def send_approval_result(recipient: str, contract_title: str, reference: str,
                               decision: str, contract_id: int, comment: Optional[str] = None):
    link = contract_link(contract_id)
    body = f"<p>Your contract <strong>{escape(contract_title)}</strong> ({escape(reference)}) was {escape(decision.lower())}.</p>"
    if comment:
        body += f"<p><em>Comment:</em> {escape(comment)}</p>"
    return await send_email(
        [recipient],
        f"Contract {decision.lower()}: {reference}",
        _layout(f"Contract {decision.title()}", body, link, "View Contract"),
        preview=f"{reference} {decision}: {link}"
    )


async def send_contract_to_counterparty(recipient: str, counterparty_name: str, contract_title: str,
                                        reference: str, sender_name: str):
    body = (
        f"<p>Dear {escape(counterparty_name)},</p>"
        f"<p>{escape(sender_name)} of {escape(settings.COMPANY_DISPLAY_NAME)} has shared the contract "
        f"<strong>{escape(contract_title)}</strong> (reference {escape(reference)}) for your signature.</p>"
        f"<p>Please review, sign and return the document.</p>"
    )
    return await send_email(
        [recipient],
        f"Contract for signature: {contract_title}",
        _layout("Contract for Signature", body),
        preview=f"{reference} sent to counterparty {recipient}"
    )


async def send_expiry_reminder(recipient: str, contract_title: str, reference: str,
                               days_remaining: int, end_date: str, contract_id: int):
    link = contract_link(contract_id)
    body = (
        f"<p>The contract <strong>{escape(contract_title)}</strong> ({escape(reference)}) "
        f"expires in {days_remaining} day(s), on {escape(end_date)}.</p>"
        f"<p>Please decide whether it should be renewed.</p>"
    )
    return await send_email(
        [recipient],
        f"Contract expiring in {days_remaining} day(s): {reference}",
        _layout("Contract Expiry Reminder", body, link, "View Contract"),
        preview=f"{reference} expires in {days_remaining} day(s): {link}"
    )


async def send_password_reset_email(email: str, name: str, reset_link: str):
    body = (
        f"<p>Hello {escape(name)},</p>"
        f"<p>We received a request to reset your password. "
        f"This link will expire in {settings.PASSWORD_RESET_EXPIRE_MINUTES} minutes.</p>"
        f"<p>If you didn't request this reset, please ignore this email.</p>"
    )
    return await send_email(
        [email],
        f"Reset Your Password - {settings.COMPANY_DISPLAY_NAME}",
        _layout("Password Reset Request", body, reset_link, "Reset Password"),
        preview=f"Reset Link: {reset_link}"
    )


async def send_welcome_email(email: str, name: str, temporary_password: str):
    body = (
        f"<p>Hello {escape(name)},</p>"
        f"<p>An account was created for you. Sign in with the temporary password below; "
        f"you will be asked to change it.</p>"
        f"<p><code>{escape(temporary_password)}</code></p>"
    )
    return await send_email(
        [email],
        f"Welcome to {settings.COMPANY_DISPLAY_NAME}",
        _layout("Welcome", body, f"{settings.FRONTEND_URL}/login", "Sign In"),
        preview=f"Account created for {email}"
    )
