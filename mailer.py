"""OTP email delivery over SMTP.

Without SMTP_USER configured the message is logged instead of sent, which
is how local development works.
"""

import logging
import os
import smtplib
from datetime import datetime
from email.message import EmailMessage
from html import escape

from security import OTP_EXPIRE_MINUTES

logger = logging.getLogger(__name__)

SMTP_HOST = os.getenv("SMTP_HOST", "smtp.gmail.com")
SMTP_PORT = int(os.getenv("SMTP_PORT", "587"))
SMTP_SECURE = os.getenv("SMTP_SECURE", "false").lower() == "true"
SMTP_USER = os.getenv("SMTP_USER")
SMTP_PASS = os.getenv("SMTP_PASS")
SMTP_FROM_NAME = os.getenv("SMTP_FROM_NAME", "Karthavya")

OTP_SUBJECT = "Verify Your Email - OTP Code"


def otp_email_text(name: str, otp: str) -> str:
    year = datetime.now().year
    return (
        f"Hi {name},\n\n"
        "Thank you for signing up! Please use the following One-Time Password (OTP) "
        "to verify your email address:\n\n"
        f"Your OTP Code: {otp}\n\n"
        f"This OTP will expire in {OTP_EXPIRE_MINUTES} minutes.\n\n"
        "If you didn't request this verification, please ignore this email.\n\n"
        "---\n"
        "This is an automated message, please do not reply.\n"
        f"© {year} {SMTP_FROM_NAME}. All rights reserved."
    )


def otp_email_html(name: str, otp: str) -> str:
    year = datetime.now().year
    return f"""<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="UTF-8">
  <meta name="viewport" content="width=device-width, initial-scale=1.0">
  <title>Verify Your Email</title>
</head>
<body style="margin: 0; padding: 0; font-family: Arial, sans-serif; background-color: #f4f4f4;">
  <table width="100%" cellpadding="0" cellspacing="0" style="background-color: #f4f4f4; padding: 20px;">
    <tr>
      <td align="center">
        <table width="600" cellpadding="0" cellspacing="0" style="background-color: #ffffff; border-radius: 8px;">
          <tr>
            <td style="background: linear-gradient(135deg, #4ECDC4 0%, #44A08D 100%); padding: 40px 20px; text-align: center;">
              <h1 style="color: #ffffff; margin: 0; font-size: 28px;">Email Verification</h1>
            </td>
          </tr>
          <tr>
            <td style="padding: 40px 30px;">
              <p style="font-size: 16px; color: #333333;">Hi {escape(name)},</p>
              <p style="font-size: 16px; color: #333333;">Thank you for signing up! Please use the following One-Time Password (OTP) to verify your email address:</p>
              <div style="background-color: #f8f9fa; border: 2px dashed #4ECDC4; border-radius: 8px; padding: 30px; text-align: center; margin: 30px 0;">
                <p style="font-size: 14px; color: #666666; margin: 0 0 10px 0; text-transform: uppercase;">Your OTP Code</p>
                <p style="font-size: 36px; color: #4ECDC4; margin: 0; font-weight: bold; letter-spacing: 8px; font-family: 'Courier New', monospace;">{otp}</p>
              </div>
              <p style="font-size: 14px; color: #666666;">This OTP will expire in <strong>{OTP_EXPIRE_MINUTES} minutes</strong>.</p>
              <p style="font-size: 14px; color: #666666;">If you didn't request this verification, please ignore this email.</p>
            </td>
          </tr>
          <tr>
            <td style="background-color: #f8f9fa; padding: 20px 30px; text-align: center; border-top: 1px solid #e9ecef;">
              <p style="font-size: 12px; color: #999999; margin: 0;">This is an automated message, please do not reply.</p>
              <p style="font-size: 12px; color: #999999; margin: 10px 0 0 0;">&copy; {year} {escape(SMTP_FROM_NAME)}. All rights reserved.</p>
            </td>
          </tr>
        </table>
      </td>
    </tr>
  </table>
</body>
</html>"""


def build_otp_message(to: str, name: str, otp: str) -> EmailMessage:
    msg = EmailMessage()
    msg["Subject"] = OTP_SUBJECT
    msg["From"] = f"{SMTP_FROM_NAME} <{SMTP_USER or 'no-reply@localhost'}>"
    msg["To"] = to
    msg.set_content(otp_email_text(name, otp))
    msg.add_alternative(otp_email_html(name, otp), subtype="html")
    return msg


def send_otp_email(to: str, name: str, otp: str) -> bool:
    """Send the verification code. Returns False when delivery failed."""
    msg = build_otp_message(to, name, otp)
    if not SMTP_USER:
        logger.info("SMTP not configured, skipping send of %r to %s", OTP_SUBJECT, to)
        return True
    try:
        if SMTP_SECURE:
            server = smtplib.SMTP_SSL(SMTP_HOST, SMTP_PORT, timeout=30)
        else:
            server = smtplib.SMTP(SMTP_HOST, SMTP_PORT, timeout=30)
        with server:
            if not SMTP_SECURE:
                server.starttls()
            server.login(SMTP_USER, SMTP_PASS or "")
            server.send_message(msg)
    except (smtplib.SMTPException, OSError):
        logger.exception("Failed to send OTP email to %s", to)
        return False
    logger.info("OTP email sent to %s", to)
    return True
