"""
Transactional email for account invitations, password resets and promo signups.

Messages go out over SMTP when EMAIL_USER is configured. Without credentials
the service runs in capture mode: the most recent messages are kept in
``outbox`` and logged, which is what local development and the test-suite use.
"""
import html
import logging
import smtplib
from collections import deque
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formataddr, make_msgid
from typing import Deque, Dict, Optional

from watchtracker.core import config

logger = logging.getLogger(__name__)

BRAND_NAME = "100K Tracker"
OUTBOX_LIMIT = 50


class EmailDeliveryError(Exception):
    """Raised when the SMTP server rejects or cannot accept a message."""


def _wrap_html(title: str, body: str, footer: str) -> str:
    return f"""<!DOCTYPE html>
<html>
<head><meta charset="utf-8"><title>{html.escape(title)}</title></head>
<body style="font-family: -apple-system, 'Segoe UI', Roboto, Arial, sans-serif; background: #0E0E0E; color: #E6E6E6; max-width: 600px; margin: 0 auto;">
  <div style="padding: 30px 20px; text-align: center; border-bottom: 2px solid #C8A97E;">
    <div style="font-size: 28px; font-weight: bold; color: #C8A97E;">{BRAND_NAME}</div>
    <p style="margin: 0; opacity: 0.8;">{html.escape(title)}</p>
  </div>
  <div style="padding: 30px 20px; background: #1C1F24;">
{body}
  </div>
  <div style="padding: 25px 20px; text-align: center; font-size: 12px; opacity: 0.6;">
    <p>{footer}</p>
  </div>
</body>
</html>"""


class EmailService:
    def __init__(
        self,
        host: str = config.EMAIL_HOST,
        port: int = config.EMAIL_PORT,
        user: Optional[str] = config.EMAIL_USER,
        password: Optional[str] = config.EMAIL_PASSWORD,
        secure: bool = config.EMAIL_SECURE,
        sender: str = config.EMAIL_FROM,
        app_url: str = config.APP_URL,
    ):
        self.host = host
        self.port = port
        self.user = user
        self.password = password
        self.secure = secure
        self.sender = sender
        self.app_url = app_url.rstrip("/")
        self.outbox: Deque[Dict] = deque(maxlen=OUTBOX_LIMIT)

        if not self.user:
            logger.warning("EMAIL_USER not configured - emails will be captured, not delivered")

    @property
    def smtp_configured(self) -> bool:
        return bool(self.user)

    # ------------------------------------------------------------------
    # Templates
    # ------------------------------------------------------------------

    def generate_invitation_email(self, username: str, password: str, temporary_password: bool = True,
                                  app_url: Optional[str] = None) -> Dict[str, str]:
        app_url = (app_url or self.app_url).rstrip("/")
        subject = f"Welcome to {BRAND_NAME} - Your Account is Ready!"
        change_note = "(required)" if temporary_password else "(recommended)"

        temp_html = ""
        temp_text = ""
        if temporary_password:
            temp_html = (
                '    <p style="color: #C8A97E;"><strong>Important:</strong> This is a temporary password. '
                "You must change it on your first login.</p>\n"
            )
            temp_text = "IMPORTANT: This is a temporary password. You must change it on your first login.\n"

        body = f"""    <h2 style="color: #C8A97E;">Welcome to {BRAND_NAME}!</h2>
    <p>Your account has been created and you're ready to start tracking your luxury watch portfolio.</p>
    <h3>Login Credentials</h3>
    <p>Username: <strong>{html.escape(username)}</strong><br>
    Password: <strong>{html.escape(password)}</strong><br>
    Login URL: <a href="{app_url}" style="color: #C8A97E;">{app_url}</a></p>
{temp_html}    <h3>Getting Started</h3>
    <ol>
      <li>Login using the credentials above</li>
      <li>Change your password {change_note}</li>
      <li>Configure Stripe API keys in Account Settings to enable invoicing</li>
      <li>Start tracking your watch portfolio and managing contacts</li>
    </ol>
    <p><strong>Happy Trading!</strong><br>The {BRAND_NAME} Team</p>"""

        text = f"""Welcome to {BRAND_NAME}!

Your account has been created and you're ready to start tracking your luxury watch portfolio.

Login Credentials:
Username: {username}
Password: {password}
Login URL: {app_url}

{temp_text}
Getting Started:
1. Login using the credentials above
2. Change your password {change_note}
3. Configure Stripe API keys in Account Settings to enable invoicing
4. Start tracking your watch portfolio and managing contacts

Features Available:
- Watch Portfolio Tracking
- Contact Management
- Lead Tracking
- Professional Invoicing
- Performance Analytics

Happy Trading!
The {BRAND_NAME} Team
"""
        footer = (
            f"This email was sent because an account was created for you on {BRAND_NAME}. "
            "If you didn't expect this email, please contact your administrator."
        )
        return {"subject": subject, "html": _wrap_html("Your Account is Ready", body, footer), "text": text}

    def generate_password_reset_email(self, reset_token: str) -> Dict[str, str]:
        reset_url = f"{self.app_url}/reset-password?token={reset_token}"
        subject = f"{BRAND_NAME} - Password Reset Request"

        body = f"""    <h2 style="color: #C8A97E;">Password Reset Request</h2>
    <p>You requested a password reset for your {BRAND_NAME} account.</p>
    <p style="text-align: center;"><a href="{html.escape(reset_url)}" style="background: #C8A97E; color: #0E0E0E; padding: 15px 35px; border-radius: 8px; text-decoration: none; font-weight: bold;">Reset Your Password</a></p>
    <p><strong>Important:</strong> This link will expire in 1 hour for security reasons.</p>
    <p>If you didn't request this password reset, please ignore this email. Your account remains secure.</p>"""

        text = f"""Password Reset Request

You requested a password reset for your {BRAND_NAME} account.
Reset your password: {reset_url}

This link will expire in 1 hour.
If you didn't request this, please ignore this email.
"""
        footer = f"This email was sent because a password reset was requested for your {BRAND_NAME} account."
        return {"subject": subject, "html": _wrap_html("Password Reset Request", body, footer), "text": text}

    def generate_promo_signup_notification(self, signup: Dict) -> Dict[str, str]:
        subject = f"New Operandi Challenge Signup: {signup.get('fullName')}"
        rows = [
            ("Name", signup.get("fullName")),
            ("Email", signup.get("email")),
            ("Phone", signup.get("phone")),
            ("Business", signup.get("businessName")),
            ("Referral Source", signup.get("referralSource")),
            ("Experience Level", signup.get("experienceLevel")),
            ("Interests", signup.get("interests")),
            ("Comments", signup.get("comments")),
        ]
        filled = [(label, value) for label, value in rows if value]

        body = "    <h2 style=\"color: #C8A97E;\">New Operandi Challenge Signup</h2>\n    <table>\n"
        body += "\n".join(
            f"      <tr><td><strong>{label}:</strong></td><td>{html.escape(str(value))}</td></tr>"
            for label, value in filled
        )
        body += "\n    </table>\n    <p>Review the signup in the admin dashboard to approve or reject it.</p>"

        text = "New Operandi Challenge Signup\n\n" + "\n".join(f"{label}: {value}" for label, value in filled)
        text += "\n\nReview the signup in the admin dashboard to approve or reject it.\n"

        footer = f"Automated notification from {BRAND_NAME}."
        return {"subject": subject, "html": _wrap_html("New Promo Signup", body, footer), "text": text}

    # ------------------------------------------------------------------
    # Delivery
    # ------------------------------------------------------------------

    def send_email(self, to: str, template: Dict[str, str]) -> Dict:
        """
        Deliver a rendered template.

        Returns ``{"success": True, "messageId": ...}``; raises EmailDeliveryError on SMTP failure.
        """
        message_id = make_msgid(domain=self.sender.split("@")[-1])

        if not self.smtp_configured:
            self.outbox.append({
                "to": to,
                "from": self.sender,
                "subject": template["subject"],
                "text": template["text"],
                "html": template["html"],
                "messageId": message_id,
            })
            logger.info(f"Email captured (SMTP not configured): to={to}, subject={template['subject']}")
            return {"success": True, "messageId": message_id, "captured": True}

        msg = MIMEMultipart("alternative")
        msg["Subject"] = template["subject"]
        msg["From"] = formataddr((BRAND_NAME, self.sender))
        msg["To"] = to
        msg["Message-ID"] = message_id
        msg.attach(MIMEText(template["text"], "plain", "utf-8"))
        msg.attach(MIMEText(template["html"], "html", "utf-8"))

        try:
            if self.secure:
                with smtplib.SMTP_SSL(self.host, self.port, timeout=30) as server:
                    server.login(self.user, self.password)
                    server.sendmail(self.sender, [to], msg.as_string())
            else:
                with smtplib.SMTP(self.host, self.port, timeout=30) as server:
                    server.starttls()
                    server.login(self.user, self.password)
                    server.sendmail(self.sender, [to], msg.as_string())
        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"Failed to send email to {to}: {e}")
            raise EmailDeliveryError(str(e)) from e

        logger.info(f"Email sent: to={to}, subject={template['subject']}")
        return {"success": True, "messageId": message_id}

    def send_invitation_email(self, email: str, username: str, password: str,
                              temporary_password: bool = True) -> Dict:
        template = self.generate_invitation_email(username, password, temporary_password)
        return self.send_email(email, template)

    def send_password_reset_email(self, email: str, reset_token: str) -> Dict:
        template = self.generate_password_reset_email(reset_token)
        return self.send_email(email, template)

    def send_promo_signup_notification(self, signup: Dict, admin_email: str = config.ADMIN_NOTIFICATION_EMAIL) -> Dict:
        return self.send_email(admin_email, self.generate_promo_signup_notification(signup))


email_service = EmailService()


def get_email_service() -> EmailService:
    """FastAPI dependency; tests override it with a capture-mode instance."""
    return email_service
