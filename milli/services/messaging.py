# milli/services/messaging.py
import logging
from typing import Optional

from sendgrid import SendGridAPIClient
from sendgrid.helpers.mail import Mail
from twilio.rest import Client
from twilio.base.exceptions import TwilioRestException

from ..config import get_settings

logger = logging.getLogger(__name__)


class MessagingService:
    """Delivers auth codes by email (SendGrid) or SMS (Twilio). Either channel
    is disabled when its credentials are not configured."""

    def __init__(self):
        settings = get_settings()
        self.sender_email = settings.sender_email
        self.from_number = settings.twilio_from_number
        self.sg = SendGridAPIClient(api_key=settings.sendgrid_api_key) if settings.email_enabled else None
        self.twilio = Client(settings.twilio_account_sid, settings.twilio_auth_token) if settings.sms_enabled else None

    def send_email(self, to_email: str, subject: str, html_content: str) -> bool:
        if self.sg is None:
            logger.warning(f"SendGrid is not configured, not emailing {to_email}")
            return False
        message = Mail(
            from_email=self.sender_email,
            to_emails=to_email,
            subject=subject,
            html_content=html_content
        )
        try:
            response = self.sg.send(message)
        except Exception as e:
            logger.error(f"Error sending email to {to_email}: {e}")
            return False
        logger.info(f"Email sent to {to_email}. Status: {response.status_code}")
        return True

    def send_text(self, to_phone: str, body: str) -> bool:
        if self.twilio is None:
            logger.warning(f"Twilio is not configured, not texting {to_phone}")
            return False
        try:
            message = self.twilio.messages.create(to=to_phone, from_=self.from_number, body=body)
        except TwilioRestException as e:
            logger.error(f"Error sending SMS to {to_phone}: {e}")
            return False
        logger.info(f"SMS sent to {to_phone}. SID: {message.sid}")
        return True

    def send_auth_code(self, code: str, email: Optional[str] = None, phone: Optional[str] = None,
                       name: Optional[str] = None, invited: bool = False) -> bool:
        greeting = f"Hi {name}," if name else "Hi,"
        if invited:
            subject = "You've been invited to Milli"
            text = f"{greeting} you've been invited to Milli. Your sign in code is {code}"
        else:
            subject = "Your Milli sign in code"
            text = f"{greeting} your Milli sign in code is {code}"

        if email:
            return self.send_email(email, subject, f"<p>{text}</p>")
        if phone:
            return self.send_text(phone, text)
        logger.warning("Auth code has neither an email nor a phone number to deliver to")
        return False


_messaging_service: Optional[MessagingService] = None


def get_messaging_service() -> MessagingService:
    global _messaging_service
    if _messaging_service is None:
        _messaging_service = MessagingService()
    return _messaging_service
