"""
Email Sender Abstraction

ConsoleEmailSender logs messages (development, tests); HttpEmailSender posts
them to a transactional mail API. Senders raise NotificationDeliveryFailure
when a message cannot be handed over.
"""

from abc import ABC, abstractmethod
from typing import Optional
import logging
import requests

from config.app_config import MAIL_API_URL, MAIL_API_KEY, MAIL_FROM
from core.exceptions import NotificationDeliveryFailure

logger = logging.getLogger(__name__)


class EmailSender(ABC):
    """Abstract base class for email senders"""

    @abstractmethod
    def send_email(self, to_email: str, subject: str, body_text: str) -> None:
        """
        Send an email

        Raises:
            NotificationDeliveryFailure: if the message was not accepted
        """


class ConsoleEmailSender(EmailSender):
    """Logs email to the console instead of sending it"""

    def send_email(self, to_email: str, subject: str, body_text: str) -> None:
        logger.info("=" * 80)
        logger.info(f"[EMAIL] To: {to_email}")
        logger.info(f"[EMAIL] Subject: {subject}")
        logger.info(f"[EMAIL] Body (text):\n{body_text}")
        logger.info("=" * 80)


class HttpEmailSender(EmailSender):
    """Delivers email through an HTTP mail API"""

    def __init__(self, api_url: str, api_key: str, from_email: str = MAIL_FROM):
        self.api_url = api_url
        self.api_key = api_key
        self.from_email = from_email

    def send_email(self, to_email: str, subject: str, body_text: str) -> None:
        try:
            response = requests.post(
                self.api_url,
                headers={"Authorization": f"Bearer {self.api_key}"},
                json={
                    "from": self.from_email,
                    "to": to_email,
                    "subject": subject,
                    "text": body_text,
                },
                timeout=10,
            )
            response.raise_for_status()
        except requests.exceptions.RequestException as e:
            raise NotificationDeliveryFailure(to_email, str(e)) from e


# Global email sender instance (can be swapped based on env vars)
_email_sender: Optional[EmailSender] = None


def get_email_sender() -> EmailSender:
    """Get the configured email sender instance"""
    global _email_sender
    if _email_sender is None:
        if MAIL_API_URL:
            _email_sender = HttpEmailSender(MAIL_API_URL, MAIL_API_KEY)
        else:
            _email_sender = ConsoleEmailSender()
    return _email_sender


def set_email_sender(sender: Optional[EmailSender]) -> None:
    """Set a custom email sender (useful for testing or runtime configuration)"""
    global _email_sender
    _email_sender = sender
