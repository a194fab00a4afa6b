"""
Email transport for sending rendered invoices.
"""

import logging
import smtplib

from django.conf import settings
from django.core.mail import EmailMultiAlternatives

from .exceptions import TransportError

logger = logging.getLogger(__name__)


def send_invoice_email(to_address: str, html: str, subject: str, text: str = '') -> None:
    """
    Hand a rendered invoice to the configured Django email backend.

    Raises:
        TransportError: the backend refused or failed to deliver the message
    """
    message = EmailMultiAlternatives(
        subject=subject,
        body=text or subject,
        from_email=settings.DEFAULT_FROM_EMAIL,
        to=[to_address],
    )
    message.attach_alternative(html, "text/html")
    try:
        sent = message.send(fail_silently=False)
    except (smtplib.SMTPException, OSError) as e:
        raise TransportError(str(e)) from e
    if not sent:
        raise TransportError(f"Email backend did not accept the message for {to_address}")
    logger.info(f"Invoice email sent to {to_address}: {subject}")
