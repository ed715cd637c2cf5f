# lensmanager/services/notifications/email_notifier.py

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from lensmanager.core.config import EMAIL_FROM

logger = logging.getLogger(__name__)
email_logger = logging.getLogger("email")


class NotificationStatus(str, Enum):
    sent = "sent"
    failed = "failed"


@dataclass(frozen=True)
class NotificationResult:
    status: NotificationStatus
    recipient: str
    template: str
    error: Optional[str] = None

    @property
    def sent(self) -> bool:
        return self.status == NotificationStatus.sent


# =====================================================
# TEMPLATES
# =====================================================
EMAIL_TEMPLATES = {
    "booking_confirmation_request": {
        "subject": "Please confirm your booking on {booking_date}",
        "body": (
            "Hello {client_name},\n\n"
            "{business_name} has reserved {booking_date} for \"{title}\" at {location}.\n"
            "Please confirm the booking by opening the link below before {expires_at}:\n\n"
            "{confirmation_url}\n"
        ),
    },
    "booking_confirmed": {
        "subject": "Booking #{booking_id} confirmed",
        "body": (
            "Booking #{booking_id} for {client_name} on {booking_date} "
            "was confirmed by the client."
        ),
    },
    "invoice_sent": {
        "subject": "Invoice {invoice_number} from {business_name}",
        "body": (
            "Hello {client_name},\n\n"
            "Please find the details of invoice {invoice_number} below.\n\n"
            "Issue date: {issue_date}\n"
            "Due date: {due_date}\n"
            "Subtotal: {subtotal}\n"
            "Tax: {tax_amount}\n"
            "Total: {total_amount}\n"
            "Deposit: {deposit_amount}\n"
        ),
    },
}


class EmailNotifier:
    """Renders emails and writes them to the email log instead of an MTA."""

    def __init__(self, sender: str = EMAIL_FROM, templates: dict | None = None):
        self.sender = sender
        self.templates = templates if templates is not None else EMAIL_TEMPLATES

    def render(self, template: str, data: dict) -> tuple[str, str]:
        entry = self.templates[template]
        return entry["subject"].format(**data), entry["body"].format(**data)

    def notify(self, recipient: str, template: str, data: dict) -> NotificationResult:
        try:
            if not recipient:
                raise ValueError("recipient is required")
            subject, body = self.render(template, data)
            email_logger.info(
                f"From: {self.sender}\nTo: {recipient}\nSubject: {subject}\n\n{body}"
            )
        except Exception as exc:
            logger.exception(
                "Email notification failed",
                extra={"recipient": recipient, "template": template},
            )
            return NotificationResult(
                status=NotificationStatus.failed,
                recipient=recipient,
                template=template,
                error=str(exc),
            )

        logger.info(
            "Email notification logged",
            extra={"recipient": recipient, "template": template},
        )
        return NotificationResult(
            status=NotificationStatus.sent,
            recipient=recipient,
            template=template,
        )


_notifier = EmailNotifier()


def get_notifier() -> EmailNotifier:
    return _notifier
