import logging
from typing import Any, Dict, Optional

from twilio.rest import Client

from receptionist.models import Business, SummaryChannel

logger = logging.getLogger(__name__)

ACTION_EMOJI = {
    "callback": "📞",
    "booking": "📅",
    "quote": "💰",
    "info": "ℹ️",
}

class NotificationError(Exception):
    """Raised when a delivery channel cannot send a message."""


def format_notification_message(business: Business, summary: Dict[str, Any], call_id: str, app_url: str) -> str:
    action = summary.get("action", "callback")
    emoji = ACTION_EMOJI.get(action, "📞")
    details = summary.get("details") or {}
    detail_lines = "\n".join(f"  {key}: {value}" for key, value in details.items())

    return (
        f"{emoji} New {business.name} Call Summary\n"
        f"\n"
        f"Intent: {summary.get('intent', 'unknown')}\n"
        f"Action: {action}\n"
        f"\n"
        f"Details:\n"
        f"{detail_lines}\n"
        f"\n"
        f"View full details: {app_url}/dashboard/calls/{call_id}"
    )


class NotificationService:
    def __init__(
        self,
        twilio_account_sid: Optional[str],
        twilio_auth_token: Optional[str],
        twilio_phone_number: Optional[str],
        app_url: str,
        twilio_client: Optional[Client] = None,
    ):
        self.twilio_account_sid = twilio_account_sid
        self.twilio_auth_token = twilio_auth_token
        self.twilio_phone_number = twilio_phone_number
        self.app_url = app_url.rstrip("/")
        self._twilio_client = twilio_client

    @property
    def twilio_client(self) -> Client:
        if self._twilio_client is None:
            if not (self.twilio_account_sid and self.twilio_auth_token):
                raise NotificationError("Twilio credentials not configured")
            self._twilio_client = Client(self.twilio_account_sid, self.twilio_auth_token)
        return self._twilio_client

    def notify(self, business: Business, summary: Dict[str, Any], call_id: str) -> None:
        """
        Sends the call summary to the business owner over their preferred channel.
        Failures are logged, never raised.
        """
        message = format_notification_message(business, summary, call_id, self.app_url)
        channel = business.summary_channel
        channel = channel.value if isinstance(channel, SummaryChannel) else channel

        try:
            if channel == SummaryChannel.sms.value:
                self.send_sms(business.phone_number, message)
            elif channel == SummaryChannel.whatsapp.value:
                self.send_whatsapp(business.phone_number, message)
            elif channel == SummaryChannel.email.value:
                self.send_email(business.email, message, summary)
            else:
                logger.warning(f"Unknown summary channel: {channel}")
                return
            logger.info(f"Notification sent via {channel} for call {call_id}")
        except Exception as e:
            logger.error(f"Error sending notification for call {call_id}: {e}")

    def send_sms(self, to: Optional[str], message: str) -> None:
        if not self.twilio_phone_number:
            raise NotificationError("TWILIO_PHONE_NUMBER not configured")
        if not to:
            raise NotificationError("Business has no phone number to notify")

        sent = self.twilio_client.messages.create(
            body=message,
            from_=self.twilio_phone_number,
            to=to,
        )
        logger.info(f"SMS sent. SID: {sent.sid}")

    def send_whatsapp(self, to: Optional[str], message: str) -> None:
        if not self.twilio_phone_number:
            raise NotificationError("TWILIO_PHONE_NUMBER not configured")
        if not to:
            raise NotificationError("Business has no phone number to notify")

        sent = self.twilio_client.messages.create(
            body=message,
            from_=f"whatsapp:{self.twilio_phone_number}",
            to=f"whatsapp:{to}",
        )
        logger.info(f"WhatsApp message sent. SID: {sent.sid}")

    def send_email(self, to: Optional[str], message: str, summary: Dict[str, Any]) -> None:
        # TODO: deliver through an email provider once one is chosen; only logged for now
        logger.info(f"Email notification would be sent to {to}: action={summary.get('action')}")
        logger.debug(message)
