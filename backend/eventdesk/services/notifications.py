"""
Confirmation notifications (SMS via Twilio, email via Resend).

Dispatch is fire-and-forget: the admission response never waits for a
provider, and a provider failure is logged and counted but never reaches the
caller. Pending deliveries are tracked so shutdown (and tests) can drain them.
"""

import asyncio
import html
import re
from typing import Optional, Protocol

import httpx

from eventdesk.core.config import Settings
from eventdesk.core.logging import get_logger
from eventdesk.core.metrics import record_notification
from eventdesk.domain.records import Event, Registration

logger = get_logger(__name__)

TWILIO_MESSAGES_URL = "https://api.twilio.com/2010-04-01/Accounts/{sid}/Messages.json"
RESEND_EMAILS_URL = "https://api.resend.com/emails"

_PLACEHOLDERS = ("name", "event", "date", "time", "location")


def format_confirmation_message(template: str, *, name: str, event: str, date: str,
                                time: str, location: str) -> str:
    """Fill {name} {event} {date} {time} {location}; placeholders are case-insensitive."""
    values = {"name": name, "event": event, "date": date, "time": time, "location": location}
    message = template
    for key in _PLACEHOLDERS:
        message = re.sub(r"\{" + key + r"\}", lambda _m, v=values[key]: v, message, flags=re.IGNORECASE)
    return message


def normalize_sg_phone(phone: str) -> Optional[str]:
    """Return an E.164 number (+65 assumed for local 8-digit numbers) or None if unusable."""
    number = re.sub(r"\s", "", phone or "")
    if not number:
        return None
    if not number.startswith("+"):
        if number.startswith("65"):
            number = "+" + number
        elif len(number) == 8:
            number = "+65" + number
    if not re.fullmatch(r"\+\d{10,15}", number):
        return None
    return number


class NotificationSender(Protocol):
    channel: str

    def recipient_for(self, registration: Registration) -> Optional[str]: ...

    async def send_confirmation(self, recipient: str, message: str, subject: str) -> None: ...


class SmsSender:
    channel = "sms"

    def __init__(self, client: httpx.AsyncClient, account_sid: str, auth_token: str, from_phone: str):
        self.client = client
        self.account_sid = account_sid
        self.auth_token = auth_token
        self.from_phone = from_phone

    def recipient_for(self, registration: Registration) -> Optional[str]:
        return normalize_sg_phone(registration.user_phone)

    async def send_confirmation(self, recipient: str, message: str, subject: str) -> None:
        response = await self.client.post(
            TWILIO_MESSAGES_URL.format(sid=self.account_sid),
            auth=(self.account_sid, self.auth_token),
            data={"Body": message, "From": self.from_phone, "To": recipient},
        )
        response.raise_for_status()


class EmailSender:
    channel = "email"

    def __init__(self, client: httpx.AsyncClient, api_key: str, from_email: str):
        self.client = client
        self.api_key = api_key
        self.from_email = from_email

    def recipient_for(self, registration: Registration) -> Optional[str]:
        return registration.user_email or None

    async def send_confirmation(self, recipient: str, message: str, subject: str) -> None:
        response = await self.client.post(
            RESEND_EMAILS_URL,
            headers={"Authorization": f"Bearer {self.api_key}"},
            json={
                "from": self.from_email,
                "to": recipient,
                "subject": subject,
                "html": f"<p>{html.escape(message)}</p>",
            },
        )
        response.raise_for_status()


class NotificationDispatcher:

    def __init__(self, senders: list[NotificationSender], default_template: str,
                 client: Optional[httpx.AsyncClient] = None):
        self.senders = senders
        self.default_template = default_template
        self.client = client
        self._pending: set[asyncio.Task] = set()

    @classmethod
    def from_settings(cls, settings: Settings) -> "NotificationDispatcher":
        client = httpx.AsyncClient(timeout=settings.NOTIFICATION_TIMEOUT_SECONDS)
        senders: list[NotificationSender] = []
        if settings.TWILIO_ACCOUNT_SID and settings.TWILIO_AUTH_TOKEN and settings.TWILIO_PHONE_NUMBER:
            senders.append(SmsSender(client, settings.TWILIO_ACCOUNT_SID,
                                     settings.TWILIO_AUTH_TOKEN, settings.TWILIO_PHONE_NUMBER))
        else:
            logger.warning("sms_not_configured")
        if settings.RESEND_API_KEY:
            senders.append(EmailSender(client, settings.RESEND_API_KEY, settings.FROM_EMAIL))
        else:
            logger.warning("email_not_configured")
        return cls(senders, settings.DEFAULT_CONFIRMATION_TEMPLATE, client=client)

    def render(self, registration: Registration, event: Event) -> str:
        return format_confirmation_message(
            event.confirmation_message or self.default_template,
            name=registration.display_name,
            event=event.title,
            date=event.date.strftime("%A, %d %B %Y"),
            time=event.start_time.strftime("%H:%M"),
            location=event.location,
        )

    def dispatch_confirmation(self, registration: Registration, event: Event) -> None:
        """Schedule delivery on every configured channel and return immediately."""
        if not self.senders:
            return
        message = self.render(registration, event)
        subject = f"Registration Confirmed: {event.title}"
        for sender in self.senders:
            task = asyncio.create_task(self._deliver(sender, registration, message, subject))
            self._pending.add(task)
            task.add_done_callback(self._pending.discard)

    async def _deliver(self, sender: NotificationSender, registration: Registration,
                       message: str, subject: str) -> None:
        recipient = sender.recipient_for(registration)
        if not recipient:
            record_notification(sender.channel, "skipped")
            logger.info("notification_skipped", channel=sender.channel,
                        registration_id=registration.id, reason="no_recipient")
            return
        try:
            await sender.send_confirmation(recipient, message, subject)
        except Exception as e:
            record_notification(sender.channel, "failed")
            logger.warning("notification_failed", channel=sender.channel,
                           registration_id=registration.id, error=str(e))
            return
        record_notification(sender.channel, "sent")
        logger.info("notification_sent", channel=sender.channel, registration_id=registration.id)

    async def drain(self) -> None:
        """Wait for in-flight deliveries."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def close(self) -> None:
        await self.drain()
        if self.client is not None:
            await self.client.aclose()
