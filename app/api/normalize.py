import re
from typing import Optional

from app.channel.models import InboundMessage

INCOMING_MESSAGE_WEBHOOK = "incomingMessageReceived"
TEXT_MESSAGE_TYPES = ("textMessage", "extendedTextMessage")

_NON_DIGITS = re.compile(r"\D")


def normalize_phone(raw: str) -> str:
    """Digits only. Strips '+', spaces, dashes and a WhatsApp '@c.us' suffix."""
    s = (raw or "").split("@", 1)[0]
    return _NON_DIGITS.sub("", s)


def _message_text(message_data: dict) -> str:
    text_data = message_data.get("textMessageData") or {}
    if text_data.get("textMessage"):
        return text_data["textMessage"]
    extended = message_data.get("extendedTextMessageData") or {}
    return extended.get("text") or ""


def normalize_green_api_notification(payload: dict) -> Optional[InboundMessage]:
    """
    Accepts the Green API notification shapes we see in practice and returns
    an InboundMessage for incoming text messages, None for anything else:

    - webhook push: {"typeWebhook": ..., "senderData": {...}, "messageData": {...}}
    - webhook push wrapped by some proxies: {"body": {...}}
    - receiveNotification poll: {"receiptId": 1, "body": {...}}

    Missing phone/text on an incoming text message yields an InboundMessage
    with empty fields so callers can reject it explicitly.
    """
    if not isinstance(payload, dict):
        return None

    receipt_id = payload.get("receiptId")
    body = payload.get("body") if isinstance(payload.get("body"), dict) else payload

    if body.get("typeWebhook") != INCOMING_MESSAGE_WEBHOOK:
        return None

    message_data = body.get("messageData") or {}
    if message_data.get("typeMessage") not in TEXT_MESSAGE_TYPES:
        return None

    sender = body.get("senderData") or {}
    chat_id = sender.get("chatId") or sender.get("sender") or ""

    return InboundMessage(
        phoneNumber=normalize_phone(chat_id),
        text=_message_text(message_data),
        messageId=body.get("idMessage"),
        timestamp=body.get("timestamp"),
        receiptId=receipt_id,
    )
