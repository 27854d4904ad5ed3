import threading
import uuid
from collections import deque
from typing import List, Optional

from app.channel.models import InboundMessage, SendResult


class InMemoryChannel:
    """
    Demo / test channel: outbound messages are recorded, inbound ones are
    served from a queue filled by `inject`.
    """

    def __init__(self):
        self.sent: List[dict] = []
        self._inbox = deque()
        self._lock = threading.Lock()

    def send_text(self, phone_number: str, text: str) -> SendResult:
        message_id = f"mem-{uuid.uuid4().hex[:10]}"
        with self._lock:
            self.sent.append({"phoneNumber": phone_number, "message": text, "messageId": message_id})
        return SendResult(success=True, messageId=message_id)

    def inject(self, phone_number: str, text: str) -> None:
        with self._lock:
            self._inbox.append(InboundMessage(phoneNumber=phone_number, text=text))

    def receive(self) -> Optional[InboundMessage]:
        with self._lock:
            return self._inbox.popleft() if self._inbox else None

    def account_info(self) -> dict:
        return {"configured": True, "backend": "memory", "sent": len(self.sent)}
