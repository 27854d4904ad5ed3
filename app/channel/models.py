from dataclasses import dataclass
from typing import Any, Optional


@dataclass
class SendResult:
    success: bool
    messageId: Optional[str] = None
    error: Any = None


@dataclass
class InboundMessage:
    phoneNumber: str
    text: str
    messageId: Optional[str] = None
    timestamp: Optional[int] = None
    receiptId: Optional[int] = None
