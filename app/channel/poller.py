import time
from typing import Optional

from app.channel.factory import get_channel
from app.core.orchestrator import InboundOutcome, handle_inbound
from app.observability.logging import log
from app.settings import settings


def poll_once(channel=None, handler=handle_inbound) -> Optional[InboundOutcome]:
    """Receive at most one inbound message and process it."""
    channel = channel or get_channel()
    msg = channel.receive()
    if msg is None or not msg.phoneNumber or not msg.text:
        return None
    return handler(msg.phoneNumber, msg.text, channel=channel)


def run_polling(channel=None, interval: float | None = None, max_iterations: int | None = None) -> None:
    """
    Poll forever on a fixed interval. Errors are logged and the next poll
    goes ahead regardless; retry policy stays with the channel.
    """
    channel = channel or get_channel()
    interval = settings.POLL_INTERVAL_SEC if interval is None else interval
    log("poll_started", interval=interval, backend=settings.CHANNEL_BACKEND)
    iterations = 0
    while max_iterations is None or iterations < max_iterations:
        iterations += 1
        try:
            poll_once(channel)
        except Exception as e:
            log("poll_error", errorType=type(e).__name__, error=str(e)[:300])
        time.sleep(interval)
