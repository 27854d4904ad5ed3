from app.channel.factory import get_channel
from app.core.errors import DeliveryError
from app.observability.logging import log


def send_message_job(phone_number: str, text: str) -> str:
    """
    Background job delivering one outbound message.
    Raises on failure so RQ's Retry policy re-runs it.
    """
    log(event="delivery_job_start", phoneNumber=phone_number)
    result = get_channel().send_text(phone_number, text)
    if not result.success:
        log(event="delivery_failed", phoneNumber=phone_number, mode="rq", error=str(result.error)[:300])
        raise DeliveryError(phone_number, result.error)
    log(event="delivery_sent", phoneNumber=phone_number, mode="rq", messageId=result.messageId)
    return result.messageId
