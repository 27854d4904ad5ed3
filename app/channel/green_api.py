import httpx

from app.api.normalize import normalize_green_api_notification, normalize_phone
from app.channel.models import InboundMessage, SendResult
from app.observability.logging import log
from app.settings import settings

# Green API WhatsApp proxy (REST)
# {GREEN_API_URL}/waInstance{id}/{method}/{token}


class GreenApiChannel:
    def __init__(self, id_instance: str = "", api_token: str = "", base_url: str = "", client: httpx.Client | None = None):
        self.id_instance = id_instance or settings.GREEN_API_ID_INSTANCE
        self.api_token = api_token or settings.GREEN_API_TOKEN_INSTANCE
        self.base_url = (base_url or settings.GREEN_API_URL).rstrip("/")
        self._client = client or httpx.Client(timeout=settings.GREEN_API_TIMEOUT_SEC)

    @property
    def configured(self) -> bool:
        return bool(self.id_instance and self.api_token)

    def _url(self, method: str, suffix: str = "") -> str:
        url = f"{self.base_url}/waInstance{self.id_instance}/{method}/{self.api_token}"
        return f"{url}/{suffix}" if suffix else url

    def send_text(self, phone_number: str, text: str) -> SendResult:
        if not self.configured:
            return SendResult(success=False, error="API not configured")

        chat_id = f"{normalize_phone(phone_number)}@c.us"
        try:
            resp = self._client.post(self._url("sendMessage"), json={"chatId": chat_id, "message": text})
        except httpx.HTTPError as e:
            log("green_api_send_exception", phoneNumber=phone_number, errorType=type(e).__name__, error=str(e)[:300])
            return SendResult(success=False, error=str(e))

        if resp.status_code >= 400:
            error = f"HTTP {resp.status_code}: {(resp.text or '')[:300]}"
            log("green_api_send_failed", phoneNumber=phone_number, statusCode=resp.status_code)
            return SendResult(success=False, error=error)

        try:
            data = resp.json()
        except ValueError:
            log("green_api_send_bad_body", phoneNumber=phone_number, statusCode=resp.status_code)
            return SendResult(success=False, error=f"Unreadable response: {(resp.text or '')[:300]}")

        if isinstance(data, dict) and data.get("idMessage"):
            return SendResult(success=True, messageId=data["idMessage"])
        return SendResult(success=False, error=f"No message id in response: {str(data)[:300]}")

    def receive(self) -> InboundMessage | None:
        """
        Pull one notification from the Green API queue.
        Every notification is acknowledged (deleted); only incoming text
        messages are returned.
        """
        if not self.configured:
            return None

        resp = self._client.get(self._url("receiveNotification"))
        resp.raise_for_status()
        notification = resp.json()
        if not notification:
            return None

        msg = normalize_green_api_notification(notification)
        receipt_id = notification.get("receiptId")
        if receipt_id is not None:
            self.delete_notification(receipt_id)

        if msg is None or not msg.phoneNumber or not msg.text:
            return None
        return msg

    def delete_notification(self, receipt_id) -> bool:
        resp = self._client.delete(self._url("deleteNotification", str(receipt_id)))
        return resp.status_code < 400

    def account_info(self) -> dict:
        if not self.configured:
            return {
                "configured": False,
                "error": "API not configured",
                "idInstance": "Set" if self.id_instance else "Missing",
                "tokenInstance": "Set" if self.api_token else "Missing",
            }
        try:
            resp = self._client.get(self._url("getSettings"))
        except httpx.HTTPError as e:
            return {"configured": False, "error": str(e)}
        if resp.status_code >= 400:
            return {"configured": False, "error": f"HTTP {resp.status_code}"}
        return {**(resp.json() or {}), "configured": True}
