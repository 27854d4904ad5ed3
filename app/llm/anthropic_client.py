import httpx
import random
import time

from app.settings import settings

# Anthropic Messages API (REST)
# POST https://api.anthropic.com/v1/messages
BASE_URL = "https://api.anthropic.com/v1"
API_VERSION = "2023-06-01"

# Reuse a single client for keep-alive
_client = httpx.Client(timeout=settings.LLM_REQUEST_TIMEOUT_SEC)


def _sleep_backoff(attempt: int, retry_after: float | None = None) -> None:
    """Small bounded exponential backoff with jitter."""
    if retry_after is not None:
        time.sleep(retry_after)
        return
    base = min(2.0, 0.35 * (2 ** attempt))
    time.sleep(base + random.uniform(0.0, 0.2))


def create_message(system: str, messages: list[dict], *, temperature: float = 0.7, max_tokens: int = 500) -> str:
    """Generate text via the Anthropic Messages API.

    Retries briefly on 429/5xx with bounded backoff, up to LLM_MAX_RETRIES
    attempts in total. Raises RuntimeError if still failing after that.
    """
    if not settings.ANTHROPIC_API_KEY:
        raise RuntimeError("ANTHROPIC_API_KEY is not set")

    body = {
        "model": settings.ANTHROPIC_MODEL,
        "system": system,
        "messages": messages,
        "temperature": float(temperature),
        "max_tokens": int(max_tokens),
    }
    headers = {
        "x-api-key": settings.ANTHROPIC_API_KEY,
        "anthropic-version": API_VERSION,
        "Content-Type": "application/json",
    }

    last_error = None
    # LLM_MAX_RETRIES counts total attempts, same as the OpenAI client
    max_attempts = max(1, settings.LLM_MAX_RETRIES)

    for attempt in range(max_attempts):
        final = attempt == max_attempts - 1
        try:
            resp = _client.post(f"{BASE_URL}/messages", headers=headers, json=body)
        except httpx.HTTPError as e:
            last_error = f"{type(e).__name__}: {e}"
            if not final:
                _sleep_backoff(attempt)
            continue

        if resp.status_code < 400:
            data = resp.json()
            try:
                return data["content"][0]["text"]
            except (KeyError, IndexError, TypeError):
                raise RuntimeError(f"Unexpected Anthropic response shape: {str(data)[:300]}")

        # Retry on rate limiting / transient server errors
        if resp.status_code in (429, 500, 503, 529):
            last_error = f"{resp.status_code} {resp.text}"
            retry_after = None
            if "retry-after" in resp.headers:
                try:
                    retry_after = float(resp.headers["retry-after"])
                except ValueError:
                    retry_after = None
            if not final:
                _sleep_backoff(attempt, retry_after=retry_after)
            continue

        # Non-retriable
        last_error = f"{resp.status_code} {resp.text}"
        break

    raise RuntimeError(f"Anthropic API unavailable/rate-limited after retries: {last_error}")
