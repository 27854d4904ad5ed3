import time
import random
import httpx

from app.settings import settings

# Any OpenAI-compatible chat endpoint: OpenAI itself, Ollama (/v1), vLLM.
# POST {OPENAI_BASE_URL}/chat/completions

_client = httpx.Client(timeout=settings.LLM_REQUEST_TIMEOUT_SEC)


def _headers() -> dict:
    h = {"Content-Type": "application/json"}
    if settings.OPENAI_API_KEY:
        h["Authorization"] = f"Bearer {settings.OPENAI_API_KEY}"
    return h


def chat_completion(system: str, messages: list[dict], *, temperature: float = 0.7, max_tokens: int = 500) -> str:
    """Call an OpenAI-compatible chat endpoint.

    `messages` is the prior conversation plus the latest user turn, as
    {"role": "user"|"assistant", "content": str} dicts.
    Raises RuntimeError once retries are exhausted.
    """
    if not settings.OPENAI_BASE_URL:
        raise RuntimeError("OPENAI_BASE_URL is not set")

    url = f"{settings.OPENAI_BASE_URL}/chat/completions"
    payload = {
        "model": settings.OPENAI_MODEL,
        "messages": [{"role": "system", "content": system}, *messages],
        "temperature": float(temperature),
        "max_tokens": int(max_tokens),
    }
    start = time.time()
    attempt = 0
    last_err = None
    max_attempts = max(1, settings.LLM_MAX_RETRIES)
    while attempt < max_attempts:
        attempt += 1
        try:
            resp = _client.post(url, headers=_headers(), json=payload)
            resp.raise_for_status()
            data = resp.json()
            return data["choices"][0]["message"]["content"]
        except (httpx.TimeoutException, httpx.HTTPError, KeyError, IndexError, ValueError) as e:
            last_err = e
            if attempt >= max_attempts:
                break
            time.sleep(0.2 + random.uniform(0.0, 0.1))
    elapsed = round(time.time() - start, 3)
    raise RuntimeError(f"chat completion failed (attempts={attempt}, elapsed={elapsed}s): {last_err}")
