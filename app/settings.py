import os
from dotenv import load_dotenv

load_dotenv()

DEFAULT_ACTIVATION_KEYWORDS = (
    "onboarding,merchant,business,setup,go-live,golive,store,shop,payment,pos,"
    "terminal,help,support,start,begin,register,signup,sign up,join"
)


class Settings:
    API_KEY: str = os.getenv("API_KEY", "")
    CORS_ORIGINS: str = os.getenv("CORS_ORIGINS", "*")

    # Admin routes (merchant listing, dashboard, acquisition)
    ADMIN_RBAC_ENABLED: bool = os.getenv("ADMIN_RBAC_ENABLED", "false").lower() == "true"
    ADMIN_API_KEY: str = os.getenv("ADMIN_API_KEY", "")

    REDIS_URL: str = os.getenv("REDIS_URL", "redis://localhost:6379/0")
    RQ_QUEUE_NAME: str = os.getenv("RQ_QUEUE_NAME", "outbound")

    # Backends: "memory" keeps merchants in-process (demo), "redis" persists them.
    STORE_BACKEND: str = os.getenv("STORE_BACKEND", "memory").lower()
    MERCHANT_LOCK_TTL_MS: int = int(os.getenv("MERCHANT_LOCK_TTL_MS", "5000"))

    # "green_api" talks to the WhatsApp proxy, "memory" records outbound messages only.
    CHANNEL_BACKEND: str = os.getenv("CHANNEL_BACKEND", "memory").lower()
    # Modes:
    # - "sync": send the reply inline, failures surface to the caller
    # - "rq": enqueue the reply, the worker retries on failure
    DELIVERY_MODE: str = os.getenv("DELIVERY_MODE", "sync").lower()

    # Activation gate
    ACTIVATION_KEYWORDS: str = os.getenv("ACTIVATION_KEYWORDS", DEFAULT_ACTIVATION_KEYWORDS)
    ACTIVATION_CODE: str = os.getenv("ACTIVATION_CODE", "MERCHANT2024")
    # "ignore" drops messages from unknown senders that fail the gate, "reply" answers them.
    UNKNOWN_SENDER_POLICY: str = os.getenv("UNKNOWN_SENDER_POLICY", "ignore").lower()

    # SLA
    SLA_THRESHOLD_DAYS: int = int(os.getenv("SLA_THRESHOLD_DAYS", "5"))
    REJECT_PAST_GO_LIVE_DATES: bool = os.getenv("REJECT_PAST_GO_LIVE_DATES", "false").lower() == "true"

    # Green API (WhatsApp proxy)
    GREEN_API_URL: str = os.getenv("GREEN_API_URL", "https://api.green-api.com").rstrip("/")
    GREEN_API_ID_INSTANCE: str = os.getenv("GREEN_API_ID_INSTANCE", "")
    GREEN_API_TOKEN_INSTANCE: str = os.getenv("GREEN_API_TOKEN_INSTANCE", "")
    GREEN_API_TIMEOUT_SEC: float = float(os.getenv("GREEN_API_TIMEOUT_SEC", "10"))
    POLL_INTERVAL_SEC: float = float(os.getenv("POLL_INTERVAL_SEC", "2"))

    # Response augmenter: "none" disables it, "openai" covers any OpenAI-compatible
    # endpoint (OpenAI, Ollama /v1, vLLM), "anthropic" uses the Messages API.
    LLM_PROVIDER: str = os.getenv("LLM_PROVIDER", "none").lower()
    OPENAI_BASE_URL: str = os.getenv("OPENAI_BASE_URL", "https://api.openai.com/v1").rstrip("/")
    OPENAI_API_KEY: str = os.getenv("OPENAI_API_KEY", "")
    OPENAI_MODEL: str = os.getenv("OPENAI_MODEL", "gpt-3.5-turbo")
    ANTHROPIC_API_KEY: str = os.getenv("ANTHROPIC_API_KEY", "")
    ANTHROPIC_MODEL: str = os.getenv("ANTHROPIC_MODEL", "claude-3-haiku-20240307")
    LLM_REQUEST_TIMEOUT_SEC: float = float(os.getenv("LLM_REQUEST_TIMEOUT_SEC", "15"))
    LLM_MAX_RETRIES: int = int(os.getenv("LLM_MAX_RETRIES", "2"))
    LLM_HISTORY_MESSAGES: int = int(os.getenv("LLM_HISTORY_MESSAGES", "10"))

    ENABLE_PII_REDACTION: bool = os.getenv("ENABLE_PII_REDACTION", "true").lower() == "true"


settings = Settings()
