from contextlib import contextmanager
import time
import uuid

from app.core.errors import StoreError


@contextmanager
def redis_key_lock(r, name: str, ttl_ms: int = 5000):
    """
    Distributed lock to ensure single-writer per merchant record.
    """
    key = f"lock:{name}"
    token = uuid.uuid4().hex
    acquired = r.set(key, token, px=ttl_ms, nx=True)

    try:
        if not acquired:
            # Short spin; polling and webhooks rarely overlap for the same sender.
            for _ in range(20):
                time.sleep(0.1)
                if r.set(key, token, px=ttl_ms, nx=True):
                    acquired = True
                    break

            if not acquired:
                raise StoreError(f"Could not acquire lock {key}")

        yield
    finally:
        if acquired:
            # Release only if we own it
            script = """
            if redis.call("get", KEYS[1]) == ARGV[1] then
                return redis.call("del", KEYS[1])
            else
                return 0
            end
            """
            try:
                r.eval(script, 1, key, token)
            except Exception:
                # TTL expiry releases it anyway
                pass
