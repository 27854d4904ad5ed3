#!/usr/bin/env python3
import sys
import os

print("Running preflight import check...")
try:
    # Set dummy env vars to avoid KeyErrors during config load if any
    os.environ.setdefault("REDIS_URL", "redis://localhost:6379/0")

    import app.main
    print("Import app.main: OK")

    from app.core.orchestrator import get_engine
    engine = get_engine()
    print(f"Engine ready: augmenter={'on' if engine.augmenter else 'off'}")

    from app.settings import settings
    if settings.CHANNEL_BACKEND == "green_api" and not (
        settings.GREEN_API_ID_INSTANCE and settings.GREEN_API_TOKEN_INSTANCE
    ):
        print("Preflight check FAILED: CHANNEL_BACKEND=green_api but Green API credentials are missing")
        sys.exit(1)

    if settings.STORE_BACKEND == "redis" or settings.DELIVERY_MODE == "rq":
        from app.store.redis_conn import redis_reachable
        if not redis_reachable():
            print(f"Preflight check FAILED: Redis not reachable at {settings.REDIS_URL}")
            sys.exit(1)
        print("Redis: OK")

    print("Preflight check passed.")
    sys.exit(0)
except Exception as e:
    print(f"Preflight check FAILED: {e}")
    import traceback
    traceback.print_exc()
    sys.exit(1)
