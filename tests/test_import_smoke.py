import sys
import pytest
from unittest.mock import patch


@pytest.mark.parametrize("store_backend", ["memory", "redis"])
@pytest.mark.parametrize("delivery_mode", ["sync", "rq"])
def test_import_graph_smoke(store_backend, delivery_mode):
    """
    Verify that the app can be imported without crashing,
    regardless of backend selection.
    """
    with patch.dict("os.environ", {
        "STORE_BACKEND": store_backend,
        "DELIVERY_MODE": delivery_mode,
        "REDIS_URL": "redis://localhost:6379/0",  # harmless default
    }):
        # Force reload of the entrypoint to test import side-effects
        sys.modules.pop("app.main", None)

        try:
            import app.main
            import app.core.orchestrator
            import app.channel.poller
        except ImportError as e:
            pytest.fail(f"Import failed with store={store_backend} delivery={delivery_mode}: {e}")


def test_uvicorn_importable():
    """
    Simulate uvicorn import string loading.
    """
    from app.main import app
    assert app is not None
