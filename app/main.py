from fastapi import FastAPI
from fastapi import Request
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from app.api.routes import router
from app.api.admin_routes import router as admin_router
from app.api.acquisition_routes import router as acquisition_router
from app.api.onboarding_routes import router as onboarding_router
from app.core import state_machine as sm
from app.core.errors import StoreError
from app.observability.logging import log
from app.settings import settings
from app.store.merchant_repo import get_store

app = FastAPI(title="Merchant Onboarding Assistant")

# Restricted in prod via CORS_ORIGINS.
origins = [x.strip() for x in settings.CORS_ORIGINS.split(",") if x.strip()]
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(router)
app.include_router(admin_router)
app.include_router(acquisition_router)
app.include_router(onboarding_router)


@app.get("/")
def root():
    return {
        "status": "ok",
        "message": "Merchant onboarding assistant is running. Use /health and POST /api/webhook/green-api.",
    }


@app.get("/health")
def health():
    try:
        active = sum(1 for r in get_store().all() if not sm.is_terminal(r.onboardingStep))
        store_status = "ok"
    except StoreError as e:
        log("health_store_error", error=str(e)[:300])
        active = None
        store_status = "unavailable"
    return {
        "status": "ok",
        "activeMerchants": active,
        "store": {"backend": settings.STORE_BACKEND, "status": store_status},
        "channel": settings.CHANNEL_BACKEND,
        "llmProvider": settings.LLM_PROVIDER,
        "deliveryMode": settings.DELIVERY_MODE,
    }


@app.exception_handler(Exception)
async def universal_exception_handler(request: Request, exc: Exception):
    log("unhandled_error", path=request.url.path, errorType=type(exc).__name__, error=str(exc)[:300])
    return JSONResponse(status_code=500, content={"error": "Internal server error"})


log(
    "boot",
    store=settings.STORE_BACKEND,
    channel=settings.CHANNEL_BACKEND,
    deliveryMode=settings.DELIVERY_MODE,
    llmProvider=settings.LLM_PROVIDER,
)
