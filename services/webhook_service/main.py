from fastapi import FastAPI
from shared.observability import setup_observability
from services.order_service.dependencies import get_order_store
from .router import router

webhook_app = FastAPI(title="Webhook Service", version="1.0.0")

# --- OBSERVABILITY BOOTSTRAP ---
setup_observability(webhook_app, "webhook_service")

webhook_app.include_router(router)

@webhook_app.on_event("startup")
async def startup_event():
    await get_order_store().initialize()
