from fastapi import FastAPI
from shared.observability import setup_observability
from .dependencies import get_drive_client
from .router import router, public_router

delivery_app = FastAPI(title="Delivery Service", version="1.0.0")

# --- OBSERVABILITY BOOTSTRAP ---
setup_observability(delivery_app, "delivery_service")

delivery_app.include_router(public_router)
delivery_app.include_router(router)

@delivery_app.on_event("shutdown")
async def shutdown_event():
    client = get_drive_client()
    if client is not None:
        await client.aclose()
