from fastapi import FastAPI

from services.delivery_service.dependencies import get_drive_client
from services.delivery_service.main import delivery_app
from services.order_service.dependencies import get_order_store
from services.order_service.main import order_app
from services.order_service.router import list_orders
from services.order_service.schemas import OrderListResponse
from services.webhook_service.main import webhook_app
from shared.config.settings import get_settings

app = FastAPI(title="Delivery Dispatch Cluster")

# Mounted sub-apps do not receive lifespan events; the cluster owns them
@app.on_event("startup")
async def startup_event():
    await get_order_store().initialize()
    # Logs drive_client_disabled at boot when credentials are missing or invalid
    get_drive_client()

@app.on_event("shutdown")
async def shutdown_event():
    client = get_drive_client()
    if client is not None:
        await client.aclose()
    await get_order_store().close()

@app.get("/")
async def root():
    settings = get_settings()
    return {
        "service": settings.service_name,
        "status": "running",
        "webhook_path": settings.webhook_path,
        "database_backend": get_order_store().backend_name,
        "dispatch_configured": get_drive_client() is not None,
    }

@app.get("/health")
async def health():
    return {"status": "healthy"}

# Mount("/orders") only matches "/orders/..."; the bare path would fall through to the webhook app
app.add_api_route("/orders", list_orders, methods=["GET"], response_model=OrderListResponse, include_in_schema=False)

app.mount("/orders", order_app)
app.mount("/deliveries", delivery_app)
# Catch-all mount last: it owns the configurable webhook path
app.mount("/", webhook_app)
