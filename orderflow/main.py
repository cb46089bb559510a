import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from orderflow.api.endpoints import checkout as checkout_api
from orderflow.api.endpoints import coupons as coupons_api
from orderflow.api.endpoints import order_statuses as order_statuses_api
from orderflow.api.endpoints import orders as orders_api
from orderflow.api.endpoints import payment_intents as payment_intents_api
from orderflow.api.endpoints import payment_methods as payment_methods_api
from orderflow.api.endpoints import payments as payments_api
from orderflow.api.endpoints import shippings as shippings_api
from orderflow.api.endpoints import taxes as taxes_api
from orderflow.api.endpoints import webhooks as webhooks_api
from orderflow.core.config import LOG_LEVEL
from orderflow.core.dependencies import close_gateway_registry
from orderflow.core.exceptions import OrderflowError
import orderflow.db.base  # noqa: F401  registers every model with the mapper

logging.basicConfig(
    level=LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="Orderflow API", version="0.1.0")


@app.exception_handler(OrderflowError)
async def orderflow_error_handler(request: Request, exc: OrderflowError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.code}: {exc.detail}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


# Include API routers
app.include_router(checkout_api.router, prefix="/api/v1/checkout", tags=["Checkout"])
app.include_router(orders_api.router, prefix="/api/v1/orders", tags=["Orders"])
app.include_router(order_statuses_api.router, prefix="/api/v1/order-statuses", tags=["Order Statuses"])
app.include_router(payment_intents_api.router, prefix="/api/v1/payment-intents", tags=["Payments"])
app.include_router(payments_api.router, prefix="/api/v1/payments", tags=["Payments"])
app.include_router(payment_methods_api.router, prefix="/api/v1/payment-methods", tags=["Payment Methods"])
app.include_router(webhooks_api.router, prefix="/api/v1/webhooks", tags=["Webhooks"])
app.include_router(coupons_api.router, prefix="/api/v1/coupons", tags=["Coupons"])
app.include_router(taxes_api.router, prefix="/api/v1/taxes", tags=["Taxes"])
app.include_router(shippings_api.router, prefix="/api/v1/shippings", tags=["Shippings"])


@app.on_event("shutdown")
def shutdown_event():
    close_gateway_registry()


@app.get("/ping", tags=["Health Check"])
async def ping():
    return {"message": "pong"}
