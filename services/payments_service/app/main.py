"""FastAPI application for the Payments Service."""

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from libs.common.config import get_settings
from libs.common.emails.client import EmailClient
from libs.common.logging import configure_logging, get_logger
from libs.common.middleware import add_observability_middleware
from libs.common.rate_limit import limiter, rate_limit_exceeded_handler
from services.payments_service.catalog_client import CatalogClient
from services.payments_service.errors import PaymentError, payment_error_handler
from services.payments_service.razorpay_client import RazorpayClient
from services.payments_service.routers import (
    admin_router,
    intents_router,
    payout_admin_router,
    payout_educator_router,
    webhooks_router,
)
from slowapi.errors import RateLimitExceeded

logger = get_logger(__name__)


async def _validation_error_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    # Client input errors are 400s here, not FastAPI's default 422
    errors = [
        {
            "loc": list(error.get("loc", ())),
            "msg": error.get("msg"),
            "type": error.get("type"),
        }
        for error in exc.errors()
    ]
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": "Validation errors", "errors": errors},
    )


def create_app(
    razorpay_client: RazorpayClient = None,
    catalog_client: CatalogClient = None,
    email_client: EmailClient = None,
) -> FastAPI:
    """Create and configure the Payments Service FastAPI app.

    Clients are constructed once here and shared through ``app.state``; pass
    replacements to swap them out.
    """
    configure_logging()
    settings = get_settings()

    app = FastAPI(
        title="EduMarket Payments Service",
        version="0.1.0",
        description="Checkout, settlement and educator payouts for EduMarket.",
    )

    app.state.razorpay_client = razorpay_client or RazorpayClient()
    app.state.catalog_client = catalog_client or CatalogClient()
    app.state.email_client = email_client or EmailClient()
    app.state.limiter = limiter

    add_observability_middleware(app)

    app.add_exception_handler(PaymentError, payment_error_handler)
    app.add_exception_handler(RequestValidationError, _validation_error_handler)
    app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)

    @app.get("/health", tags=["system"])
    async def health_check() -> dict[str, str]:
        """Health check endpoint."""
        return {"status": "ok", "service": "payments"}

    app.include_router(intents_router)
    app.include_router(webhooks_router)
    app.include_router(admin_router)
    app.include_router(payout_admin_router)
    app.include_router(payout_educator_router)

    if not settings.RAZORPAY_WEBHOOK_SECRET:
        logger.warning("RAZORPAY_WEBHOOK_SECRET is not set; all webhooks will be rejected")

    return app


app = create_app()
