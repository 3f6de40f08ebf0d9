import logging
import os
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from payment_element.api import payments, subscriptions, webhooks
from payment_element.core.config import Settings, settings as default_settings
from payment_element.core.errors import PaymentAPIError, error_body
from payment_element.core.stripe_client import build_stripe_client

logger = logging.getLogger(__name__)

_UNSET = object()


def configure_logging(settings: Settings) -> None:
    logging.basicConfig(
        level=settings.LOG_LEVEL.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _validation_message(exc: RequestValidationError) -> str:
    parts = []
    for error in exc.errors():
        location = ".".join(str(p) for p in error.get("loc", ()) if p not in ("body", "query"))
        parts.append(f"{location}: {error.get('msg')}" if location else error.get("msg", "Invalid request"))
    return "; ".join(parts) or "Invalid request"


def create_app(settings: Optional[Settings] = None, stripe_client=_UNSET) -> FastAPI:
    """
    Build the application.

    ``stripe_client`` overrides the client built from ``settings``; pass None
    to run without Stripe access.
    """
    settings = settings or default_settings
    configure_logging(settings)

    app = FastAPI(title="Payment Element Demo", version="1.0.0")
    app.state.settings = settings
    app.state.stripe_client = build_stripe_client(settings) if stripe_client is _UNSET else stripe_client

    allowed_origins = settings.get_allowed_origins()
    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(PaymentAPIError)
    async def payment_error_handler(request: Request, exc: PaymentAPIError):
        return JSONResponse(status_code=exc.status_code, content=error_body(exc.message))

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(status_code=400, content=error_body(_validation_message(exc)))

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """Ensure CORS headers are included even on unhandled exceptions"""
        logger.exception(f"Unhandled exception on {request.url.path}: {exc}")
        response = JSONResponse(status_code=500, content=error_body("Internal server error"))

        origin = request.headers.get("origin")
        if origin and origin in allowed_origins:
            response.headers["Access-Control-Allow-Origin"] = origin
            response.headers["Access-Control-Allow-Credentials"] = "true"
        return response

    @app.get("/health")
    async def health():
        return {"status": "healthy"}

    app.include_router(payments.router, tags=["payments"])
    app.include_router(subscriptions.router, prefix="/subscriptions", tags=["subscriptions"])
    app.include_router(webhooks.router, tags=["webhooks"])

    # Mounted last: "/" would otherwise shadow the API routes
    if settings.STATIC_DIR:
        if os.path.isdir(settings.STATIC_DIR):
            app.mount("/", StaticFiles(directory=settings.STATIC_DIR, html=True), name="static")
        else:
            logger.warning(f"STATIC_DIR {settings.STATIC_DIR} is not a directory; front end not served")

    return app


app = create_app()


def run() -> None:
    import uvicorn

    uvicorn.run("payment_element.main:app", host="0.0.0.0", port=default_settings.PORT)


if __name__ == "__main__":
    run()
