"""FastAPI application factory."""

import json
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from nutrition_planner.adapters.stripe_client import (
    SignatureVerificationError,
    verify_stripe_signature,
)
from nutrition_planner.api.routes import router as planner_router
from nutrition_planner.app_logging import configure_logging
from nutrition_planner.containers import AppContainer
from nutrition_planner.domain.errors import PlannerError, UpstreamFailure


def create_app(container: AppContainer) -> FastAPI:
    """Create a FastAPI app configured with dependencies."""
    configure_logging()
    logger = logging.getLogger(__name__)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        yield
        await app.state.container.close_resources()

    app = FastAPI(lifespan=lifespan)
    app.state.container = container

    app.include_router(planner_router)

    @app.exception_handler(PlannerError)
    async def planner_error_handler(request: Request, exc: PlannerError) -> JSONResponse:
        if isinstance(exc, UpstreamFailure):
            logger.warning(
                "Upstream failure on %s %s: %s",
                request.method,
                request.url.path,
                exc.message,
            )
        return JSONResponse(
            status_code=exc.status_code,
            content={"success": False, "error": exc.message, "details": exc.details},
        )

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Simple health check endpoint."""
        return {"status": "ok"}

    @app.post("/webhooks/stripe")
    async def stripe_webhook(request: Request) -> JSONResponse:
        """Verify and apply a Stripe webhook event."""
        state_container: AppContainer = request.app.state.container
        payload = await request.body()
        try:
            verify_stripe_signature(
                payload,
                request.headers.get("stripe-signature"),
                state_container.settings.stripe_webhook_secret,
            )
        except SignatureVerificationError as exc:
            logger.warning("Rejected Stripe webhook: %s", exc)
            return JSONResponse(
                status_code=400,
                content={"success": False, "error": "Invalid signature"},
            )
        try:
            raw = json.loads(payload)
        except ValueError:
            logger.warning("Rejected Stripe webhook with undecodable body")
            return JSONResponse(
                status_code=400,
                content={"success": False, "error": "Invalid payload"},
            )
        outcome = state_container.subscription_reconciler.handle_event(
            raw if isinstance(raw, dict) else {}
        )
        return JSONResponse(content={"received": True, "action": outcome.action})

    return app
