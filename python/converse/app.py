"""FastAPI application for the Converse message board.

The app owns three long-lived objects on app.state, built in the lifespan:
the message store (from settings, or injected by tests), the mutation engine
writing to it, and the reconciliation loop keeping the board's snapshot in
step with it. Shutdown stops the loop before the store is closed.

Middleware runs in reverse registration order, so RequestIDMiddleware is
added last (see add_request_id_middleware) and every response, error
envelopes included, carries X-Request-ID.
"""

import json
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from starlette.middleware.base import RequestResponseEndpoint
from starlette.responses import Response

from converse.api.routes import create_api_router
from converse.config import get_settings
from converse.errors import ConverseErrorCode
from converse.logging import configure_logging, get_logger
from converse.middleware.request_id import RequestIDMiddleware
from converse.responses import error_json, register_exception_handlers
from converse.services.mutations import MutationEngine
from converse.services.reconcile import ReconciliationLoop
from converse.store import MessageStoreBase, get_message_store

logger = get_logger(__name__)

_BODY_METHODS = ("POST", "PUT", "PATCH")


@asynccontextmanager
async def lifespan(app: FastAPI):
    store: MessageStoreBase | None = app.state.store
    if store is None:
        store = app.state.store = get_message_store(get_settings())

    app.state.engine = MutationEngine(store)
    app.state.reconciler = ReconciliationLoop(store)
    await app.state.reconciler.start()
    logger.info("message_store_initialized", store=type(store).__name__)

    try:
        yield
    finally:
        await app.state.reconciler.stop()
        await store.aclose()
        logger.info("message_store_closed")


async def reject_malformed_json(request: Request, call_next: RequestResponseEndpoint) -> Response:
    """Answer 400 for an unparseable JSON body before routing."""
    if request.method in _BODY_METHODS and "application/json" in request.headers.get(
        "content-type", ""
    ):
        body = await request.body()
        if body:
            try:
                json.loads(body)
            except json.JSONDecodeError:
                return error_json(ConverseErrorCode.E_INVALID_REQUEST, "Malformed JSON body", 400)
    return await call_next(request)


def create_app(store: MessageStoreBase | None = None) -> FastAPI:
    """Build the board API.

    Args:
        store: Message store to use instead of the configured one (tests).
    """
    settings = get_settings()
    configure_logging(json_format=settings.log_json, level=settings.log_level)

    app = FastAPI(
        title="Converse API",
        description="Versioned, branching message board",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.store = store

    register_exception_handlers(app)
    app.middleware("http")(reject_malformed_json)
    app.include_router(create_api_router())
    return app


def add_request_id_middleware(app: FastAPI, log_requests: bool = True) -> None:
    """Install RequestIDMiddleware. Call after every other middleware so it runs outermost."""
    app.add_middleware(RequestIDMiddleware, log_requests=log_requests)
