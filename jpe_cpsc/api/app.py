"""
FastAPI application factory.

The app owns one synchronous controller context. Routes reach it through
``app.state.context`` under ``app.state.context_lock``; the connection is
closed when the app shuts down.
"""

import itertools
import logging
import threading
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from jpe_cpsc.api.models import make_response
from jpe_cpsc.config.models import AppConfig
from jpe_cpsc.controller.context import BaseContext


logger = logging.getLogger(__name__)

# Global server transaction ID counter (thread-safe)
_transaction_counter = itertools.count(1)
_transaction_lock = threading.Lock()


def get_next_transaction_id() -> int:
    """
    Get next server transaction ID (thread-safe).

    Returns:
        Incremented transaction ID.
    """
    with _transaction_lock:
        return next(_transaction_counter)


def create_app(context: BaseContext, config: Optional[AppConfig] = None, close_on_shutdown: bool = True) -> FastAPI:
    """
    Create FastAPI application instance.

    Args:
        context: Controller context served by the routes. Requests are
            serialized on a lock, one transaction at a time.
        config: Application configuration, reported by the description
            endpoint.
        close_on_shutdown: Close ``context`` when the app stops.

    Returns:
        Configured FastAPI app.
    """
    from jpe_cpsc import __version__
    from jpe_cpsc.api.routes import management_router, router

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(f"Serving controller with modules: {', '.join(str(m) for m in context.modules)}")
        yield
        if close_on_shutdown:
            with app.state.context_lock:
                context.close()
            logger.info("Controller connection closed")

    app = FastAPI(
        title="JPE CPSC Controller API",
        description="HTTP interface to a JPE CPSC multi-module motion controller",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.context = context
    app.state.context_lock = threading.Lock()
    app.state.config = config or AppConfig()

    # Anything not already turned into an envelope by the routes
    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        logger.error(f"Unhandled exception in {request.method} {request.url.path}: {exc}", exc_info=True)
        response = make_response(None, get_next_transaction_id(), exc)
        return JSONResponse(status_code=200, content=response.model_dump())

    app.include_router(router)
    app.include_router(management_router)

    logger.info("FastAPI application created")
    return app
