import time
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from config import settings
from deployment import resolve_deployment_context
from exceptions import StrataError
from middleware import RequestContextMiddleware, error_response
from optimizers.router import get_strategy
from routers import health, upload
from routers.health import VERSION
from utils.logging import get_logger, setup_logging


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup: configure logging, pick the optimization strategy once."""
    # --- Startup ---
    setup_logging()
    logger = get_logger("main")

    strategy = get_strategy()
    context = resolve_deployment_context(settings)
    if strategy.name != "pillow":
        logger.warning(
            "Image optimizer unavailable, originals will be stored unchanged",
            extra={"context": {"strategy": strategy.name}},
        )
    logger.info(
        "Strata started",
        extra={
            "context": {
                "strategy": strategy.name,
                "deployment": context.mode,
                "strict_mode": context.strict_mode,
            }
        },
    )

    yield

    # --- Shutdown ---
    logger.info("Strata shutting down")


app = FastAPI(
    title="Strata",
    description="Batch Image Ingest Service",
    version=VERSION,
    lifespan=lifespan,
)

# CORS middleware
origins = [o.strip() for o in settings.allowed_origins.split(",")]
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=origins != ["*"],
    allow_methods=["POST", "OPTIONS", "GET"],
    allow_headers=[
        "Content-Type",
        "Content-Length",
        "Authorization",
        "X-Requested-With",
        "X-Request-ID",
    ],
    expose_headers=["X-Request-ID"],
    max_age=86400,
)

# RequestContextMiddleware handles: request ID, request timing
app.add_middleware(RequestContextMiddleware)


@app.exception_handler(StrataError)
async def strata_error_handler(request: Request, exc: StrataError):
    started_at = getattr(request.state, "started_at", None)
    return error_response(exc, started_at if started_at is not None else time.monotonic())


# Routers
app.include_router(health.router)
app.include_router(upload.router)


def run():
    """Serve the app with uvicorn using PORT and WORKERS."""
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=settings.port,
        workers=settings.workers,
    )


if __name__ == "__main__":
    run()
