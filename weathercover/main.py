"""
WeatherCover - Parametric Weather Insurance Engine

Main application entry point.

Policies pay out automatically when a trusted oracle reports a weather
measurement that satisfies the policy's trigger. No adjuster, no appeal.
"""

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from weathercover.api.routes import router
from weathercover.core import EngineConfig, InsuranceEngine
from weathercover.observability import (
    setup_logging,
    get_logger,
    RequestContextMiddleware,
    check_health,
    get_metrics,
)

logger = get_logger(__name__)


def create_app(engine: Optional[InsuranceEngine] = None) -> FastAPI:
    """
    Build the HTTP application around an engine.

    Without an engine, one is configured from WEATHERCOVER_* environment
    variables at startup.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan events."""
        setup_logging()
        if getattr(app.state, "engine", None) is None:
            app.state.engine = InsuranceEngine(config=EngineConfig.from_env())

        current = app.state.engine
        if current.verify_journal():
            logger.info(
                "Journal integrity verified OK",
                event_count=current.store.get_head().next_sequence,
            )
        else:
            logger.error("Journal integrity check FAILED!")

        logger.info(
            "Application startup complete",
            admin=current.get_admin(),
            height=current.current_height(),
            store_type=type(current.store).__name__,
        )

        yield

        logger.info("Application shutdown complete")

    app = FastAPI(
        title="WeatherCover",
        description="""
## Parametric Weather Insurance

Policies are priced from admin-defined risk profiles, carry one trigger
condition bound to an oracle, and settle automatically against the
oracle's recorded measurement.

### Policy Lifecycle

```
Active → Claimed | Canceled | Expired (derived from height)
```

### Claim Lifecycle

```
Pending → Paid | Rejected
```

### Authentication

Write requests carry `X-Caller-Key` (base64 Ed25519 public key, which is
the caller identity) and `X-Caller-Signature` over
`"{METHOD} {PATH}:{sha256(body)}"`.
        """,
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )
    app.state.engine = engine

    # Add request context middleware for logging
    app.add_middleware(RequestContextMiddleware)

    app.include_router(router)

    @app.get("/health", tags=["System"])
    async def health():
        """
        Basic health check endpoint.

        Returns 200 if the service is running.
        """
        return {"status": "healthy", "service": "weathercover"}

    @app.get("/health/journal", tags=["System"])
    async def health_journal(request: Request):
        """
        Journal health check.

        Verifies:
        - Chain integrity
        - Event count and head hash

        Returns 200 if healthy, 503 if unhealthy.
        """
        health_status = check_health(engine=request.app.state.engine)
        return JSONResponse(
            status_code=200 if health_status.healthy else 503,
            content={
                "status": "healthy" if health_status.healthy else "unhealthy",
                "checks": health_status.checks,
                "duration_ms": health_status.duration_ms,
            },
        )

    @app.get("/metrics", tags=["System"])
    async def metrics():
        """
        Get application metrics.

        Returns counters and latency percentiles.
        """
        return get_metrics().get_summary()

    return app


app = create_app()
