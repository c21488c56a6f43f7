"""
FastAPI application factory.
Creates the app with CORS, inbound rate limiting and router registration.
Swagger UI available at /docs, ReDoc at /redoc.
"""
import sys
from pathlib import Path
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

# Ensure src/ is on the path
_src_dir = str(Path(__file__).parent.parent)
if _src_dir not in sys.path:
    sys.path.insert(0, _src_dir)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown logic for the FastAPI app."""
    from quote_bridge import quote_config as cfg
    from quote_bridge.quote_logger import get_logger

    logger = get_logger(log_level=cfg.LOG_LEVEL)
    logger.info(f"Quote Bridge API starting on port {cfg.API_PORT}", component="API")
    if not cfg.LEXWARE_API_KEY:
        logger.warning(
            "LEXWARE_API_KEY is not set - only validation endpoints will work",
            component="API",
        )

    yield

    logger.info("Shutting down API server", component="API")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    from quote_bridge import __version__
    from quote_bridge import quote_config as cfg

    app = FastAPI(
        title="Quote Bridge API",
        description=(
            "Excel / free text to Lexware quotations: validate a quotation "
            "workbook, create the quotation in Lexware and download its PDF."
        ),
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cfg.API_CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["Content-Disposition"],
    )

    # Register routers
    from api.routes.health_routes import router as health_router
    from api.routes.quote_routes import router as quote_router

    app.include_router(health_router, tags=["Health"])
    app.include_router(quote_router, tags=["Quotations"])

    # Rate limiting middleware
    from api.middleware.rate_limiter import RateLimitMiddleware
    app.add_middleware(RateLimitMiddleware, requests_per_minute=cfg.API_RATE_LIMIT_PER_MINUTE)

    @app.get("/", tags=["Root"])
    async def root():
        """API root - points to the docs."""
        return {
            "service": "Quote Bridge API",
            "version": __version__,
            "docs": "/docs",
            "health": "/health",
        }

    return app
