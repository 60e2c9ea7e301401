"""
Albatross-Gate FastAPI Application
Verifying proxy for signed range-lookup requests
"""
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

from albatross import __version__
from albatross.auth.canonical import utc_now
from albatross.auth.signing import Clock, RequestVerifier
from albatross.config import Settings, settings
from albatross.models import HealthResponse
from albatross.net.ranges import ProviderRanges
from albatross.routes import router

# Configure logging
logging.basicConfig(
    level=logging.INFO if not settings.debug else logging.DEBUG,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager"""
    # Startup
    logger.info(f"Starting Albatross-Gate on {app.state.settings.host}:{app.state.settings.port}")
    logger.info(f"Request signing: {'enabled' if app.state.verifier else 'DISABLED'}")
    logger.info(f"Provider ranges loaded: {len(app.state.provider_ranges)}")

    yield

    # Shutdown
    logger.info("Shutting down Albatross-Gate")


def _load_ranges(config: Settings) -> ProviderRanges:
    if not config.provider_ranges_file:
        return ProviderRanges()
    try:
        return ProviderRanges.from_file(config.provider_ranges_file)
    except (OSError, ValueError) as e:
        logger.error(f"Failed to load provider ranges from {config.provider_ranges_file}: {e}")
        return ProviderRanges()


def create_app(
    config: Optional[Settings] = None,
    provider_ranges: Optional[ProviderRanges] = None,
    clock: Clock = utc_now,
) -> FastAPI:
    """Build the application; every collaborator can be overridden for tests."""
    config = config or settings

    app = FastAPI(
        title="Albatross-Gate",
        description="Signed-request proxy for IP range lookups",
        version=__version__,
        docs_url=None,
        redoc_url=None,
        lifespan=lifespan,
    )

    app.state.settings = config
    app.state.signature_header = config.signature_header
    app.state.verifier = None
    if config.signing_enabled():
        app.state.verifier = RequestVerifier(
            config.get_signing_secret(),
            clock=clock,
            window=config.get_timestamp_window(),
        )
    app.state.provider_ranges = provider_ranges if provider_ranges is not None else _load_ranges(config)

    app.include_router(router)

    @app.get("/health", response_model=HealthResponse)
    async def health_check():
        """Basic health check endpoint (no auth required)"""
        return HealthResponse(
            version=__version__,
            signing_enabled=app.state.verifier is not None,
            provider_ranges=len(app.state.provider_ranges),
        )

    return app


app = create_app()


def run() -> None:
    import uvicorn
    uvicorn.run(
        "albatross.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug
    )


if __name__ == "__main__":
    run()
