from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from prometheus_fastapi_instrumentator import Instrumentator
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
import structlog

from .config import Settings, get_settings
from .errors import RelayError, relay_error_handler
from .logging import setup_logging, RequestIdMiddleware
from .routes.files import router as files_router
from .routes.payments import router as payments_router
from .routes.system import router as system_router
from .routes.transfers import router as transfers_router
from .services.archive import ArchiveStreamer
from .services.metadata import TransferMetadataStore
from .storage import create_storage
from .storage.provider import StorageProvider


def create_app(settings: Optional[Settings] = None, storage: Optional[StorageProvider] = None) -> FastAPI:
    setup_logging()
    settings = settings or get_settings()
    settings.payment_secret_bytes  # fail fast when PAYMENT_SECRET is missing outside dev
    storage = storage or create_storage(settings)
    app = FastAPI(title=settings.app_name)

    # Process-wide components; configuration is read once here and never again per request
    app.state.settings = settings
    app.state.storage = storage
    app.state.metadata = TransferMetadataStore(
        storage,
        ttl_seconds=settings.transfer_ttl_seconds,
        cache_size=settings.metadata_cache_size,
        page_size=settings.list_page_size,
    )
    app.state.archiver = ArchiveStreamer(
        storage,
        compress_level=settings.zip_compress_level,
        page_size=settings.list_page_size,
    )

    # Middlewares
    app.add_middleware(RequestIdMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.allowed_origins),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["Content-Disposition", "X-Request-ID"],
    )

    limiter = Limiter(key_func=get_remote_address, default_limits=[settings.rate_limit])
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    app.add_middleware(SlowAPIMiddleware)

    app.add_exception_handler(RelayError, relay_error_handler)

    # Routers
    app.include_router(system_router)
    app.include_router(transfers_router)
    app.include_router(payments_router)
    app.include_router(files_router)

    # Metrics
    if settings.metrics_enabled:
        Instrumentator().instrument(app).expose(app)

    @app.on_event("startup")
    async def _startup():
        structlog.get_logger(__name__).info(
            "startup",
            app=settings.app_name,
            environment=settings.environment,
            storage=storage.name,
            bypass_plans=list(settings.bypass_plans),
        )

    @app.on_event("shutdown")
    async def _shutdown():
        await storage.close()

    return app


app = create_app()
