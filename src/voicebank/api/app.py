"""
Main FastAPI application for the voicebank backend
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .. import __version__
from ..config import settings
from ..database import WalletDatabase
from ..logging import configure_logging, get_logger
from ..middleware import LoggingContextMiddleware
from ..storage.config import StorageSettings
from ..storage.factory import StorageFactory
from ..storage.validator import TOSConfigValidator

configure_logging(debug=settings.debug)
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    logger.info("Starting voicebank API...")
    try:
        provider = app.state.storage_factory.get_storage_provider()
        logger.info("Storage provider ready", provider=provider.name, bucket=provider.bucket)
    except Exception as e:
        # Storage stays unavailable until the configuration is fixed and reset
        logger.error("Storage provider could not be created", error=str(e))

    yield

    logger.info("Shutting down voicebank API...")


def _default_wallet_database() -> WalletDatabase | None:
    env = StorageSettings()
    if not env.supabase_url or not env.supabase_anon_key:
        logger.warning("SUPABASE_URL / SUPABASE_ANON_KEY not set; wallet endpoints disabled")
        return None
    return WalletDatabase(url=env.supabase_url, key=env.supabase_anon_key)


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Render every HTTP error as a ``{success, message}`` payload."""
    _ = request
    if isinstance(exc.detail, dict):
        content = exc.detail
    else:
        content = {"success": False, "message": str(exc.detail)}
    return JSONResponse(status_code=exc.status_code, content=content, headers=exc.headers)


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Malformed input is a caller error: 400 with the first validation message."""
    errors = exc.errors()
    first = errors[0] if errors else {}
    location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = first.get("msg", "Invalid request")
    logger.info("Request validation failed", path=request.url.path, errors=len(errors))
    return JSONResponse(
        status_code=400,
        content={
            "success": False,
            "message": "Invalid request",
            "error": f"{location}: {message}" if location else message,
        },
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error("Unhandled error", path=request.url.path, error=str(exc))
    return JSONResponse(
        status_code=500,
        content={"success": False, "message": "Internal server error", "error": str(exc)},
    )


def create_app(
    storage_factory: StorageFactory | None = None,
    validator: TOSConfigValidator | None = None,
    wallet_database: WalletDatabase | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    This is the composition root: the storage factory, validator and wallet
    database are created here (or injected) and shared through ``app.state``.
    """
    app = FastAPI(
        title="voicebank API",
        description="Wallet-keyed voice data collection",
        version=__version__,
        lifespan=lifespan,
        debug=settings.debug,
    )

    app.state.storage_factory = storage_factory or StorageFactory()
    app.state.validator = validator or TOSConfigValidator()
    app.state.wallet_database = (
        wallet_database if wallet_database is not None else _default_wallet_database()
    )

    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    app.add_middleware(LoggingContextMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/health")
    async def health_check():  # pyright: ignore [reportUnusedFunction]
        """Health check endpoint."""
        return {"status": "healthy", "version": __version__}

    from .endpoints import storage, wallet

    app.include_router(storage.router, prefix="/api/storage", tags=["Storage"])
    app.include_router(wallet.router, prefix="/api/wallet", tags=["Wallet"])

    return app


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "voicebank.api.app:create_app",
        factory=True,
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.api_reload,
        log_level=settings.log_level.lower(),
    )
