import logging
from contextlib import asynccontextmanager
from datetime import timedelta
from typing import Optional

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from .core.config import get_settings, Settings
from .core.logging import init_logging, request_context_middleware
from .core import errors
from .db.dal import Database
from .db.migrate import apply_migrations
from .db.seed import seed_defaults
from .models import CurrencyKind
from .routers import accounts, categories, currencies, health, rates, transactions
from .services.app_settings import UserPreferences
from .services.ledger import LedgerEngine
from .services.rates.base import JsonFetcher, RateFetchError
from .services.rates.cache_service import RateCache
from .services.rates.conversion import CurrencyConverter
from .services.rates.providers import build_rate_provider
from .services.http_client import fetch_json

logger = logging.getLogger("pocketledger")


def build_converter(
    settings: Settings, db: Database, fetcher: JsonFetcher = fetch_json
) -> CurrencyConverter:
    def kind_lookup(code: str) -> Optional[CurrencyKind]:
        currency = db.get_currency(code)
        return currency.kind if currency else None

    cache = RateCache(db, ttl=timedelta(seconds=settings.rates_cache_ttl_seconds))
    return CurrencyConverter(
        cache,
        build_rate_provider(settings, fetcher=fetcher),
        kind_lookup=kind_lookup,
        pivot=settings.pivot_currency,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings: Settings = app.state.settings
    if settings.refresh_rates_on_startup:
        try:
            await app.state.converter.refresh_rates_if_needed(app.state.db.list_currencies())
        except RateFetchError:
            # Offline start keeps working on the cached table.
            logger.warning("startup rate refresh failed; using cached rates")
    yield


def create_app(
    settings_override: Settings | None = None, rate_fetcher: JsonFetcher | None = None
) -> FastAPI:
    """Application factory.

    settings_override: pass an already constructed Settings instance for tests
    to isolate environment (e.g., temp DB). Falls back to cached get_settings().
    rate_fetcher: replaces the HTTP JSON fetcher used by the rate sources.
    """
    settings = settings_override or get_settings()
    # Initialize logging early
    init_logging(debug=settings.debug)

    # Ensure database schema (idempotent) so test-injected fresh DBs have tables
    try:
        apply_migrations(settings.db_path)  # type: ignore[arg-type]
    except Exception:
        logger.exception("failed to apply migrations on startup")
        raise

    db = Database(settings.db_path)  # type: ignore[arg-type]
    default_code = seed_defaults(db, settings.default_currency_code)
    preferences = UserPreferences(db, default_currency_code=default_code)

    app = FastAPI(
        title=settings.app_name,
        debug=settings.debug,
        version=settings.version,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.db = db
    app.state.preferences = preferences
    app.state.engine = LedgerEngine(db, preferences)
    app.state.converter = build_converter(settings, db, rate_fetcher or fetch_json)

    # Middleware (request id / structured logging)
    app.middleware("http")(request_context_middleware)

    # Error handlers
    app.add_exception_handler(StarletteHTTPException, errors.http_error_handler)
    app.add_exception_handler(RequestValidationError, errors.validation_error_handler)
    app.add_exception_handler(errors.LedgerError, errors.ledger_error_handler)
    app.add_exception_handler(RateFetchError, errors.rate_fetch_error_handler)
    app.add_exception_handler(Exception, errors.server_error_handler)

    # Routers
    app.include_router(health.router)
    app.include_router(currencies.router)
    app.include_router(categories.router)
    app.include_router(accounts.router)
    app.include_router(transactions.router)
    app.include_router(rates.router)

    @app.get("/")
    async def root():
        return {"message": "PocketLedger API", "version": settings.version}

    return app
