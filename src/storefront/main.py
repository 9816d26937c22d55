from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from storefront.config import Settings, settings as default_settings
from storefront.database import build_engine, build_session_factory, init_models
from storefront.endpoints.store import StoreEndpoints
from storefront.log_config import configure_logging
from storefront.middleware.errors import register_exception_handlers
from storefront.pipeline.builder import build_pipeline
from storefront.pipeline.diagnostics import error_page_stage, request_logging_stage
from storefront.pipeline.executor import Pipeline, Stage
from storefront.pipeline.locale import LocalePolicy, LocaleResolver, locale_stage
from storefront.pipeline.request_id import RequestIdCounter, request_id_stage
from storefront.routes.gateway import router as gateway_router
from storefront.routes.health import router as health_router
from storefront.services.seed import seed_store

log = structlog.get_logger()


def build_app_pipeline(
    settings: Settings,
    session_factory: async_sessionmaker[AsyncSession],
    counter: RequestIdCounter,
) -> Pipeline:
    resolver = LocaleResolver(
        default=settings.default_locale,
        supported=settings.supported_locales,
        policy=LocalePolicy(settings.locale_policy),
    )
    return build_pipeline(
        [
            Stage("request_logging", request_logging_stage()),
            Stage("request_id", request_id_stage(counter)),
            Stage("locale", locale_stage(resolver, settings.culture_query_key)),
        ],
        StoreEndpoints(session_factory).router(),
        error_handler=error_page_stage(debug=settings.is_development),
    )


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or default_settings
    configure_logging(settings.log_level)

    engine = build_engine(settings)
    session_factory = build_session_factory(engine)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        log.info("starting", env=settings.app_env)
        await init_models(engine)
        if settings.seed_on_startup:
            async with session_factory() as session:
                await seed_store(session)
        yield
        await engine.dispose()
        log.info("shutdown")

    app = FastAPI(title="Storefront", version="0.1.0", lifespan=lifespan)
    app.state.settings = settings
    app.state.engine = engine
    app.state.session_factory = session_factory
    app.state.pipeline = build_app_pipeline(settings, session_factory, RequestIdCounter())

    register_exception_handlers(app, debug=settings.is_development)

    app.include_router(health_router)
    # Catch-all; must stay last.
    app.include_router(gateway_router)
    return app


app = create_app()
