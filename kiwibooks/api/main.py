from fastapi import FastAPI
from starlette.middleware.cors import CORSMiddleware

from kiwibooks.api.routes_health import router as health_router
from kiwibooks.api.routes_tax import router as tax_router
from kiwibooks.core.config import settings
from kiwibooks.core.errors import register_error_handlers
from kiwibooks.core.logger import init_logging


def create_app() -> FastAPI:
    init_logging()

    # Interactive docs are disabled in production
    is_production = settings.ENV.lower() == "prod"
    app = FastAPI(
        title=settings.APP_NAME,
        debug=False,
        docs_url=None if is_production else "/docs",
        redoc_url=None if is_production else "/redoc",
        openapi_url=None if is_production else "/openapi.json",
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ALLOW_ORIGINS,
        allow_credentials=settings.CORS_ALLOW_CREDENTIALS,
        allow_methods=settings.CORS_ALLOW_METHODS,
        allow_headers=settings.CORS_ALLOW_HEADERS,
    )
    register_error_handlers(app)
    app.include_router(tax_router)
    app.include_router(health_router)
    return app


app = create_app()
