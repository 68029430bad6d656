"""Main FastAPI application."""
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import structlog

from emailflow import __version__
from emailflow.core.config import settings
from emailflow.core.exceptions import IntegrationUnavailableError, InvalidEmailError, VariantsExistError
from emailflow.api.router import api_router
from emailflow.db.base import engine, Base
import emailflow.db.models  # noqa: F401  register tables on Base.metadata

structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting application", app_name=settings.APP_NAME, env=settings.APP_ENV)
    Base.metadata.create_all(bind=engine)
    logger.info("Database tables created/verified")

    if settings.SCHEDULER_ENABLED:
        from emailflow.services.scheduler import init_scheduler
        init_scheduler()

    yield

    from emailflow.services.scheduler import shutdown_scheduler
    shutdown_scheduler()
    logger.info("Shutting down application")


app = FastAPI(
    title=settings.APP_NAME,
    description="Email marketing backend: priority sends, delivery reconciliation and analytics",
    version=__version__,
    docs_url="/api/docs",
    redoc_url="/api/redoc",
    openapi_url="/api/openapi.json",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_router, prefix=settings.API_V1_PREFIX)


@app.get("/")
async def root():
    return {"app": settings.APP_NAME, "version": __version__, "docs": "/api/docs"}


@app.get("/health")
async def health_check():
    return {"status": "healthy", "env": settings.APP_ENV}


@app.exception_handler(IntegrationUnavailableError)
async def integration_unavailable_handler(request: Request, exc: IntegrationUnavailableError):
    logger.warning("Integration unavailable", provider=exc.provider, reason=exc.reason, path=request.url.path)
    return JSONResponse(status_code=400, content={"detail": str(exc), "provider": exc.provider})


@app.exception_handler(InvalidEmailError)
async def invalid_email_handler(request: Request, exc: InvalidEmailError):
    status_code = 409 if isinstance(exc, VariantsExistError) else 400
    return JSONResponse(status_code=status_code, content={"detail": str(exc)})


@app.exception_handler(Exception)
async def global_exception_handler(request, exc):
    logger.error("Unhandled exception", error=str(exc), path=request.url.path)
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
