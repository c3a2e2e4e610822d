import sentry_sdk
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from prometheus_fastapi_instrumentator import Instrumentator
from sentry_sdk.integrations.asgi import SentryAsgiMiddleware

from app.api.v1 import pdf_jobs
from app.core.config import settings
from app.db.base import Base
from app.db.session import engine
from app.utils.error_handler import ReportEngineError, report_engine_exception_handler
from app.utils.logger import configure_logging, get_logger

# Configure logging before anything else
configure_logging()
logger = get_logger(__name__)

app = FastAPI(
    title="SEO Audit Report Engine",
    description=(
        "Composes paginated SEO audit reports and runs asynchronous AI "
        "enhancement jobs"
    ),
    version="1.0.0",
)

# Initialize Sentry if DSN is provided
if settings.SENTRY_DSN:
    sentry_sdk.init(
        dsn=settings.SENTRY_DSN,
        environment=settings.APP_ENV,
        traces_sample_rate=0.1,
    )
    app.add_middleware(SentryAsgiMiddleware)
    logger.info(
        "Sentry initialized with SentryAsgiMiddleware", environment=settings.APP_ENV
    )
else:
    logger.info("Sentry not configured (SENTRY_DSN not set)")

allowed_origins = settings.CORS_ALLOW_ORIGINS or ["http://localhost:3000"]
app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["Content-Disposition"],
)

app.add_exception_handler(ReportEngineError, report_engine_exception_handler)

app.include_router(pdf_jobs.router, prefix="/api/v1")

# Initialize Prometheus metrics
instrumentator = Instrumentator(
    should_group_status_codes=False,
    excluded_handlers=["/metrics"],  # Don't monitor the metrics endpoint itself
)
instrumentator.instrument(app).expose(app)


@app.on_event("startup")
async def startup_event():
    """Application startup event"""
    Base.metadata.create_all(bind=engine)
    logger.info(
        "Report engine starting up",
        app_name=settings.APP_NAME,
        environment=settings.APP_ENV,
        sentry_enabled=bool(settings.SENTRY_DSN),
    )


@app.get("/health")
async def health_check() -> dict:
    """Health check endpoint"""
    return {"status": "ok"}
