"""
FastAPI Application Entry Point - Jewelry CRM
"""
import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_fastapi_instrumentator import Instrumentator
from sqlalchemy.exc import OperationalError, SQLAlchemyError

from jewelry_crm import __version__
from jewelry_crm.config import settings
from jewelry_crm.database import init_db
from jewelry_crm.exceptions import ServiceError, StorageError
from jewelry_crm.api import orders, products, health

logger = logging.getLogger(__name__)


def configure_logging() -> None:
    logging.basicConfig(
        level=settings.LOG_LEVEL.upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s"
    )


configure_logging()

# Create FastAPI application
app = FastAPI(
    title="Jewelry CRM",
    description="Storefront orders, inventory and catalog service",
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc"
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(health.router)
app.include_router(orders.router)
app.include_router(products.router)

# Prometheus metrics
Instrumentator().instrument(app).expose(app)


@app.exception_handler(ServiceError)
async def service_error_handler(request: Request, exc: ServiceError):
    """Render service errors as {detail, kind}"""
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "kind": exc.kind}
    )


@app.exception_handler(SQLAlchemyError)
async def database_error_handler(request: Request, exc: SQLAlchemyError):
    """Database errors raised outside a unit of work (reads) render as storage errors"""
    storage_error = StorageError(
        f"Database operation failed: {exc.__class__.__name__}",
        transient=isinstance(exc, OperationalError)
    )
    return await service_error_handler(request, storage_error)


@app.exception_handler(RequestValidationError)
async def request_validation_error_handler(request: Request, exc: RequestValidationError):
    """Malformed request bodies and parameters are client errors (400)"""
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            "detail": "Invalid request",
            "kind": "validation_error",
            "errors": [
                {"loc": list(err.get("loc", [])), "msg": err.get("msg")}
                for err in exc.errors()
            ]
        }
    )


@app.on_event("startup")
def startup_event():
    """Initialize database and verify order statuses on startup"""
    print(f"Starting {settings.SERVICE_NAME}...")
    init_db()
    print(f"✓ Database initialized, order statuses verified")
    print(f"✓ Events enabled: {settings.EVENTS_ENABLED} ({settings.RABBITMQ_URL})")
    print(f"✓ Restock on cancel: {settings.RESTOCK_ON_CANCEL}")
    print(f"✓ {settings.SERVICE_NAME} is running on port {settings.SERVICE_PORT}")


@app.on_event("shutdown")
def shutdown_event():
    """Cleanup on shutdown"""
    print(f"Shutting down {settings.SERVICE_NAME}...")
