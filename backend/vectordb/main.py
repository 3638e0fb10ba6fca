"""
VectorDB API - FastAPI Application Entry Point

Multi-tenant document store and semantic search over a managed
PostgreSQL platform.
"""
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import logging

from vectordb.core.config import settings
from vectordb.middleware.tenant import TenantMiddleware
from vectordb.api.routes import router as api_router, public_router
from vectordb.db.platform import PlatformClient, PlatformError, create_platform_engine
from vectordb.db.schema import provision_platform_schema

import vectordb.db.base  # noqa: F401

# Configure logging
logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifecycle management."""
    logger.info("Starting VectorDB API...")
    logger.info(f"Debug mode: {settings.DEBUG}")
    logger.info(f"Root domain: {settings.ROOT_DOMAIN}")

    engine = create_platform_engine()
    app.state.platform = PlatformClient(engine)

    if settings.PROVISION_SCHEMA:
        await provision_platform_schema(engine)

    try:
        yield
    finally:
        logger.info("Shutting down VectorDB API...")
        await app.state.platform.close()


# Create FastAPI application
app = FastAPI(
    title="VectorDB API",
    description="Multi-tenant document storage and semantic search",
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_tags=[
        {"name": "documents", "description": "Document management and semantic search"},
        {"name": "categories", "description": "Document categories"},
        {"name": "collections", "description": "Document collections"},
        {"name": "shared-views", "description": "Filtered views shared outside the organization"},
        {"name": "api-keys", "description": "API key management"},
        {"name": "usage", "description": "Plan usage reporting"},
        {"name": "integrations", "description": "Chatbot integrations"},
        {"name": "public", "description": "Public shared views"},
    ],
)

# Add CORS middleware - must be added before other middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["X-Organization-Id", "X-Organization-Slug"],
)

# Resolve the organization from subdomain or custom domain
app.add_middleware(TenantMiddleware, root_domain=settings.ROOT_DOMAIN)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Malformed requests are client errors: 400, not 422."""
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": jsonable_encoder(exc.errors())},
    )


@app.exception_handler(PlatformError)
async def platform_exception_handler(request: Request, exc: PlatformError):
    logger.error(f"{request.method} {request.url.path}: {exc}", exc_info=exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal server error"},
    )


# Include API routes
app.include_router(api_router, prefix=settings.API_PREFIX)
app.include_router(public_router)


# Health check endpoints (excluded from tenant middleware)

@app.get("/health")
async def health_check():
    """Basic health check endpoint."""
    return {
        "status": "healthy",
        "service": "vectordb-api",
        "version": "1.0.0",
    }


@app.get("/healthz")
async def healthz():
    """Kubernetes-style health check."""
    return {"status": "ok"}


@app.get("/ready")
async def readiness_check(request: Request):
    """
    Readiness check for Kubernetes.

    Verifies connectivity to the database platform.
    """
    checks = {}
    all_healthy = True

    try:
        await request.app.state.platform.ping()
        checks["database"] = "ok"
    except PlatformError as e:
        checks["database"] = f"error: {str(e)[:100]}"
        all_healthy = False
        logger.error(f"Database health check failed: {e}")

    return JSONResponse(
        status_code=200 if all_healthy else 503,
        content={
            "status": "ready" if all_healthy else "not_ready",
            "checks": checks,
        }
    )


@app.get("/")
async def root():
    """Root endpoint with API information."""
    return {
        "service": "VectorDB API",
        "version": "1.0.0",
        "docs": "/docs" if settings.DEBUG else "disabled",
        "health": "/health",
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "vectordb.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG,
    )
