# FastAPI entrypoint with registry routes and middleware

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger
import faulthandler
import os
import dotenv

from auth.security_middleware import SecurityHeadersMiddleware, AuditLoggingMiddleware
from registry.config import get_settings
from registry.database import DatabaseManager
from registry.lookup_routes import router as lookup_router
from registry.registry_routes import router as registry_router

dotenv.load_dotenv()
faulthandler.enable()

# Initialize FastAPI app
app = FastAPI(
    title="Shell Registry API",
    description="Tenant-scoped shell registry and discovery by specificAssetId",
    version="1.0.0"
)

# ==================== SECURITY MIDDLEWARE STACK ====================

app.add_middleware(AuditLoggingMiddleware)
app.add_middleware(SecurityHeadersMiddleware)

# ==================== CORS MIDDLEWARE ====================

CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "").split(",") if o.strip()]

if CORS_ORIGINS:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=[
            "Content-Type",
            "Authorization",
            "Accept",
            get_settings().tenancy.tenant_header,
        ],
        max_age=86400,
    )

# ==================== ROUTERS ====================

app.include_router(registry_router)
app.include_router(lookup_router)


@app.get("/")
async def root():
    """Root endpoint - returns simple welcome message."""
    return {
        "message": "Shell Registry",
        "status": "running",
        "docs_url": "/docs",
        "api_base": "/api/v3"
    }


@app.get("/health")
async def health_check():
    """Liveness plus database connectivity, no authentication required."""
    database_ok = DatabaseManager.health_check()
    return {
        "status": "healthy" if database_ok else "degraded",
        "database": "ok" if database_ok else "unavailable",
    }


@app.on_event("startup")
async def startup_event():
    """Initialize on startup."""
    settings = get_settings()
    logger.info(
        f"Tenant header: {settings.tenancy.tenant_header} | "
        f"public types: {sorted(settings.policy.allowed_types)}"
    )

    try:
        logger.info("Initializing registry database...")
        DatabaseManager.initialize()
        logger.info("✓ Registry database initialized and tables created")
    except Exception as e:
        logger.error(f"Registry database init failed: {e}")
        raise


@app.on_event("shutdown")
async def shutdown_event():
    DatabaseManager.dispose()
    logger.info("Registry database connections closed")


def main():
    import uvicorn

    uvicorn.run(
        "apps.api.main:app",
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "8000")),
    )


if __name__ == "__main__":
    main()
