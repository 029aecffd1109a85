from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
import logging

from core.config import settings
from routers import invoice_router

# Configure logging
logging.basicConfig(level=settings.LOG_LEVEL)

def create_application() -> FastAPI:
    """
    Creates and configures the FastAPI application instance.
    """
    app = FastAPI(title=settings.PROJECT_NAME)

    # 1. CORS Middleware (single front-end origin)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.ALLOWED_ORIGIN],
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["X-API-KEY", "Origin"],
        expose_headers=[invoice_router.RUN_ID_HEADER],
    )

    # 2. Include Routers
    app.include_router(invoice_router.router)

    # 3. Root & Health Check Endpoint
    @app.get("/")
    async def root():
        """Health check endpoint"""
        return {
            "message": "Invoice Relay API is running",
            "status": "healthy",
            "processor_configured": bool(settings.GOOGLE_DOCUMENT_PROCESSOR_ID),
        }

    return app
