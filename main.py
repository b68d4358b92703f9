"""
FastAPI application entry point for the drawing translation service.
"""

# Load .env first so every service sees the environment
from dotenv import load_dotenv
load_dotenv()

import logging
import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api.translate import router as translate_router
from app.config import get_settings
from app.logging_config import setup_logging


def create_app() -> FastAPI:
    """Create and configure FastAPI application."""

    settings = get_settings()
    setup_logging(log_dir=settings.LOG_DIR, log_level=settings.LOG_LEVEL)

    app = FastAPI(
        title=settings.PROJECT_NAME,
        description=(
            "API service for translating text blocks in technical drawings. "
            "Dimensions, tolerances and reference codes are left untouched."
        ),
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
    )

    # CORS middleware
    cors_origins = [o.strip() for o in settings.BACKEND_CORS_ORIGINS.split(",") if o.strip()]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins if cors_origins else ["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Include routers
    app.include_router(translate_router)

    @app.on_event("startup")
    async def startup_event():
        """Warm up shared services."""
        logger = logging.getLogger(__name__)

        try:
            logger.info("Loading fonts...")
            from app.services.translate_service import get_translate_service
            get_translate_service()._get_fonts()
            logger.info("Fonts ready.")
        except Exception as e:
            logger.warning(f"Font pre-loading failed (will retry on first request): {e}")

        if not settings.GEMINI_API_KEY:
            logger.warning("GEMINI_API_KEY missing: /api/v1/translate will fail, /api/v1/reconstruct still works")

    return app


# Application instance
app = create_app()


def run():
    """Run the application with uvicorn."""
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
    )


if __name__ == "__main__":
    run()
