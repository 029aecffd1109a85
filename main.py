import logging
import os
import uvicorn
from contextlib import asynccontextmanager
from fastapi import FastAPI
from core.init_app import create_application
from core.config import settings

logger = logging.getLogger(__name__)

# 1. Define Lifespan (Startup/Shutdown logic)
@asynccontextmanager
async def lifespan(app: FastAPI):
    # --- STARTUP ---
    # Base staging directories; each run adds its own subdirectory.
    for directory in (settings.UPLOADS_DIR, settings.PROCESSED_DIR):
        os.makedirs(directory, exist_ok=True)
    logger.info("Staging directories ready: %s, %s", settings.UPLOADS_DIR, settings.PROCESSED_DIR)

    yield # Application runs here

    # --- SHUTDOWN ---
    logger.info("Shutting down %s", settings.PROJECT_NAME)

# 2. Initialize App
app = create_application()
app.router.lifespan_context = lifespan

if __name__ == "__main__":
    logger.info("Starting %s...", settings.PROJECT_NAME)
    uvicorn.run(app, host="0.0.0.0", port=settings.PORT)
