from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from civreg_reports import __version__
from civreg_reports.api.export_routes import router as export_router
from civreg_reports.core.config import settings
from civreg_reports.core.logging import setup_logger

# Initialize settings and logger
logger = setup_logger(settings.LOG_LEVEL)

app = FastAPI(title=settings.APP_NAME, version=__version__)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET"],
    allow_headers=["*"],
)

# Include routers
app.include_router(export_router)  # Death report endpoints (already has /reports/death prefix)


@app.on_event("startup")
async def startup_event():
    """Log effective configuration on startup."""
    logger.info(f"{settings.APP_NAME} started in {settings.ENV} environment")
    logger.info(f"registry_api={settings.REGISTRY_API_BASE_URL} export_dir={settings.EXPORT_DIR}")


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "ok",
        "version": __version__,
        "registry_api": settings.REGISTRY_API_BASE_URL,
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("civreg_reports.main:app", host=settings.HOST, port=settings.PORT)
