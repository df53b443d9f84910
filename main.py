"""
Territory Risk Registry FastAPI Application

Main entry point for the REST API: codelists, territories, statistics,
exports and the notification feed.
"""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from datetime import datetime
import logging

from config.settings import get_settings
from database.connection import init_db, is_initialized, get_session_context
from registry_engine.codelists import CodelistStore
from registry_engine.errors import RegistryError
from registry_engine.notifications import NotificationFeed
from routes.codelists import register_codelist_routes
from routes.exports import register_export_routes
from routes.notifications import register_notification_routes
from routes.statistics import register_statistics_routes
from routes.territories import register_territory_routes

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

# Initialize settings
settings = get_settings()

# Create FastAPI app
app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="Hazard assessments of municipalities: risk classification, statistics and exports",
    docs_url="/docs",
    redoc_url="/redoc"
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ============== Global Instances ==============

codelist_store = CodelistStore(get_session_context)
notification_feed = NotificationFeed(get_session_context)


# ============== Startup/Shutdown ==============

@app.on_event("startup")
async def startup_event():
    logger.info(f"Starting {settings.app_name} v{settings.app_version}...")
    if not is_initialized():
        init_db()
    logger.info("Database initialized")
    try:
        codelist_store.load()
    except RegistryError as e:
        logger.warning(f"Codelists not loaded at startup: {e}")


@app.on_event("shutdown")
async def shutdown_event():
    logger.info(f"Shutting down {settings.app_name}...")


# ============== Health Check ==============

@app.get("/health")
async def health_check():
    return {
        "status": "healthy",
        "timestamp": datetime.utcnow().isoformat(),
        "version": settings.app_version,
        "codelist_version": codelist_store.version,
    }


# ============== Routes ==============

register_codelist_routes(app, codelist_store)
register_territory_routes(app, get_session_context, codelist_store, notification_feed)
register_statistics_routes(app, get_session_context, codelist_store)
register_export_routes(app, get_session_context, codelist_store)
register_notification_routes(app, notification_feed)


# ============== Error Handler ==============

@app.exception_handler(Exception)
async def global_exception_handler(request, exc):
    logger.error(f"Unhandled exception: {exc}")
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error"}
    )


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
