from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Optional
import logging
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from talesy.config import settings
from talesy.db.session import Database
from talesy.exceptions import TalesyError, Unauthorized
from talesy.api import comments, cron, notifications, posts, tags, users
from talesy.utils.rate_limit import limiter

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for startup and shutdown events"""
    database: Database = app.state.database

    # Startup
    logger.info("Starting up...")

    try:
        await database.create_all()
    except Exception as e:
        logger.error(f"Error creating database tables: {e}")

    if await database.ping():
        logger.info("Database connection successful")

    yield

    # Shutdown
    logger.info("Shutting down...")
    await database.dispose()

async def talesy_error_handler(request: Request, exc: TalesyError) -> JSONResponse:
    headers = {"WWW-Authenticate": "Bearer"} if isinstance(exc, Unauthorized) else None
    if exc.status_code >= 500:
        logger.error(f"{exc.kind} on {request.method} {request.url.path}: {exc.detail}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail, "error": exc.kind},
        headers=headers
    )

def create_app(database: Optional[Database] = None) -> FastAPI:
    """Build the API around a store handle (one from settings by default)"""
    app = FastAPI(
        title=settings.PROJECT_NAME,
        version=settings.VERSION,
        description="Talesy: stories, comments, likes, follows and notifications",
        docs_url="/api/docs",
        redoc_url="/api/redoc",
        openapi_url="/api/openapi.json",
        lifespan=lifespan
    )
    app.state.database = database or Database.from_settings()

    # Add rate limiter
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    app.add_exception_handler(TalesyError, talesy_error_handler)

    # Add CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Include routers
    prefix = settings.API_V1_PREFIX
    app.include_router(users.router, prefix=f"{prefix}/users", tags=["Users"])
    app.include_router(posts.router, prefix=f"{prefix}/posts", tags=["Posts"])
    app.include_router(comments.router, prefix=prefix, tags=["Comments"])
    app.include_router(tags.router, prefix=f"{prefix}/tags", tags=["Tags"])
    app.include_router(notifications.router, prefix=f"{prefix}/notifications", tags=["Notifications"])
    app.include_router(cron.router, prefix=f"{prefix}/cron", tags=["Cron"])

    @app.get("/")
    async def root():
        """Root endpoint with API information"""
        return {
            "message": "Welcome to the Talesy API",
            "version": settings.VERSION,
            "docs": "/api/docs",
            "redoc": "/api/redoc"
        }

    @app.get("/health")
    async def health_check(request: Request):
        """Health check endpoint"""
        database_ok = await request.app.state.database.ping()
        return {
            "status": "healthy" if database_ok else "degraded",
            "database": "connected" if database_ok else "unavailable",
            "timestamp": datetime.now().isoformat()
        }

    return app

app = create_app()

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "talesy.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
        log_level="info"
    )
