"""Main FastAPI application."""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse

from .config import settings
from .database import init_db, close_db
from .routers import websites_router, users_router
from .services.scheduler import scheduler_service
from .stores import StoreUnavailable

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan - startup and shutdown."""
    logger.info("Starting PingWatch")

    await init_db()
    logger.info("Database initialized")

    scheduler_service.start()

    yield

    await scheduler_service.stop()
    await close_db()
    logger.info("Shutdown complete")


async def store_unavailable_handler(request: Request, exc: StoreUnavailable):
    logger.error(f"Store unavailable during {request.method} {request.url.path}: {exc}")
    return JSONResponse(status_code=503, content={"detail": "Storage temporarily unavailable"})


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="PingWatch",
        description="Website uptime monitoring - periodic HTTP probes and uptime statistics",
        version="1.0.0",
        lifespan=lifespan,
    )

    # CORS middleware for frontend
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # In production, restrict to your domain
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(StoreUnavailable, store_unavailable_handler)

    app.include_router(users_router)
    app.include_router(websites_router)

    @app.get("/ping", response_class=PlainTextResponse)
    async def ping():
        return "pong"

    @app.get("/health")
    async def health_check():
        return {
            "status": "healthy",
            "scheduler_running": scheduler_service.running,
        }

    return app


# Create the application instance
app = create_app()


def main():
    """Run the API and scheduler under uvicorn."""
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=settings.web_port)


if __name__ == "__main__":
    main()
