import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .config import Settings, get_settings
from .database import select_backend
from .routers import reports
from .services.store import ReportStore

logger = logging.getLogger(__name__)


def create_app(settings: Optional[Settings] = None, store: Optional[ReportStore] = None) -> FastAPI:
    """Build the API. The store is selected once here and injected into handlers."""
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if app.state.store is None:
            app.state.store = ReportStore(select_backend(settings))
        # A failed init leaves the store degraded, requests then answer 500
        app.state.store.init()
        yield
        app.state.store.close()

    app = FastAPI(title="Truck Inspection API", version="1.0.0", lifespan=lifespan)
    app.state.settings = settings
    app.state.store = store

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(reports.router)

    @app.get("/")
    def root():
        return {"message": "Truck Inspection API Ready", "backend": app.state.store.kind if app.state.store else None}

    return app


def configure_logging(settings: Settings):
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def run():
    import uvicorn

    settings = get_settings()
    configure_logging(settings)
    logger.info("Server running on http://localhost:%s", settings.port)
    uvicorn.run(create_app(settings), host="0.0.0.0", port=settings.port)
