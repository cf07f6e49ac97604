from typing import Optional
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager

from .config import Settings, get_settings
from .database import MemStorage, seed_sample_data
from .errors import register_exception_handlers
from .routes.analysis_routes import router as analysis_router
from .routes.breach_routes import router as breach_router
from .routes.monitoring_routes import router as monitoring_router
from .routes.portfolio_routes import router as portfolio_router
from .routes.user_routes import router as user_router
from .services.analysis import AnalysisProvider, build_analysis_provider

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    store = app.state.store
    logger.info(f"{app.title} starting with {len(store.users)} user(s) and {len(store.portfolios)} portfolio(s)")
    yield
    # Shutdown
    logger.info(f"{app.title} shutting down")


def create_app(
    store: Optional[MemStorage] = None,
    settings: Optional[Settings] = None,
    analysis_provider: Optional[AnalysisProvider] = None,
) -> FastAPI:
    """Build the API around an explicitly supplied store.

    Without a store a fresh one is created and, unless disabled in settings,
    seeded with the demo advisor's data.
    """
    settings = settings or get_settings()
    if store is None:
        store = MemStorage()
        if settings.seed_sample_data:
            seed_sample_data(store)

    app = FastAPI(title=settings.app_name, version=settings.version, lifespan=lifespan)
    app.state.store = store
    app.state.settings = settings
    app.state.analysis_provider = analysis_provider or build_analysis_provider(settings)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    register_exception_handlers(app)

    app.include_router(user_router, prefix="/api", tags=["user"])
    app.include_router(portfolio_router, prefix="/api", tags=["portfolios"])
    app.include_router(monitoring_router, prefix="/api", tags=["monitoring"])
    app.include_router(breach_router, prefix="/api", tags=["breaches"])
    app.include_router(analysis_router, prefix="/api", tags=["analysis"])

    @app.get("/health")
    def health():
        return {"status": "ok"}

    return app


def run():
    import uvicorn

    logging.basicConfig(level=logging.INFO)
    settings = get_settings()
    uvicorn.run(create_app(settings=settings), host=settings.host, port=settings.port)


if __name__ == "__main__":
    run()
