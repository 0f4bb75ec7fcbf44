import logging
import os
from contextlib import asynccontextmanager
from typing import Optional

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from database import Database
from graphql_api import create_graphql_router


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(format="%(message)s", level=getattr(logging, level.upper(), logging.INFO))
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


configure_logging(os.getenv("LOG_LEVEL", "INFO"))
logger = structlog.get_logger(__name__)


def create_app(store: Optional[Database] = None) -> FastAPI:
    """Build the API. Without ``store`` one is created from the environment on startup and closed on shutdown."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owned = app.state.store is None
        if owned:
            app.state.store = Database.from_env()
        app.state.store.ensure_indexes()
        logger.info("Condominium Manager API started", database=app.state.store.name)
        yield
        if owned:
            app.state.store.close()
            app.state.store = None
        logger.info("Condominium Manager API stopped")

    app = FastAPI(title="Condominium Manager API", version="1.0.0", lifespan=lifespan)
    app.state.store = store

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/")
    def read_root():
        return {"message": "Condominium Manager API running", "graphql": "/graphql"}

    @app.get("/health")
    def health():
        response = {
            "status": "OK",
            "database": "Not Available",
            "database_name": None,
            "collections": [],
        }
        store = app.state.store
        if store is not None:
            response["database_name"] = store.name
            try:
                response["collections"] = store.list_collections()[:10]
                response["database"] = "Connected"
            except Exception as e:
                logger.warning("Health check database error", error=str(e))
                response["database"] = f"Connected but Error: {str(e)[:80]}"
        return response

    app.include_router(create_graphql_router(), prefix="/graphql")
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port)
