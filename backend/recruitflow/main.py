"""Application entrypoint: sets up FastAPI app, CORS, logging, error mapping and API routers.

Project workspaces (phase state machine, batch queue, chat) live in an in-process
registry on app.state; the document store is the SQLAlchemy-backed DocumentStore.
"""
import logging
import sys
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from recruitflow.api.errors import register_error_handlers
from recruitflow.api.routers import batch as batch_router
from recruitflow.api.routers import chat as chat_router
from recruitflow.api.routers import health as health_router
from recruitflow.api.routers import phases as phases_router
from recruitflow.api.routers import projects as projects_router
from recruitflow.api.routers import usage as usage_router
from recruitflow.core.config import settings
from recruitflow.db.base import init_db
from recruitflow.services.sessions import SessionRegistry
from recruitflow.services.store.document_store import DocumentStore


# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s | %(levelname)-8s | %(name)s | %(message)s',
    datefmt='%Y-%m-%d %H:%M:%S',
    handlers=[
        logging.StreamHandler(sys.stdout)
    ]
)

# Set specific log levels for different modules
logging.getLogger("pipeline.generation").setLevel(logging.INFO)
logging.getLogger("pipeline.batch").setLevel(logging.INFO)
logging.getLogger("pipeline.store").setLevel(logging.WARNING)

# Reduce noise from external libraries
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)
logging.getLogger("openai").setLevel(logging.WARNING)
logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)


def create_app(store: Optional[DocumentStore] = None, registry: Optional[SessionRegistry] = None) -> FastAPI:
    store = store or DocumentStore()
    registry = registry or SessionRegistry(store)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        init_db()
        yield
        await app.state.registry.close_all()

    app = FastAPI(title=settings.APP_NAME, version="0.1.0", lifespan=lifespan)
    app.state.store = store
    app.state.registry = registry

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[
            "http://localhost:3000",
            "http://127.0.0.1:3000",
            "http://localhost:5173",
            "http://127.0.0.1:5173",
        ],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_error_handlers(app)

    app.include_router(health_router.router)
    app.include_router(projects_router.router)
    app.include_router(phases_router.router)
    app.include_router(batch_router.router)
    app.include_router(usage_router.router)
    app.include_router(chat_router.router)

    return app


app = create_app()
