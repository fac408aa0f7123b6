"""
Docent - FastAPI Application
=============================
Application factory.  The lifespan builds one ``VectorIndex`` and one
``AnswerController`` per process, initialises them (fatal on failure),
optionally indexes the document tree, and closes the index on shutdown.

Pre-built services can be injected (tests, embedding in another app);
injected services are still initialised and cleaned up by the lifespan.

Run:
    python -m docent.src.api.app
    uvicorn docent.src.api.app:create_app --factory
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from docent.config.settings import settings
from docent.src.api.routes import router
from docent.src.core.ingestor import IngestionPipeline
from docent.src.core.rag_engine import AnswerController
from docent.src.database.vector_store import VectorIndex
from docent.src.utils.logger import get_logger

logger = get_logger(__name__)


def create_app(index: VectorIndex | None = None, controller: AnswerController | None = None, index_on_startup: bool | None = None) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Parameters
    ----------
    index / controller
        Optional pre-built services.  When only a controller is given,
        its own index is used.
    index_on_startup
        Run the ``IngestionPipeline`` during startup.  Defaults to
        ``settings.INDEX_ON_STARTUP``.
    """
    vector_index = index or (controller.index if controller is not None else VectorIndex())
    answer_controller = controller or AnswerController(vector_index)
    run_ingestion = settings.INDEX_ON_STARTUP if index_on_startup is None else index_on_startup

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        logger.info("Starting Docent API...")
        answer_controller.initialize()
        if run_ingestion:
            IngestionPipeline(vector_index).run()
        app.state.index = vector_index
        app.state.controller = answer_controller
        logger.info("Docent API ready.")

        yield

        logger.info("Shutting down Docent API...")
        answer_controller.cleanup()

    app = FastAPI(title="Docent", description="Question answering over a private document collection.", version="1.0.0", lifespan=lifespan)
    app.add_middleware(CORSMiddleware, allow_origins=["*"], allow_methods=["*"], allow_headers=["*"])
    app.include_router(router)
    return app


if __name__ == "__main__":
    uvicorn.run(create_app(), host=settings.HOST, port=settings.PORT)
