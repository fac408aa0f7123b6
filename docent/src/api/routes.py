"""
Docent - API Routes
====================
Thin controllers: validate the request, delegate to the
``AnswerController`` held on ``app.state``, return its response.

    POST /api/question   → ``RagResponse``  (400 on a blank question)
    GET  /api/health     → ``{"status": "ok", "rows": n}``

The endpoints are plain ``def`` so FastAPI runs them in its thread pool;
concurrent questions share the read-mostly LanceDB table.
"""

from __future__ import annotations

from fastapi import APIRouter, HTTPException, Request

from docent.src.core.models import QuestionRequest, RagResponse, validate_question
from docent.src.core.rag_engine import AnswerController
from docent.src.database.vector_store import VectorIndex
from docent.src.utils.logger import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/api")


@router.post("/question", response_model=RagResponse)
def ask_question(payload: QuestionRequest, request: Request) -> RagResponse:
    """Ask a question and get an answer with its sources."""
    logger.info("Received question: %r", payload.question)
    if not validate_question(payload.question):
        logger.warning("Invalid question received: %r", payload.question)
        raise HTTPException(status_code=400, detail="Invalid question")

    controller: AnswerController = request.app.state.controller
    try:
        return controller.answer(payload.question)
    except Exception as exc:
        logger.exception("Error processing question.")
        raise HTTPException(status_code=500, detail="Internal server error") from exc


@router.get("/health")
def health(request: Request) -> dict[str, str | int]:
    index: VectorIndex = request.app.state.index
    return {"status": "ok", "rows": index.count()}
