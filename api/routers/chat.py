"""Conversational endpoint backed by the benefits orchestrator."""

from __future__ import annotations

import time

import structlog
from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import ORJSONResponse

from api.models import ChatRequest, ChatResponse, ErrorResponse
from api.orchestrators.benefits_orchestrator import BenefitsOrchestrator, get_orchestrator
from api.schemas.agent_state import ConversationTurn, create_initial_state

logger = structlog.get_logger(__name__)
router = APIRouter()

CHAT_FAILURE_MESSAGE = "Failed to process chat request."


@router.post(
    "/chat",
    response_model=ChatResponse,
    response_model_by_alias=True,
    responses={500: {"model": ErrorResponse}},
    tags=["Chat"],
)
async def chat(
    request: Request,
    chat_request: ChatRequest,
    orchestrator: BenefitsOrchestrator = Depends(get_orchestrator),
):
    """Answer a benefits question.

    Runs classification, conditional evidence gathering, answer composition
    and evidence summarization. Evidence-source failures only reduce the
    evidence available; a failed final generation returns 500.

    Example:
        ```bash
        curl -X POST http://localhost:8000/api/chat \\
          -H "Content-Type: application/json" \\
          -d '{"userId": "uid_123", "message": "What are vendor options for diabetes management?"}'
        ```
    """
    request_id = getattr(request.state, "request_id", None)
    start_time = time.time()

    logger.info(
        "Processing chat request",
        request_id=request_id,
        user_id=chat_request.user_id,
        message_preview=chat_request.message[:100],
        history_turns=len(chat_request.chat_history),
        selected_docs=len(chat_request.selected_docs),
        use_web_search=chat_request.use_web_search,
    )

    state = create_initial_state(
        user_id=chat_request.user_id,
        message=chat_request.message,
        chat_history=[ConversationTurn(**turn.model_dump()) for turn in chat_request.chat_history],
        use_web_search=chat_request.use_web_search,
        selected_doc_ids=chat_request.selected_docs,
        rfp_context=chat_request.rfp_context,
        request_id=request_id,
    )

    try:
        result = await orchestrator.run(state)
    except Exception as e:
        logger.error(
            "Chat request failed",
            request_id=request_id,
            error=str(e),
            error_type=type(e).__name__,
            exc_info=True,
        )
        return ORJSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=ErrorResponse(error=CHAT_FAILURE_MESSAGE, request_id=request_id).model_dump(),
        )

    question_type = None
    if result.route != "fast_path" and result.intent is not None:
        question_type = result.intent.question_type.value

    logger.info(
        "Chat request processed",
        request_id=request_id,
        route=result.route,
        question_type=question_type,
        follow_ups=len(result.follow_ups),
        degraded_sources=result.errors,
        response_time_ms=int((time.time() - start_time) * 1000),
    )
    return ChatResponse(
        question_type=question_type,
        reply=result.reply or "",
        evidence=result.evidence_summary,
        follow_ups=result.follow_ups,
        request_id=request_id,
    )
