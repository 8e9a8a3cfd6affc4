# =============================================================================
# Chat API — Goal Coach Endpoints
# =============================================================================
#
# ENDPOINTS:
#   POST /chat         — one coach reply
#   POST /chat/stream  — the same reply streamed as plain-text chunks
#   POST /feasibility  — structured feasibility analysis (+ optional plan)
#
# None of these return 5xx when the LLM is down. The GoalCoach absorbs
# model failures: chat gets a degraded message, feasibility a static
# fallback analysis, and the plan is null.
# =============================================================================

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse

from dreamplan.api.deps import get_coach
from dreamplan.models.requests import ChatRequest, FeasibilityRequest, UserContextIn
from dreamplan.models.responses import ChatResponse, FeasibilityResponse
from dreamplan.services.coach import GoalCoach, UserContext

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Goal Coach"])


def _context(context: UserContextIn) -> UserContext:
    return UserContext(
        location=context.location,
        age_range=context.age_range,
        interests=list(context.interests),
        goals=context.goals,
    )


@router.post(
    "/chat",
    response_model=ChatResponse,
    summary="Chat with the goal coach",
)
async def chat(
    request: ChatRequest,
    coach: GoalCoach = Depends(get_coach),
) -> ChatResponse:
    reply = await coach.chat(
        request.message,
        [m.model_dump() for m in request.history],
        _context(request.context),
        request.session_type,
    )
    return ChatResponse(reply=reply)


@router.post(
    "/chat/stream",
    summary="Stream a goal coach reply",
    response_class=StreamingResponse,
)
async def chat_stream(
    request: ChatRequest,
    coach: GoalCoach = Depends(get_coach),
) -> StreamingResponse:
    chunks = coach.chat_stream(
        request.message,
        [m.model_dump() for m in request.history],
        _context(request.context),
        request.session_type,
    )
    return StreamingResponse(chunks, media_type="text/plain; charset=utf-8")


@router.post(
    "/feasibility",
    response_model=FeasibilityResponse,
    summary="Analyze goal feasibility",
)
async def feasibility(
    request: FeasibilityRequest,
    coach: GoalCoach = Depends(get_coach),
) -> FeasibilityResponse:
    context = _context(request.context)
    analysis = await coach.analyze_feasibility(request.goal_description, context)

    plan = None
    if request.include_plan:
        plan = await coach.generate_goal_plan(request.goal_description, analysis, context)
        logger.info("Goal plan %s", "generated" if plan is not None else "unavailable")
    return FeasibilityResponse(analysis=analysis, plan=plan)
