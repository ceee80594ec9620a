"""
FastAPI routes for the server copilot.

The browser keeps the conversation: every request carries the history so
far and gets back the updated, trimmed history with the reply.
"""

import logging
from typing import List, Optional

from fastapi import APIRouter
from fastapi.responses import JSONResponse, Response

from .display import display_text
from .llm import CompletionClient
from .models import ChatRequest, ChatResponse, ErrorTurn, ModelFunctionCall, ModelText, Turn
from .orchestrator import Orchestrator
from .registry import ToolRegistry
from .transcript import Transcript

logger = logging.getLogger(__name__)

HISTORY_LIMIT = 30

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type, Authorization",
}

router = APIRouter()

chat_session: Optional[CompletionClient] = None
tool_registry: Optional[ToolRegistry] = None
config_error: Optional[str] = None


def configure(session: Optional[CompletionClient], registry: Optional[ToolRegistry], error: Optional[str] = None):
    """Install the session and tools used by every request."""
    global chat_session, tool_registry, config_error
    chat_session = session
    tool_registry = registry
    config_error = error


def render_reply(turns: List[Turn]) -> str:
    """
    Build the reply text for the turns produced by one exchange.

    When a tool ran, the reply is its display followed by the analysis;
    otherwise it is the model's text.
    """
    call_turn = next((turn for turn in turns if isinstance(turn, ModelFunctionCall)), None)
    if call_turn is None:
        return "\n".join(turn.text for turn in turns if isinstance(turn, ModelText) and turn.text)

    analysis = "\n".join(
        turn.text for turn in turns if isinstance(turn, ModelText) and turn.is_analysis and turn.text
    )
    return f"{display_text(call_turn.display)}\n\n{analysis}"


def _error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


@router.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "ok"}


@router.options("/")
async def preflight():
    return Response(status_code=200, headers=CORS_HEADERS)


@router.post("/")
async def chat(request: ChatRequest):
    """Run one exchange against the posted history."""
    if not request.message or not request.user_id:
        return _error_response(400, "Missing message or userId")

    if chat_session is None or tool_registry is None:
        return _error_response(500, config_error or "Copilot is not initialized")

    logger.info("=== NEW CHAT REQUEST ===")
    logger.info(f"User ID: {request.user_id}")
    logger.info(f"History entries: {len(request.history or [])}")

    transcript = Transcript.from_contents(request.history or [])
    start = len(transcript)
    orchestrator = Orchestrator(chat_session, tool_registry, transcript=transcript, user_id=request.user_id)

    await orchestrator.submit(request.message)

    new_turns = transcript.since(start)
    errors = [turn for turn in new_turns if isinstance(turn, ErrorTurn)]
    if errors:
        logger.error(f"Chat request failed: {errors[-1].message}")
        return _error_response(500, errors[-1].message)

    history = transcript.to_contents()[-HISTORY_LIMIT:]
    reply = render_reply(new_turns)

    logger.info("=== CHAT REQUEST COMPLETED ===")
    logger.info(f"Final response content:\n{reply}")

    body = ChatResponse(response=reply, history=history)
    return JSONResponse(content=body.to_wire(), headers={"Access-Control-Allow-Origin": "*"})
