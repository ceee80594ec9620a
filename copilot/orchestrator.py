"""
The conversation loop.

One submission runs through
``IDLE -> AWAITING_FIRST_RESPONSE -> (TOOL_EXECUTING -> AWAITING_ANALYSIS_RESPONSE) -> IDLE``:
the user turn is sent to the model, at most one function-call is executed,
and a tool result carrying raw data is sent back once for analysis. Nothing
chains past that point.
"""

import enum
import logging
from typing import AsyncIterator, Optional, Union

from utils.prompts import WELCOME_MESSAGE

from .models import (
    CompletionChunk,
    ErrorTurn,
    FunctionCall,
    ModelFunctionCall,
    ModelText,
    ToolFunctionResponse,
    UserText,
    WelcomeTurn,
)
from .llm import CompletionClient
from .registry import ToolContext, ToolRegistry
from .transcript import Transcript

logger = logging.getLogger(__name__)

FALLBACK_DISPLAY = "Command executed."
CLEAR_COMMAND = "clear"


class TurnState(enum.Enum):
    IDLE = "idle"
    AWAITING_FIRST_RESPONSE = "awaiting_first_response"
    TOOL_EXECUTING = "tool_executing"
    AWAITING_ANALYSIS_RESPONSE = "awaiting_analysis_response"


Submission = Union[str, FunctionCall]


class Orchestrator:
    """Drives the model and the tools over a shared transcript.

    Only one submission is in flight at a time; anything submitted while a
    turn is running is dropped.
    """

    def __init__(
        self,
        client: CompletionClient,
        registry: ToolRegistry,
        transcript: Optional[Transcript] = None,
        user_id: Optional[str] = None,
        welcome_message: str = WELCOME_MESSAGE,
    ):
        self.client = client
        self.registry = registry
        self.user_id = user_id
        self.welcome_message = welcome_message
        self.transcript = transcript if transcript is not None else Transcript([WelcomeTurn(welcome_message)])
        self.state = TurnState.IDLE
        self.attached_image: Optional[str] = None

    @property
    def busy(self) -> bool:
        return self.state is not TurnState.IDLE

    def attach_image(self, data_url: Optional[str]) -> None:
        """Attach an encoded image to the next text submission."""
        self.attached_image = data_url

    def reset(self) -> None:
        """Drop every turn and start over from the welcome banner."""
        self.transcript.reset([WelcomeTurn(self.welcome_message)])
        self.attached_image = None

    async def submit(self, command: Submission) -> None:
        """
        Run one turn for user text or an internal function-call.

        Text is sent to the model with any attached image; a function-call
        (from an interactive prompt) is executed directly. Failures after the
        first turn is appended end up as an error turn.
        """
        if self.busy:
            logger.info("Submission dropped: a turn is already in flight")
            return

        is_internal = isinstance(command, FunctionCall)
        if not is_internal:
            if not command and not self.attached_image:
                return
            if command.strip().lower() == CLEAR_COMMAND:
                self.reset()
                return

        self.state = TurnState.AWAITING_FIRST_RESPONSE
        try:
            if is_internal:
                logger.info(f"=== INTERNAL CALL: {command.name} ===")
                await self._handle_function_call(command, internal=True)
            else:
                await self._send_user_text(command)
        except Exception as e:
            logger.error(f"Error while processing turn: {str(e)}", exc_info=True)
            label = f"Internal Call: {command.name}" if is_internal else command
            self.transcript.append(ErrorTurn(command=label, message=str(e) or type(e).__name__))
        finally:
            self.state = TurnState.IDLE

    async def _send_user_text(self, text: str) -> None:
        image = self.attached_image
        # Cleared before sending so a failed turn never resends it
        self.attached_image = None
        self.transcript.append(UserText(text=text, image=image))

        stream = self.client.send_stream(self.transcript.model_turns())
        function_call = await self._process_stream(stream)

        if function_call is not None:
            await self._handle_function_call(function_call)

    async def _process_stream(
        self,
        stream: AsyncIterator[CompletionChunk],
        index: Optional[int] = None,
        is_analysis: bool = False,
    ) -> Optional[FunctionCall]:
        """Accumulate streamed text into one model turn; return the first function-call."""
        full_text = ""
        function_call = None

        async for chunk in stream:
            if chunk.text:
                full_text += chunk.text
                if index is None:
                    index = self.transcript.append(ModelText(text=full_text, is_analysis=is_analysis))
                else:
                    self.transcript.update(index, text=full_text, is_analysis=is_analysis)
            if chunk.function_calls:
                if function_call is None:
                    function_call = chunk.function_calls[0]
                    ignored = chunk.function_calls[1:]
                else:
                    ignored = chunk.function_calls
                for call in ignored:
                    logger.warning(f"Ignoring additional function call: {call.name}")

        return function_call

    async def _handle_function_call(self, call: FunctionCall, internal: bool = False) -> None:
        self.state = TurnState.TOOL_EXECUTING
        call_index = self.transcript.append(ModelFunctionCall(call=call, internal=internal))

        executor = self.registry.lookup(call.name)
        if executor is None:
            logger.warning(f"Unknown tool requested: {call.name}")
            self.transcript.update(call_index, display=FALLBACK_DISPLAY)
            return

        args = self.registry.validate(call.name, call.args)
        logger.info(f"Executing tool {call.name} with args: {args}")
        result = await executor(args, ToolContext(resubmit=self.submit, user_id=self.user_id))

        self.transcript.update(call_index, display=result.display if result else FALLBACK_DISPLAY)
        if not result or not result.raw_data:
            return

        self.transcript.append(ToolFunctionResponse(name=call.name, content=result.raw_data, call_id=call.id))
        analysis_index = self.transcript.append(ModelText(text="", is_analysis=True))

        self.state = TurnState.AWAITING_ANALYSIS_RESPONSE
        stream = self.client.send_stream(self.transcript.model_turns())
        chained = await self._process_stream(stream, index=analysis_index, is_analysis=True)
        if chained is not None:
            logger.warning(f"Not chaining second function call: {chained.name}")
