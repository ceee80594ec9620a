"""
Interactive terminal front end for the copilot.

The view is a projection of the transcript: it subscribes to transcript
changes and queues everything it prints, so streamed tool output and model
text come out in transcript order.
"""

import asyncio
import logging
import sys
from pathlib import Path
from typing import Dict, Optional

from utils.config import get_copilot_settings
from utils.prompts import get_config_error_screen, get_terminal_system_instruction

from .display import InteractiveContinuation, StreamedOutput, display_text
from .errors import ConfigError
from .llm import create_session
from .media import encode_image_file
from .models import ErrorTurn, ModelFunctionCall, ModelText, UserText, WelcomeTurn
from .orchestrator import Orchestrator
from .tools import build_diagnostic_registry

logger = logging.getLogger(__name__)

PROMPT = "C:\\Users\\ITPro> "
ANALYSIS_PREFIX = "[AI] "
ATTACH_COMMAND = "/attach"
EXIT_COMMANDS = ("exit", "quit")
CLEAR_SCREEN = "\033[2J\033[H"


class TerminalView:
    """Prints transcript changes to a text stream."""

    def __init__(self, orchestrator: Orchestrator, out=None):
        self.orchestrator = orchestrator
        self.out = out or sys.stdout
        self.pending_prompt: Optional[InteractiveContinuation] = None
        self._printed: Dict[int, int] = {}
        self._open_line = False
        self._queue: asyncio.Queue = asyncio.Queue()
        self._playing: Optional[StreamedOutput] = None
        self._printer: Optional[asyncio.Task] = None
        self._unsubscribe = orchestrator.transcript.subscribe(self.on_event)

    def start(self) -> None:
        if self._printer is None:
            self._printer = asyncio.ensure_future(self._drain())

    async def flush(self) -> None:
        """Wait until everything queued so far has been printed."""
        self._close_line()
        await self._queue.join()

    def close(self) -> None:
        self._unsubscribe()
        if self._playing is not None:
            self._playing.cancel()
        if self._printer is not None:
            self._printer.cancel()
            self._printer = None

    async def _drain(self) -> None:
        while True:
            item = await self._queue.get()
            try:
                if isinstance(item, StreamedOutput):
                    self._playing = item
                    await item.start(self._write_line)
                    self._playing = None
                else:
                    self.out.write(item)
                    self.out.flush()
            finally:
                self._queue.task_done()

    def _write_line(self, line: str) -> None:
        self.out.write(line + "\n")
        self.out.flush()

    def _emit(self, text: str) -> None:
        self._queue.put_nowait(text)

    def _close_line(self) -> None:
        if self._open_line:
            self._emit("\n")
            self._open_line = False

    # ========== Transcript events ==========

    def render_transcript(self) -> None:
        """Print every turn currently in the transcript."""
        for index, turn in enumerate(self.orchestrator.transcript):
            self._render(index, turn)

    def on_event(self, event: str, index: int, turn) -> None:
        if event == "reset":
            self._printed.clear()
            self._open_line = False
            self.pending_prompt = None
            self._emit(CLEAR_SCREEN)
            self.render_transcript()
            return
        if event == "append":
            self._close_line()
        self._render(index, turn, updated=(event == "update"))

    def _render(self, index: int, turn, updated: bool = False) -> None:
        if isinstance(turn, WelcomeTurn):
            self._emit(turn.text + "\n")
        elif isinstance(turn, ModelText):
            self._render_text(index, turn)
        elif isinstance(turn, ModelFunctionCall):
            if updated:
                self._render_display(turn.display)
            else:
                self._emit(f"> {turn.label}\n")
        elif isinstance(turn, UserText):
            if turn.image:
                self._emit("[Image attached]\n")
        elif isinstance(turn, ErrorTurn):
            self._emit(f"{turn.text}\n")

    def _render_text(self, index: int, turn: ModelText) -> None:
        printed = self._printed.get(index, 0)
        if len(turn.text) <= printed:
            return
        if printed == 0 and turn.is_analysis:
            self._emit(ANALYSIS_PREFIX)
        self._emit(turn.text[printed:])
        self._printed[index] = len(turn.text)
        self._open_line = True

    def _render_display(self, display) -> None:
        if isinstance(display, StreamedOutput):
            self._queue.put_nowait(display)
        elif isinstance(display, InteractiveContinuation):
            self.pending_prompt = display
            self._emit(display.text + "\n")
        elif display is not None:
            self._emit(display_text(display) + "\n")


async def handle_input(orchestrator: Orchestrator, view: TerminalView, line: str) -> bool:
    """
    Handle one line typed at the prompt.

    Returns:
        bool: False when the user asked to exit
    """
    command = line.strip()
    if command.lower() in EXIT_COMMANDS:
        return False

    if command.startswith(ATTACH_COMMAND):
        path = command[len(ATTACH_COMMAND):].strip()
        try:
            orchestrator.attach_image(encode_image_file(path))
            view.out.write(f"Attached {Path(path).name}. It will be sent with your next command.\n")
        except (OSError, ValueError) as e:
            view.out.write(f"Could not attach image: {str(e)}\n")
        return True

    prompt = view.pending_prompt
    if prompt is not None:
        view.pending_prompt = None
        choice = prompt.find(command)
        if choice is not None:
            await prompt.choose(choice)
            return True

    await orchestrator.submit(command)
    return True


async def run_terminal(provider: Optional[str] = None) -> int:
    """Run the interactive copilot until the user exits."""
    registry = build_diagnostic_registry()
    try:
        session = create_session(get_terminal_system_instruction(), registry.schemas(), provider)
    except ConfigError as e:
        logger.error(f"Copilot configuration error: {str(e)}")
        print(get_config_error_screen(str(e)))
        return 1

    orchestrator = Orchestrator(session, registry)
    view = TerminalView(orchestrator)
    view.start()
    view.render_transcript()

    try:
        while True:
            await view.flush()
            try:
                line = await asyncio.to_thread(input, PROMPT)
            except EOFError:
                break
            if not await handle_input(orchestrator, view, line):
                break
    finally:
        view.close()
    return 0


def main() -> int:
    settings = get_copilot_settings()
    return asyncio.run(run_terminal(settings["provider"]))
