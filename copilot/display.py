"""
Rich display payloads produced by tools.

Plain strings are valid displays too; ``display_text`` flattens any of them
for callers that can only show text.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, List, Optional, Sequence, Union

from .models import FunctionCall

logger = logging.getLogger(__name__)

SubmitHandler = Callable[[Union[str, FunctionCall]], Awaitable[None]]


class StreamedOutput:
    """Precomputed output lines revealed one at a time on a fixed timer."""

    def __init__(self, lines: Sequence[str], interval: float = 0.1):
        self.lines = list(lines)
        self.interval = interval
        self.visible = 0
        self._task: Optional[asyncio.Task] = None

    @property
    def text(self) -> str:
        return "\n".join(self.lines)

    @property
    def visible_lines(self) -> List[str]:
        return self.lines[:self.visible]

    @property
    def done(self) -> bool:
        return self.visible >= len(self.lines)

    async def play(self, on_line: Callable[[str], Any]) -> None:
        """Reveal the remaining lines, calling ``on_line`` for each one."""
        while not self.done:
            await asyncio.sleep(self.interval)
            line = self.lines[self.visible]
            self.visible += 1
            on_line(line)

    def start(self, on_line: Callable[[str], Any]) -> asyncio.Task:
        """Schedule ``play`` on the running loop and keep the task for ``cancel``."""
        self.cancel()
        self._task = asyncio.ensure_future(self.play(on_line))
        return self._task

    def cancel(self) -> None:
        """Stop revealing lines, e.g. when the view showing them goes away."""
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None


@dataclass
class Choice:
    """One option of an interactive prompt.

    ``action`` is either plain text, resubmitted as user input, or a prebuilt
    function-call resubmitted as an internal call.
    """
    label: str
    action: Union[str, FunctionCall]

    @property
    def button_text(self) -> str:
        return f"[{self.label[:1].upper()}]{self.label[1:]}"


class InteractiveContinuation:
    """A tool display that asks the user to pick the next action."""

    def __init__(self, message: str, choices: Sequence[Choice], on_choice: SubmitHandler):
        self.message = message
        self.choices = list(choices)
        self._on_choice = on_choice

    @property
    def text(self) -> str:
        buttons = "  ".join(choice.button_text for choice in self.choices)
        return f"{self.message}\n{buttons}"

    def find(self, answer: str) -> Optional[Choice]:
        """Match an answer against the choice labels or their first letters."""
        answer = answer.strip().lower()
        if not answer:
            return None
        for choice in self.choices:
            if choice.label.lower() == answer:
                return choice
        for choice in self.choices:
            if choice.label[:1].lower() == answer:
                return choice
        return None

    async def choose(self, choice: Union[Choice, str]) -> None:
        """Resubmit the action bound to ``choice`` through the orchestrator."""
        if isinstance(choice, str):
            selected = self.find(choice)
            if selected is None:
                raise ValueError(f"Unknown choice: {choice}")
            choice = selected
        logger.info(f"Interactive choice selected: {choice.label}")
        await self._on_choice(choice.action)


def display_text(display: Any) -> str:
    """Flatten a display payload to plain text."""
    if display is None:
        return ""
    if isinstance(display, str):
        return display
    text = getattr(display, "text", None)
    if isinstance(text, str):
        return text
    return str(display)
