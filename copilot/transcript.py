"""
The conversation transcript: an ordered, append-only log of turns.

The transcript is the single source of truth for both the views (which
subscribe to changes) and the completion backends (which receive its model
projection on every call).
"""

import json
import logging
from dataclasses import replace
from typing import Callable, Iterable, List, Optional, Sequence, Set

from .media import split_data_url
from .models import (
    Content,
    ErrorTurn,
    FunctionCall,
    FunctionCallPart,
    FunctionResponsePart,
    InlineData,
    ModelFunctionCall,
    ModelText,
    Part,
    ToolFunctionResponse,
    Turn,
    UserText,
    WelcomeTurn,
)

logger = logging.getLogger(__name__)

# Subscribers receive (event, index, turn); event is "append", "update" or "reset".
Subscriber = Callable[[str, int, Optional[Turn]], None]


class Transcript:
    """Ordered turn log with in-place updates and change notifications."""

    def __init__(self, turns: Iterable[Turn] = ()):
        self._turns: List[Turn] = list(turns)
        self._subscribers: List[Subscriber] = []

    def __len__(self) -> int:
        return len(self._turns)

    def __iter__(self):
        return iter(list(self._turns))

    def __getitem__(self, index):
        return self._turns[index]

    @property
    def turns(self) -> List[Turn]:
        return list(self._turns)

    def since(self, index: int) -> List[Turn]:
        """Turns appended at or after ``index``."""
        return self._turns[index:]

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register a change listener. Returns a function that unsubscribes it."""
        self._subscribers.append(callback)

        def unsubscribe():
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def _notify(self, event: str, index: int, turn: Optional[Turn]) -> None:
        for callback in list(self._subscribers):
            try:
                callback(event, index, turn)
            except Exception as e:
                logger.error(f"Transcript subscriber failed: {str(e)}", exc_info=True)

    def append(self, turn: Turn) -> int:
        """Append a turn and return its index."""
        self._turns.append(turn)
        index = len(self._turns) - 1
        self._notify("append", index, turn)
        return index

    def update(self, index: int, **changes) -> Turn:
        """Replace fields of the turn at ``index`` in place."""
        turn = replace(self._turns[index], **changes)
        self._turns[index] = turn
        self._notify("update", index, turn)
        return turn

    def reset(self, turns: Iterable[Turn] = ()) -> None:
        """Drop every turn, optionally seeding the log with new ones."""
        self._turns = list(turns)
        self._notify("reset", 0, None)

    # ========== Model projection ==========

    def model_turns(self) -> List[Turn]:
        """
        Turns that are sent to the model, in order.

        Welcome and error turns, empty text and function-calls without a
        matching function-response (and vice versa) are left out.
        """
        seen_calls: Set[str] = set()
        answered: Set[str] = set()
        for turn in self._turns:
            if isinstance(turn, ModelFunctionCall):
                seen_calls.add(turn.call.id)
            elif isinstance(turn, ToolFunctionResponse) and turn.call_id in seen_calls:
                answered.add(turn.call_id)

        selected = []
        for turn in self._turns:
            if isinstance(turn, (WelcomeTurn, ErrorTurn)):
                continue
            if isinstance(turn, ModelText) and not turn.text:
                continue
            if isinstance(turn, UserText) and not turn.text and not turn.image:
                continue
            if isinstance(turn, ModelFunctionCall) and turn.call.id not in answered:
                continue
            if isinstance(turn, ToolFunctionResponse) and turn.call_id not in answered:
                continue
            selected.append(turn)
        return selected

    def to_contents(self) -> List[Content]:
        """Project the transcript onto wire contents, merging same-role neighbours."""
        contents: List[Content] = []
        for turn in self.model_turns():
            parts = _turn_parts(turn)
            if contents and contents[-1].role == turn.role:
                contents[-1].parts.extend(parts)
            else:
                contents.append(Content(role=turn.role, parts=parts))
        return contents

    @classmethod
    def from_contents(cls, contents: Sequence[Content]) -> "Transcript":
        """Rebuild a transcript from wire contents, e.g. history sent by a browser."""
        turns: List[Turn] = []
        open_calls: List[FunctionCall] = []

        for content in contents:
            texts = [part.text for part in content.parts if part.text]
            if content.role == "user":
                for part in content.parts:
                    if part.function_response is None:
                        continue
                    response = part.function_response
                    call = _pop_open_call(open_calls, response.name)
                    turns.append(ToolFunctionResponse(
                        name=response.name,
                        content=_response_content(response.response),
                        call_id=call.id if call else None,
                    ))
                image = next(
                    (f"data:{part.inline_data.mime_type};base64,{part.inline_data.data}"
                     for part in content.parts if part.inline_data is not None),
                    None,
                )
                if texts or image:
                    turns.append(UserText(text="\n".join(texts), image=image))
            else:
                if texts:
                    turns.append(ModelText(text="\n".join(texts)))
                for part in content.parts:
                    if part.function_call is None:
                        continue
                    call = FunctionCall(name=part.function_call.name, args=dict(part.function_call.args))
                    open_calls.append(call)
                    turns.append(ModelFunctionCall(call=call))

        return cls(turns)


def _pop_open_call(open_calls: List[FunctionCall], name: str) -> Optional[FunctionCall]:
    for i in range(len(open_calls) - 1, -1, -1):
        if open_calls[i].name == name:
            return open_calls.pop(i)
    return None


def _response_content(response: dict) -> str:
    content = response.get("content")
    if isinstance(content, str):
        return content
    return json.dumps(response)


def _turn_parts(turn: Turn) -> List[Part]:
    if isinstance(turn, UserText):
        parts = []
        if turn.image:
            mime_type, data = split_data_url(turn.image)
            parts.append(Part(inline_data=InlineData(mime_type=mime_type, data=data)))
        if turn.text:
            parts.append(Part(text=turn.text))
        return parts
    if isinstance(turn, ModelText):
        return [Part(text=turn.text)]
    if isinstance(turn, ModelFunctionCall):
        return [Part(function_call=FunctionCallPart(name=turn.call.name, args=turn.call.args))]
    if isinstance(turn, ToolFunctionResponse):
        return [Part(function_response=FunctionResponsePart(name=turn.name, response={"content": turn.content}))]
    raise TypeError(f"Turn is not sent to the model: {type(turn).__name__}")
