"""
Completion clients for the copilot.

Both backends take the transcript's model projection and yield
``CompletionChunk`` objects: the Anthropic session streams text deltas and
reports tool_use blocks at the end, the Gemini session makes one
generateContent call and yields a single chunk.
"""

import asyncio
import logging
from typing import Any, AsyncIterator, Dict, List, Optional, Sequence

import anthropic
import requests

from utils.config import get_api_keys, get_copilot_settings

from .errors import ConfigError, TransportError
from .media import split_data_url
from .models import (
    CompletionChunk,
    FunctionCall,
    ModelFunctionCall,
    ModelText,
    ParametersSchema,
    ToolDeclaration,
    ToolFunctionResponse,
    Turn,
    UserText,
)
from .transcript import Transcript

logger = logging.getLogger(__name__)

GEMINI_API_URL = "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent"


class CompletionClient:
    """A chat session bound to one system instruction and tool set."""

    streaming = False

    def __init__(self, system_instruction: str, tool_schemas: Sequence[ToolDeclaration]):
        self.system_instruction = system_instruction
        self.tool_schemas = list(tool_schemas)

    def send_stream(self, turns: Sequence[Turn]) -> AsyncIterator[CompletionChunk]:
        """Send the model turns and iterate over the response. One call per round trip."""
        raise NotImplementedError


# ========== Anthropic (streaming) ==========

def _json_schema(parameters: ParametersSchema) -> Dict[str, Any]:
    return {
        "type": "object",
        "properties": {
            name: {"type": prop.type.lower(), "description": prop.description}
            for name, prop in parameters.properties.items()
        },
        "required": list(parameters.required),
    }


def _anthropic_blocks(turn: Turn) -> List[Dict[str, Any]]:
    if isinstance(turn, UserText):
        blocks = []
        if turn.image:
            mime_type, data = split_data_url(turn.image)
            blocks.append({
                "type": "image",
                "source": {"type": "base64", "media_type": mime_type, "data": data},
            })
        if turn.text:
            blocks.append({"type": "text", "text": turn.text})
        return blocks
    if isinstance(turn, ModelText):
        return [{"type": "text", "text": turn.text}]
    if isinstance(turn, ModelFunctionCall):
        return [{"type": "tool_use", "id": turn.call.id, "name": turn.call.name, "input": turn.call.args}]
    if isinstance(turn, ToolFunctionResponse):
        return [{"type": "tool_result", "tool_use_id": turn.call_id, "content": turn.content}]
    raise TypeError(f"Turn is not sent to the model: {type(turn).__name__}")


def to_anthropic_messages(turns: Sequence[Turn]) -> List[Dict[str, Any]]:
    """Convert model turns to Anthropic messages, merging same-role neighbours."""
    messages: List[Dict[str, Any]] = []
    for turn in turns:
        role = "user" if turn.role == "user" else "assistant"
        blocks = _anthropic_blocks(turn)
        if messages and messages[-1]["role"] == role:
            messages[-1]["content"].extend(blocks)
        else:
            messages.append({"role": role, "content": blocks})
    return messages


class AnthropicChatSession(CompletionClient):
    """Streaming session over the Anthropic Messages API."""

    streaming = True

    def __init__(
        self,
        system_instruction: str,
        tool_schemas: Sequence[ToolDeclaration],
        api_key: str,
        model_name: str,
        max_tokens: int = 8192,
        temperature: float = 1.0,
        client: Optional[anthropic.AsyncAnthropic] = None,
    ):
        super().__init__(system_instruction, tool_schemas)
        self.model_name = model_name
        self.max_tokens = max_tokens
        self.temperature = temperature
        self.client = client or anthropic.AsyncAnthropic(api_key=api_key)

    def _request_kwargs(self, turns: Sequence[Turn]) -> Dict[str, Any]:
        kwargs = {
            "model": self.model_name,
            "max_tokens": self.max_tokens,
            "temperature": self.temperature,
            "system": self.system_instruction,
            "messages": to_anthropic_messages(turns),
        }
        if self.tool_schemas:
            kwargs["tools"] = [
                {
                    "name": schema.name,
                    "description": schema.description,
                    "input_schema": _json_schema(schema.parameters),
                }
                for schema in self.tool_schemas
            ]
        return kwargs

    async def send_stream(self, turns: Sequence[Turn]) -> AsyncIterator[CompletionChunk]:
        kwargs = self._request_kwargs(turns)
        logger.info(f"Calling Anthropic model {self.model_name} with {len(kwargs['messages'])} messages")
        try:
            async with self.client.messages.stream(**kwargs) as stream:
                async for text in stream.text_stream:
                    yield CompletionChunk(text=text)
                message = await stream.get_final_message()
        except anthropic.APIError as e:
            logger.error(f"Anthropic API error: {str(e)}")
            raise TransportError(f"Anthropic API error: {str(e)}") from e

        calls = [
            FunctionCall(name=block.name, args=dict(block.input or {}), id=block.id)
            for block in message.content
            if block.type == "tool_use"
        ]
        if calls:
            yield CompletionChunk(function_calls=calls)


# ========== Gemini (single response) ==========

class GeminiChatSession(CompletionClient):
    """Non-streaming session over the Gemini generateContent REST endpoint."""

    def __init__(
        self,
        system_instruction: str,
        tool_schemas: Sequence[ToolDeclaration],
        api_key: str,
        model_name: str,
        temperature: float = 0.3,
        max_output_tokens: int = 1024,
    ):
        super().__init__(system_instruction, tool_schemas)
        self.api_key = api_key
        self.model_name = model_name
        self.temperature = temperature
        self.max_output_tokens = max_output_tokens

    def build_body(self, turns: Sequence[Turn]) -> Dict[str, Any]:
        contents = Transcript(turns).to_contents()
        body = {
            "contents": [content.to_wire() for content in contents],
            "systemInstruction": {"parts": [{"text": self.system_instruction}]},
            "generationConfig": {
                "temperature": self.temperature,
                "maxOutputTokens": self.max_output_tokens,
            },
        }
        if self.tool_schemas:
            body["tools"] = [{"functionDeclarations": [schema.to_dict() for schema in self.tool_schemas]}]
        return body

    def _post(self, body: Dict[str, Any]) -> Dict[str, Any]:
        url = GEMINI_API_URL.format(model=self.model_name)
        try:
            response = requests.post(url, params={"key": self.api_key}, json=body)
        except requests.RequestException as e:
            raise TransportError(f"Gemini API request failed: {str(e)}") from e

        if not response.ok:
            raise TransportError(f"Gemini API error: {response.reason}")

        try:
            return response.json()
        except ValueError as e:
            raise TransportError("Gemini API returned invalid JSON") from e

    @staticmethod
    def parse_response(data: Dict[str, Any]) -> CompletionChunk:
        candidates = data.get("candidates") or []
        if not candidates:
            raise TransportError("Gemini API returned no candidates")

        parts = (candidates[0].get("content") or {}).get("parts") or []
        text = "\n".join(part["text"] for part in parts if part.get("text"))
        calls = [
            FunctionCall(name=part["functionCall"]["name"], args=dict(part["functionCall"].get("args") or {}))
            for part in parts
            if part.get("functionCall")
        ]
        return CompletionChunk(text=text or None, function_calls=calls)

    async def send_stream(self, turns: Sequence[Turn]) -> AsyncIterator[CompletionChunk]:
        body = self.build_body(turns)
        logger.info(f"Calling Gemini model {self.model_name} with {len(body['contents'])} contents")
        data = await asyncio.to_thread(self._post, body)
        yield self.parse_response(data)


def create_session(
    system_instruction: str,
    tool_schemas: Sequence[ToolDeclaration],
    provider: Optional[str] = None,
) -> CompletionClient:
    """
    Create the chat session used for every turn.

    Args:
        system_instruction: The system prompt
        tool_schemas: Declarations offered to the model
        provider: "anthropic" or "gemini"; defaults to COPILOT_PROVIDER

    Raises:
        ConfigError: "API_KEY_NOT_FOUND" when the provider's credential is absent
    """
    settings = get_copilot_settings()
    provider = (provider or settings["provider"]).lower()
    api_keys = get_api_keys()

    if provider == "anthropic":
        api_key = api_keys["ANTHROPIC_API_KEY"]
        if not api_key:
            raise ConfigError("API_KEY_NOT_FOUND")
        return AnthropicChatSession(system_instruction, tool_schemas, api_key, settings["anthropic_model"])

    if provider == "gemini":
        api_key = api_keys["GEMINI_API_KEY"]
        if not api_key:
            raise ConfigError("API_KEY_NOT_FOUND")
        return GeminiChatSession(system_instruction, tool_schemas, api_key, settings["gemini_model"])

    raise ConfigError(f"Unknown model provider: {provider}")
