import asyncio

import pytest

from copilot.llm import CompletionClient
from copilot.models import CompletionChunk, FunctionCall, ToolDeclaration, ToolResult
from copilot.registry import ToolContext, ToolRegistry
from copilot.storage import SQLiteMemoryStore


class ScriptedClient(CompletionClient):
    """Completion client that replays canned responses, one per call.

    Each response is a list of CompletionChunk; an Exception in the list is
    raised when reached. Every call records the turns it was sent.
    """

    def __init__(self, responses=(), tool_schemas=()):
        super().__init__("system instruction", tool_schemas)
        self.responses = [list(response) for response in responses]
        self.calls = []

    async def send_stream(self, turns):
        self.calls.append(list(turns))
        response = self.responses.pop(0) if self.responses else []
        for chunk in response:
            if isinstance(chunk, Exception):
                raise chunk
            yield chunk


class BlockingClient(ScriptedClient):
    """Waits on ``gate`` before answering, so a turn can be held in flight."""

    def __init__(self):
        super().__init__()
        self.gate = asyncio.Event()

    async def send_stream(self, turns):
        self.calls.append(list(turns))
        await self.gate.wait()
        yield CompletionChunk(text="done")


def text(value):
    return [CompletionChunk(text=value)]


def call(name, args=None, **kwargs):
    return [CompletionChunk(function_calls=[FunctionCall(name=name, args=args or {}, **kwargs)])]


def build_test_registry():
    registry = ToolRegistry()

    @registry.tool(ToolDeclaration(name="with_raw", description="Returns display and raw data"))
    async def with_raw(args, ctx):
        return ToolResult(display="shown", raw_data="raw result")

    @registry.tool(ToolDeclaration(name="display_only", description="Returns a display only"))
    async def display_only(args, ctx):
        return ToolResult(display="shown only")

    return registry


@pytest.fixture
def registry():
    return build_test_registry()


@pytest.fixture
def memory_store():
    store = SQLiteMemoryStore(":memory:")
    yield store
    store.close()


@pytest.fixture
def tool_context():
    async def resubmit(command):
        return None

    return ToolContext(resubmit=resubmit, user_id="user-1")
