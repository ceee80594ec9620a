import asyncio

import pytest

from conftest import BlockingClient, ScriptedClient, call, text
from copilot.errors import TransportError
from copilot.models import (
    CompletionChunk,
    ErrorTurn,
    FunctionCall,
    ModelFunctionCall,
    ModelText,
    ToolFunctionResponse,
    UserText,
    WelcomeTurn,
)
from copilot.orchestrator import FALLBACK_DISPLAY, Orchestrator, TurnState


def turns_of(orchestrator, kind):
    return [turn for turn in orchestrator.transcript if isinstance(turn, kind)]


def test_new_orchestrator_starts_with_welcome_turn(registry):
    orchestrator = Orchestrator(ScriptedClient(), registry)
    assert len(orchestrator.transcript) == 1
    assert isinstance(orchestrator.transcript[0], WelcomeTurn)
    assert orchestrator.state is TurnState.IDLE


@pytest.mark.asyncio
async def test_plain_answer_is_streamed_into_one_model_turn(registry):
    client = ScriptedClient([[CompletionChunk(text="Hel"), CompletionChunk(text="lo")]])
    orchestrator = Orchestrator(client, registry)
    events = []
    orchestrator.transcript.subscribe(lambda event, index, turn: events.append(event))

    await orchestrator.submit("hi")

    model_texts = turns_of(orchestrator, ModelText)
    assert [turn.text for turn in model_texts] == ["Hello"]
    assert not model_texts[0].is_analysis
    assert events == ["append", "append", "update"]
    assert len(client.calls) == 1
    assert isinstance(client.calls[0][0], UserText)
    assert orchestrator.state is TurnState.IDLE


@pytest.mark.asyncio
async def test_submission_while_busy_is_dropped(registry):
    client = BlockingClient()
    orchestrator = Orchestrator(client, registry)

    first = asyncio.ensure_future(orchestrator.submit("first"))
    await asyncio.sleep(0)
    assert orchestrator.busy
    length_before = len(orchestrator.transcript)

    await orchestrator.submit("second")
    assert len(orchestrator.transcript) == length_before
    assert len(client.calls) == 1

    client.gate.set()
    await first
    assert not orchestrator.busy
    assert [turn.text for turn in turns_of(orchestrator, UserText)] == ["first"]


@pytest.mark.asyncio
async def test_clear_resets_to_single_welcome_turn(registry):
    client = ScriptedClient([text("answer")])
    orchestrator = Orchestrator(client, registry)
    await orchestrator.submit("question")
    orchestrator.attach_image("data:image/png;base64,AAAA")

    await orchestrator.submit("  CLEAR ")
    await orchestrator.submit("clear")

    assert len(orchestrator.transcript) == 1
    assert isinstance(orchestrator.transcript[0], WelcomeTurn)
    assert orchestrator.attached_image is None
    assert len(client.calls) == 1


@pytest.mark.asyncio
async def test_empty_submission_without_image_is_ignored(registry):
    client = ScriptedClient()
    orchestrator = Orchestrator(client, registry)

    await orchestrator.submit("")

    assert len(orchestrator.transcript) == 1
    assert client.calls == []


@pytest.mark.asyncio
async def test_image_only_submission_is_sent_and_cleared(registry):
    client = ScriptedClient([text("I see a screenshot")])
    orchestrator = Orchestrator(client, registry)
    orchestrator.attach_image("data:image/jpeg;base64,QUJD")

    await orchestrator.submit("")

    user_turn = turns_of(orchestrator, UserText)[0]
    assert user_turn.image == "data:image/jpeg;base64,QUJD"
    assert orchestrator.attached_image is None
    assert len(client.calls) == 1


@pytest.mark.asyncio
async def test_only_first_function_call_is_executed(registry):
    calls = [FunctionCall(name="display_only"), FunctionCall(name="with_raw")]
    client = ScriptedClient([[CompletionChunk(function_calls=calls)]])
    orchestrator = Orchestrator(client, registry)

    await orchestrator.submit("do two things")

    call_turns = turns_of(orchestrator, ModelFunctionCall)
    assert [turn.call.name for turn in call_turns] == ["display_only"]
    assert len(client.calls) == 1


@pytest.mark.asyncio
async def test_result_without_raw_data_ends_the_turn(registry):
    client = ScriptedClient([call("display_only")])
    orchestrator = Orchestrator(client, registry)

    await orchestrator.submit("show it")

    call_turn = turns_of(orchestrator, ModelFunctionCall)[0]
    assert call_turn.display == "shown only"
    assert turns_of(orchestrator, ToolFunctionResponse) == []
    assert len(client.calls) == 1


@pytest.mark.asyncio
async def test_result_with_raw_data_gets_one_analysis_turn(registry):
    client = ScriptedClient([call("with_raw"), text("The tool says all good.")])
    orchestrator = Orchestrator(client, registry)

    await orchestrator.submit("check it")

    call_turn = turns_of(orchestrator, ModelFunctionCall)[0]
    response = turns_of(orchestrator, ToolFunctionResponse)[0]
    assert call_turn.display == "shown"
    assert response.content == "raw result"
    assert response.call_id == call_turn.call.id

    analysis = [turn for turn in turns_of(orchestrator, ModelText) if turn.is_analysis]
    assert [turn.text for turn in analysis] == ["The tool says all good."]
    assert len(client.calls) == 2

    second_request = client.calls[1]
    assert isinstance(second_request[-2], ModelFunctionCall)
    assert isinstance(second_request[-1], ToolFunctionResponse)


@pytest.mark.asyncio
async def test_function_call_during_analysis_is_not_chained(registry):
    analysis_with_call = [
        CompletionChunk(text="Done, want more?"),
        CompletionChunk(function_calls=[FunctionCall(name="display_only")]),
    ]
    client = ScriptedClient([call("with_raw"), analysis_with_call])
    orchestrator = Orchestrator(client, registry)

    await orchestrator.submit("check it")

    assert len(turns_of(orchestrator, ModelFunctionCall)) == 1
    assert len(client.calls) == 2
    assert orchestrator.state is TurnState.IDLE


@pytest.mark.asyncio
async def test_unknown_tool_degrades_to_fallback_display(registry):
    client = ScriptedClient([call("format_c_drive")])
    orchestrator = Orchestrator(client, registry)

    await orchestrator.submit("wipe it")

    call_turn = turns_of(orchestrator, ModelFunctionCall)[0]
    assert call_turn.display == FALLBACK_DISPLAY
    assert turns_of(orchestrator, ErrorTurn) == []
    assert len(client.calls) == 1


@pytest.mark.asyncio
async def test_transport_failure_becomes_error_turn(registry):
    client = ScriptedClient([[TransportError("Gemini API error: Service Unavailable")]])
    orchestrator = Orchestrator(client, registry)
    orchestrator.attach_image("data:image/png;base64,AAAA")

    await orchestrator.submit("hello")

    error = turns_of(orchestrator, ErrorTurn)[0]
    assert error.command == "hello"
    assert error.text == "An error occurred: Gemini API error: Service Unavailable"
    assert orchestrator.attached_image is None
    assert orchestrator.state is TurnState.IDLE


@pytest.mark.asyncio
async def test_partial_text_is_kept_when_stream_fails(registry):
    client = ScriptedClient([[CompletionChunk(text="Partial"), TransportError("connection reset")]])
    orchestrator = Orchestrator(client, registry)

    await orchestrator.submit("hello")

    assert [turn.text for turn in turns_of(orchestrator, ModelText)] == ["Partial"]
    assert len(turns_of(orchestrator, ErrorTurn)) == 1


@pytest.mark.asyncio
async def test_invalid_arguments_become_error_turn():
    from copilot.models import ParameterSchema, ParametersSchema, ToolDeclaration, ToolResult
    from copilot.registry import ToolRegistry

    registry = ToolRegistry()
    executed = []

    @registry.tool(ToolDeclaration(
        name="ping",
        description="Ping a host",
        parameters=ParametersSchema(
            properties={"host": ParameterSchema(type="STRING")},
            required=["host"],
        ),
    ))
    async def ping(args, ctx):
        executed.append(args)
        return ToolResult(display="pong")

    client = ScriptedClient([call("ping", {})])
    orchestrator = Orchestrator(client, registry)

    await orchestrator.submit("ping something")

    error = turns_of(orchestrator, ErrorTurn)[0]
    assert "Invalid arguments for 'ping'" in error.message
    assert executed == []


@pytest.mark.asyncio
async def test_internal_call_is_labelled_and_executed_directly(registry):
    client = ScriptedClient([text("analysis of internal call")])
    orchestrator = Orchestrator(client, registry)

    await orchestrator.submit(FunctionCall(name="with_raw"))

    call_turn = turns_of(orchestrator, ModelFunctionCall)[0]
    assert call_turn.internal
    assert call_turn.label == "Internal Call: with_raw"
    assert turns_of(orchestrator, UserText) == []
    assert len(client.calls) == 1
