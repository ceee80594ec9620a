import pytest
from fastapi.testclient import TestClient

from conftest import ScriptedClient, call, text
from copilot import routes
from copilot.app import app
from copilot.errors import TransportError
from copilot.models import ModelFunctionCall, ToolFunctionResponse
from copilot.tools import build_server_registry


@pytest.fixture
def configure_copilot(memory_store):
    registry = build_server_registry(memory_store)

    def _configure(*responses):
        session = ScriptedClient(responses, registry.schemas())
        routes.configure(session, registry)
        return session

    yield _configure
    routes.configure(None, None)


@pytest.fixture
def client():
    return TestClient(app)


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_preflight_headers(client):
    response = client.options("/")
    assert response.status_code == 200
    assert response.headers["Access-Control-Allow-Origin"] == "*"
    assert response.headers["Access-Control-Allow-Methods"] == "POST, OPTIONS"
    assert response.headers["Access-Control-Allow-Headers"] == "Content-Type, Authorization"


@pytest.mark.parametrize("payload", [{"message": "hi"}, {"userId": "user-1"}, {"message": "", "userId": "user-1"}])
def test_missing_fields_are_rejected(client, configure_copilot, payload):
    configure_copilot()
    response = client.post("/", json=payload)
    assert response.status_code == 400
    assert response.json() == {"error": "Missing message or userId"}


def test_plain_reply(client, configure_copilot):
    configure_copilot(text("Event ID 41 means an unexpected shutdown."))

    response = client.post("/", json={"message": "what is event 41?", "userId": "user-1"})

    assert response.status_code == 200
    body = response.json()
    assert body["response"] == "Event ID 41 means an unexpected shutdown."
    assert body["history"] == [
        {"role": "user", "parts": [{"text": "what is event 41?"}]},
        {"role": "model", "parts": [{"text": "Event ID 41 means an unexpected shutdown."}]},
    ]


def test_tool_reply_joins_display_and_analysis(client, configure_copilot, memory_store):
    configure_copilot(
        call("memory_store", {"key": "printer", "value": "HP on 10.0.0.5"}),
        text("I'll remember your printer."),
    )

    response = client.post("/", json={"message": "remember my printer", "userId": "user-1"})

    body = response.json()
    assert body["response"] == "Stored in memory: printer\n\nI'll remember your printer."
    assert [content["role"] for content in body["history"]] == ["user", "model", "user", "model"]
    assert body["history"][1]["parts"][0]["functionCall"]["name"] == "memory_store"
    assert body["history"][2]["parts"][0]["functionResponse"]["response"] == {"content": "Stored in memory: printer"}
    assert memory_store.get("user-1", "printer").value == "HP on 10.0.0.5"


def test_posted_history_is_sent_to_the_model(client, configure_copilot):
    session = configure_copilot(text("You asked about your printer."))
    history = [
        {"role": "user", "parts": [{"text": "remember my printer"}]},
        {"role": "model", "parts": [{"functionCall": {"name": "memory_store", "args": {"key": "printer", "value": "HP"}}}]},
        {"role": "user", "parts": [{"functionResponse": {"name": "memory_store", "response": {"content": "Stored"}}}]},
        {"role": "model", "parts": [{"text": "Saved."}]},
    ]

    response = client.post("/", json={"message": "what did I ask?", "userId": "user-1", "history": history})

    assert response.status_code == 200
    sent = session.calls[0]
    call_turn = next(turn for turn in sent if isinstance(turn, ModelFunctionCall))
    result_turn = next(turn for turn in sent if isinstance(turn, ToolFunctionResponse))
    assert result_turn.call_id == call_turn.call.id
    assert len(response.json()["history"]) == 6


def test_history_is_capped_at_thirty_entries(client, configure_copilot):
    configure_copilot(text("latest answer"))
    history = []
    for i in range(20):
        history.append({"role": "user", "parts": [{"text": f"question {i}"}]})
        history.append({"role": "model", "parts": [{"text": f"answer {i}"}]})

    response = client.post("/", json={"message": "one more", "userId": "user-1", "history": history})

    returned = response.json()["history"]
    assert len(returned) == routes.HISTORY_LIMIT
    assert returned[-1] == {"role": "model", "parts": [{"text": "latest answer"}]}


def test_model_failure_returns_500(client, configure_copilot):
    configure_copilot([TransportError("Gemini API error: Internal Server Error")])

    response = client.post("/", json={"message": "hi", "userId": "user-1"})

    assert response.status_code == 500
    assert response.json() == {"error": "Gemini API error: Internal Server Error"}


def test_missing_api_key_returns_500(client):
    routes.configure(None, None, "API_KEY_NOT_FOUND")
    try:
        response = client.post("/", json={"message": "hi", "userId": "user-1"})
    finally:
        routes.configure(None, None)

    assert response.status_code == 500
    assert response.json() == {"error": "API_KEY_NOT_FOUND"}


def test_clear_returns_empty_history(client, configure_copilot):
    session = configure_copilot()
    history = [
        {"role": "user", "parts": [{"text": "hello"}]},
        {"role": "model", "parts": [{"text": "hi"}]},
    ]

    response = client.post("/", json={"message": "clear", "userId": "user-1", "history": history})

    assert response.status_code == 200
    assert response.json() == {"response": "", "history": []}
    assert session.calls == []


def test_render_reply_without_tool_uses_model_text():
    from copilot.models import ModelText

    assert routes.render_reply([ModelText("a"), ModelText("")]) == "a"


def test_numeric_user_id_is_accepted(client, configure_copilot, memory_store):
    configure_copilot(
        call("memory_store", {"key": "vpn", "value": "GlobalProtect"}),
        text("Saved your VPN client."),
    )

    response = client.post("/", json={"message": "remember my vpn", "userId": 42})

    assert response.status_code == 200
    assert memory_store.get("42", "vpn").value == "GlobalProtect"


def test_null_function_call_args_in_history(client, configure_copilot):
    configure_copilot(text("Still here."))
    history = [
        {"role": "user", "parts": [{"text": "check my disk"}]},
        {"role": "model", "parts": [{"functionCall": {"name": "check_disk_health", "args": None}}]},
    ]

    response = client.post("/", json={"message": "anything else?", "userId": "user-1", "history": history})

    assert response.status_code == 200
    assert response.json()["response"] == "Still here."


def test_wrongly_typed_message_is_rejected(client, configure_copilot):
    configure_copilot()
    response = client.post("/", json={"message": ["hi"], "userId": "user-1"})
    assert response.status_code == 400
    assert response.json() == {"error": "Missing message or userId"}


@pytest.mark.parametrize(
    "history",
    [
        "not a list",
        [{"role": "system", "parts": [{"text": "hi"}]}],
    ],
)
def test_malformed_history_returns_500_error(client, configure_copilot, history):
    session = configure_copilot()
    response = client.post("/", json={"message": "hi", "userId": "user-1", "history": history})

    assert response.status_code == 500
    assert response.json()["error"].startswith("Invalid request: ")
    assert session.calls == []
