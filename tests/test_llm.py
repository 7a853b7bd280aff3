import pytest
import requests

from llm import DEFAULT_ENDPOINT, GenerationError, LLMManager

MESSAGES = [
    {"role": "system", "content": "You are a helpful support assistant."},
    {"role": "user", "content": "What is the weather today?"},
]


class FakeResponse:
    def __init__(self, payload=None, status_code=200):
        self.payload = payload
        self.status_code = status_code

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Error", response=self)

    def json(self):
        if self.payload is None:
            raise ValueError("No JSON object could be decoded")
        return self.payload


class FakeSession:
    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.calls = []

    def post(self, url, **kwargs):
        self.calls.append((url, kwargs))
        if self.error:
            raise self.error
        return self.response


def reply_payload(content):
    return {"choices": [{"message": {"role": "assistant", "content": content}}]}


def make_llm(session):
    return LLMManager(api_key="test-key", model="test/model", timeout=5, session=session)


def test_generate_posts_chat_completion_and_returns_reply():
    session = FakeSession(FakeResponse(reply_payload("  It is sunny.  ")))

    reply = make_llm(session).generate(MESSAGES)

    assert reply == "It is sunny."
    url, kwargs = session.calls[0]
    assert url == DEFAULT_ENDPOINT
    assert kwargs["headers"]["Authorization"] == "Bearer test-key"
    assert kwargs["json"]["model"] == "test/model"
    assert kwargs["json"]["messages"] == MESSAGES
    assert "stream" not in kwargs["json"]
    assert kwargs["timeout"] == 5


def test_environment_configures_endpoint_and_model(monkeypatch):
    monkeypatch.setenv("OPENROUTER_API_KEY", "env-key")
    monkeypatch.setenv("SHEETASSIST_LLM_ENDPOINT", "http://localhost:9999/v1/chat/completions")
    monkeypatch.setenv("SHEETASSIST_MODEL", "local/model")
    llm = LLMManager(session=FakeSession())
    assert llm.api_key == "env-key"
    assert llm.endpoint == "http://localhost:9999/v1/chat/completions"
    assert llm.model == "local/model"


def test_missing_api_key_is_a_generation_error():
    session = FakeSession(FakeResponse(reply_payload("unused")))
    with pytest.raises(GenerationError, match="not configured"):
        LLMManager(api_key="", session=session).generate(MESSAGES)
    assert session.calls == []


def test_http_status_errors_are_wrapped():
    session = FakeSession(FakeResponse(status_code=503))
    with pytest.raises(GenerationError, match="503"):
        make_llm(session).generate(MESSAGES)


def test_network_errors_are_wrapped():
    session = FakeSession(error=requests.Timeout("timed out"))
    with pytest.raises(GenerationError, match="Could not reach"):
        make_llm(session).generate(MESSAGES)


@pytest.mark.parametrize(
    "payload",
    [None, {}, {"choices": []}, reply_payload(""), reply_payload(None)],
)
def test_malformed_or_empty_responses_are_wrapped(payload):
    with pytest.raises(GenerationError):
        make_llm(FakeSession(FakeResponse(payload))).generate(MESSAGES)


@pytest.mark.parametrize(
    "messages",
    [[], [{"role": "tool", "content": "x"}], [{"role": "user", "content": "  "}]],
)
def test_invalid_messages_are_rejected_before_sending(messages):
    session = FakeSession(FakeResponse(reply_payload("unused")))
    with pytest.raises(GenerationError):
        make_llm(session).generate(messages)
    assert session.calls == []
