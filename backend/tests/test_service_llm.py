import pytest
import httpx # Import for httpx.RequestError, httpx.HTTPStatusError
from unittest.mock import MagicMock, patch

from app.services import llm
from app.services.errors import ContentGenerationError
from app.services.llm import (
    AnthropicGenerator,
    GeminiGenerator,
    OllamaGenerator,
    OpenAIGenerator,
    create_content_generator,
    find_model,
)


def _response(payload):
    mock_response = MagicMock()
    mock_response.json.return_value = payload
    mock_response.raise_for_status = MagicMock() # no HTTP error
    return mock_response


def _status_error(code):
    request = httpx.Request("POST", "https://llm.test")
    return httpx.HTTPStatusError("error", request=request, response=httpx.Response(code, request=request))


# --- Provider variants ---

@patch("httpx.Client.post")
def test_gemini_generate(mock_post):
    mock_post.return_value = _response({"candidates": [{"content": {"parts": [{"text": "<p>Hello</p>"}]}}]})

    text = GeminiGenerator("g-key", "gemini-2.5-flash").generate("Write something")

    assert text == "<p>Hello</p>"
    args, kwargs = mock_post.call_args
    assert args[0].endswith("/models/gemini-2.5-flash:generateContent")
    assert kwargs["params"] == {"key": "g-key"}
    assert kwargs["json"]["contents"][0]["parts"][0]["text"] == "Write something"


@patch("httpx.Client.post")
def test_openai_generate(mock_post):
    mock_post.return_value = _response({"choices": [{"message": {"content": "Article"}}]})

    assert OpenAIGenerator("o-key", "gpt-4o").generate("prompt") == "Article"
    assert mock_post.call_args.kwargs["headers"]["Authorization"] == "Bearer o-key"


@patch("httpx.Client.post")
def test_anthropic_generate_joins_text_blocks(mock_post):
    mock_post.return_value = _response({"content": [{"type": "text", "text": "Part 1 "}, {"type": "text", "text": "Part 2"}]})

    assert AnthropicGenerator("a-key", "claude-3-opus-20240229").generate("prompt") == "Part 1 Part 2"
    assert mock_post.call_args.kwargs["headers"]["x-api-key"] == "a-key"


@patch("httpx.Client.post")
def test_ollama_generate(mock_post):
    mock_post.return_value = _response({"response": "Local text", "done": True})

    text = OllamaGenerator("", "llama3", base_url="http://ollama:11434/").generate("prompt")

    assert text == "Local text"
    args, kwargs = mock_post.call_args
    assert args[0] == "http://ollama:11434/api/generate"
    assert kwargs["json"]["stream"] is False


@patch("httpx.Client.post")
def test_empty_response_is_an_error(mock_post):
    mock_post.return_value = _response({"choices": [{"message": {"content": "   "}}]})

    with pytest.raises(ContentGenerationError) as exc_info:
        OpenAIGenerator("o-key", "gpt-4o").generate("prompt")
    assert exc_info.value.retryable is True


@patch("httpx.Client.post")
def test_server_error_is_retryable(mock_post):
    mock_post.side_effect = _status_error(503)

    with pytest.raises(ContentGenerationError) as exc_info:
        GeminiGenerator("g-key", "gemini-1.5-pro").generate("prompt")
    assert exc_info.value.retryable is True


@patch("httpx.Client.post")
def test_auth_error_is_not_retryable(mock_post):
    mock_post.side_effect = _status_error(401)

    with pytest.raises(ContentGenerationError) as exc_info:
        OpenAIGenerator("bad", "gpt-4o").generate("prompt")
    assert exc_info.value.retryable is False


@patch("httpx.Client.post")
def test_request_error_is_retryable(mock_post):
    mock_post.side_effect = httpx.RequestError("Connection failed", request=httpx.Request("POST", "https://llm.test"))

    with pytest.raises(ContentGenerationError) as exc_info:
        AnthropicGenerator("a-key", "claude-3-opus-20240229").generate("prompt")
    assert exc_info.value.retryable is True


# --- Factory ---

def test_factory_uses_explicit_key():
    generator = create_content_generator("gpt-4o", "sk-user")
    assert isinstance(generator, OpenAIGenerator)
    assert generator.api_key == "sk-user"
    assert generator.max_tokens == find_model("gpt-4o").max_tokens


def test_factory_falls_back_to_configured_key(monkeypatch):
    monkeypatch.setattr(llm.settings, "GEMINI_API_KEY", "configured-key")

    generator = create_content_generator()

    assert isinstance(generator, GeminiGenerator)
    assert generator.model_id == llm.settings.DEFAULT_AI_MODEL
    assert generator.api_key == "configured-key"


def test_factory_without_key_fails_permanently(monkeypatch):
    monkeypatch.setattr(llm.settings, "ANTHROPIC_API_KEY", "")

    with pytest.raises(ContentGenerationError) as exc_info:
        create_content_generator("claude-3-5-sonnet-20241022")
    assert exc_info.value.retryable is False


def test_factory_ollama_needs_no_key():
    assert isinstance(create_content_generator("llama3"), OllamaGenerator)


def test_factory_unknown_model():
    with pytest.raises(ContentGenerationError):
        create_content_generator("gpt-99")
