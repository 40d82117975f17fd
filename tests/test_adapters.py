"""Test per-provider rephrase wire formats and result normalization."""

from __future__ import annotations

import json

import pytest
import requests

from conftest import chat_body, make_response
from phrasepilot.llm.adapters import (
    AzureService,
    HuggingFaceService,
    LocalLLMService,
    OpenAIService,
    resolve_temperature,
)
from phrasepilot.llm.provider_config import SYSTEM_MESSAGE, Provider
from phrasepilot.llm.result_types import RephraseResult


SUCCESS_BODIES = {
    Provider.OPENAI: chat_body(json.dumps({"rephrased": "Hi there, friend."})),
    Provider.HUGGING_FACE: [{"generated_text": ' Sure! {"rephrased": "Hi there, friend."}'}],
    Provider.AZURE: chat_body(json.dumps({"rephrased": "Hi there, friend."})),
    Provider.LOCAL: {"response": '{"rephrased": "Hi there, friend."}'},
}

SERVICE_CLASSES = {
    Provider.OPENAI: OpenAIService,
    Provider.HUGGING_FACE: HuggingFaceService,
    Provider.AZURE: AzureService,
    Provider.LOCAL: LocalLLMService,
}


@pytest.mark.parametrize("provider", list(Provider))
def test_rephrase_success(provider, configs, transport):
    fake = transport(make_response(200, SUCCESS_BODIES[provider]))
    service = SERVICE_CLASSES[provider](configs[provider])

    result = service.rephrase("Hello, buddy.")

    assert result == RephraseResult(rephrased_text="Hi there, friend.", error_message=None)
    assert result.ok
    assert len(fake.calls) == 1
    assert fake.calls[0]["method"] == "POST"
    assert fake.calls[0]["timeout"] > 0


@pytest.mark.parametrize("provider", list(Provider))
def test_rephrase_server_error_is_not_retried(provider, configs, transport, sleeps):
    fake = transport(make_response(500, {"error": "boom"}))
    service = SERVICE_CLASSES[provider](configs[provider])

    result = service.rephrase("Hello, buddy.")

    assert result.rephrased_text == ""
    assert result.error_message
    assert "500" in result.error_message
    assert len(fake.calls) == 1
    assert sleeps == []


def test_openai_request_shape(configs, transport):
    fake = transport(make_response(200, SUCCESS_BODIES[Provider.OPENAI]))

    OpenAIService(configs[Provider.OPENAI]).rephrase("Hello, buddy.", {"temperature": 0.9})

    call = fake.calls[0]
    assert call["url"] == "https://api.openai.com/v1/chat/completions"
    assert call["headers"]["Authorization"] == "Bearer sk-test"
    assert call["headers"]["Content-Type"] == "application/json"
    assert call["json"] == {
        "model": "gpt-4o-mini",
        "messages": [
            {"role": "system", "content": SYSTEM_MESSAGE},
            {"role": "user", "content": "Hello, buddy."},
        ],
        "temperature": 0.9,
        "response_format": {"type": "json_object"},
    }


def test_huggingface_request_shape(configs, transport):
    fake = transport(make_response(200, SUCCESS_BODIES[Provider.HUGGING_FACE]))
    config = configs[Provider.HUGGING_FACE]

    HuggingFaceService(config).rephrase("Hello, buddy.")

    call = fake.calls[0]
    assert call["url"] == config.endpoint
    assert call["headers"]["Authorization"] == "Bearer hf-test"
    body = call["json"]
    assert body["inputs"].startswith("<s>[INST]You are a rephrase assistant.")
    assert body["inputs"].endswith(":\n\nHello, buddy.[/INST]</s>")
    assert body["parameters"] == {"temperature": 0.5, "max_new_tokens": 512, "return_full_text": False}


def test_azure_request_shape(configs, transport):
    fake = transport(make_response(200, SUCCESS_BODIES[Provider.AZURE]))

    AzureService(configs[Provider.AZURE]).rephrase("Hello, buddy.")

    call = fake.calls[0]
    assert call["url"] == (
        "https://example.openai.azure.com/openai/deployments/my-deployment"
        "/chat/completions?api-version=2023-05-15"
    )
    assert call["headers"]["api-key"] == "azure-test"
    assert "Authorization" not in call["headers"]
    assert "model" not in call["json"]
    assert call["json"]["response_format"] == {"type": "json_object"}
    assert call["json"]["temperature"] == 0.5


def test_local_request_shape(configs, transport):
    fake = transport(make_response(200, SUCCESS_BODIES[Provider.LOCAL]))

    LocalLLMService(configs[Provider.LOCAL]).rephrase("Hello, buddy.", {"temperature": 0.2})

    call = fake.calls[0]
    assert call["url"] == "http://localhost:11434/api/generate"
    assert "Authorization" not in call["headers"]
    assert call["json"]["model"] == "llama3"
    assert call["json"]["prompt"].endswith(":\n\nHello, buddy.")
    assert call["json"]["temperature"] == 0.2
    assert call["json"]["max_tokens"] == 512


def test_trailing_slash_on_endpoint_is_not_doubled(configs, transport):
    fake = transport(make_response(200, SUCCESS_BODIES[Provider.OPENAI]))
    config = configs[Provider.OPENAI].with_updates(endpoint="https://api.openai.com/v1/")

    OpenAIService(config).rephrase("Hello")

    assert fake.calls[0]["url"] == "https://api.openai.com/v1/chat/completions"


@pytest.mark.parametrize("provider", [Provider.OPENAI, Provider.AZURE])
def test_chat_content_not_json_is_returned_verbatim(provider, configs, transport):
    transport(make_response(200, chat_body("Just rephrased text, no JSON.")))

    result = SERVICE_CLASSES[provider](configs[provider]).rephrase("Hello")

    assert result == RephraseResult("Just rephrased text, no JSON.", None)


def test_generated_text_without_json_is_returned_verbatim(configs, transport):
    transport(make_response(200, [{"generated_text": "Just rephrased text, no JSON."}]))

    result = HuggingFaceService(configs[Provider.HUGGING_FACE]).rephrase("Hello")

    assert result.rephrased_text == "Just rephrased text, no JSON."
    assert result.error_message is None


def test_generated_text_with_broken_json_falls_back(configs, transport):
    transport(make_response(200, {"response": 'Result: {"rephrased": "unterminated}'}))

    result = LocalLLMService(configs[Provider.LOCAL]).rephrase("Hello")

    assert result.rephrased_text == 'Result: {"rephrased": "unterminated}'
    assert result.ok


def test_json_without_rephrase_field_returns_content(configs, transport):
    transport(make_response(200, chat_body('{"text": "other"}')))

    result = OpenAIService(configs[Provider.OPENAI]).rephrase("Hello")

    assert result.rephrased_text == '{"text": "other"}'


def test_malformed_envelope_returns_raw_body(configs, transport):
    transport(make_response(200, text="plain body from a proxy"))

    result = OpenAIService(configs[Provider.OPENAI]).rephrase("Hello")

    assert result == RephraseResult("plain body from a proxy", None)


def test_local_text_field_priority(configs, transport):
    body = {"output": '{"rephrased": "from output"}', "generated_text": '{"rephrased": "from generated"}'}
    transport(make_response(200, body))

    result = LocalLLMService(configs[Provider.LOCAL]).rephrase("Hello")

    assert result.rephrased_text == "from output"


def test_local_empty_generation_is_an_error(configs, transport):
    transport(make_response(200, {"done": True}))

    result = LocalLLMService(configs[Provider.LOCAL]).rephrase("Hello")

    assert result.rephrased_text == ""
    assert result.error_message == "LOCAL RETURNED EMPTY RESPONSE"


def test_huggingface_accepts_object_response(configs, transport):
    transport(make_response(200, {"generated_text": '{"rephrased": "object form"}'}))

    result = HuggingFaceService(configs[Provider.HUGGING_FACE]).rephrase("Hello")

    assert result.rephrased_text == "object form"


@pytest.mark.parametrize(
    ("error", "expected"),
    [
        (requests.exceptions.ConnectionError("refused"), "OPENAI CONNECTION FAILED"),
        (requests.exceptions.Timeout("slow"), "OPENAI REQUEST TIMED OUT"),
    ],
)
def test_network_failure_becomes_error_result(error, expected, configs, transport):
    transport(error)

    result = OpenAIService(configs[Provider.OPENAI]).rephrase("Hello")

    assert result == RephraseResult("", expected)


def test_error_message_never_contains_credential(configs, transport):
    transport(make_response(401, {"error": "bad key sk-test"}))

    result = AzureService(configs[Provider.AZURE]).rephrase("Hello")

    assert result.error_message == "AZURE HTTP ERROR (401)"
    assert "azure-test" not in result.error_message


def test_invalid_temperature_raises_before_request(configs, transport):
    fake = transport(make_response(200, SUCCESS_BODIES[Provider.OPENAI]))

    with pytest.raises(ValueError):
        OpenAIService(configs[Provider.OPENAI]).rephrase("Hello", {"temperature": "hot"})

    assert fake.calls == []


def test_resolve_temperature():
    assert resolve_temperature(None) == 0.5
    assert resolve_temperature({}) == 0.5
    assert resolve_temperature({"temperature": None}) == 0.5
    assert resolve_temperature({"temperature": 1}) == 1.0
    assert resolve_temperature({"temperature": "0.3"}) == 0.3
    with pytest.raises(ValueError):
        resolve_temperature({"temperature": True})


DEEPLY_NESTED = '{"a":' * 100000 + "1" + "}" * 100000


def test_deeply_nested_chat_content_returns_raw_text(configs, transport):
    transport(make_response(200, chat_body(DEEPLY_NESTED)))

    result = OpenAIService(configs[Provider.OPENAI]).rephrase("Hello")

    assert result == RephraseResult(DEEPLY_NESTED, None)


def test_deeply_nested_local_generation_returns_raw_text(configs, transport):
    transport(make_response(200, {"response": DEEPLY_NESTED}))

    result = LocalLLMService(configs[Provider.LOCAL]).rephrase("Hello")

    assert result == RephraseResult(DEEPLY_NESTED, None)
