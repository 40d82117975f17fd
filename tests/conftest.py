"""Shared fixtures: a recording fake for the HTTP layer and a no-op sleep."""

from __future__ import annotations

import json

import pytest
import requests

from phrasepilot.llm.provider_config import LLMConfig, Provider


def make_response(status=200, json_body=None, text=None, headers=None):
    """Build a real `requests.Response` without touching the network."""
    response = requests.Response()
    response.status_code = status
    if json_body is not None:
        response._content = json.dumps(json_body).encode("utf-8")
    else:
        response._content = (text or "").encode("utf-8")
    response.encoding = "utf-8"
    response.headers.update(headers or {})
    response.url = "http://provider.test"
    return response


def chat_body(content):
    return {"choices": [{"index": 0, "message": {"role": "assistant", "content": content}}]}


class FakeTransport:
    """Stands in for `requests.request`; replays queued responses in order.

    The last queued item repeats once the queue is down to one entry.
    Exceptions in the queue are raised instead of returned.
    """

    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls = []

    def __call__(self, method, url, headers=None, json=None, timeout=None, **kwargs):
        self.calls.append(
            {"method": method, "url": url, "headers": headers or {}, "json": json, "timeout": timeout}
        )
        item = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(item, Exception):
            raise item
        return item


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ("PHRASEPILOT_PROVIDER", "PHRASEPILOT_ENDPOINT", "PHRASEPILOT_API_KEY", "PHRASEPILOT_MODEL"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def transport(monkeypatch):
    def install(*responses):
        fake = FakeTransport(*responses)
        monkeypatch.setattr("phrasepilot.llm.client.requests.request", fake)
        return fake

    return install


@pytest.fixture
def sleeps(monkeypatch):
    calls = []
    monkeypatch.setattr("phrasepilot.llm.client.time.sleep", calls.append)
    return calls


@pytest.fixture
def configs():
    return {
        Provider.OPENAI: LLMConfig(
            provider="OpenAI",
            endpoint="https://api.openai.com/v1",
            credential="sk-test",
            model_identifier="gpt-4o-mini",
        ),
        Provider.HUGGING_FACE: LLMConfig(
            provider="Hugging Face",
            endpoint="https://api-inference.huggingface.co/models/mistralai/Mistral-7B-Instruct-v0.2",
            credential="hf-test",
            model_identifier="mistralai/Mistral-7B-Instruct-v0.2",
        ),
        Provider.AZURE: LLMConfig(
            provider="Azure",
            endpoint="https://example.openai.azure.com",
            credential="azure-test",
            model_identifier="my-deployment",
        ),
        Provider.LOCAL: LLMConfig(
            provider="Local",
            endpoint="http://localhost:11434/api",
            credential="",
            model_identifier="llama3",
        ),
    }
