"""Provider adapters implementing the generic rephrase contract.

Architectural role:
    One class per provider translates `rephrase(text, options)` and
    `list_models()` into that provider's wire format and maps its response back
    to a `RephraseResult`. `phrasepilot.llm.service.create_service` selects the
    class; nothing else dispatches on provider identity.

Provider handling:
    - OpenAI-compatible: Bearer auth, `POST {endpoint}/chat/completions`,
      JSON-object response format, bounded retry on HTTP 429.
    - Hugging Face: Bearer auth, `POST {endpoint}`, single `[INST]` prompt.
    - Azure OpenAI: `api-key` header, deployment-scoped chat completions with a
      pinned `api-version`.
    - Local/self-hosted: no auth, `POST {endpoint}/generate`.

State:
    Adapters hold only the `LLMConfig` snapshot they were built with, so calls
    on the same instance can run concurrently without coordination.

Failure handling model:
    - `rephrase` never raises for transport or HTTP failures; they become a
      failed `RephraseResult` with a sanitized message.
    - Bodies that are not shaped as expected degrade to returning the raw text.
    - `list_models` degrades to an empty list on any failure.
    - An invalid `temperature` option raises `ValueError` before any request.
"""

import logging
from typing import Protocol

import requests

from phrasepilot.llm.client import (
    build_sanitized_http_error,
    json_headers,
    read_json,
    rephrased_from_generated_text,
    rephrased_from_json_text,
    sanitize_runtime_error,
    send_request,
    send_with_rate_limit_retry,
)
from phrasepilot.llm.provider_config import (
    AZURE_API_VERSION,
    DEFAULT_TEMPERATURE,
    MAX_NEW_TOKENS,
    PROMPT_INSTRUCTION,
    SYSTEM_MESSAGE,
    LLMConfig,
    Provider,
)
from phrasepilot.llm.result_types import RephraseResult


logger = logging.getLogger(__name__)

# The inference API cannot enumerate models; these are offered instead.
HUGGING_FACE_RECOMMENDED_MODELS = [
    "meta-llama/Meta-Llama-3-8B",
    "meta-llama/Meta-Llama-3-70B",
    "mistralai/Mistral-7B-Instruct-v0.2",
    "mistralai/Mixtral-8x7B-Instruct-v0.1",
    "google/gemma-7b",
    "google/gemma-2b",
    "facebook/opt-6.7b",
]

_LIST_MODELS_ERRORS = (
    requests.exceptions.RequestException,
    ValueError,
    KeyError,
    IndexError,
    TypeError,
    RecursionError,
)


class LLMService(Protocol):
    """Interface shared by every provider adapter."""

    def list_models(self) -> list[str]:
        """Return model identifiers, or an empty list when discovery fails."""
        ...

    def rephrase(self, text: str, options: dict | None = None) -> RephraseResult:
        """Rephrase `text`; failures are reported in the result."""
        ...


def resolve_temperature(options: dict | None) -> float:
    """Read the `temperature` option, defaulting to `DEFAULT_TEMPERATURE`.

    Raises:
        ValueError: The option is present but not a number.
    """
    if not options or options.get("temperature") is None:
        return DEFAULT_TEMPERATURE
    value = options["temperature"]
    if isinstance(value, bool):
        raise ValueError(f"temperature must be a number, got {value!r}")
    try:
        return float(value)
    except (TypeError, ValueError):
        raise ValueError(f"temperature must be a number, got {value!r}") from None


def build_prompt(text: str) -> str:
    return f"{PROMPT_INSTRUCTION}:\n\n{text}"


def chat_messages(text: str) -> list[dict]:
    return [
        {"role": "system", "content": SYSTEM_MESSAGE},
        {"role": "user", "content": text},
    ]


def chat_content(response) -> str:
    """Return `choices[0].message.content`, or the raw body when it is missing."""
    data = read_json(response)
    try:
        content = data["choices"][0]["message"]["content"]
    except (KeyError, IndexError, TypeError):
        return response.text
    if content is None:
        return ""
    if not isinstance(content, str):
        return response.text
    return content


def finish(provider_name: str, text: str) -> RephraseResult:
    """Wrap extracted text; an empty extraction counts as a failure."""
    text = (text or "").strip()
    if not text:
        return RephraseResult.failure(f"{provider_name.upper()} RETURNED EMPTY RESPONSE")
    return RephraseResult.success(text)


def _fail(provider_name: str, err: Exception) -> RephraseResult:
    if isinstance(err, requests.exceptions.RequestException):
        message = build_sanitized_http_error(provider_name, err)
        logger.error("%s rephrase failed: %s", provider_name, message)
    else:
        message = sanitize_runtime_error(provider_name)
        logger.exception("%s rephrase failed unexpectedly", provider_name)
    return RephraseResult.failure(message)


class OpenAIService:
    """OpenAI-compatible chat completions adapter."""

    name = Provider.OPENAI.value

    def __init__(self, config: LLMConfig):
        self.config = config

    def _headers(self) -> dict:
        return json_headers(Authorization=f"Bearer {self.config.credential}")

    def list_models(self) -> list[str]:
        try:
            response = send_request("GET", self.config.url("/models"), self._headers())
            response.raise_for_status()
            return [model["id"] for model in response.json()["data"]]
        except _LIST_MODELS_ERRORS as err:
            logger.warning("%s model listing failed: %s", self.name, type(err).__name__)
            return []

    def rephrase(self, text: str, options: dict | None = None) -> RephraseResult:
        payload = {
            "model": self.config.model_identifier,
            "messages": chat_messages(text),
            "temperature": resolve_temperature(options),
            "response_format": {"type": "json_object"},
        }
        try:
            response = send_with_rate_limit_retry(
                "POST",
                self.config.url("/chat/completions"),
                self._headers(),
                payload,
                provider_name=self.name,
            )
            response.raise_for_status()
            content = chat_content(response)
        except Exception as err:
            return _fail(self.name, err)
        return finish(self.name, rephrased_from_json_text(content))


class HuggingFaceService:
    """Hugging Face text-generation inference adapter."""

    name = Provider.HUGGING_FACE.value

    def __init__(self, config: LLMConfig):
        self.config = config

    def list_models(self) -> list[str]:
        return list(HUGGING_FACE_RECOMMENDED_MODELS)

    def rephrase(self, text: str, options: dict | None = None) -> RephraseResult:
        payload = {
            "inputs": f"<s>[INST]{build_prompt(text)}[/INST]</s>",
            "parameters": {
                "temperature": resolve_temperature(options),
                "max_new_tokens": MAX_NEW_TOKENS,
                "return_full_text": False,
            },
        }
        headers = json_headers(Authorization=f"Bearer {self.config.credential}")
        try:
            response = send_request("POST", self.config.url(), headers, payload)
            response.raise_for_status()
            content = self._generated_text(response)
        except Exception as err:
            return _fail(self.name, err)
        return finish(self.name, rephrased_from_generated_text(content))

    @staticmethod
    def _generated_text(response) -> str:
        data = read_json(response)
        if isinstance(data, list) and data and isinstance(data[0], dict):
            data = data[0]
        if isinstance(data, dict) and isinstance(data.get("generated_text"), str):
            return data["generated_text"]
        return response.text


class AzureService:
    """Azure OpenAI deployment adapter."""

    name = Provider.AZURE.value

    def __init__(self, config: LLMConfig):
        self.config = config

    def _headers(self) -> dict:
        return json_headers(**{"api-key": self.config.credential})

    def list_models(self) -> list[str]:
        url = self.config.url(f"/openai/deployments?api-version={AZURE_API_VERSION}")
        try:
            response = send_request("GET", url, self._headers())
            response.raise_for_status()
            return [deployment["id"] for deployment in response.json()["value"]]
        except _LIST_MODELS_ERRORS as err:
            logger.warning("%s deployment listing failed: %s", self.name, type(err).__name__)
            return []

    def rephrase(self, text: str, options: dict | None = None) -> RephraseResult:
        url = self.config.url(
            f"/openai/deployments/{self.config.model_identifier}"
            f"/chat/completions?api-version={AZURE_API_VERSION}"
        )
        payload = {
            "messages": chat_messages(text),
            "temperature": resolve_temperature(options),
            "response_format": {"type": "json_object"},
        }
        try:
            response = send_request("POST", url, self._headers(), payload)
            response.raise_for_status()
            content = chat_content(response)
        except Exception as err:
            return _fail(self.name, err)
        return finish(self.name, rephrased_from_json_text(content))


class LocalLLMService:
    """Self-hosted generation server adapter (no auth)."""

    name = Provider.LOCAL.value

    # Checked in this order for the generated text.
    TEXT_FIELDS = ("response", "output", "generated_text")

    def __init__(self, config: LLMConfig):
        self.config = config

    def list_models(self) -> list[str]:
        try:
            response = send_request("GET", self.config.url("/models"), json_headers())
            response.raise_for_status()
            data = response.json()
        except _LIST_MODELS_ERRORS as err:
            logger.warning("%s model listing failed: %s", self.name, type(err).__name__)
            return []

        if not isinstance(data, list):
            return [self.config.model_identifier] if self.config.model_identifier else []

        models = []
        for item in data:
            if isinstance(item, str):
                models.append(item)
            elif isinstance(item, dict):
                model_id = item.get("name") or item.get("id")
                if model_id:
                    models.append(str(model_id))
        return models

    def rephrase(self, text: str, options: dict | None = None) -> RephraseResult:
        payload = {
            "model": self.config.model_identifier,
            "prompt": build_prompt(text),
            "temperature": resolve_temperature(options),
            "max_tokens": MAX_NEW_TOKENS,
        }
        try:
            response = send_request("POST", self.config.url("/generate"), json_headers(), payload)
            response.raise_for_status()
            content = self._generated_text(response)
        except Exception as err:
            return _fail(self.name, err)
        return finish(self.name, rephrased_from_generated_text(content))

    def _generated_text(self, response) -> str:
        data = read_json(response)
        if not isinstance(data, dict):
            return response.text
        for field in self.TEXT_FIELDS:
            value = data.get(field)
            if value:
                return str(value)
        return ""
