"""Provider/runtime configuration for the LLM layer.

Architectural role:
    Defines the closed set of provider identifiers, the `LLMConfig` value object
    that selects one active backend, and the environment-driven runtime settings
    consumed by `phrasepilot.llm.client` and `phrasepilot.llm.adapters`.

Model call flow integration:
    - `service.create_service` dispatches on `LLMConfig.provider`.
    - Adapters read `endpoint`, `credential` and `model_identifier` from the
      config snapshot they were built with.
    - `client` reads timeout and rate-limit settings from this module.

Determinism:
    Deterministic for a fixed process environment. Runtime settings are resolved
    at import time after `.env` loading.

Failure behavior:
    Missing or malformed numeric environment values fall back to defaults.
"""

import os
from dataclasses import asdict, dataclass, fields, replace
from enum import Enum

from dotenv import load_dotenv

load_dotenv()


class Provider(str, Enum):
    """Recognized provider identifiers (persisted as their string values)."""

    OPENAI = "OpenAI"
    HUGGING_FACE = "Hugging Face"
    AZURE = "Azure"
    LOCAL = "Local"


# Endpoint suggested for each provider when it is first selected.
DEFAULT_ENDPOINTS = {
    Provider.OPENAI: "https://api.openai.com/v1",
    Provider.HUGGING_FACE: "https://api-inference.huggingface.co/models",
    Provider.AZURE: "https://your-resource-name.openai.azure.com",
    Provider.LOCAL: "http://localhost:11434/api",
}

DEFAULT_MODEL = "gpt-4o-mini"


def _env_float(name, default):
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_int(name, default):
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        return default


# Transport settings. Every outbound call carries this timeout.
REQUEST_TIMEOUT = _env_float("PHRASEPILOT_REQUEST_TIMEOUT", 60.0)

# 429 handling for the OpenAI-compatible adapter.
MAX_RATE_LIMIT_RETRIES = _env_int("PHRASEPILOT_MAX_RATE_LIMIT_RETRIES", 3)
DEFAULT_RETRY_AFTER = 5.0
MAX_RETRY_DELAY = _env_float("PHRASEPILOT_MAX_RETRY_DELAY", 60.0)

AZURE_API_VERSION = "2023-05-15"

# Generation defaults shared by all adapters.
DEFAULT_TEMPERATURE = 0.5
MAX_NEW_TOKENS = 512

# Field of the JSON object every provider is asked to return.
REPHRASE_FIELD = "rephrased"

# System instruction for chat-style providers (OpenAI, Azure).
SYSTEM_MESSAGE = (
    "You are a rephrase assistant. Rephrase the user's input while preserving "
    "meaning and tone. Return only valid JSON in the form "
    '{"rephrased":"..."}.'
)

# Instruction prepended to the user text for completion-style providers.
PROMPT_INSTRUCTION = (
    "You are a rephrase assistant. Rephrase the following text while preserving "
    "its meaning and tone. Return only valid JSON in the format "
    '{"rephrased":"..."}'
)

CONFIG_PATH = os.path.expanduser(
    os.getenv("PHRASEPILOT_CONFIG_PATH", os.path.join("~", ".phrasepilot", "config.json"))
)


@dataclass(frozen=True)
class LLMConfig:
    """Snapshot of the single active backend.

    Attributes:
        provider: Provider identifier. Kept as a plain string so unknown values
            round-trip through storage and reach the factory unchanged.
        endpoint: Base URL of the provider API.
        credential: Opaque secret; empty for providers without auth.
        model_identifier: Model name, or deployment name for Azure.
        is_configured: True once setup finished with a successful connection test.
    """

    provider: str = Provider.OPENAI.value
    endpoint: str = DEFAULT_ENDPOINTS[Provider.OPENAI]
    credential: str = ""
    model_identifier: str = DEFAULT_MODEL
    is_configured: bool = False

    def is_ready(self) -> bool:
        """Return True when setup completed and a credential is present."""
        return bool(self.is_configured and self.credential)

    def with_updates(self, **changes) -> "LLMConfig":
        return replace(self, **changes)

    def url(self, path: str = "") -> str:
        """Join `path` onto the endpoint without doubling the separator."""
        base = self.endpoint[:-1] if self.endpoint.endswith("/") else self.endpoint
        return f"{base}{path}"

    def to_dict(self) -> dict:
        return asdict(self)

    def redacted(self) -> dict:
        """Return `to_dict()` with the credential masked.

        Credentials longer than eight characters keep their last four visible.
        """
        data = self.to_dict()
        secret = self.credential
        if len(secret) > 8:
            data["credential"] = "*" * (len(secret) - 4) + secret[-4:]
        else:
            data["credential"] = "*" * len(secret)
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "LLMConfig":
        """Build a config from stored data, ignoring unknown keys.

        Missing keys take their default values. `provider` is normalized to its
        string value so enum members and plain strings compare equal.
        """
        known = {f.name for f in fields(cls)}
        values = {k: v for k, v in data.items() if k in known}
        if isinstance(values.get("provider"), Provider):
            values["provider"] = values["provider"].value
        if "is_configured" in values:
            values["is_configured"] = bool(values["is_configured"])
        return cls(**values)


DEFAULT_CONFIG = LLMConfig()


def default_endpoint(provider) -> str:
    """Return the suggested endpoint for `provider`, or "" when unknown."""
    try:
        return DEFAULT_ENDPOINTS[Provider(provider)]
    except ValueError:
        return ""


def load_config_from_env(base: LLMConfig = DEFAULT_CONFIG) -> LLMConfig:
    """Overlay `PHRASEPILOT_*` environment values onto `base`.

    Resolution order:
        1. `PHRASEPILOT_PROVIDER`; switching provider without an explicit
           `PHRASEPILOT_ENDPOINT` also switches to that provider's default endpoint.
        2. `PHRASEPILOT_ENDPOINT`, `PHRASEPILOT_API_KEY`, `PHRASEPILOT_MODEL`.

    Edge cases:
        - Unset or blank variables leave the base value untouched.
        - `is_configured` is never set from the environment.
    """
    changes = {}

    provider = (os.getenv("PHRASEPILOT_PROVIDER") or "").strip()
    if provider and provider != base.provider:
        changes["provider"] = provider
        endpoint = default_endpoint(provider)
        if endpoint:
            changes["endpoint"] = endpoint

    for env_name, field_name in (
        ("PHRASEPILOT_ENDPOINT", "endpoint"),
        ("PHRASEPILOT_API_KEY", "credential"),
        ("PHRASEPILOT_MODEL", "model_identifier"),
    ):
        value = (os.getenv(env_name) or "").strip()
        if value:
            changes[field_name] = value

    return base.with_updates(**changes) if changes else base
