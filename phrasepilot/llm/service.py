"""Adapter factory and setup helpers for the rephrase layer.

Architectural role:
    Provides the canonical entrypoint used by the CLI and HTTP layers: build an
    adapter for a config snapshot, then call `rephrase` or `list_models` on it.

Model call flow:
    config -> `create_service(config)` -> adapter -> provider HTTP call.

Provider selection:
    Exact match on `config.provider`. Unrecognized identifiers fall back to the
    OpenAI-compatible adapter; the fallback is logged, never raised.

Determinism:
    Adapter selection is deterministic for a fixed config. Generated output is
    not, because inference runs remotely.
"""

import logging

from phrasepilot.llm.adapters import (
    AzureService,
    HuggingFaceService,
    LLMService,
    LocalLLMService,
    OpenAIService,
)
from phrasepilot.llm.provider_config import LLMConfig, Provider
from phrasepilot.llm.result_types import RephraseResult


logger = logging.getLogger(__name__)

SERVICES = {
    Provider.OPENAI.value: OpenAIService,
    Provider.HUGGING_FACE.value: HuggingFaceService,
    Provider.AZURE.value: AzureService,
    Provider.LOCAL.value: LocalLLMService,
}


def create_service(config: LLMConfig) -> LLMService:
    """Return the adapter matching `config.provider`.

    Edge cases:
        - Enum members and their string values select the same adapter.
        - Any other value selects `OpenAIService`.
    """
    provider = config.provider.value if isinstance(config.provider, Provider) else config.provider
    service_cls = SERVICES.get(provider)
    if service_cls is None:
        logger.warning("Unknown provider %r; using the OpenAI-compatible adapter", provider)
        service_cls = OpenAIService
    return service_cls(config)


def missing_setup_fields(config: LLMConfig) -> list[str]:
    """Return the names of setup fields that are blank in `config`.

    Every provider needs all four, Local included, so a saved configuration
    never has `is_configured` without a credential.
    """
    return [
        name
        for name, value in (
            ("provider", str(config.provider).strip()),
            ("endpoint", config.endpoint.strip()),
            ("credential", config.credential),
            ("model_identifier", config.model_identifier.strip()),
        )
        if not value
    ]


def check_connection(config: LLMConfig) -> list[str]:
    """List models through a fresh adapter; an empty list means no connection."""
    return create_service(config).list_models()


def complete_setup(config: LLMConfig, store) -> bool:
    """Verify connectivity and persist `config` as configured.

    Args:
        config: Candidate configuration from the setup flow.
        store: Object exposing `save_config(config)`.

    Returns:
        True when at least one model was listed and the config was saved;
        False when the connection test found nothing (nothing is saved).

    Failure scenarios:
        - Blank setup fields raise `ValueError` before any request.
        - Store write errors propagate to the caller.
    """
    missing = missing_setup_fields(config)
    if missing:
        raise ValueError(f"Missing fields: {', '.join(missing)}")

    models = check_connection(config)
    if not models:
        logger.warning("Connection test for %s found no models", config.provider)
        return False

    store.save_config(config.with_updates(is_configured=True))
    logger.info("Saved %s configuration (%d models available)", config.provider, len(models))
    return True


def rephrase_text(config: LLMConfig, text: str, temperature: float | None = None) -> RephraseResult:
    """One-call convenience: build an adapter and rephrase `text`."""
    options = {} if temperature is None else {"temperature": temperature}
    return create_service(config).rephrase(text, options)
