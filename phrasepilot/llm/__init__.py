"""LLM access package.

Architectural role:
    Provides provider configuration, the normalized result type, transport
    helpers, and the per-provider adapters used by presentation layers to
    rephrase text through interchangeable text-generation backends.

Module split:
    - `provider_config`: provider identifiers, `LLMConfig`, runtime settings.
    - `result_types`: `RephraseResult`.
    - `client`: HTTP transport, retry and response-text extraction helpers.
    - `adapters`: one adapter class per provider.
    - `service`: adapter factory and setup helpers.
"""

from phrasepilot.llm.provider_config import LLMConfig, Provider
from phrasepilot.llm.result_types import RephraseResult
from phrasepilot.llm.service import create_service

__all__ = ["LLMConfig", "Provider", "RephraseResult", "create_service"]
