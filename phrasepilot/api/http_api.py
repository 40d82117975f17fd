"""
HTTP API adapter for the PhrasePilot rephrase core.

Architectural role:
- Expose the two core operations (`rephrase`, `list_models`) and the
  configuration store over HTTP.
- Enforce adapter-level input validation.
- Delegate all provider work to `phrasepilot.llm.service.create_service`.

Endpoint responsibilities:
- `GET /v1/models`: model discovery through the active adapter.
- `POST /v1/rephrase`: validate input and return the normalized result.
- `GET /v1/config`: stored configuration with the credential masked.
- `PUT /v1/config`: connection test, then save as configured.
- `DELETE /v1/config`: clear the stored configuration.

Input validation behavior:
- Empty or whitespace-only `text` -> HTTP 400.
- `temperature` outside [0, 2] or non-numeric -> HTTP 422 (pydantic).
- Missing configuration fields on `PUT /v1/config` -> HTTP 400.

Error handling strategy:
- Provider failures are data: `POST /v1/rephrase` answers 200 with `error` set.
- A failed connection test answers 400 and saves nothing.
- Store write failures answer 500 with a generic message.

Side effects:
- Reads and writes the JSON config file behind the active `ConfigStore`.
- Loads environment variables at import time via `load_dotenv()`.
"""

from dotenv import load_dotenv

load_dotenv()

import logging

from fastapi import FastAPI
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from phrasepilot.llm.provider_config import LLMConfig, default_endpoint, load_config_from_env
from phrasepilot.llm.service import complete_setup, create_service, missing_setup_fields
from phrasepilot.storage.config_store import ConfigStore


logger = logging.getLogger(__name__)

app = FastAPI(title="PhrasePilot")

_STORE: ConfigStore | None = None


def set_config_store(store: ConfigStore | None) -> None:
    """Override or reset the store used by every endpoint.

    Passing `None` restores the default file-backed store on next use.
    """
    global _STORE
    _STORE = store


def get_config_store() -> ConfigStore:
    global _STORE
    if _STORE is None:
        _STORE = ConfigStore()
    return _STORE


def active_config() -> LLMConfig:
    return load_config_from_env(get_config_store().get_config())


# ============================================================
# Request Schemas
# ============================================================

class RephraseRequest(BaseModel):
    text: str
    temperature: float | None = Field(default=None, ge=0.0, le=2.0)


class ConfigRequest(BaseModel):
    """Setup payload. `endpoint` defaults to the provider's suggested URL."""

    provider: str
    endpoint: str = ""
    credential: str = ""
    model_identifier: str = ""


# ============================================================
# Core Operations
# ============================================================

@app.get("/v1/models")
def list_models():
    return {"models": create_service(active_config()).list_models()}


@app.post("/v1/rephrase")
def rephrase(request: RephraseRequest):
    """
    Rephrase `text` through the active adapter.

    Response formatting:
    - `{"rephrased": <text>, "error": null}` on success.
    - `{"rephrased": "", "error": <message>}` on provider failure.
    """
    if not request.text.strip():
        return JSONResponse(status_code=400, content={"error": "No text provided"})

    options = {}
    if request.temperature is not None:
        options["temperature"] = request.temperature

    result = create_service(active_config()).rephrase(request.text, options)
    return {"rephrased": result.rephrased_text, "error": result.error_message}


# ============================================================
# Configuration
# ============================================================

@app.get("/v1/config")
def get_config():
    store = get_config_store()
    return {"configured": store.is_configured(), "config": store.get_config().redacted()}


@app.put("/v1/config")
def put_config(request: ConfigRequest):
    """
    Validate, connection-test and persist a new configuration.

    Input validation behavior:
    - `provider`, `credential` and `model_identifier` are required.
    - A blank `endpoint` takes the provider's default; unknown providers
      without an endpoint are rejected.
    """
    provider = request.provider.strip()
    config = LLMConfig(
        provider=provider,
        endpoint=request.endpoint.strip() or default_endpoint(provider),
        credential=request.credential,
        model_identifier=request.model_identifier.strip(),
    )

    missing = missing_setup_fields(config)
    if missing:
        return JSONResponse(
            status_code=400,
            content={"error": f"Missing fields: {', '.join(missing)}"},
        )

    store = get_config_store()
    try:
        saved = complete_setup(config, store)
    except OSError:
        return JSONResponse(status_code=500, content={"error": "Could not save configuration"})

    if not saved:
        return JSONResponse(
            status_code=400,
            content={"error": "Connection failed: no models were found"},
        )

    return {"configured": store.is_configured(), "config": store.get_config().redacted()}


@app.delete("/v1/config")
def delete_config():
    try:
        get_config_store().clear_config()
    except OSError:
        return JSONResponse(status_code=500, content={"error": "Could not clear configuration"})
    return {"cleared": True}
