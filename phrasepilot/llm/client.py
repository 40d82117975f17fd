"""HTTP transport helpers shared by the provider adapters.

Architectural role:
    Executes HTTP requests against provider endpoints and normalizes the pieces
    every adapter needs: sanitized error strings, Retry-After handling, and
    extraction of the `{"rephrased": ...}` object from generated text.

Model invocation flow:
    `adapters.<Provider>Service.rephrase` -> `send_request(...)` (or
    `send_with_rate_limit_retry(...)` for the OpenAI-compatible variant) ->
    `raise_for_status()` -> `rephrased_from_*` extraction.

Retry behavior:
    Only `send_with_rate_limit_retry` retries, and only on HTTP 429. Attempts are
    bounded by `MAX_RATE_LIMIT_RETRIES`; delays start at the server's Retry-After
    (5s when absent) and grow exponentially with jitter up to `MAX_RETRY_DELAY`.

Timeouts:
    Every call carries `REQUEST_TIMEOUT` unless the caller passes its own value.

Failure handling model:
    Transport helpers raise `requests` exceptions. Adapters catch them at their
    boundary and convert them with `build_sanitized_http_error`, which never
    includes headers or credentials.
"""

import json
import logging
import math
import random
import re
import time
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime

import requests

from phrasepilot.llm.provider_config import (
    DEFAULT_RETRY_AFTER,
    MAX_RATE_LIMIT_RETRIES,
    MAX_RETRY_DELAY,
    REPHRASE_FIELD,
    REQUEST_TIMEOUT,
)


logger = logging.getLogger(__name__)

# Greedy span from the first "{" to the last "}" across newlines.
_JSON_OBJECT_RE = re.compile(r"\{.*\}", re.DOTALL)


def build_sanitized_http_error(provider_name: str, err: requests.exceptions.RequestException) -> str:
    """Build provider-labeled HTTP error text without exposing raw internals.

    Args:
        provider_name: Active provider label.
        err: Request exception instance.

    Returns:
        Sanitized error string with optional status code. HTTP 429 is reported
        as a rate-limit failure.
    """
    status_code = None
    if getattr(err, "response", None) is not None:
        status_code = getattr(err.response, "status_code", None)

    label = str(provider_name or "provider").upper()
    if status_code == 429:
        return f"{label} RATE LIMITED (429)"
    if status_code:
        return f"{label} HTTP ERROR ({status_code})"
    if isinstance(err, requests.exceptions.Timeout):
        return f"{label} REQUEST TIMED OUT"
    if isinstance(err, requests.exceptions.ConnectionError):
        return f"{label} CONNECTION FAILED"
    return f"{label} HTTP ERROR"


def sanitize_runtime_error(provider_name: str) -> str:
    """Build generic provider-labeled runtime failure text."""
    label = str(provider_name or "provider").upper()
    return f"{label} REQUEST FAILED"


def json_headers(**extra) -> dict:
    headers = {"Content-Type": "application/json"}
    headers.update(extra)
    return headers


def send_request(method, url, headers, payload=None, timeout=None):
    """Issue one HTTP request with a JSON body and the configured timeout.

    Returns:
        The `requests.Response`; status codes are not checked here.

    Failure scenarios:
        Connection, DNS and timeout failures raise `requests` exceptions.
    """
    return requests.request(
        method,
        url,
        headers=headers,
        json=payload,
        timeout=REQUEST_TIMEOUT if timeout is None else timeout,
    )


def parse_retry_after(value) -> float:
    """Convert a Retry-After header to seconds.

    Accepts delta-seconds or an HTTP-date. Missing, negative, non-finite or unparseable
    values yield `DEFAULT_RETRY_AFTER`.
    """
    if value is None:
        return DEFAULT_RETRY_AFTER
    value = str(value).strip()
    try:
        seconds = float(value)
    except ValueError:
        try:
            retry_at = parsedate_to_datetime(value)
        except (TypeError, ValueError):
            return DEFAULT_RETRY_AFTER
        if retry_at is None:
            return DEFAULT_RETRY_AFTER
        if retry_at.tzinfo is None:
            retry_at = retry_at.replace(tzinfo=timezone.utc)
        seconds = (retry_at - datetime.now(timezone.utc)).total_seconds()
        return max(0.0, seconds)
    if not math.isfinite(seconds) or seconds < 0:
        return DEFAULT_RETRY_AFTER
    return seconds


def retry_delay_seconds(attempt: int, retry_after: float, max_delay: float = MAX_RETRY_DELAY) -> float:
    """Exponential backoff seeded by Retry-After, with up to 25% jitter.

    `attempt` is 1-based. The first delay is at least `retry_after` unless
    `max_delay` is smaller.
    """
    capped = min(retry_after * (2 ** max(0, attempt - 1)), max_delay)
    jitter = random.random() * 0.25 * capped
    return capped + jitter


def send_with_rate_limit_retry(method, url, headers, payload=None, provider_name="provider", max_retries=None):
    """Send a request, re-issuing it after HTTP 429 responses.

    Args:
        method: HTTP method.
        url: Absolute request URL.
        headers: Request headers.
        payload: JSON body, re-sent unchanged on every attempt.
        provider_name: Label used in log records.
        max_retries: Override for `MAX_RATE_LIMIT_RETRIES`.

    Returns:
        The first non-429 response, or the final 429 response once retries are
        exhausted. Callers surface the latter through `raise_for_status()`.
    """
    retries = MAX_RATE_LIMIT_RETRIES if max_retries is None else max(0, int(max_retries))

    attempt = 0
    while True:
        response = send_request(method, url, headers, payload)
        if response.status_code != 429 or attempt >= retries:
            if response.status_code == 429:
                logger.warning(
                    "%s rate limit persisted after %d retries", provider_name, retries
                )
            return response

        attempt += 1
        delay = retry_delay_seconds(attempt, parse_retry_after(response.headers.get("Retry-After")))
        logger.warning(
            "%s returned 429; retrying in %.2fs (attempt %d/%d)",
            provider_name,
            delay,
            attempt,
            retries,
        )
        time.sleep(delay)


def read_json(response):
    """Return the decoded JSON body, or `None` when the body is not JSON."""
    try:
        return response.json()
    except (ValueError, RecursionError):
        return None


def _rephrased_field(parsed):
    if isinstance(parsed, dict) and isinstance(parsed.get(REPHRASE_FIELD), str):
        return parsed[REPHRASE_FIELD]
    return None


def rephrased_from_json_text(content: str) -> str:
    """Parse a whole message body as the rephrase JSON object.

    Falls back to the raw content when it is not JSON or lacks the field.
    """
    try:
        value = _rephrased_field(json.loads(content))
    except (TypeError, ValueError, RecursionError):
        return content
    return content if value is None else value


def rephrased_from_generated_text(content: str) -> str:
    """Find the first `{...}` span in free text and read the rephrase field.

    Falls back to the raw text when no span is found or it does not parse.
    """
    match = _JSON_OBJECT_RE.search(content or "")
    if not match:
        return content
    try:
        value = _rephrased_field(json.loads(match.group(0)))
    except (ValueError, RecursionError):
        return content
    return content if value is None else value
