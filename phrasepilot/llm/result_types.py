"""Normalized result contract returned by every adapter `rephrase` call.

Architectural role:
    Defines the single response shape shared by all provider adapters and consumed
    by the CLI and HTTP presentation layers.

Determinism:
    Purely structural and state-free.
"""

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class RephraseResult:
    """Outcome of one rephrase attempt.

    Attributes:
        rephrased_text: Rephrased string; empty when the call failed.
        error_message: Human-readable failure description; `None` on success.
    """

    rephrased_text: str = ""
    error_message: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error_message is None

    @classmethod
    def success(cls, text: str) -> "RephraseResult":
        return cls(rephrased_text=text)

    @classmethod
    def failure(cls, message: str) -> "RephraseResult":
        return cls(rephrased_text="", error_message=message)
