"""Error Hierarchy: collaborator failures and the classified ErrorRecord.

Invariants:
    - Exceptions in this module describe failures raised by external collaborators
      (credential store, LLM client); they are inputs to the error classifier
    - ErrorRecord is immutable once constructed and is the only error shape that
      reaches the display layer
    - to_response() never includes raw exception text

Design Decisions:
    - Single hierarchy with MacroLensError base: the provider adapter maps every
      SDK error into one of these before it leaves infrastructure/
    - ErrorRecord as frozen dataclass, not exception: retry outcomes carry it as a value
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone

from macrolens.core.domain_types import ErrorKind, ErrorSeverity, TransportKind


class MacroLensError(Exception):
    """Base exception for failures raised at a MacroLens boundary."""

    def __init__(self, message: str, code: str):
        super().__init__(message)
        self.message = message
        self.code = code


class MissingCredentialError(MacroLensError):
    """No API key available; raised before any network call."""
    def __init__(self, provider: str = "anthropic"):
        super().__init__(
            f"No API key configured for {provider}", "NO_CREDENTIAL",
        )
        self.provider = provider


class TransportFailure(MacroLensError):
    """Request never produced an HTTP response."""
    def __init__(self, kind: TransportKind, message: str = ""):
        super().__init__(
            message or f"Transport failure ({kind.value})", "TRANSPORT_ERROR",
        )
        self.kind = kind


class UpstreamStatusError(MacroLensError):
    """Provider answered with a non-success HTTP status."""
    def __init__(self, status_code: int, message: str = ""):
        super().__init__(
            message or f"Provider returned HTTP {status_code}", "UPSTREAM_ERROR",
        )
        self.status_code = status_code


# ─── Classified Record ───────────────────────────────────────────

@dataclass(frozen=True)
class ErrorRecord:
    """Classified, display-ready failure."""
    kind: ErrorKind
    title: str
    message: str
    context: str
    severity: ErrorSeverity
    retryable: bool
    # Sub-classification: validation stage, transport kind or status category
    detail: str | None = None
    timestamp: datetime = field(
        default_factory=lambda: datetime.now(timezone.utc), compare=False,
    )

    def to_response(self) -> dict:
        """Convert to standardized error envelope."""
        return {
            "error": {
                "code": self.kind.value.upper(),
                "title": self.title,
                "message": self.message,
                "severity": self.severity.value,
                "retryable": self.retryable,
                "timestamp": self.timestamp.isoformat(),
                "context": self.context,
                "detail": self.detail,
            }
        }
