"""Domain Types: enums shared by the validator, classifier and retry executor.

Invariants:
    - All valid states encoded as Enums, no raw string matching
    - ErrorKind is a closed set; adding a member requires a classifier rule

Design Decisions:
    - str Enums: serialize to JSON without custom encoders (ErrorRecord.to_response)
"""

from enum import Enum


# ─── Schema Types ────────────────────────────────────────────────

class ValueKind(str, Enum):
    """Literal kind a schema field must carry in the raw LLM reply."""
    STRING = "string"
    NUMBER = "number"


class RejectionKind(str, Enum):
    """Validation stage that rejected a reply."""
    STRUCTURAL_MISMATCH = "structural_mismatch"
    DECODE_FAILURE = "decode_failure"
    OUT_OF_RANGE = "out_of_range"


# ─── Error Taxonomy ──────────────────────────────────────────────

class ErrorKind(str, Enum):
    """Closed error taxonomy surfaced to callers."""
    NO_CREDENTIAL = "no_credential"
    MALFORMED_OUTPUT = "malformed_output"
    TRANSPORT_ERROR = "transport_error"
    UPSTREAM_ERROR = "upstream_error"
    UNKNOWN_ERROR = "unknown_error"


class ErrorSeverity(str, Enum):
    """How badly a failure affects the user."""
    LOW = "low"          # user can continue normally
    MEDIUM = "medium"    # feature unavailable, app functional
    HIGH = "high"        # core functionality blocked


class TransportKind(str, Enum):
    """Transport-level failure reported by the LLM client."""
    OFFLINE = "offline"
    TIMED_OUT = "timed_out"
    HOST_UNREACHABLE = "host_unreachable"
    CANCELLED = "cancelled"
    OTHER = "other"


class UpstreamStatusCategory(str, Enum):
    """Bucket for a non-success HTTP status from the LLM provider."""
    UNAUTHORIZED = "unauthorized"
    RATE_LIMITED = "rate_limited"
    SERVER_ERROR = "server_error"
    CLIENT_ERROR = "client_error"


# ─── Retry States ────────────────────────────────────────────────

class RetryPhase(str, Enum):
    """Per-invocation state of the retry executor."""
    IDLE = "idle"
    ATTEMPTING = "attempting"
    BACKOFF = "backoff"
    SUCCEEDED = "succeeded"
    EXHAUSTED = "exhausted"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (
            RetryPhase.SUCCEEDED,
            RetryPhase.EXHAUSTED,
            RetryPhase.FAILED,
            RetryPhase.CANCELLED,
        )
