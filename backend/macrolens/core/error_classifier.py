"""Error Classifier: maps any boundary failure into the closed ErrorRecord taxonomy.

Invariants:
    - classify() is PURE: no IO, no logging, deterministic for a given failure kind
    - Every input produces exactly one ErrorRecord; unknown inputs become UNKNOWN_ERROR
    - An ErrorRecord input is returned unchanged (classification is idempotent)
    - Messages never embed raw exception text

Rule table:
    MissingCredentialError         -> NO_CREDENTIAL     high    not retryable
    Rejected structural / decode   -> MALFORMED_OUTPUT  medium  retryable
    Rejected out of range          -> MALFORMED_OUTPUT  low     retryable
    transport offline              -> TRANSPORT_ERROR   high    retryable
    transport timeout / unreachable / other -> TRANSPORT_ERROR medium retryable
    transport cancelled            -> TRANSPORT_ERROR   medium  not retryable
    upstream 401 / 403             -> UPSTREAM_ERROR    high    not retryable
    upstream 429 / other non-2xx   -> UPSTREAM_ERROR    medium  retryable
    anything else                  -> UNKNOWN_ERROR     medium  retryable
"""

from macrolens.core.domain_types import (
    ErrorKind,
    ErrorSeverity,
    RejectionKind,
    TransportKind,
    UpstreamStatusCategory,
)
from macrolens.core.errors import (
    ErrorRecord,
    MissingCredentialError,
    TransportFailure,
    UpstreamStatusError,
)
from macrolens.core.response_validator import Rejected


_UNAUTHORIZED_STATUSES = frozenset({401, 403})
_RATE_LIMITED_STATUS = 429


class ErrorClassifier:
    """Stateless classifier; construct once and inject where failures surface."""

    def classify(self, failure: object, context: str = "") -> ErrorRecord:
        if isinstance(failure, ErrorRecord):
            return failure
        if isinstance(failure, MissingCredentialError):
            return _no_credential(context)
        if isinstance(failure, Rejected):
            return _from_rejection(failure, context)
        if isinstance(failure, TransportFailure):
            return _from_transport(failure.kind, context)
        if isinstance(failure, UpstreamStatusError):
            return _from_upstream(failure.status_code, context)
        # Builtin network errors raised by collaborators that skip the adapter
        if isinstance(failure, TimeoutError):
            return _from_transport(TransportKind.TIMED_OUT, context)
        if isinstance(failure, ConnectionError):
            return _from_transport(TransportKind.HOST_UNREACHABLE, context)
        return _unknown(failure, context)


def categorize_status(status_code: int) -> UpstreamStatusCategory:
    """Bucket a non-success HTTP status code."""
    if status_code in _UNAUTHORIZED_STATUSES:
        return UpstreamStatusCategory.UNAUTHORIZED
    if status_code == _RATE_LIMITED_STATUS:
        return UpstreamStatusCategory.RATE_LIMITED
    if status_code >= 500:
        return UpstreamStatusCategory.SERVER_ERROR
    return UpstreamStatusCategory.CLIENT_ERROR


# ─── Rules ───────────────────────────────────────────────────────

def _label(context: str) -> str:
    return context.strip() or "The request"


def _no_credential(context: str) -> ErrorRecord:
    return ErrorRecord(
        kind=ErrorKind.NO_CREDENTIAL,
        title="API Key Required",
        message=(
            f"{_label(context)} needs an API key. "
            "Please add your API key in Settings to use AI features."
        ),
        context=context,
        severity=ErrorSeverity.HIGH,
        retryable=False,
    )


def _from_rejection(rejected: Rejected, context: str) -> ErrorRecord:
    if rejected.kind is RejectionKind.OUT_OF_RANGE:
        return ErrorRecord(
            kind=ErrorKind.MALFORMED_OUTPUT,
            title="Invalid Data",
            message=(
                f"{_label(context)} returned an unrealistic value for "
                f"'{rejected.detail}'. Please verify the results."
            ),
            context=context,
            severity=ErrorSeverity.LOW,
            retryable=True,
            detail=rejected.kind.value,
        )

    if rejected.kind is RejectionKind.STRUCTURAL_MISMATCH:
        title = "Data Format Error"
        message = (
            f"{_label(context)} returned {rejected.detail} data in an "
            "unexpected format. Please try again."
        )
    else:
        title = "Data Processing Error"
        message = (
            f"{_label(context)} returned data that could not be processed. "
            "Please try again."
        )
    return ErrorRecord(
        kind=ErrorKind.MALFORMED_OUTPUT,
        title=title,
        message=message,
        context=context,
        severity=ErrorSeverity.MEDIUM,
        retryable=True,
        detail=rejected.kind.value,
    )


_TRANSPORT_RULES: dict[TransportKind, tuple[str, str, ErrorSeverity, bool]] = {
    TransportKind.OFFLINE: (
        "No Internet Connection",
        "Please check your internet connection and try again.",
        ErrorSeverity.HIGH, True,
    ),
    TransportKind.TIMED_OUT: (
        "Request Timed Out",
        "The request took too long to complete. Please try again.",
        ErrorSeverity.MEDIUM, True,
    ),
    TransportKind.HOST_UNREACHABLE: (
        "Server Unreachable",
        "Unable to reach the server. Please try again later.",
        ErrorSeverity.MEDIUM, True,
    ),
    TransportKind.CANCELLED: (
        "Request Cancelled",
        "The request was cancelled.",
        ErrorSeverity.MEDIUM, False,
    ),
    TransportKind.OTHER: (
        "Network Error",
        "A network error occurred. Please try again.",
        ErrorSeverity.MEDIUM, True,
    ),
}


def _from_transport(kind: TransportKind, context: str) -> ErrorRecord:
    title, hint, severity, retryable = _TRANSPORT_RULES[kind]
    return ErrorRecord(
        kind=ErrorKind.TRANSPORT_ERROR,
        title=title,
        message=f"{_label(context)} failed. {hint}",
        context=context,
        severity=severity,
        retryable=retryable,
        detail=kind.value,
    )


def _from_upstream(status_code: int, context: str) -> ErrorRecord:
    category = categorize_status(status_code)
    if category is UpstreamStatusCategory.UNAUTHORIZED:
        message = "Invalid API key. Please check your API key in Settings."
        severity, retryable = ErrorSeverity.HIGH, False
    elif category is UpstreamStatusCategory.RATE_LIMITED:
        message = "Rate limit exceeded. Please wait a moment and try again."
        severity, retryable = ErrorSeverity.MEDIUM, True
    else:
        message = f"The AI service returned HTTP {status_code}. Please try again."
        severity, retryable = ErrorSeverity.MEDIUM, True
    return ErrorRecord(
        kind=ErrorKind.UPSTREAM_ERROR,
        title="API Error",
        message=f"{_label(context)} failed. {message}",
        context=context,
        severity=severity,
        retryable=retryable,
        detail=category.value,
    )


def _unknown(failure: object, context: str) -> ErrorRecord:
    return ErrorRecord(
        kind=ErrorKind.UNKNOWN_ERROR,
        title="Unexpected Error",
        message=f"{_label(context)} failed unexpectedly. Please try again.",
        context=context,
        severity=ErrorSeverity.MEDIUM,
        retryable=True,
        detail=type(failure).__name__,
    )
