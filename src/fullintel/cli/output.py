"""JSON output helpers for the fullintel CLI.

Every command emits one JSON envelope:

    {"success": true, "data": {...}, "error": null, "meta": {"version": "response-v2"}}

Errors go to stderr with ``data.error_code``/``data.error_type`` and exit
code 1.
"""

import json
import sys
from typing import Any, Mapping, NoReturn, Optional

from fullintel.core.llm_provider import (
    AuthenticationError,
    CircuitBreakerOpenError,
    EmptyConversationError,
    LLMError,
    MissingApiKeyError,
    NetworkError,
    ProviderError,
    RateLimitExceededError,
    UnsupportedModelError,
)
from fullintel.core.research.manifest import ManifestError
from fullintel.core.research.workflows.phased import MissingInputError

RESPONSE_VERSION = "response-v2"

# (exception type, error_code, error_type); first match wins
_ERROR_CODES = (
    (MissingInputError, "MISSING_INPUT", "validation"),
    (ManifestError, "INVALID_MANIFEST", "validation"),
    (MissingApiKeyError, "MISSING_API_KEY", "authentication"),
    (AuthenticationError, "AUTHENTICATION_FAILED", "authentication"),
    (UnsupportedModelError, "UNSUPPORTED_MODEL", "validation"),
    (EmptyConversationError, "EMPTY_CONVERSATION", "validation"),
    (RateLimitExceededError, "RATE_LIMIT_EXCEEDED", "rate_limit"),
    (CircuitBreakerOpenError, "CIRCUIT_OPEN", "unavailable"),
    (NetworkError, "NETWORK_ERROR", "unavailable"),
    (ProviderError, "PROVIDER_ERROR", "provider"),
    (LLMError, "LLM_ERROR", "provider"),
)


def error_code_for(exc: BaseException) -> tuple[str, str]:
    """Map an exception to its ``(error_code, error_type)`` pair."""
    for exc_type, code, error_type in _ERROR_CODES:
        if isinstance(exc, exc_type):
            return code, error_type
    return "INTERNAL_ERROR", "internal"


def emit(data: Any) -> None:
    """Emit JSON to stdout in minified form."""
    print(json.dumps(data, separators=(",", ":"), default=str))


def emit_success(data: Mapping[str, Any], *, meta: Optional[Mapping[str, Any]] = None) -> None:
    """Emit a success envelope to stdout."""
    emit(
        {
            "success": True,
            "data": dict(data),
            "error": None,
            "meta": {"version": RESPONSE_VERSION, **(meta or {})},
        }
    )


def emit_error(
    message: str,
    code: str = "INTERNAL_ERROR",
    *,
    error_type: str = "internal",
    remediation: Optional[str] = None,
    details: Optional[Mapping[str, Any]] = None,
) -> NoReturn:
    """Emit an error envelope to stderr and exit with code 1.

    Raises:
        SystemExit: Always exits with code 1.
    """
    data: dict[str, Any] = {"error_code": code, "error_type": error_type}
    if remediation is not None:
        data["remediation"] = remediation
    if details:
        data["details"] = dict(details)

    response = {
        "success": False,
        "data": data,
        "error": message,
        "meta": {"version": RESPONSE_VERSION},
    }
    print(json.dumps(response, separators=(",", ":"), default=str), file=sys.stderr)
    sys.exit(1)


def emit_exception(
    exc: BaseException,
    *,
    remediation: Optional[str] = None,
    details: Optional[Mapping[str, Any]] = None,
) -> NoReturn:
    """Emit the error envelope for a caught exception."""
    code, error_type = error_code_for(exc)
    emit_error(
        str(exc), code, error_type=error_type, remediation=remediation, details=details
    )
