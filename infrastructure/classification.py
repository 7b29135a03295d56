# ============================================================================
# ERROR CLASSIFICATION
# ============================================================================
# EPOCH: 1 - PROVISIONING ORCHESTRATION
# STATUS: Infrastructure - Remote failure taxonomy
# PURPOSE: Map HTTP status + provider error code to ErrorClass
# CREATED: 18 OCT 2026
# ============================================================================
"""
Error Classification

The only place that turns a failed remote call into an ErrorClass.

Two layers:
- classify(status_code, error_code): structured, keyed on HTTP status and
  a small set of known provider error codes
- extract_error_code(body): adapter that digs a provider code out of a
  response body; falls back to free-text matching for bodies that only
  carry a message (older Power BI endpoints do this)

The retry policy never looks at bodies or messages, only at the result.
"""

import json
import re
from typing import Any, Optional, Tuple

from core.contracts import ErrorClass


# ============================================================================
# KNOWN PROVIDER CODES
# ============================================================================

CONFLICT_CODES = frozenset({
    "ItemDisplayNameAlreadyInUse",
    "WorkspaceNameAlreadyExists",
    "DomainDisplayNameAlreadyExists",
    "AlreadyExists",
    "ResourceAlreadyExists",
})

NOT_READY_CODES = frozenset({
    "CapacityNotActive",
    "CapacityNotInActiveState",
    "NotInActiveState",
    "WorkspaceNotFound",
    "CapacityNotFound",
})

FATAL_CODES = frozenset({
    "UnsupportedCapacitySKU",
    "InsufficientPrivileges",
    "Unauthorized",
    "InvalidInput",
})

# Free-text fallbacks: (pattern, code) checked in order
_TEXT_PATTERNS: Tuple[Tuple["re.Pattern[str]", str], ...] = (
    (re.compile(r"UnsupportedCapacitySKU", re.IGNORECASE), "UnsupportedCapacitySKU"),
    (re.compile(r"not\s*in\s*active\s*state", re.IGNORECASE), "NotInActiveState"),
    (re.compile(r"capacity\s+is\s+not\s+active", re.IGNORECASE), "CapacityNotActive"),
    (re.compile(r"already\s+(exists|in\s+use)", re.IGNORECASE), "AlreadyExists"),
    (re.compile(r"insufficient\s+privileges", re.IGNORECASE), "InsufficientPrivileges"),
)


# ============================================================================
# STRUCTURED CLASSIFICATION
# ============================================================================

def classify(status_code: Optional[int], error_code: Optional[str] = None) -> ErrorClass:
    """
    Classify a failed call.

    Args:
        status_code: HTTP status, or None for transport failures
        error_code: Provider error code, if one was found

    Returns:
        ErrorClass driving the retry decision
    """
    if status_code is None:
        return ErrorClass.TRANSIENT

    if error_code:
        if error_code in CONFLICT_CODES:
            return ErrorClass.CONFLICT
        if error_code in NOT_READY_CODES:
            return ErrorClass.NOT_READY
        if error_code in FATAL_CODES:
            return ErrorClass.FATAL

    if status_code == 404:
        return ErrorClass.NOT_FOUND
    if status_code == 409:
        return ErrorClass.CONFLICT
    if status_code in (408, 429) or status_code >= 500:
        return ErrorClass.TRANSIENT
    return ErrorClass.FATAL


# ============================================================================
# BODY ADAPTER
# ============================================================================

def extract_error_code(body: Any) -> Optional[str]:
    """
    Find the provider error code in a response body.

    Handles the shapes seen across the three planes:
        Fabric:  {"errorCode": "...", "message": "..."}
        ARM:     {"error": {"code": "...", "message": "..."}}
        Purview: {"error": {"code": "...", "message": "..."}}
        Power BI:{"error": {"code": "...", "pbi.error": {...}}}
    and finally free text.
    """
    if body is None:
        return None

    if isinstance(body, (bytes, str)):
        text = body.decode("utf-8", "replace") if isinstance(body, bytes) else body
        try:
            parsed = json.loads(text)
        except ValueError:
            return infer_code_from_text(text)
        return extract_error_code(parsed) or infer_code_from_text(text)

    if isinstance(body, dict):
        code = body.get("errorCode")
        if isinstance(code, str) and code:
            return code
        error = body.get("error")
        if isinstance(error, dict):
            code = error.get("code")
            if isinstance(code, str) and code:
                return code
        if isinstance(error, str) and error:
            return error
        message = body.get("message")
        if isinstance(message, str):
            return infer_code_from_text(message)

    return None


def infer_code_from_text(text: str) -> Optional[str]:
    """Map a free-text error message to a known provider code."""
    for pattern, code in _TEXT_PATTERNS:
        if pattern.search(text):
            return code
    return None


__all__ = [
    "classify",
    "extract_error_code",
    "infer_code_from_text",
    "CONFLICT_CODES",
    "NOT_READY_CODES",
    "FATAL_CODES",
]
