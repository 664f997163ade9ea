"""
Provider Error Classification
=============================

Classifies raw upstream model/provider error text into a fixed taxonomy,
extracts structured details from JSON error payloads and renders user-facing messages.
All functions are pure and never raise.
"""

from typing import Optional, Dict, Any, Callable, List, Tuple, Union, Pattern, Literal
from dataclasses import dataclass
import json
import re

ErrorType = Literal[
    "context_overflow",
    "rate_limit",
    "billing",
    "auth",
    "timeout",
    "overloaded",
    "unknown",
]

ErrorPattern = Union[Pattern[str], str]

NON_RETRYABLE_ERROR_TYPES = frozenset({"context_overflow", "billing", "auth"})


@dataclass(frozen=True)
class ApiErrorInfo:
    """Structured detail parsed out of a provider error payload."""

    http_code: Optional[int] = None
    type: Optional[str] = None
    code: Optional[str] = None
    message: Optional[str] = None
    request_id: Optional[str] = None


RATE_LIMIT_PATTERNS: Tuple[ErrorPattern, ...] = (
    re.compile(r"rate[_ ]limit|too many requests|429", re.IGNORECASE),
    "model_cooldown",
    "cooling down",
    "exceeded your current quota",
    "resource has been exhausted",
    "quota exceeded",
    "resource_exhausted",
    "usage limit",
    "tpm",
    "tokens per minute",
)

OVERLOADED_PATTERNS: Tuple[ErrorPattern, ...] = (
    re.compile(r'overloaded_error|"type"\s*:\s*"overloaded_error"', re.IGNORECASE),
    "overloaded",
    "service unavailable",
    "high demand",
)

TIMEOUT_PATTERNS: Tuple[ErrorPattern, ...] = (
    "timeout",
    "timed out",
    "deadline exceeded",
    "context deadline exceeded",
)

BILLING_PATTERNS: Tuple[ErrorPattern, ...] = (
    re.compile(r"[\"']?(?:status|code)[\"']?\s*[:=]\s*402\b", re.IGNORECASE),
    re.compile(r"\bhttp\s*402\b", re.IGNORECASE),
    "payment required",
    "insufficient credits",
    "credit balance",
    "insufficient balance",
)

AUTH_PATTERNS: Tuple[ErrorPattern, ...] = (
    re.compile(r"invalid[_ ]?api[_ ]?key", re.IGNORECASE),
    "incorrect api key",
    "invalid token",
    "authentication",
    "unauthorized",
    "forbidden",
    "access denied",
    re.compile(r"\b401\b"),
    re.compile(r"\b403\b"),
    "no api key found",
)

CONTEXT_OVERFLOW_PATTERNS: Tuple[ErrorPattern, ...] = (
    "context length exceeded",
    "maximum context length",
    "this model's maximum context length",
    "prompt is too long",
    "request_too_large",
    "exceeds model context window",
    "context overflow",
    "exceed context limit",
    "model token limit",
    "your request exceeded model token limit",
)

# "Context too long" phrasings returned by Chinese-language providers.
CJK_CONTEXT_OVERFLOW = ("上下文过长", "上下文超出", "超出最大上下文")

ERROR_PAYLOAD_PREFIX_RE = re.compile(r"^\[[\w\s]+\]\s*|^(?:error|api\s*error)[:\s-]+", re.IGNORECASE)
HTTP_STATUS_PREFIX_RE = re.compile(r"^(\d{3})\s+(.+)$", re.DOTALL)


def _matches_patterns(raw: str, patterns: Tuple[ErrorPattern, ...]) -> bool:
    lower = raw.lower()
    for pattern in patterns:
        if isinstance(pattern, str):
            if pattern in lower:
                return True
        elif pattern.search(raw):
            return True
    return False


def _str_or_none(value: Any) -> Optional[str]:
    return value if isinstance(value, str) else None


def parse_api_error_info(raw: Optional[str]) -> Optional[ApiErrorInfo]:
    """
    Parse structured error detail from raw provider error text.

    Accepts payloads such as ``402 {"error": {"message": "..."}}``, optionally prefixed
    with ``[provider] `` or ``error: ``.

    Args:
        raw: Raw error text

    Returns:
        Parsed error info, or None if the text is not a recognised JSON error object
    """
    if not raw:
        return None

    trimmed = raw.strip()
    if not trimmed:
        return None

    http_code: Optional[int] = None
    trimmed = ERROR_PAYLOAD_PREFIX_RE.sub("", trimmed, count=1).strip()

    http_match = HTTP_STATUS_PREFIX_RE.match(trimmed)
    if http_match:
        http_code = int(http_match.group(1))
        trimmed = http_match.group(2).strip()

    if not (trimmed.startswith("{") and trimmed.endswith("}")):
        return None

    try:
        parsed = json.loads(trimmed)
    except ValueError:
        return None
    if not isinstance(parsed, dict):
        return None

    request_id = _str_or_none(parsed.get("request_id")) or _str_or_none(parsed.get("requestId"))
    error = parsed.get("error")

    # Covers both {"error": {...}} and the {"type": "error", "error": {...}} envelope
    if isinstance(error, dict):
        return ApiErrorInfo(
            http_code=http_code,
            type=_str_or_none(error.get("type")),
            code=_str_or_none(error.get("code")),
            message=_str_or_none(error.get("message")),
            request_id=request_id,
        )

    if isinstance(parsed.get("message"), str):
        return ApiErrorInfo(
            http_code=http_code,
            type=_str_or_none(parsed.get("type")),
            code=_str_or_none(parsed.get("code")),
            message=parsed["message"],
            request_id=request_id,
        )

    return None


def is_context_overflow_error(raw: Optional[str]) -> bool:
    """Check whether the error means the prompt exceeded the model's context window."""
    if not raw:
        return False
    lower = raw.lower()

    # Token-per-minute budgets are rate limits, not oversized prompts
    if "tpm" in lower or "tokens per minute" in lower:
        return False

    if _matches_patterns(raw, CONTEXT_OVERFLOW_PATTERNS):
        return True

    if any(phrase in raw for phrase in CJK_CONTEXT_OVERFLOW):
        return True

    if "request size exceeds" in lower and "context" in lower:
        return True
    if "max_tokens" in lower and "exceed" in lower and "context" in lower:
        return True
    if "input length" in lower and "exceed" in lower and "context" in lower:
        return True
    if "413" in lower and "too large" in lower:
        return True

    return False


def is_rate_limit_error(raw: Optional[str]) -> bool:
    return bool(raw) and _matches_patterns(raw, RATE_LIMIT_PATTERNS)  # type: ignore[arg-type]


def is_billing_error(raw: Optional[str]) -> bool:
    return bool(raw) and _matches_patterns(raw, BILLING_PATTERNS)  # type: ignore[arg-type]


def is_auth_error(raw: Optional[str]) -> bool:
    return bool(raw) and _matches_patterns(raw, AUTH_PATTERNS)  # type: ignore[arg-type]


def is_timeout_error(raw: Optional[str]) -> bool:
    return bool(raw) and _matches_patterns(raw, TIMEOUT_PATTERNS)  # type: ignore[arg-type]


def is_overloaded_error(raw: Optional[str]) -> bool:
    return bool(raw) and _matches_patterns(raw, OVERLOADED_PATTERNS)  # type: ignore[arg-type]


# Evaluated in order; the first matching category wins.
_CLASSIFIERS: List[Tuple[ErrorType, Callable[[Optional[str]], bool]]] = [
    ("context_overflow", is_context_overflow_error),
    ("rate_limit", is_rate_limit_error),
    ("billing", is_billing_error),
    ("auth", is_auth_error),
    ("timeout", is_timeout_error),
    ("overloaded", is_overloaded_error),
]


def classify_error(raw: Optional[str]) -> ErrorType:
    """
    Classify raw provider error text.

    Args:
        raw: Raw error text, may be None

    Returns:
        Error taxonomy tag, "unknown" when nothing matches
    """
    if not raw:
        return "unknown"
    for error_type, predicate in _CLASSIFIERS:
        if predicate(raw):
            return error_type
    return "unknown"


def is_retryable_error(raw: Optional[str]) -> bool:
    """Whether an automatic retry may succeed. Unrecognised errors count as retryable."""
    return classify_error(raw) not in NON_RETRYABLE_ERROR_TYPES


def is_non_retryable_error(raw: Optional[str]) -> bool:
    return not is_retryable_error(raw)


_USER_MESSAGES: Dict[str, str] = {
    "context_overflow": (
        "Context overflow: the conversation is too large for the model. "
        "Try starting a new conversation or use a model with a larger context window."
    ),
    "rate_limit": "{provider}API rate limit reached. Please wait a moment and try again.",
    "billing": (
        "{provider}API key has run out of credits or has an insufficient balance. "
        "Check your billing dashboard and top up, or switch to a different API key."
    ),
    "auth": (
        "{provider}API key is invalid or expired. "
        "Check that your API key is correct in your environment variables."
    ),
    "timeout": "LLM request timed out. Please try again.",
    "overloaded": "The AI service is temporarily overloaded. Please try again in a moment.",
}

MAX_RAW_MESSAGE_LENGTH = 300


def format_user_facing_error(raw: str, provider: Optional[str] = None) -> str:
    """
    Render a human-readable sentence for a provider error.

    Args:
        raw: Raw error text
        provider: Optional provider label, e.g. "OpenAI"

    Returns:
        User-facing error message
    """
    if not raw or not raw.strip():
        return "LLM request failed with an unknown error."

    error_type = classify_error(raw)
    template = _USER_MESSAGES.get(error_type)
    if template is not None:
        return template.format(provider=f"{provider} " if provider else "")

    info = parse_api_error_info(raw)
    if info is not None and info.message:
        prefix = f"HTTP {info.http_code}" if info.http_code else "LLM error"
        type_part = f" ({info.type})" if info.type else ""
        request_part = f" [request_id: {info.request_id}]" if info.request_id else ""
        return f"{prefix}{type_part}: {info.message}{request_part}"

    if len(raw) > MAX_RAW_MESSAGE_LENGTH:
        return f"{raw[:MAX_RAW_MESSAGE_LENGTH]}..."
    return raw
