"""Security utilities for sensitive data handling.

Shared constants and functions for spotting credentials in generated workflow
parameters and for masking sensitive values before they reach logs or
error messages.
"""

import re
from collections.abc import Iterator
from typing import Any, Optional

# Sensitive parameter names to mask/redact
# This set is used to identify parameters that may contain credentials, tokens,
# or other sensitive information that shouldn't be logged or displayed
SENSITIVE_KEYS = {
    "password",
    "passwd",
    "pwd",
    "token",
    "api_token",
    "access_token",
    "auth_token",
    "api_key",
    "apikey",
    "api-key",
    "secret",
    "client_secret",
    "private_key",
    "ssh_key",
    "secret_key",
    "credential",
    "credentials",
    "authorization",
    "auth",
}

# Normalized suffixes that mark a parameter as holding a secret value.
# Narrower than SENSITIVE_KEYS: "authentication" names a method, not a secret.
SECRET_NAME_SUFFIXES = (
    "password",
    "passwd",
    "token",
    "apikey",
    "secret",
    "secretkey",
    "privatekey",
    "authorization",
)

# Common credential formats
SECRET_PATTERNS: dict[str, re.Pattern[str]] = {
    "openai_or_anthropic_key": re.compile(r"\bsk-(?:ant-)?[A-Za-z0-9_-]{20,}"),
    "stripe_key": re.compile(r"\b[sr]k_live_[0-9a-zA-Z]{20,}"),
    "aws_access_key": re.compile(r"\bAKIA[0-9A-Z]{16}\b"),
    "github_token": re.compile(r"\bgh[pousr]_[A-Za-z0-9]{36,}"),
    "slack_token": re.compile(r"\bxox[abprs]-[A-Za-z0-9-]{10,}"),
    "google_api_key": re.compile(r"\bAIza[0-9A-Za-z_-]{35}"),
    "private_key_block": re.compile(r"-----BEGIN [A-Z ]*PRIVATE KEY-----"),
    "bearer_token": re.compile(r"\bBearer\s+[A-Za-z0-9._~+/-]{20,}=*"),
}

# Values that reference a credential instead of containing one
_PLACEHOLDER_PATTERNS = (
    re.compile(r"^=?\s*\{\{.*\}\}\s*$", re.DOTALL),  # n8n expression
    re.compile(r"^\$\{?[A-Za-z_][A-Za-z0-9_.]*\}?$"),  # ${ENV_VAR} / $env.NAME
    re.compile(r"^<[^<>]+>$"),  # <YOUR_API_KEY>
    re.compile(r"^(?:YOUR|REPLACE|CHANGE)[_-]?[A-Z0-9_-]*$", re.IGNORECASE),
)


def is_sensitive_parameter(key: str) -> bool:
    """Check if a parameter name indicates sensitive data.

    Performs case-insensitive matching against known sensitive parameter names.

    Examples:
        >>> is_sensitive_parameter("password")
        True
        >>> is_sensitive_parameter("API_KEY")
        True
        >>> is_sensitive_parameter("username")
        False
    """
    key_lower = key.lower()
    return any(sensitive in key_lower for sensitive in SENSITIVE_KEYS)


def mask_sensitive_value(key: str, value: str, mask_text: str = "<REDACTED>") -> str:
    """Mask a value if the parameter name is sensitive.

    Examples:
        >>> mask_sensitive_value("password", "secret123")
        '<REDACTED>'
        >>> mask_sensitive_value("username", "john")
        'john'
    """
    if is_sensitive_parameter(key):
        return mask_text
    return value


def is_secret_name(key: str) -> bool:
    """True if a parameter name says its value is itself a secret."""
    normalized = re.sub(r"[^a-z0-9]", "", key.lower())
    return normalized.endswith(SECRET_NAME_SUFFIXES)


def is_placeholder(value: str) -> bool:
    """True if a value is empty or references a credential rather than containing it."""
    stripped = value.strip()
    if not stripped:
        return True
    return any(pattern.match(stripped) for pattern in _PLACEHOLDER_PATTERNS)


def match_secret_pattern(value: str) -> Optional[str]:
    """Return the name of the first credential format found in ``value``."""
    for name, pattern in SECRET_PATTERNS.items():
        if pattern.search(value):
            return name
    return None


def _walk(value: Any, path: str) -> Iterator[tuple[str, str, Any]]:
    """Yield (path, key, value) for every entry of nested dicts and lists."""
    if isinstance(value, dict):
        # n8n header/query lists use {"name": ..., "value": ...} pairs
        name = value.get("name")
        if isinstance(name, str) and "value" in value:
            yield (f"{path}.value" if path else "value"), name, value["value"]
        for key, item in value.items():
            child = f"{path}.{key}" if path else str(key)
            yield child, str(key), item
            yield from _walk(item, child)
    elif isinstance(value, list):
        for i, item in enumerate(value):
            yield from _walk(item, f"{path}[{i}]")


def find_literal_secrets(parameters: dict[str, Any]) -> list[tuple[str, str]]:
    """Find credentials written literally into node parameters.

    A value counts as a literal secret when it matches a known credential
    format, or when its parameter name marks it as a secret and the value is
    not a placeholder or expression.

    Args:
        parameters: A node's parameters

    Returns:
        List of (parameter path, reason) pairs; values are never included
    """
    findings: list[tuple[str, str]] = []
    seen: set[str] = set()
    for path, key, value in _walk(parameters, ""):
        if not isinstance(value, str) or path in seen:
            continue
        pattern_name = match_secret_pattern(value)
        if pattern_name:
            findings.append((path, f"value matches {pattern_name} format"))
            seen.add(path)
        elif is_secret_name(key) and not is_placeholder(value):
            findings.append((path, f"'{key}' holds a literal value"))
            seen.add(path)
    return findings


def redact_parameters(value: Any, mask_text: str = "<REDACTED>") -> Any:
    """Return a copy of nested parameters with sensitive values masked."""
    if isinstance(value, dict):
        name = value.get("name")
        pair_is_sensitive = isinstance(name, str) and "value" in value and is_sensitive_parameter(name)
        redacted = {}
        for key, item in value.items():
            if isinstance(item, str):
                if pair_is_sensitive and key == "value":
                    item = mask_text
                else:
                    item = mask_sensitive_value(str(key), item, mask_text)
                redacted[key] = mask_text if match_secret_pattern(item) else item
            else:
                redacted[key] = redact_parameters(item, mask_text)
        return redacted
    if isinstance(value, list):
        return [redact_parameters(item, mask_text) for item in value]
    if isinstance(value, str) and match_secret_pattern(value):
        return mask_text
    return value
