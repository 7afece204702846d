"""Error classification for provider failures.

Transforms raw exceptions raised by LLM providers into a category plus
user-facing guidance. The invoker maps categories onto failure kinds that
drive the fallback chain.
"""

import logging
from enum import Enum
from typing import Any, Optional

logger = logging.getLogger(__name__)


class ErrorCategory(Enum):
    """Categories of provider errors."""

    # User-fixable errors
    AUTHENTICATION = "authentication"  # API key issues
    QUOTA_LIMIT = "quota_limit"  # Rate limits, quota exceeded
    INVALID_INPUT = "invalid_input"  # Malformed requests, bad parameters

    # System errors (another provider may help)
    NETWORK = "network"  # Connection, timeout issues
    SERVICE_UNAVAILABLE = "service_unavailable"  # API down, 503 errors
    INTERNAL_ERROR = "internal_error"  # 500 errors, unexpected failures

    # Unknown errors
    UNKNOWN = "unknown"


class ProviderError:
    """Structured error information for one failed provider call."""

    def __init__(
        self,
        category: ErrorCategory,
        message: str,
        user_action: str,
        technical_details: Optional[str] = None,
        retry_suggestion: bool = False,
    ):
        """Initialize a provider error.

        Args:
            category: The error category for routing/handling
            message: User-friendly error description
            user_action: Actionable steps the user can take
            technical_details: Optional technical info for debugging
            retry_suggestion: Whether retrying later might help
        """
        self.category = category
        self.message = message
        self.user_action = user_action
        self.technical_details = technical_details
        self.retry_suggestion = retry_suggestion

    @property
    def is_timeout(self) -> bool:
        details = (self.technical_details or "").lower()
        return self.category == ErrorCategory.NETWORK and ("timeout" in details or "timed out" in details)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for storage/transmission."""
        return {
            "category": self.category.value,
            "message": self.message,
            "user_action": self.user_action,
            "technical_details": self.technical_details,
            "retry_suggestion": self.retry_suggestion,
        }


def classify_error(exc: BaseException, context: Optional[str] = None) -> ProviderError:
    """Classify a provider exception into a structured ProviderError.

    Args:
        exc: The exception to classify
        context: Optional context about where the error occurred (e.g. the route)

    Returns:
        ProviderError with appropriate classification and messaging
    """
    error_str = str(exc).lower()
    exc_type = type(exc).__name__

    logger.debug(f"Classifying error: {exc_type}: {error_str[:200]}", extra={"context": context})

    # Timeouts raised as exception types with empty messages
    if isinstance(exc, TimeoutError) or "timeout" in exc_type.lower():
        return ProviderError(
            category=ErrorCategory.NETWORK,
            message="LLM call timed out",
            user_action="The next provider in the chain will be tried",
            technical_details=f"{exc_type}: timed out {exc}".strip(),
            retry_suggestion=True,
        )

    if any(
        term in error_str for term in ["api key", "api_key", "unauthorized", "401", "authentication", "invalid key"]
    ):
        return ProviderError(
            category=ErrorCategory.AUTHENTICATION,
            message="LLM API authentication failed",
            user_action="Check ANTHROPIC_API_KEY / OPENAI_API_KEY for this provider",
            technical_details=str(exc),
            retry_suggestion=False,
        )

    if "ratelimit" in exc_type.lower() or any(
        term in error_str for term in ["rate limit", "429", "quota", "too many requests", "exceeded"]
    ):
        return ProviderError(
            category=ErrorCategory.QUOTA_LIMIT,
            message="API rate limit or quota exceeded",
            user_action="Wait a few minutes before retrying, or check your API plan limits",
            technical_details=str(exc),
            retry_suggestion=True,
        )

    if any(
        term in error_str for term in ["timeout", "timed out", "connection", "network", "unreachable", "dns", "socket"]
    ):
        return ProviderError(
            category=ErrorCategory.NETWORK,
            message="Network connection issue",
            user_action="Check your internet connection and try again",
            technical_details=str(exc),
            retry_suggestion=True,
        )

    if any(term in error_str for term in ["overloaded", "overload"]):
        return ProviderError(
            category=ErrorCategory.SERVICE_UNAVAILABLE,
            message="AI service is currently overloaded",
            user_action="Wait a few moments and try again",
            technical_details=str(exc),
            retry_suggestion=True,
        )

    if any(term in error_str for term in ["503", "service unavailable", "maintenance", "downtime"]):
        return ProviderError(
            category=ErrorCategory.SERVICE_UNAVAILABLE,
            message="LLM service is temporarily unavailable",
            user_action="The service appears to be down. Please try again later",
            technical_details=str(exc),
            retry_suggestion=True,
        )

    if any(term in error_str for term in ["500", "internal server", "server error"]):
        return ProviderError(
            category=ErrorCategory.INTERNAL_ERROR,
            message="LLM service encountered an internal error",
            user_action="This is a temporary issue with the service. Please retry",
            technical_details=str(exc),
            retry_suggestion=True,
        )

    if any(term in error_str for term in ["invalid", "malformed", "bad request", "400", "validation"]):
        return ProviderError(
            category=ErrorCategory.INVALID_INPUT,
            message="Invalid request format or parameters",
            user_action="Try shortening or simplifying the process description",
            technical_details=str(exc),
            retry_suggestion=False,
        )

    return ProviderError(
        category=ErrorCategory.UNKNOWN,
        message=f"Unexpected error in {context}" if context else "Unexpected generation error",
        user_action="Please report this issue if it persists",
        technical_details=str(exc),
        retry_suggestion=True,
    )
