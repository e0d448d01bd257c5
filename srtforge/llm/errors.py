"""LLM-related exceptions."""


class LLMError(Exception):
    """Base error for LLM issues."""


class LLMConfigError(LLMError):
    """Raised when the backend is not configured (e.g. missing API key)."""


class LLMResponseError(LLMError):
    """Raised when the LLM backend returns an unexpected response."""


class LLMNetworkError(LLMError):
    """Raised when HTTP/network issues occur while calling the LLM backend."""


class LLMRateLimitError(LLMError):
    """Raised when the backend throttles the caller."""


class LLMCancelledError(LLMError):
    """Raised when a caller asked to stop a running request."""
