from datetime import timedelta


class LangTransError(Exception):
    """Base class for service errors."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(self.message)


class InvalidLanguage(LangTransError):
    def __init__(self, code: str):
        self.code = code
        super().__init__(f"Unsupported language code: '{code}'")


# --- API keys ---


class ApiKeyError(LangTransError):
    """A presented API key cannot be used.

    The HTTP layer reports every subclass as the same 401; ``reason`` is only
    for logs.
    """

    reason = "invalid"


class KeyNotFound(ApiKeyError):
    reason = "not_found"


class KeyExpired(ApiKeyError):
    reason = "expired"


class KeyRevoked(ApiKeyError):
    reason = "revoked"


class StoreError(LangTransError):
    """The API key file could not be read or written."""


# --- Admin login ---


class LoginLocked(LangTransError):
    def __init__(self, retry_after: timedelta):
        self.retry_after = retry_after
        super().__init__("Too many failed login attempts")


# --- Inference ---


class InferenceError(LangTransError):
    """Generation failed. The engine stays usable for later calls."""


class TokenizationError(InferenceError):
    pass


class InputTooLarge(InferenceError):
    def __init__(self, token_count: int, limit: int):
        self.token_count = token_count
        self.limit = limit
        super().__init__(f"Input is {token_count} tokens; the limit is {limit}")
