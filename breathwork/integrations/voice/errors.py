"""Errors raised by the voice/text service client."""


class VoiceServiceError(Exception):
    """A call to the voice/text service failed.

    Attributes:
        message: Human-readable message (from the service's ``error`` field when present)
        status_code: HTTP status, or None for network failures
        retryable: True for 5xx and network failures, False for 4xx
    """

    def __init__(self, message: str, status_code: int | None = None, retryable: bool = False):
        self.message = message
        self.status_code = status_code
        self.retryable = retryable
        super().__init__(message)


class VoiceAuthenticationError(VoiceServiceError):
    """The caller has no valid session (missing or rejected bearer token)."""

    def __init__(self, message: str = "Authentication error: could not get user session."):
        super().__init__(message, status_code=401, retryable=False)
