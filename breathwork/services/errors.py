"""Errors raised by the speech and guidance functions.

FunctionError is rendered as ``{"error": message}`` with its status code,
which is the only failure shape the voice client has to understand.
"""


class FunctionError(Exception):
    def __init__(self, status_code: int, message: str):
        self.status_code = status_code
        self.message = message
        super().__init__(message)


class FunctionNotConfiguredError(FunctionError):
    """Raised when the provider API key is missing on the server."""

    def __init__(self, message: str):
        super().__init__(500, message)
