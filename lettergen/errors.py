"""
Error types raised by the letter generator. Every failure is contained per operation;
callers surface `message` to the user and leave the session untouched.
"""


class LetterGenError(Exception):
    """Base class for letter generator errors. `message` is safe to show to the user."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class UnsupportedInputError(LetterGenError, ValueError):
    """Uploaded file has a type we cannot use. Raised before any state is touched."""


class ServiceError(LetterGenError, RuntimeError):
    """An external service (analysis, logo generation) failed or returned unusable output."""


class AnalysisError(ServiceError):
    DEFAULT_MESSAGE = "Failed to analyze document. If using a large PDF, try a single page screenshot."

    def __init__(self, message: str | None = None):
        super().__init__(message or self.DEFAULT_MESSAGE)


class LogoGenerationError(ServiceError):
    DEFAULT_MESSAGE = "Failed to generate logo. Try a different prompt."

    def __init__(self, message: str | None = None):
        super().__init__(message or self.DEFAULT_MESSAGE)


class AnalysisInProgressError(LetterGenError):
    def __init__(self):
        super().__init__("An analysis is already running for this document. Please wait for it to finish.")


class UnknownFragmentError(LetterGenError, KeyError):
    def __init__(self, fragment_id: str):
        super().__init__(f"Unknown fragment: {fragment_id!r}")
        self.fragment_id = fragment_id

    def __str__(self) -> str:
        return self.message


class UnknownSessionError(LetterGenError, KeyError):
    def __init__(self, token: str):
        super().__init__("Session not found or expired")
        self.token = token

    def __str__(self) -> str:
        return self.message
