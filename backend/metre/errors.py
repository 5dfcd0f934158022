"""Exception taxonomy for the transcription endpoint.

Each exception carries the HTTP status the router answers with, so the
handler can catch ``MetreError`` once and build the JSON error body.
"""


class MetreError(Exception):
    """Base exception for request failures."""
    def __init__(self, message: str, status_code: int = 500):
        self.message = message
        self.status_code = status_code
        super().__init__(message)


class InvalidRequestError(MetreError):
    """Raised when the request itself is unusable (missing audio, bad catalog)."""
    def __init__(self, message: str):
        super().__init__(message, status_code=400)


class MissingAudioError(InvalidRequestError):
    """Raised when the multipart body carries no audio file."""
    def __init__(self):
        super().__init__("No audio file provided")


class ClientDisconnectedError(MetreError):
    """Raised when the caller went away while upstream calls were running."""
    def __init__(self):
        super().__init__("Client disconnected before the response was ready", status_code=499)


class UpstreamFailureError(MetreError):
    """Raised when the speech-to-text or completion service fails."""
    def __init__(self, message: str, step: str, status_code: int = 500):
        self.step = step
        super().__init__(message, status_code=status_code)


class MalformedResponseError(UpstreamFailureError):
    """Raised when the completion output is not JSON or not the expected shape."""
    def __init__(self, message: str):
        super().__init__(
            f"Malformed analysis response: {message}",
            step="analysis",
        )


class UpstreamTimeoutError(UpstreamFailureError):
    """Raised when an outbound step runs past its configured timeout."""
    def __init__(self, step: str, timeout_seconds: float):
        self.timeout_seconds = timeout_seconds
        super().__init__(
            f"{step.capitalize()} timed out after {timeout_seconds:g}s",
            step=step,
            status_code=504,
        )
