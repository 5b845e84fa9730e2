"""Domain-specific exceptions for the face-swap workflow."""

SIZE_ERROR_KEYWORDS = ("image size", "too large", "maximum is")


class SwapError(Exception):
    """Base class for face-swap related errors."""


class ConfigurationError(SwapError):
    """Raised when a required setting (the vendor API key) is missing."""


class ValidationError(SwapError):
    """Raised when a submission lacks one of the required images."""


class SubmissionError(SwapError):
    """Raised when the vendor rejects task creation or cannot be reached."""

    def __init__(self, message: str, *, status_code: int | None = None, size_class: bool = False) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.size_class = size_class

    @classmethod
    def from_vendor_message(cls, message: str, *, status_code: int | None = None) -> "SubmissionError":
        lowered = message.lower()
        size_class = any(keyword in lowered for keyword in SIZE_ERROR_KEYWORDS)
        return cls(message, status_code=status_code, size_class=size_class)

    @property
    def user_message(self) -> str:
        if self.size_class:
            return (
                f"Image size issue: {self.message}. "
                "Please use a smaller image or try our auto-compression."
            )
        return self.message


class StatusError(SwapError):
    """Raised when a status poll cannot be completed (not a failed task)."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class UploadError(SwapError):
    """Raised when the vendor upload endpoint rejects an image."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class TaskTimeoutError(SwapError):
    """Raised when polling reaches the attempt ceiling."""


class ProcessingError(SwapError):
    """Raised when an uploaded image cannot be decoded or compressed."""


class CompositeError(SwapError):
    """Raised when a frame cannot be composited over a result image."""


class PersistenceWarning(SwapError):
    """History read/write failure; recorded on the manager, never raised through it."""
