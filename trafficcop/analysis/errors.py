"""
Traffic Cop Capture Errors

Exception Hierarchy:
    CaptureError (base)
    ├── MalformedInputError (text is not well-formed JSON)
    ├── InvalidDocumentError (well-formed, but required structure is missing)
    └── MalformedUrlError (an entry URL cannot be parsed)

All three also derive from ValueError.
"""


class CaptureError(Exception):
    """Base exception for capture analysis errors."""


class MalformedInputError(CaptureError, ValueError):
    """Raised when capture text is not syntactically well-formed."""


class InvalidDocumentError(CaptureError, ValueError):
    """Raised when a capture document lacks required structure or fields."""

    def __init__(self, message: str, index: int | None = None, field: str | None = None) -> None:
        self.index = index
        self.field = field
        if index is not None:
            message = f"Invalid entry at index {index}: {message}"
        super().__init__(message)


class MalformedUrlError(CaptureError, ValueError):
    """Raised when an entry's request URL is not a valid absolute URL."""

    def __init__(self, url: str) -> None:
        self.url = url
        super().__init__(f"Invalid URL in capture entry: {url!r}")
