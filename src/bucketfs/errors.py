"""Error definitions for bucketfs."""


class FilesystemError(Exception):
    """A bucketfs error with code, message, and HTTP status.

    Attributes:
        code: Machine-readable error classification (e.g. "NotFound").
        message: Human-readable error description.
        http_status: The HTTP status associated with the failure, or 0 when
            the failure did not come from an HTTP exchange.
    """

    def __init__(self, code: str, message: str, http_status: int = 0) -> None:
        """Initialize the error.

        Args:
            code: Error classification name.
            message: Error description.
            http_status: HTTP status code (default 0).
        """
        super().__init__(message)
        self.code = code
        self.message = message
        self.http_status = http_status


class ConfigurationError(FilesystemError):
    """The filesystem cannot be constructed from the given configuration."""

    def __init__(self, message: str = "Invalid configuration") -> None:
        super().__init__(code="ConfigurationError", message=message)


class ObjectStoreError(FilesystemError):
    """A failure reported by the object store client.

    The code carries the backend's classification name (``NoSuchKey``,
    ``NotFound``, ``AccessDenied``...).
    """

    def __init__(self, code: str, message: str = "", http_status: int = 0) -> None:
        super().__init__(code=code, message=message or code, http_status=http_status)


# -- Download errors -----------------------------------------------------------


class TransportError(FilesystemError):
    """The GET request failed below HTTP (connection, DNS, reset)."""

    def __init__(self, message: str = "Transport error", code: str = "TransportError") -> None:
        super().__init__(code=code, message=message)


class RequestTimeoutError(TransportError):
    """The GET request stalled past the configured timeout."""

    def __init__(self, timeout_ms: int = 0) -> None:
        super().__init__(
            message=f"Request timed out after {timeout_ms}ms",
            code="RequestTimeout",
        )
        self.timeout_ms = timeout_ms


class BadStatusError(FilesystemError):
    """The GET response status was not 200.

    Attributes:
        status_code: The HTTP status returned by the store.
    """

    def __init__(self, status_code: int, message: str = "") -> None:
        super().__init__(
            code="BadStatus",
            message=message or f"Unexpected response status {status_code}",
            http_status=status_code,
        )
        self.status_code = status_code


class ObjectNotFoundError(BadStatusError):
    """The GET response was 404."""

    def __init__(self, key: str = "") -> None:
        super().__init__(404, message=f"Object not found: {key}" if key else "Object not found")
        self.code = "NotFound"


class EmptyFileError(FilesystemError):
    """The GET response succeeded with a zero-length body."""

    def __init__(self, key: str = "") -> None:
        super().__init__(
            code="EmptyFile",
            message=f"Empty file: {key}" if key else "Empty file",
            http_status=200,
        )


class DecompressionError(FilesystemError):
    """The downloaded body could not be decompressed."""

    def __init__(self, message: str = "Invalid gzip data") -> None:
        super().__init__(code="DecompressionError", message=message)


# -- Upload / metadata errors --------------------------------------------------


class UploadError(FilesystemError):
    """The remote PUT was rejected or failed."""

    def __init__(self, message: str = "Upload failed", code: str = "UploadError") -> None:
        super().__init__(code=code, message=message)


class MetadataError(FilesystemError):
    """A stat request failed.

    ``str(error)`` is the backend classification name so callers can match
    on it directly.
    """

    def __init__(self, code: str, http_status: int = 0) -> None:
        super().__init__(code=code, message=code, http_status=http_status)
