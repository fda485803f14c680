"""Unified error hierarchy for tempshare.

All domain errors inherit from TempShareError. The gateway maps each
family onto a response status; everything else collapses to a generic
500 so storage paths never reach the client.
"""

from __future__ import annotations


class TempShareError(Exception):
    """Base error for all tempshare exceptions."""

    def __init__(self, message: str, code: str = "TEMPSHARE_ERROR") -> None:
        self.code = code
        super().__init__(message)


# -- Input validation errors (4xx, never logged as severe) --


class ValidationError(TempShareError):
    """Input validation failed."""

    def __init__(self, message: str, field: str = "", code: str = "VALIDATION") -> None:
        self.field = field
        super().__init__(message, code=code)


class InvalidFileNameError(ValidationError):
    """A public reference is not of the form UUID.EXT."""

    def __init__(self, name: str = "") -> None:
        self.name = name
        super().__init__("Invalid filename is not UUID.EXT.", code="INVALID_FILE_NAME")


class InvalidUUIDVersionError(ValidationError):
    """The reference UUID is not a version 7, RFC 4122 identifier."""

    def __init__(self) -> None:
        super().__init__("UUID needs to be v7.", code="INVALID_UUID_VERSION")


class InvalidUUIDTimestampError(ValidationError):
    """The embedded UUID timestamp is not a representable instant."""

    def __init__(self) -> None:
        super().__init__("UUID has an invalid timestamp.", code="INVALID_UUID_TIMESTAMP")


class InvalidBucketKeyError(ValidationError):
    """A bucket directory name is not a unix-seconds timestamp."""

    def __init__(self, key: str) -> None:
        self.key = key
        super().__init__(f"Invalid bucket key: {key!r}", code="INVALID_BUCKET_KEY")


class InvalidExpirationError(ValidationError):
    """An expiration instant cannot be encoded into an identifier."""

    def __init__(self, message: str) -> None:
        super().__init__(message, field="expiration", code="INVALID_EXPIRATION")


class MissingFieldError(ValidationError):
    """A required form field was not supplied."""

    def __init__(self, field_name: str) -> None:
        super().__init__(f"'{field_name}' is required!", field=field_name, code="MISSING_FIELD")


class MissingFileNameError(ValidationError):
    """The uploaded file carries no file name."""

    def __init__(self) -> None:
        super().__init__("Missing file name.", field="filename", code="MISSING_FILE_NAME")


class UnknownFileTypeError(ValidationError):
    """The uploaded file name has no usable extension."""

    def __init__(self, filename: str = "") -> None:
        self.filename = filename
        super().__init__("Unknown file type.", field="filename", code="UNKNOWN_FILE_TYPE")


class InvalidPartError(ValidationError):
    """A part index is outside the accepted range."""

    def __init__(self, part: object, max_parts: int) -> None:
        self.part = part
        self.max_parts = max_parts
        super().__init__(
            f"Invalid part field: {part} (expected 0..{max_parts - 1})",
            field="part",
            code="INVALID_PART",
        )


# -- Expiry-state outcomes --


class NotFoundError(TempShareError):
    """Requested file is expired or absent.

    Expired-but-present and genuinely absent objects are deliberately
    indistinguishable here.
    """

    def __init__(self, reference: str = "") -> None:
        self.reference = reference
        super().__init__("File not found.", code="NOT_FOUND")


class RangeNotSatisfiableError(TempShareError):
    """A byte range cannot be served from an object of the given length."""

    def __init__(self, total_length: int) -> None:
        self.total_length = total_length
        super().__init__(
            f"Range not satisfiable for length {total_length}",
            code="RANGE_NOT_SATISFIABLE",
        )


# -- Backend I/O errors (opaque 5xx) --


class StorageError(TempShareError):
    """A storage backend operation failed.

    Carries the operation and path for logging; the gateway never shows
    either to the caller.
    """

    def __init__(self, operation: str, path: str, message: str = "") -> None:
        self.operation = operation
        self.path = path
        super().__init__(
            message or f"Storage {operation} failed for '{path}'",
            code="UNKNOWN",
        )


class ObjectNotFoundError(StorageError):
    """The backend reports that an object or directory does not exist."""

    def __init__(self, operation: str, path: str) -> None:
        super().__init__(operation, path, message=f"Object not found: {path}")
        self.code = "OBJECT_NOT_FOUND"


# -- Sweep errors --


class SweepError(TempShareError):
    """The sweep could not enumerate bucket directories."""

    def __init__(self, message: str) -> None:
        super().__init__(message, code="SWEEP_FAILED")


__all__ = [
    "InvalidBucketKeyError",
    "InvalidExpirationError",
    "InvalidFileNameError",
    "InvalidPartError",
    "InvalidUUIDTimestampError",
    "InvalidUUIDVersionError",
    "MissingFieldError",
    "MissingFileNameError",
    "NotFoundError",
    "ObjectNotFoundError",
    "RangeNotSatisfiableError",
    "StorageError",
    "SweepError",
    "TempShareError",
    "UnknownFileTypeError",
    "ValidationError",
]
