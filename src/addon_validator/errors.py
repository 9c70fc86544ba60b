from __future__ import annotations
from typing import Optional


class ValidationError(Exception):
    """Malformed or incomplete submission. Never retried."""

    message = "Invalid submission"

    def __init__(self, message: Optional[str] = None) -> None:
        super().__init__(message or self.message)


class InvalidRemovalIdentifierError(ValidationError):
    message = "No ID or incorrect ID provided for add-on removal"


class InvalidIdentifierRequirementError(ValidationError):
    message = "Incorrect ID requirement format"


class MissingFieldError(ValidationError):
    def __init__(self, field_name: str) -> None:
        self.field_name = field_name
        super().__init__(f"Missing fields, field name: {field_name}")


class InvalidFieldError(ValidationError):
    def __init__(self, field_name: str, value: object = None) -> None:
        self.field_name = field_name
        self.value = value
        super().__init__(f"Invalid value for field {field_name}: {value!r}")


class ConflictingFieldsError(ValidationError):
    def __init__(self, first: str, second: str) -> None:
        self.fields = (first, second)
        super().__init__(f"Conflicting fields provided: {first} and {second}")


class SubmissionNotFoundError(ValidationError):
    message = "Empty result returned"


class DirectoryCreationError(ValidationError):
    message = "Failed to create a directory for extraction"


class ArchiveExtractionError(ValidationError):
    message = "Failed to extract the archive"


class UploadError(Exception):
    """Failure while committing an operation to the catalog."""

    message = "Unknown error"

    def __init__(self, message: Optional[str] = None) -> None:
        super().__init__(message or self.message)


class RemoteServiceError(UploadError):
    message = "CloudKit error"


class EmptyResultError(UploadError):
    message = "Empty result returned"


class DownloadError(UploadError):
    message = "Error in downloading asset"


class UnsupportedImageError(UploadError):
    message = "Unsupported image file"


class ResizeImageError(UploadError):
    message = "Failed to resize an image"


class SaveThumbnailError(UploadError):
    message = "Failed to save a resized image"


class UnknownUploadError(UploadError):
    message = "Unknown error"


class CatalogError(Exception):
    """Raised by catalog clients for any failed request."""


class RecordNotFoundError(CatalogError):
    def __init__(self, record_name: str) -> None:
        self.record_name = record_name
        super().__init__(f"Record not found: {record_name}")
