from __future__ import annotations


class SheetstoreError(Exception):
    """Base class for errors raised by the ingestion services."""


class ValidationError(SheetstoreError):
    """A required input is missing or malformed."""


class UploadTooLargeError(ValidationError):
    """The uploaded file exceeds the configured size ceiling."""


class NotFoundError(SheetstoreError):
    """A referenced project, sheet or stored file does not exist."""


class ConflictError(SheetstoreError):
    """The request collides with an existing registry entry."""


class ParseError(SheetstoreError):
    """The uploaded workbook could not be read."""


class EmptyRowError(SheetstoreError):
    """A row has no values for any column of its target table."""


class IngestionError(SheetstoreError):
    """Storage failed while ingesting a workbook."""
