"""Pydantic models for validation requests and results."""

from request_validator.models.validation import (
    UploadedFile,
    ValidationRequest,
    ValidationResult
)

__all__ = [
    "UploadedFile",
    "ValidationRequest",
    "ValidationResult"
]
