"""Models for validation requests and results."""

from collections.abc import Mapping
from typing import Any, Callable, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class UploadedFile(BaseModel):
    """Descriptor of a file already written to disk by the upload middleware."""

    model_config = ConfigDict(extra="allow")

    path: str = Field(..., description="Location of the stored upload")
    mimetype: str = Field(..., description="Media type reported for the upload")
    fieldname: Optional[str] = Field(None, description="Form field the file was sent under")
    originalname: Optional[str] = Field(None, description="File name on the client")
    filename: Optional[str] = Field(None, description="File name on disk")
    size: Optional[int] = Field(None, description="Size in bytes", ge=0)


class ValidationRequest(BaseModel):
    """The parts of an incoming request the rule engine looks at."""

    body: Dict[str, Any] = Field(default_factory=dict, description="Field name to submitted value")
    files: Dict[str, List[UploadedFile]] = Field(default_factory=dict, description="Field name to uploaded files")
    custom_validators: Dict[str, Callable[..., Any]] = Field(
        default_factory=dict, description="Per-request custom validators keyed by rule name"
    )

    @field_validator("body", "custom_validators", mode="before")
    @classmethod
    def default_empty_mapping(cls, value: Any) -> Any:
        """Treat a missing body or validator map as empty."""
        return {} if value is None else value

    @field_validator("files", mode="before")
    @classmethod
    def wrap_single_files(cls, value: Any) -> Any:
        """
        Accept a single descriptor where a list is expected.

        Args:
            value: Raw files mapping

        Returns:
            Any: Mapping whose values are all lists
        """
        if value is None:
            return {}
        if isinstance(value, Mapping):
            return {
                field: ([] if files is None else files if isinstance(files, (list, tuple)) else [files])
                for field, files in value.items()
            }
        return value

    @classmethod
    def coerce(cls, request: Any) -> "ValidationRequest":
        """
        Build a request from a model, a mapping or any object exposing ``body``,
        ``files`` and ``custom_validators`` attributes.
        """
        if isinstance(request, cls):
            return request
        if isinstance(request, Mapping):
            return cls.model_validate(dict(request))
        return cls.model_validate({
            "body": getattr(request, "body", None),
            "files": getattr(request, "files", None),
            "custom_validators": getattr(request, "custom_validators", None),
        })

    def all_files(self) -> List[UploadedFile]:
        """Every uploaded file across all fields, in field order."""
        return [upload for uploads in self.files.values() for upload in uploads]


class ValidationResult(BaseModel):
    """Outcome of one validation call."""

    failed: bool = Field(..., description="True when at least one field failed")
    errors: Optional[Dict[str, str]] = Field(None, description="Field name to message; None when nothing failed")

    @model_validator(mode="after")
    def check_consistency(self) -> "ValidationResult":
        """An empty error mapping is reported as None, and failed mirrors its presence."""
        if self.errors is not None and len(self.errors) == 0:
            self.errors = None
        if self.failed != (self.errors is not None):
            raise ValueError("failed must be True exactly when errors are present")
        return self

    @classmethod
    def from_errors(cls, errors: Optional[Dict[str, str]]) -> "ValidationResult":
        """Build a result from a (possibly empty) error mapping."""
        return cls(failed=bool(errors), errors=dict(errors) if errors else None)
