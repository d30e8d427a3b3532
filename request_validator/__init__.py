"""Declarative request-field validation with a compact rule grammar."""

from request_validator.models.validation import UploadedFile, ValidationRequest, ValidationResult
from request_validator.validation.custom import CustomValidatorRegistry
from request_validator.validation.engine import RuleEngine, validate_input
from request_validator.validation.parser import ParsedRule, parse_rules

__version__ = "0.1.0"

__all__ = [
    "CustomValidatorRegistry",
    "ParsedRule",
    "RuleEngine",
    "UploadedFile",
    "ValidationRequest",
    "ValidationResult",
    "parse_rules",
    "validate_input",
]
