from enum import Enum
from typing import Dict, List, Optional

class ErrorSeverity(Enum):
    LOW = 'low'
    MEDIUM = 'medium'
    HIGH = 'high'
    CRITICAL = 'critical'

class RequestValidatorError(Exception):
    """Base class for errors raised by the validator itself (never for bad input)."""
    def __init__(self, message: str, field: Optional[str] = None, severity: ErrorSeverity = ErrorSeverity.MEDIUM):
        self.message = message
        self.field = field
        self.severity = severity
        super().__init__(f"{field + ': ' if field else ''}{message}")

class RuleFormatError(RequestValidatorError):
    """A rule was authored with missing or malformed parameters."""
    def __init__(self, rule: str, field: Optional[str] = None):
        self.rule = rule
        super().__init__(f"Invalid {rule} rule format", field, ErrorSeverity.HIGH)

class LookupNotConfiguredError(RequestValidatorError):
    """A store-backed rule ran on an engine without an existence lookup."""
    def __init__(self, rule: str, field: Optional[str] = None):
        self.rule = rule
        super().__init__(
            f"No existence lookup configured for '{rule}' rule; pass lookup= to RuleEngine",
            field,
            ErrorSeverity.CRITICAL,
        )

class ErrorCollector:
    """
    Collects field errors during a validation run.
    The first message recorded for a field wins; later ones are ignored.
    """
    def __init__(self):
        self.errors: Dict[str, str] = {}
        self.failed_rules: Dict[str, Optional[str]] = {}

    def add_error(self, field: str, message: str, rule: Optional[str] = None) -> bool:
        if field in self.errors:
            return False
        self.errors[field] = message
        self.failed_rules[field] = rule
        return True

    def to_human_readable(self) -> str:
        lines: List[str] = []
        for field, message in self.errors.items():
            rule = self.failed_rules.get(field)
            lines.append(f"[{rule or 'unknown'}] {field}: {message}")
        return '\n'.join(lines)

    def get_errors(self) -> Dict[str, str]:
        return dict(self.errors)
