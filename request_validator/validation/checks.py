"""
Built-in rule checks.

Every check receives the field name, the field's raw value, the rule's raw
parameter string and the run's ``ValidationContext``. It returns ``None`` when
the value passes, or the message to record for the field. Malformed rule
parameters raise ``RuleFormatError``; the engine records those on the field as
well.
"""

from abc import ABC, abstractmethod
import calendar
from collections.abc import Mapping
from datetime import datetime
from functools import lru_cache
import re
from typing import Any, Dict, List, NamedTuple, Optional, Tuple

from pydantic import AnyUrl, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from request_validator.data.lookup import is_safe_identifier
from request_validator.utils.error_handling import RuleFormatError
from request_validator.utils.normalization import (
    as_text, is_blank, parse_int_param, split_list_param, value_length
)
from request_validator.validation.context import ValidationContext

EMAIL_PATTERN = re.compile(r"[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}")
ALPHA_PATTERN = re.compile(r"[A-Za-z]+")
ALPHANUMERIC_PATTERN = re.compile(r"[A-Za-z0-9]+")
PHONE_PATTERN = re.compile(r"\+?[1-9]\d{1,14}")

DEFAULT_DATE_FORMAT = "YYYY-MM-DD"

# Display tokens accepted by the date rule: the text each one matches and the
# date component it sets. Text in square brackets is literal, as is any
# character that is not a letter. Any other letter makes the format invalid.
DATE_TOKENS = {
    "YYYY": (r"\d{4}", "year"),
    "YY": (r"\d{2}", "short_year"),
    "MMMM": (r"[A-Za-z]+", "month"),
    "MMM": (r"[A-Za-z]{3}", "month"),
    "MM": (r"\d{2}", "month"),
    "M": (r"\d{1,2}", "month"),
    "DD": (r"\d{2}", "day"),
    "D": (r"\d{1,2}", "day"),
    "HH": (r"\d{2}", "hour"),
    "H": (r"\d{1,2}", "hour"),
    "hh": (r"\d{2}", "hour12"),
    "h": (r"\d{1,2}", "hour12"),
    "mm": (r"\d{2}", "minute"),
    "m": (r"\d{1,2}", "minute"),
    "ss": (r"\d{2}", "second"),
    "s": (r"\d{1,2}", "second"),
    "A": (r"[AaPp][Mm]", "meridiem"),
    "a": (r"[AaPp][Mm]", "meridiem"),
}
_DATE_TOKEN_PATTERN = re.compile(
    r"\[[^\]]*\]|YYYY|YY|MMMM|MMM|MM|M|DD|D|HH|H|hh|h|mm|m|ss|s|A|a|.", re.DOTALL
)
MONTH_NAMES = {name.lower(): index for index, name in enumerate(calendar.month_name) if name}
MONTH_ABBREVIATIONS = {name.lower(): index for index, name in enumerate(calendar.month_abbr) if name}
# Leap year, so a format without a year still accepts 29 February
DEFAULT_DATE_YEAR = 2000

_url_adapter = TypeAdapter(AnyUrl)


class ValidationRule(ABC):
    """Abstract base class for rule checks."""
    name: str = ""

    @abstractmethod
    async def validate(self, field: str, value: Any, param: Optional[str], context: ValidationContext) -> Optional[str]:
        pass


class ValueRule(ValidationRule):
    """
    A check that only looks at present, non-blank values.
    Parameters are parsed first so an authoring mistake surfaces even when the
    field was left empty.
    """
    def parse_param(self, param: Optional[str]) -> Any:
        return param

    async def validate(self, field, value, param, context):
        parsed = self.parse_param(param)
        if is_blank(value):
            return None
        return self.check(field, value, parsed)

    @abstractmethod
    def check(self, field: str, value: Any, param: Any) -> Optional[str]:
        pass


class RequiredRule(ValidationRule):
    name = "required"

    async def validate(self, field, value, param, context):
        if is_blank(value):
            return f"{field} is required"
        return None


class NotEmptyRule(ValidationRule):
    name = "not-empty"

    async def validate(self, field, value, param, context):
        if is_blank(value):
            return f"{field} can not be blank"
        return None


class NullableRule(ValidationRule):
    """Marker rule. The engine skips nullable fields whose value is absent."""
    name = "nullable"

    async def validate(self, field, value, param, context):
        return None


class RequiredIfRule(ValidationRule):
    name = "required_if"

    def parse_param(self, param: Optional[str]) -> Tuple[str, str]:
        tokens = param.split(",") if param else []
        if len(tokens) != 2:
            raise RuleFormatError(self.name)
        return tokens[0].strip(), tokens[1].strip()

    async def validate(self, field, value, param, context):
        condition_field, condition_value = self.parse_param(param)
        other = context.body.get(condition_field)
        if other is not None and as_text(other) == condition_value and is_blank(value):
            return f"{field} is required when {condition_field} is {condition_value}"
        return None


class LengthRule(ValueRule):
    def parse_param(self, param):
        limit = parse_int_param(param)
        if limit is None or limit < 0:
            raise RuleFormatError(self.name)
        return limit

    def check(self, field, value, param):
        length = value_length(value)
        if length is None or self.accepts(length, param):
            return None
        return self.message(field, param)

    @abstractmethod
    def accepts(self, length: int, limit: int) -> bool:
        pass

    @abstractmethod
    def message(self, field: str, limit: int) -> str:
        pass


class MinRule(LengthRule):
    name = "min"

    def accepts(self, length, limit):
        return length >= limit

    def message(self, field, limit):
        return f"{field} must be at least {limit} characters long"


class MaxRule(LengthRule):
    name = "max"

    def accepts(self, length, limit):
        return length <= limit

    def message(self, field, limit):
        return f"{field} cannot be more than {limit} characters long"


class DigitsRule(LengthRule):
    name = "digits"

    def accepts(self, length, limit):
        return length == limit

    def message(self, field, limit):
        return f"{field} should be exactly {limit} characters long"


class TypeRule(ValueRule):
    """Runtime type check; no coercion, so "42" is not an integer."""
    def __init__(self, name: str, expected_type: type | tuple, type_label: str, excluded: tuple = ()):
        self.name = name
        self.expected_type = expected_type
        self.type_label = type_label
        self.excluded = excluded

    def check(self, field, value, param):
        if isinstance(value, self.expected_type) and not isinstance(value, self.excluded):
            return None
        return f"{field} must be {self.type_label}"


class IntegerRule(TypeRule):
    """Whole numbers. A float with no fractional part (JSON ``5.0``) counts; booleans do not."""
    def __init__(self):
        super().__init__("integer", int, "an integer", excluded=(bool,))

    def check(self, field, value, param):
        if isinstance(value, float) and value.is_integer():
            return None
        return super().check(field, value, param)


class PatternRule(ValueRule):
    def __init__(self, name: str, pattern: re.Pattern, message: str):
        self.name = name
        self.pattern = pattern
        self.message = message

    def check(self, field, value, param):
        if self.pattern.fullmatch(as_text(value)):
            return None
        return self.message.format(field=field)


class UrlRule(ValueRule):
    name = "url"

    def check(self, field, value, param):
        try:
            _url_adapter.validate_python(as_text(value))
        except PydanticValidationError:
            return f"{field} must be a valid URL"
        return None


class DateFormat(NamedTuple):
    display: str
    pattern: re.Pattern
    tokens: Tuple[str, ...]


@lru_cache(maxsize=128)
def compile_date_format(display_format: str) -> DateFormat:
    """
    Compile a display format such as ``D/M/YYYY HH:mm`` into a strict matcher.

    Doubled tokens (``DD``) require exactly two digits; single ones (``D``)
    accept one or two.

    Raises:
        RuleFormatError: If the format holds a letter that is not a known token
    """
    parts: List[str] = []
    tokens: List[str] = []
    for token in _DATE_TOKEN_PATTERN.findall(display_format):
        if token in DATE_TOKENS:
            parts.append(f"({DATE_TOKENS[token][0]})")
            tokens.append(token)
        elif len(token) > 1:
            parts.append(re.escape(token[1:-1]))
        elif token.isascii() and token.isalpha():
            raise RuleFormatError("date")
        else:
            parts.append(re.escape(token))
    return DateFormat(display_format, re.compile("".join(parts), re.ASCII), tuple(tokens))


def _token_value(token: str, raw: str) -> Any:
    if token == "MMMM":
        return MONTH_NAMES.get(raw.lower())
    if token == "MMM":
        return MONTH_ABBREVIATIONS.get(raw.lower())
    if token in ("A", "a"):
        return raw.lower()
    return int(raw)


def parse_date(text: str, date_format: DateFormat) -> Optional[datetime]:
    """
    Parse ``text`` strictly against ``date_format``.

    The whole text must match, a component given twice must agree, and the
    resulting date must exist. Returns None otherwise.
    """
    match = date_format.pattern.fullmatch(text)
    if match is None:
        return None

    parts: Dict[str, Any] = {}
    for token, raw in zip(date_format.tokens, match.groups()):
        value = _token_value(token, raw)
        if value is None or parts.setdefault(DATE_TOKENS[token][1], value) != value:
            return None

    year = parts.get("year")
    if year is None and "short_year" in parts:
        # two-digit years follow the POSIX pivot: 69-99 -> 19xx, 00-68 -> 20xx
        year = parts["short_year"] + (1900 if parts["short_year"] >= 69 else 2000)
    hour = parts.get("hour", 0)
    if "hour12" in parts:
        if not 1 <= parts["hour12"] <= 12:
            return None
        hour12 = parts["hour12"] % 12 + (12 if parts.get("meridiem") == "pm" else 0)
        if "hour" in parts and parts["hour"] != hour12:
            return None
        hour = hour12

    try:
        return datetime(
            year if year is not None else DEFAULT_DATE_YEAR,
            parts.get("month", 1),
            parts.get("day", 1),
            hour,
            parts.get("minute", 0),
            parts.get("second", 0),
        )
    except ValueError:
        return None


class DateRule(ValueRule):
    name = "date"

    def parse_param(self, param):
        display_format = param.strip() if param and param.strip() else DEFAULT_DATE_FORMAT
        return compile_date_format(display_format)

    def check(self, field, value, param):
        if parse_date(as_text(value), param) is None:
            return f"{field} must be a valid date with format {param.display}"
        return None


class InRule(ValueRule):
    name = "in"

    def parse_param(self, param):
        allowed = split_list_param(param)
        if not allowed:
            raise RuleFormatError(self.name)
        return allowed

    def check(self, field, value, param):
        if as_text(value) in param:
            return None
        return f"{field} must be one of the following values: {', '.join(param)}"


class RegexRule(ValueRule):
    name = "regex"

    def parse_param(self, param):
        if not param:
            raise RuleFormatError(self.name)
        source = param[1:] if param.startswith("/") else param
        source = source[:-1] if source.endswith("/") else source
        try:
            return re.compile(source)
        except re.error:
            raise RuleFormatError(self.name)

    def check(self, field, value, param):
        if param.search(as_text(value)):
            return None
        return f"{field} format is invalid"


class ArrayRule(ValueRule):
    name = "array"

    def check(self, field, value, param):
        if isinstance(value, (list, tuple)):
            return None
        return f"{field} must be an array"


class ObjectRule(ValueRule):
    name = "object"

    def check(self, field, value, param):
        if isinstance(value, Mapping):
            return None
        return f"{field} must be an object"


class FileRule(ValidationRule):
    name = "file"

    async def validate(self, field, value, param, context):
        if not context.files_for(field):
            return f"{field} is required"
        return None


class MimetypeRule(ValidationRule):
    """
    Every upload for the field must have an allowed media type. On rejection
    all of the field's uploads are removed right away.
    """
    name = "mimetype"

    def parse_param(self, param: Optional[str]) -> List[str]:
        allowed = split_list_param(param)
        if not allowed:
            raise RuleFormatError(self.name)
        return allowed

    async def validate(self, field, value, param, context):
        allowed = self.parse_param(param)
        accepted = {mimetype.lower() for mimetype in allowed}
        uploads = context.files_for(field)
        if all(upload.mimetype.lower() in accepted for upload in uploads):
            return None
        await context.remove_files(uploads)
        return f"Invalid file format for {field}. Supported media types are {', '.join(allowed)}"


class StoreRule(ValidationRule):
    """Base for checks answered by counting matching rows in the store."""

    def parse_param(self, param: Optional[str]) -> Tuple[str, str]:
        tokens = [token.strip() for token in param.split(",")] if param else []
        if len(tokens) != 2 or not all(is_safe_identifier(token) for token in tokens):
            raise RuleFormatError(self.name)
        return tokens[0], tokens[1]

    async def validate(self, field, value, param, context):
        table, column = self.parse_param(param)
        if is_blank(value):
            return None
        count = await context.count_matches(self.name, table, column, match_value(field, value, context.body), field)
        return self.check_count(field, count)

    @abstractmethod
    def check_count(self, field: str, count: int) -> Optional[str]:
        pass


def match_value(field: str, value: Any, body: Dict[str, Any]) -> Any:
    """
    Value compared against the store. Phone numbers are stored qualified by
    their country code, so ``phone`` is matched as ``phone_code + phone``.
    """
    if field == "phone":
        return f"{as_text(body.get('phone_code'))}{as_text(value)}"
    return value


class UniqueRule(StoreRule):
    name = "unique"

    def check_count(self, field, count):
        if count > 0:
            return f"{field} already exists"
        return None


class ExistsRule(StoreRule):
    name = "exists"

    def check_count(self, field, count):
        if count == 0:
            return f"{field} does not exist"
        return None


BUILTIN_RULES: Dict[str, ValidationRule] = {
    rule.name: rule
    for rule in (
        RequiredRule(),
        NotEmptyRule(),
        NullableRule(),
        RequiredIfRule(),
        MinRule(),
        MaxRule(),
        DigitsRule(),
        TypeRule("string", str, "a string"),
        IntegerRule(),
        TypeRule("boolean", bool, "a boolean"),
        PatternRule("email", EMAIL_PATTERN, "Invalid email address for {field}"),
        UrlRule(),
        DateRule(),
        InRule(),
        PatternRule("alpha", ALPHA_PATTERN, "{field} must contain only letters"),
        PatternRule("alphanumeric", ALPHANUMERIC_PATTERN, "{field} must contain only letters and numbers"),
        ArrayRule(),
        ObjectRule(),
        PatternRule("phone", PHONE_PATTERN, "{field} must be a valid phone number"),
        RegexRule(),
        FileRule(),
        MimetypeRule(),
        UniqueRule(),
        ExistsRule(),
    )
}
