import logging
from typing import Any, Dict, List, Mapping, Optional

from request_validator.data.files import FileCleanup, LocalFileCleanup
from request_validator.data.lookup import QueryCapability, create_query_from_settings
from request_validator.metrics import validation_field_failures_total, validation_requests_total
from request_validator.models.validation import ValidationRequest, ValidationResult
from request_validator.utils.config import Settings, get_settings
from request_validator.utils.error_handling import RuleFormatError
from request_validator.utils.logging_utils import redact_sensitive_data
from request_validator.utils.normalization import is_absent
from request_validator.validation.checks import BUILTIN_RULES, NullableRule
from request_validator.validation.context import ValidationContext
from request_validator.validation.custom import (
    CustomValidator, CustomValidatorRegistry, call_custom_validator
)
from request_validator.validation.parser import ParsedRule, RuleSpec, parse_rules

logger = logging.getLogger(__name__)


class RuleEngine:
    """
    Runs parsed rules against a request and aggregates one message per field.

    Fields are processed in the order of the rules mapping and every field is
    evaluated. Within a field, rules run in order and the first failure ends
    the field.
    """
    def __init__(
        self,
        lookup: Optional[QueryCapability] = None,
        file_cleanup: Optional[FileCleanup] = None,
        custom_validators: Optional[Mapping[str, CustomValidator] | CustomValidatorRegistry] = None,
        cleanup_uploads_on_failure: bool = True,
    ):
        """
        Initialize the engine.

        Args:
            lookup: Query capability used by unique/exists; shared across calls
            file_cleanup: Deletes uploads of rejected requests; None disables removal
            custom_validators: Validators available to every call, by rule name
            cleanup_uploads_on_failure: Remove every upload when the request fails
        """
        self.lookup = lookup
        self.file_cleanup = file_cleanup
        if isinstance(custom_validators, CustomValidatorRegistry):
            self.custom_validators = custom_validators
        else:
            self.custom_validators = CustomValidatorRegistry(custom_validators)
        self.cleanup_uploads_on_failure = cleanup_uploads_on_failure

    @classmethod
    def from_settings(
        cls,
        settings: Optional[Settings] = None,
        custom_validators: Optional[Mapping[str, CustomValidator]] = None,
    ) -> "RuleEngine":
        """Engine wired to the configured store and the local filesystem."""
        settings = settings or get_settings()
        return cls(
            lookup=create_query_from_settings(settings),
            file_cleanup=LocalFileCleanup(),
            custom_validators=custom_validators,
            cleanup_uploads_on_failure=settings.cleanup_uploads_on_failure,
        )

    async def validate(self, request: Any, rules: Mapping[str, RuleSpec]) -> ValidationResult:
        """
        Validate a request against a rules mapping.

        Args:
            request: ValidationRequest, or a mapping/object with body, files and custom_validators
            rules: Field name to pipe-delimited rule string or list of rule strings

        Returns:
            ValidationResult: failed flag and field errors (None when nothing failed)

        Raises:
            Exception: Whatever the existence lookup raised, or LookupNotConfiguredError
        """
        request = ValidationRequest.coerce(request)
        context = ValidationContext(request, self.lookup, self.file_cleanup)
        validators = self.custom_validators.merged(request.custom_validators)
        logger.debug(
            "Validating request",
            extra={"fields": list(rules), "body": redact_sensitive_data(request.body)},
        )

        try:
            for field, spec in rules.items():
                await self._validate_field(field, parse_rules(spec), context, validators)
        except Exception:
            validation_requests_total.labels(outcome="error").inc()
            raise

        result = ValidationResult.from_errors(context.errors.get_errors())
        if result.failed:
            validation_requests_total.labels(outcome="failed").inc()
            logger.info(
                f"Request failed validation:\n{context.errors.to_human_readable()}",
                extra={"failed_fields": sorted(result.errors), "failed_rules": context.errors.failed_rules},
            )
            if self.cleanup_uploads_on_failure and request.files:
                removed = await context.remove_files(request.all_files())
                logger.info(f"Removed {removed} uploaded file(s) after failed validation")
        else:
            validation_requests_total.labels(outcome="passed").inc()
        return result

    async def _validate_field(
        self,
        field: str,
        rules: List[ParsedRule],
        context: ValidationContext,
        validators: Dict[str, CustomValidator],
    ) -> None:
        value = context.body.get(field)
        if is_absent(value) and any(rule.name == NullableRule.name for rule in rules):
            return

        for rule in rules:
            try:
                message = await self._apply_rule(field, value, rule, context, validators)
            except RuleFormatError as e:
                logger.warning(f"Rule '{rule}' on field '{field}' is malformed", extra={"field": field})
                message = e.message
            if message is not None:
                context.errors.add_error(field, message, rule.name)
                label = rule.name if rule.name in BUILTIN_RULES else "custom"
                validation_field_failures_total.labels(rule=label).inc()
                return

    async def _apply_rule(
        self,
        field: str,
        value: Any,
        rule: ParsedRule,
        context: ValidationContext,
        validators: Dict[str, CustomValidator],
    ) -> Optional[str]:
        check = BUILTIN_RULES.get(rule.name)
        if check is not None:
            return await check.validate(field, value, rule.param, context)

        validator = validators.get(rule.name)
        if validator is None:
            return f"Custom validator {rule.name} not found"
        outcome = await call_custom_validator(validator, value, context.request)
        if outcome is True:
            return None
        if isinstance(outcome, str) and outcome:
            return outcome
        return f"{field} validation failed"


async def validate_input(
    request: Any,
    rules: Mapping[str, RuleSpec],
    lookup: Optional[QueryCapability] = None,
    file_cleanup: Optional[FileCleanup] = None,
    custom_validators: Optional[Mapping[str, CustomValidator]] = None,
) -> ValidationResult:
    """
    Validate the input of a request against a set of rules.

    Builds a one-off RuleEngine; uploads are removed from the local filesystem
    unless another ``file_cleanup`` is given. Long-lived services should build
    a RuleEngine once and reuse it.

    Example:
        result = await validate_input(
            {"body": {"password": "123"}},
            {"password": "required|min:8|max:20"},
        )
        # result.errors == {"password": "password must be at least 8 characters long"}
    """
    engine = RuleEngine(
        lookup=lookup,
        file_cleanup=file_cleanup if file_cleanup is not None else LocalFileCleanup(),
        custom_validators=custom_validators,
    )
    return await engine.validate(request, rules)
