"""Registry and invocation of caller-supplied validators."""

import inspect
from typing import Any, Callable, Dict, Iterator, Mapping, Optional

from request_validator.models.validation import ValidationRequest
from request_validator.validation.checks import BUILTIN_RULES

# (value) or (value, request) -> True | False | message; may be a coroutine function
CustomValidator = Callable[..., Any]


class CustomValidatorRegistry:
    """
    Named custom validators available to every call of an engine.

    Rule names resolve to built-in checks first, so a custom validator can never
    shadow one; registering a built-in name is rejected.
    """
    def __init__(self, validators: Optional[Mapping[str, CustomValidator]] = None):
        self._validators: Dict[str, CustomValidator] = {}
        for name, validator in (validators or {}).items():
            self.register(name, validator)

    def register(self, name: str, validator: Optional[CustomValidator] = None):
        """
        Register a validator, directly or as a decorator.

        Example:
            registry = CustomValidatorRegistry()

            @registry.register("even")
            def even(value):
                return value % 2 == 0 or "value must be even"
        """
        if name in BUILTIN_RULES:
            raise ValueError(f"'{name}' is a built-in rule and cannot be overridden")
        if validator is None:
            def decorator(func: CustomValidator) -> CustomValidator:
                self._validators[name] = func
                return func
            return decorator
        self._validators[name] = validator
        return validator

    def unregister(self, name: str) -> None:
        self._validators.pop(name, None)

    def get(self, name: str) -> Optional[CustomValidator]:
        return self._validators.get(name)

    def merged(self, overrides: Optional[Mapping[str, CustomValidator]]) -> Dict[str, CustomValidator]:
        """Engine-wide validators with request-level ones taking precedence."""
        combined = dict(self._validators)
        combined.update(overrides or {})
        return combined

    def __contains__(self, name: object) -> bool:
        return name in self._validators

    def __iter__(self) -> Iterator[str]:
        return iter(self._validators)

    def __len__(self) -> int:
        return len(self._validators)


def accepts_request(validator: CustomValidator) -> bool:
    """True when the validator takes a second positional argument for the request."""
    try:
        signature = inspect.signature(validator)
    except (TypeError, ValueError):
        # builtins such as bool expose no signature; call them with the value only
        return False
    positional = 0
    for parameter in signature.parameters.values():
        if parameter.kind == inspect.Parameter.VAR_POSITIONAL:
            return True
        if parameter.kind in (inspect.Parameter.POSITIONAL_ONLY, inspect.Parameter.POSITIONAL_OR_KEYWORD):
            positional += 1
    return positional >= 2


async def call_custom_validator(validator: CustomValidator, value: Any, request: ValidationRequest) -> Any:
    """Invoke a sync or async custom validator and return its raw outcome."""
    outcome = validator(value, request) if accepts_request(validator) else validator(value)
    if inspect.isawaitable(outcome):
        outcome = await outcome
    return outcome
