"""Rule grammar parsing: ``"required|min:8"`` -> ``[('required', None), ('min', '8')]``."""

from typing import List, NamedTuple, Optional, Sequence, Union

RuleSpec = Union[str, Sequence[str]]

RULE_SEPARATOR = '|'
PARAM_SEPARATOR = ':'


class ParsedRule(NamedTuple):
    name: str
    param: Optional[str] = None

    def __str__(self) -> str:
        return self.name if self.param is None else f"{self.name}{PARAM_SEPARATOR}{self.param}"


def parse_rule(rule: str) -> ParsedRule:
    """
    Split one rule into its name and raw parameter string.

    Only the first colon separates the two, so parameters may carry their own
    colons (``regex:/^\\d{2}:\\d{2}$/``) or commas (``required_if:type,business``).
    """
    name, sep, param = rule.strip().partition(PARAM_SEPARATOR)
    return ParsedRule(name.strip(), param if sep else None)


def parse_rules(spec: RuleSpec) -> List[ParsedRule]:
    """
    Turn a field's rule specification into an ordered list of parsed rules.

    Args:
        spec: Pipe-delimited string or an already split sequence of rule strings.
            Use the sequence form for regex patterns containing a pipe.

    Returns:
        List[ParsedRule]: Rules in evaluation order. Blank segments are dropped;
        unknown rule names are kept for the engine to resolve.
    """
    parts = spec.split(RULE_SEPARATOR) if isinstance(spec, str) else list(spec)
    return [parse_rule(part) for part in parts if part and part.strip()]
