"""Condition evaluation against a document's attribute map.

Pure and side-effect free apart from a warning log for invalid conditions.
Numbers are compared as Decimal so "1500" and 1500.0 agree; booleans are
never treated as numbers.
"""

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any, Mapping

from hrflow.domain.entities import ConditionDefinition
from hrflow.domain.enums import ConditionOperator
from hrflow.shared.telemetry.logging import get_logger

logger = get_logger(__name__)

_MISSING = object()

_ORDERING_OPERATORS = frozenset(
    {
        ConditionOperator.GT,
        ConditionOperator.GTE,
        ConditionOperator.LT,
        ConditionOperator.LTE,
    }
)


@dataclass(frozen=True)
class ConditionOutcome:
    """Result of one condition check; invalid marks a configuration error."""

    matched: bool
    invalid: bool = False
    reason: str | None = None


def lookup_field(attributes: Mapping[str, Any], path: str) -> Any:
    """Return the value at path, or _MISSING.

    A literal key (even one containing dots) wins; otherwise the path is
    walked through nested mappings.
    """
    if path in attributes:
        return attributes[path]
    current: Any = attributes
    for part in path.split("."):
        if not isinstance(current, Mapping) or part not in current:
            return _MISSING
        current = current[part]
    return current


def to_number(value: Any) -> Decimal | None:
    """Parse value as a finite Decimal; None for booleans, blanks and non-numbers."""
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float, Decimal)):
        raw = str(value)
    elif isinstance(value, str):
        raw = value.strip()
        if not raw:
            return None
    else:
        return None
    try:
        number = Decimal(raw)
    except (InvalidOperation, ValueError):
        return None
    return number if number.is_finite() else None


def _string_form(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _compare(op: ConditionOperator, left: Decimal, right: Decimal) -> bool:
    if op is ConditionOperator.EQ:
        return left == right
    if op is ConditionOperator.NE:
        return left != right
    if op is ConditionOperator.GT:
        return left > right
    if op is ConditionOperator.GTE:
        return left >= right
    if op is ConditionOperator.LT:
        return left < right
    return left <= right


def check(condition: ConditionDefinition, attributes: Mapping[str, Any]) -> ConditionOutcome:
    """Evaluate condition and report whether it was a configuration error.

    Missing or null fields never match. Ordering operators on non-numeric
    operands do not match and are flagged invalid.
    """
    actual = lookup_field(attributes, condition.field)
    if actual is _MISSING or actual is None:
        return ConditionOutcome(matched=False, reason="missing_field")

    try:
        op = ConditionOperator(condition.operator)
    except ValueError:
        logger.warning(
            "Invalid condition operator %r on field %s", condition.operator, condition.field
        )
        return ConditionOutcome(matched=False, invalid=True, reason="unknown_operator")

    left = to_number(actual)
    right = to_number(condition.value)
    if left is not None and right is not None:
        return ConditionOutcome(matched=_compare(op, left, right))

    if op in _ORDERING_OPERATORS:
        logger.warning(
            "Invalid condition: %s %s %r compares non-numeric values",
            condition.field,
            op.value,
            condition.value,
        )
        return ConditionOutcome(matched=False, invalid=True, reason="non_numeric_ordering")

    equal = _string_form(actual) == _string_form(condition.value)
    return ConditionOutcome(matched=equal if op is ConditionOperator.EQ else not equal)


def evaluate(condition: ConditionDefinition, attributes: Mapping[str, Any]) -> bool:
    """Return whether condition holds for attributes. Never raises."""
    return check(condition, attributes).matched


def evaluate_all(
    conditions: list[ConditionDefinition], attributes: Mapping[str, Any]
) -> bool:
    """Logical AND over conditions; an empty list is always eligible."""
    return all(evaluate(c, attributes) for c in conditions)
