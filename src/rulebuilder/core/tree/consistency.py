"""Rule reference consistency checker.

Two findings are reported for a referenced rule:

- *internal mismatch*: the rule's declared return type disagrees with the
  type its own definition statically evaluates to (advisory);
- *context mismatch*: the reference is used where another type is required,
  e.g. a number rule used as a predicate (blocking).

The internal check runs once per resolution event and is memoized by
``(uuid, version)``; a stored version never changes, so the result cannot go
stale.
"""

from collections import OrderedDict
from dataclasses import dataclass
from typing import Any

from rulebuilder.core.logging import get_logger

from .ast import (
    BOOLEAN,
    CONDITION_TYPES,
    Case,
    Definition,
    ExpressionGroup,
)
from .catalog import NUMERIC_OPERATORS
from .expressions import infer_return_type

logger = get_logger(__name__)

STRUCTURE_CONDITION = "condition"
STRUCTURE_CASE = "case"
STRUCTURE_EXPRESSION = "expression"


@dataclass(frozen=True)
class ConsistencyResult:
    """Outcome of the internal consistency check."""

    has_internal_mismatch: bool
    declared_type: str | None = None
    evaluated_type: str | None = None


NO_MISMATCH = ConsistencyResult(has_internal_mismatch=False)


def evaluate_return_type(definition: Definition | None, structure: str | None) -> str | None:
    """Statically compute the type a rule definition evaluates to.

    Conditions always evaluate to boolean, a case to the type of its else
    result and an expression to its own (inferred, for groups) type.
    """
    if definition is None:
        return None
    if structure == STRUCTURE_CONDITION or isinstance(definition, CONDITION_TYPES):
        return BOOLEAN
    if isinstance(definition, Case):
        return _expression_type(definition.else_clause)
    return _expression_type(definition)


def _expression_type(expression) -> str | None:
    if isinstance(expression, ExpressionGroup):
        return infer_return_type(expression.operands, expression.operators, NUMERIC_OPERATORS)
    return expression.return_type


def check_internal_consistency(resolved: Any) -> ConsistencyResult:
    """Compare a resolved rule's declared type with its evaluated type.

    ``resolved`` is any object exposing ``structure``, ``return_type`` and
    ``definition`` (a loaded rule document).
    """
    if resolved is None:
        return NO_MISMATCH
    declared = resolved.return_type
    evaluated = evaluate_return_type(resolved.definition, resolved.structure)
    if declared and evaluated and declared != evaluated:
        return ConsistencyResult(
            has_internal_mismatch=True,
            declared_type=declared,
            evaluated_type=evaluated,
        )
    return ConsistencyResult(has_internal_mismatch=False, declared_type=declared, evaluated_type=evaluated)


def check_context_mismatch(reference_type: str | None, required_type: str | None) -> bool:
    """True when a reference of ``reference_type`` sits where ``required_type`` is needed."""
    if not reference_type or not required_type:
        return False
    return reference_type != required_type


def internal_mismatch_message(declared_type: str | None, evaluated_type: str | None) -> str:
    return f"Rule declares return type {declared_type} but actually evaluates to {evaluated_type}"


def context_mismatch_message(required_type: str | None, actual_type: str | None) -> str:
    return f"Rule expected to return {required_type} but evaluates to {actual_type}"


class ConsistencyChecker:
    """Memoizing internal consistency checker, one per editing session."""

    def __init__(self, cache_size: int = 256):
        self.cache_size = cache_size
        self._cache: OrderedDict[tuple[str, Any], ConsistencyResult] = OrderedDict()
        self.evaluations = 0

    def check(self, uuid: str, version: Any, resolved: Any) -> ConsistencyResult:
        """Check ``resolved`` unless ``(uuid, version)`` was checked before."""
        key = (uuid, version)
        cached = self._cache.get(key)
        if cached is not None:
            self._cache.move_to_end(key)
            return cached

        result = check_internal_consistency(resolved)
        self.evaluations += 1
        if result.has_internal_mismatch:
            logger.warning(
                "Internal return type mismatch in referenced rule",
                rule_uuid=uuid,
                version=version,
                declared_type=result.declared_type,
                evaluated_type=result.evaluated_type,
            )

        self._cache[key] = result
        if len(self._cache) > self.cache_size:
            self._cache.popitem(last=False)
        return result

    def cached(self, uuid: str, version: Any) -> ConsistencyResult | None:
        return self._cache.get((uuid, version))

    def clear(self) -> None:
        self._cache.clear()
