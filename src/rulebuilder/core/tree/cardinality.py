"""Operator cardinality resolver.

Maps a predicate's operator to the number of right-hand operands it takes and
reshapes the right side when the operator or the left operand changes.
"""

from dataclasses import replace

from .ast import TEXT, Expression, ExpressionGroup, Predicate
from .catalog import Cardinality, RuleBuilderConfig
from .expressions import default_leaf, retype


class CardinalityResolver:
    """Reshapes predicate operands according to operator cardinality."""

    def __init__(self, config: RuleBuilderConfig):
        self.config = config

    def cardinality(self, operator: str | None) -> Cardinality:
        return self.config.cardinality_of(operator)

    def arity(self, predicate: Predicate) -> int:
        """Current number of right operands the predicate's operator calls for."""
        cardinality = self.cardinality(predicate.operator)
        if cardinality.is_dynamic:
            if isinstance(predicate.right, list):
                return len(predicate.right)
            return cardinality.default or 0
        return cardinality.fixed or 0

    def _left_type(self, predicate: Predicate) -> str:
        return predicate.left.return_type or TEXT

    def _defaults(self, predicate: Predicate, count: int) -> list[Expression]:
        left_type = self._left_type(predicate)
        return [default_leaf(left_type) for _ in range(count)]

    def change_operator(self, predicate: Predicate, operator: str) -> Predicate:
        """Switch the operator and reshape the right side to its arity.

        A single right operand survives a one-to-one change untouched; arrays
        are padded with default leaves or truncated from the tail.
        """
        old_cardinality = self.cardinality(predicate.operator)
        new_cardinality = self.cardinality(operator)
        old_arity = self.arity(predicate)

        if new_cardinality.is_dynamic:
            if old_cardinality.is_dynamic and isinstance(predicate.right, list):
                new_arity = new_cardinality.clamp(len(predicate.right))
            else:
                new_arity = new_cardinality.default or 0
        else:
            new_arity = new_cardinality.fixed or 0

        right = predicate.right
        if new_arity == 0:
            new_right = None
        elif new_arity == 1:
            if isinstance(right, list):
                new_right = right[0] if right else default_leaf(self._left_type(predicate))
            elif right is not None:
                new_right = right
            else:
                new_right = default_leaf(self._left_type(predicate))
        elif isinstance(right, list):
            if len(right) >= new_arity:
                new_right = list(right[:new_arity])
            else:
                new_right = list(right) + self._defaults(predicate, new_arity - len(right))
        elif right is not None and old_arity == 1:
            new_right = [right] + self._defaults(predicate, new_arity - 1)
        else:
            new_right = self._defaults(predicate, new_arity)

        return replace(predicate, operator=operator, right=new_right)

    def add_operand(self, predicate: Predicate) -> Predicate:
        """Append a default right operand; no-op at the operator's maximum."""
        cardinality = self.cardinality(predicate.operator)
        if not cardinality.is_dynamic or not isinstance(predicate.right, list):
            return predicate
        if cardinality.maximum is not None and len(predicate.right) >= cardinality.maximum:
            return predicate
        return replace(predicate, right=list(predicate.right) + self._defaults(predicate, 1))

    def remove_operand(self, predicate: Predicate, index: int) -> Predicate:
        """Remove a right operand; no-op at the operator's minimum."""
        cardinality = self.cardinality(predicate.operator)
        if not cardinality.is_dynamic or not isinstance(predicate.right, list):
            return predicate
        minimum = cardinality.minimum if cardinality.minimum is not None else 1
        if len(predicate.right) <= minimum:
            return predicate
        right = list(predicate.right)
        del right[index]
        return replace(predicate, right=right)

    def can_add_operand(self, predicate: Predicate) -> bool:
        cardinality = self.cardinality(predicate.operator)
        return (
            cardinality.is_dynamic
            and isinstance(predicate.right, list)
            and (cardinality.maximum is None or len(predicate.right) < cardinality.maximum)
        )

    def can_remove_operand(self, predicate: Predicate) -> bool:
        cardinality = self.cardinality(predicate.operator)
        minimum = cardinality.minimum if cardinality.minimum is not None else 1
        return (
            cardinality.is_dynamic
            and isinstance(predicate.right, list)
            and len(predicate.right) > minimum
        )

    def change_left(self, predicate: Predicate, left: Expression) -> Predicate:
        """Replace the left operand, retyping the right side to match.

        Only the declared type tags change; values are left as they are.
        Groups are always retyped so their inner operands follow.
        """
        new_type = left.return_type

        def retyped(operand: Expression) -> Expression:
            if isinstance(operand, ExpressionGroup) or operand.return_type != new_type:
                return retype(operand, new_type)
            return operand

        right = predicate.right
        if isinstance(right, list):
            new_right = [retyped(operand) for operand in right]
        elif right is not None:
            new_right = retyped(right)
        else:
            new_right = right
        return replace(predicate, left=left, right=new_right)
