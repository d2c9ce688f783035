"""Rule tree validator.

Checks the structural invariants of a tree before it is handed to
persistence.
"""

from .ast import (
    Case,
    ExpressionGroup,
    FieldRef,
    FunctionCall,
    Literal,
    Predicate,
    PredicateGroup,
    RuleRef,
    RuleRefCondition,
)
from .catalog import RuleBuilderConfig
from .exceptions import StructuralInvariantError
from .naming import join_path
from .paths import root_path_of


class TreeValidator:
    """Validates rule trees."""

    def __init__(self, config: RuleBuilderConfig | None = None):
        """Initialize validator.

        Args:
            config: Optional editor catalogue; when given, predicate operand
                counts are checked against operator cardinality too.
        """
        self.config = config
        self.errors: list[str] = []

    def validate(self, definition) -> list[str]:
        """Validate a definition and return the violations found."""
        self.errors = []
        if definition is None:
            self.errors.append("Rule has no definition")
            return self.errors
        self._validate_node(definition, root_path_of(definition))
        return list(self.errors)

    def assert_well_formed(self, definition) -> None:
        """Raise StructuralInvariantError if the tree violates an invariant."""
        errors = self.validate(definition)
        if errors:
            raise StructuralInvariantError("; ".join(errors))

    def _validate_node(self, node, path: str) -> None:
        """Recursively validate a node."""
        if isinstance(node, (Literal, FieldRef, RuleRef)):
            return

        if isinstance(node, FunctionCall):
            for index, arg in enumerate(node.args):
                self._validate_node(arg.value, join_path(path, "arg", index))
            return

        if isinstance(node, ExpressionGroup):
            self._validate_expression_group(node, path)
            return

        if isinstance(node, Predicate):
            self._validate_predicate(node, path)
            return

        if isinstance(node, PredicateGroup):
            if not node.children:
                self.errors.append(f"Condition group '{node.name}' at {path} has no conditions")
            for index, child in enumerate(node.children):
                self._validate_node(child, join_path(path, "condition", index))
            return

        if isinstance(node, RuleRefCondition):
            return

        if isinstance(node, Case):
            self._validate_case(node, path)
            return

        self.errors.append(f"Unknown node type at {path}: {type(node).__name__}")

    def _validate_expression_group(self, group: ExpressionGroup, path: str) -> None:
        if len(group.operands) < 2:
            self.errors.append(
                f"Expression group at {path} has {len(group.operands)} operand(s); at least 2 required"
            )
        if len(group.operators) != len(group.operands) - 1:
            self.errors.append(
                f"Expression group at {path} has {len(group.operators)} operator(s) "
                f"for {len(group.operands)} operands"
            )
        for index, operand in enumerate(group.operands):
            self._validate_node(operand, join_path(path, "operand", index))

    def _validate_predicate(self, predicate: Predicate, path: str) -> None:
        self._validate_node(predicate.left, join_path(path, "left"))
        right = predicate.right
        if isinstance(right, list):
            for index, item in enumerate(right):
                self._validate_node(item, join_path(path, "right", index))
        elif right is not None:
            self._validate_node(right, join_path(path, "right"))

        if self.config is None:
            return
        cardinality = self.config.cardinality_of(predicate.operator)
        count = len(right) if isinstance(right, list) else (0 if right is None else 1)
        if not cardinality.allows(count):
            self.errors.append(
                f"Condition '{predicate.name}' at {path}: operator '{predicate.operator}' "
                f"does not accept {count} operand(s)"
            )

    def _validate_case(self, case: Case, path: str) -> None:
        if not case.when_clauses:
            self.errors.append(f"Case at {path} has no when clauses")
        if case.else_clause is None:
            self.errors.append(f"Case at {path} has no else clause")
        for index, clause in enumerate(case.when_clauses):
            self._validate_node(clause.when, join_path(path, "when", index))
            self._validate_node(clause.then, join_path(path, "then", index))
        if case.else_clause is not None:
            self._validate_node(case.else_clause, join_path(path, "else"))
