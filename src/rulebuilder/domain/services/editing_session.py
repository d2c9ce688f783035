"""Editing session - one rule tree and the state that travels with it.

An EditingSession owns exactly one rule document together with its naming
synchronizer, expansion state, consistency checker and the warnings attached
to node paths. Every structural edit goes through the pure functions of
``rulebuilder.core.tree``; the session only addresses nodes by path and
commits the returned tree.

Reference resolution is the only suspending operation. Each request carries
a generation token for its path and is applied only if that token is still
current when the load completes; edits that touch the path, or loading a
different rule, make older tokens stale.
"""

import uuid
from dataclasses import dataclass, replace
from typing import Any

from rulebuilder.core.config import Settings, get_settings
from rulebuilder.core.logging import LoggingContext, get_logger
from rulebuilder.core.tree import case as case_ops
from rulebuilder.core.tree import conditions as condition_ops
from rulebuilder.core.tree import expressions as expression_ops
from rulebuilder.core.tree.ast import (
    BOOLEAN,
    NUMBER,
    Case,
    Conjunction,
    Definition,
    Expression,
    ExpressionGroup,
    NodeKind,
    Predicate,
    PredicateGroup,
    RuleRef,
    RuleRefCondition,
)
from rulebuilder.core.tree.cardinality import CardinalityResolver
from rulebuilder.core.tree.catalog import RuleBuilderConfig
from rulebuilder.core.tree.conditions import RemoveNode
from rulebuilder.core.tree.consistency import (
    STRUCTURE_CASE,
    STRUCTURE_CONDITION,
    STRUCTURE_EXPRESSION,
    ConsistencyChecker,
    ConsistencyResult,
    check_context_mismatch,
    context_mismatch_message,
    internal_mismatch_message,
)
from rulebuilder.core.tree.exceptions import (
    ConfigurationError,
    LoadError,
    RuleTreeError,
    ValidationWarning,
)
from rulebuilder.core.tree.factories import default_case, default_predicate
from rulebuilder.core.tree.naming import NamingSynchronizer
from rulebuilder.core.tree.paths import (
    get_node,
    iter_nodes,
    parent_path,
    parse_path,
    set_node,
)
from rulebuilder.core.tree.validator import TreeValidator
from rulebuilder.domain.entities.rule import RuleDocument, RuleSummary, SaveResult
from rulebuilder.domain.ports import ReferenceResolver, RulePersistence
from rulebuilder.domain.services.expansion_state import ExpansionState

logger = get_logger(__name__)

ROOT_GROUP_LABEL = "Main Condition"

INTERNAL_MISMATCH = "internal_mismatch"
CONTEXT_MISMATCH = "context_mismatch"


@dataclass
class ConfigurationStatus:
    """Whether a configuration-dependent widget can render.

    Attributes:
        ok: True when the required configuration is present.
        values: The configured values when ``ok``.
        message: What is missing, for display, when not ``ok``.
        key: Configuration key that is missing.
    """

    ok: bool
    values: list[str] | None = None
    message: str | None = None
    key: str | None = None


class EditingSession:
    """Owns one rule tree and applies path-addressed edits to it."""

    def __init__(
        self,
        config: RuleBuilderConfig,
        resolver: ReferenceResolver | None = None,
        settings: Settings | None = None,
        session_id: str | None = None,
    ):
        self.config = config
        self.resolver = resolver
        self.settings = settings or get_settings()
        self.session_id = session_id or f"es_{uuid.uuid4().hex[:12]}"

        self.naming = NamingSynchronizer()
        self.expansion = ExpansionState()
        self.checker = ConsistencyChecker(cache_size=self.settings.consistency_cache_size)
        self.cardinality = CardinalityResolver(config)
        self.validator = TreeValidator()
        self.warnings: dict[str, list[ValidationWarning]] = {}

        if any(op.numeric for op in config.expression_operators.values()):
            self.numeric_operators = config.numeric_operators
        else:
            self.numeric_operators = frozenset(self.settings.numeric_operators)

        self.document: RuleDocument | None = None
        self.is_new = True
        self._tokens: dict[str, int] = {}
        self._generation = 0
        self._epoch = 0

    # =========================================================================
    # Lifecycle
    # =========================================================================

    @property
    def definition(self) -> Definition:
        if self.document is None:
            raise RuleTreeError("No rule is open in this session")
        return self.document.definition

    def _reset(self, structure: str, is_new: bool) -> None:
        self._epoch += 1
        self._tokens.clear()
        self.naming.reset()
        self.expansion.reset(structure, is_new)
        self.warnings = {}
        self.is_new = is_new

    def new_rule(
        self,
        structure: str = STRUCTURE_CONDITION,
        return_type: str | None = None,
        rule_type: str | None = None,
        rule_id: str | None = None,
        description: str | None = None,
    ) -> RuleDocument:
        """Start a new, unsaved rule with the default shape for ``structure``."""
        self._reset(structure, is_new=True)
        if structure == STRUCTURE_CONDITION:
            return_type = BOOLEAN
            definition: Definition = PredicateGroup(
                name=ROOT_GROUP_LABEL,
                children=[default_predicate(self.config, "Condition 1")],
            )
        elif structure == STRUCTURE_CASE:
            return_type = return_type or self.settings.default_return_type
            definition = default_case(self.config, return_type)
        elif structure == STRUCTURE_EXPRESSION:
            return_type = return_type or NUMBER
            definition = expression_ops.default_leaf(return_type)
        else:
            raise ValueError(f"Unknown rule structure '{structure}'")

        self.document = RuleDocument(
            structure=structure,
            return_type=return_type,
            definition=definition,
            rule_type=rule_type,
            version=1,
            rule_id=rule_id,
            description=description,
        )
        with LoggingContext(session_id=self.session_id):
            logger.info("New rule started", structure=structure, return_type=return_type)
        return self.document

    def load_rule(self, document: RuleDocument) -> RuleDocument:
        """Replace the session's tree with a stored rule.

        Labels come from the stored names (defaults were filled in during
        parsing); warnings are rebuilt from the reference fields in one pass.
        """
        self._reset(document.structure, is_new=False)
        self.document = document
        self._refresh_warnings()
        with LoggingContext(session_id=self.session_id):
            logger.info(
                "Rule loaded",
                rule_uuid=document.uuid,
                version=document.version,
                structure=document.structure,
            )
        return document

    async def open_rule(self, rule_uuid: str, version: int | str | None = None) -> RuleDocument:
        """Load a rule through the resolver and check its references."""
        resolver = self._require_resolver()
        document = await resolver.load(rule_uuid, version)
        self.load_rule(document)
        await self.refresh_references()
        return self.document

    # =========================================================================
    # Commit helpers
    # =========================================================================

    def node(self, path: str) -> Any:
        return get_node(self.definition, path)

    def _commit(self, definition: Definition) -> Definition:
        self.document = replace(self.document, definition=definition)
        self._refresh_warnings()
        return definition

    def _set(self, path: str, node: Any) -> Definition:
        """Replace the node at ``path`` and re-infer enclosing expression groups."""
        definition = set_node(self.definition, path, node)
        current = parent_path(path)
        while current is not None:
            parent = get_node(definition, current)
            if isinstance(parent, ExpressionGroup):
                inferred = expression_ops.infer_return_type(
                    parent.operands, parent.operators, self.numeric_operators
                )
                if inferred != parent.return_type:
                    definition = set_node(definition, current, replace(parent, return_type=inferred))
            current = parent_path(current)
        return self._commit(definition)

    def _invalidate(self, path: str) -> None:
        """Make pending resolutions at or below ``path`` stale."""
        prefix = f"{path}-"
        for key in list(self._tokens):
            if key == path or key.startswith(prefix):
                self._generation += 1
                self._tokens[key] = self._generation

    def _issue_token(self, path: str) -> int:
        self._generation += 1
        self._tokens[path] = self._generation
        return self._generation

    def _is_current(self, path: str, token: int, epoch: int) -> bool:
        return epoch == self._epoch and self._tokens.get(path) == token

    def _case(self) -> Case:
        definition = self.definition
        if not isinstance(definition, Case):
            raise RuleTreeError("The open rule is not a case")
        return definition

    @staticmethod
    def _slot(path: str) -> tuple[str, int | None] | None:
        """``("then", i)`` or ``("else", None)`` when ``path`` is a case result slot."""
        steps = parse_path(path)
        if len(steps) == 1 and steps[0][0] in ("then", "else"):
            return steps[0]
        return None

    # =========================================================================
    # Conditions
    # =========================================================================

    def change_condition_kind(self, path: str, kind: NodeKind | str) -> Any:
        """Switch the condition at ``path`` to another kind."""
        self._invalidate(path)
        condition = condition_ops.change_kind(
            self.node(path), NodeKind(kind), path, self.naming, self.config
        )
        self._set(path, condition)
        return condition

    def add_condition(self, group_path: str) -> PredicateGroup:
        group = condition_ops.add_child(self.node(group_path), group_path, self.naming, self.config)
        self._set(group_path, group)
        return group

    def add_condition_group(self, group_path: str) -> PredicateGroup:
        group = condition_ops.add_child_group(self.node(group_path), group_path, self.naming, self.config)
        self._set(group_path, group)
        return group

    def remove_condition(self, path: str) -> Definition:
        """Remove the condition at ``path`` from its group.

        A group emptied by the removal is removed from its own parent in
        turn; an emptied root or when condition falls back to a default
        predicate.
        """
        steps = parse_path(path)
        if not steps or (len(steps) == 1 and steps[0][0] == "when"):
            return self._replace_removed(path)
        group_path = parent_path(path)
        group = self.node(group_path)
        if not isinstance(group, PredicateGroup):
            raise RuleTreeError(f"No condition group holds '{path}'")
        index = steps[-1][1]
        self._invalidate(group_path)
        self.expansion.forget(path)
        result = condition_ops.remove_child(group, index, group_path)
        if isinstance(result, RemoveNode):
            logger.debug("Removing emptied condition group", path=result.path)
            return self.remove_condition(result.path)
        return self._set(group_path, result)

    def _replace_removed(self, path: str) -> Definition:
        slot = parse_path(path)
        if slot and slot[-1][0] == "when":
            case = self._case()
            index = slot[-1][1]
            if len(case.when_clauses) > 1:
                # later clauses shift down one index
                self._invalidate(case_ops.CASE_PATH)
                return self._commit(case_ops.remove_when_clause(case, index))
        self._invalidate(path)
        label = self.naming.default_label(path, NodeKind.PREDICATE)
        return self._set(path, default_predicate(self.config, label))

    def rename_condition(self, path: str, name: str) -> None:
        """Record a label the user typed for a condition."""
        condition = replace(self.node(path), name=name)
        group_path = parent_path(path)
        group = self.node(group_path) if group_path is not None else None
        if isinstance(group, PredicateGroup):
            index = parse_path(path)[-1][1]
            self._set(group_path, condition_ops.update_child(group, index, condition))
        else:
            self._set(path, condition)

    def set_conjunction(self, path: str, conjunction: Conjunction | str) -> None:
        self._set(path, condition_ops.set_conjunction(self.node(path), conjunction))

    def toggle_negate(self, path: str) -> None:
        self._set(path, condition_ops.toggle_negate(self.node(path)))

    def reorder_conditions(self, path: str, from_index: int, to_index: int) -> None:
        self._invalidate(path)
        self._set(path, condition_ops.reorder(self.node(path), from_index, to_index))

    # =========================================================================
    # Predicates
    # =========================================================================

    def available_operators(self, path: str) -> list[str]:
        """Condition operators valid for the left operand of the predicate at ``path``."""
        predicate = self.node(path)
        return self.config.available_condition_operators(predicate.left.return_type)

    def change_operator(self, path: str, operator: str) -> Predicate:
        self._invalidate(f"{path}-right")
        predicate = self.cardinality.change_operator(self.node(path), operator)
        self._set(path, predicate)
        return predicate

    def change_left(self, path: str, left: Expression) -> Predicate:
        self._invalidate(f"{path}-left")
        predicate = self.cardinality.change_left(self.node(path), left)
        self._set(path, predicate)
        return predicate

    def add_right_operand(self, path: str) -> Predicate:
        predicate = self.cardinality.add_operand(self.node(path))
        self._set(path, predicate)
        return predicate

    def remove_right_operand(self, path: str, index: int) -> Predicate:
        self._invalidate(f"{path}-right")
        predicate = self.cardinality.remove_operand(self.node(path), index)
        self._set(path, predicate)
        return predicate

    # =========================================================================
    # Expressions
    # =========================================================================

    def set_expression(self, path: str, expression: Expression) -> None:
        """Replace the expression at ``path``; case result slots update their labels."""
        self._invalidate(path)
        slot = self._slot(path) if isinstance(self.definition, Case) else None
        if slot is None:
            self._set(path, expression)
        elif slot[0] == "then":
            self._commit(case_ops.set_then(self._case(), slot[1], expression))
        else:
            self._commit(case_ops.set_else(self._case(), expression))

    def change_source(self, path: str, source: str) -> Expression:
        """Switch the expression at ``path`` to a value, field, function or reference."""
        expression = expression_ops.change_source(
            self.node(path), source, self.config.default_field or self.settings.default_field
        )
        self.set_expression(path, expression)
        return expression

    def _default_operator(self, return_type: str) -> str:
        return self.config.default_expression_operator(return_type)

    def wrap_expression(self, path: str, operator: str | None = None) -> ExpressionGroup:
        """Turn the expression at ``path`` into a two-operand group.

        Raises:
            ConfigurationError: If no default operator is configured for the
                expression's type and none is given.
        """
        expression = self.node(path)
        group = expression_ops.wrap_as_group(
            expression,
            operator or self._default_operator(expression.return_type),
            self.numeric_operators,
        )
        self.set_expression(path, group)
        return group

    def insert_operand(self, path: str, after_index: int, operator: str | None = None) -> ExpressionGroup:
        group = self.node(path)
        group = expression_ops.insert_operand(
            group,
            after_index,
            operator or self._default_operator(expression_ops.operand_type(group)),
            self.numeric_operators,
        )
        self._invalidate(path)
        self._set(path, group)
        return group

    def append_operand(self, path: str, operator: str | None = None) -> ExpressionGroup:
        group = self.node(path)
        return self.insert_operand(path, len(group.operands) - 1, operator)

    def remove_operand(self, path: str, index: int) -> Expression:
        """Remove an operand; a group left with one operand collapses to it."""
        self.expansion.forget(f"{path}-operand-{index}")
        result = expression_ops.remove_operand(self.node(path), index, self.numeric_operators)
        self.set_expression(path, result)
        return result

    def update_operator(self, path: str, index: int, operator: str) -> ExpressionGroup:
        group = expression_ops.update_operator(self.node(path), index, operator, self.numeric_operators)
        self._set(path, group)
        return group

    # =========================================================================
    # Case
    # =========================================================================

    def add_when_clause(self) -> Case:
        return self._commit(case_ops.add_when_clause(self._case(), self.naming, self.config))

    def remove_when_clause(self, index: int) -> Case:
        self._invalidate(case_ops.CASE_PATH)
        return self._commit(case_ops.remove_when_clause(self._case(), index))

    def change_when_kind(self, index: int, kind: NodeKind | str) -> Case:
        self._invalidate(case_ops.when_path(index))
        return self._commit(
            case_ops.change_when_kind(self._case(), index, NodeKind(kind), self.naming, self.config)
        )

    def set_result_label(self, index: int, label: str | None) -> None:
        self._commit(case_ops.set_result_label(self._case(), index, label))

    def set_else_label(self, label: str | None) -> None:
        self._commit(case_ops.set_else_label(self._case(), label))

    def result_label(self, index: int) -> str:
        return case_ops.resolve_result_label(self._case(), index, self.naming)

    def else_label(self) -> str:
        return case_ops.resolve_else_label(self._case(), self.naming)

    # =========================================================================
    # References
    # =========================================================================

    def _require_resolver(self) -> ReferenceResolver:
        if self.resolver is None:
            raise ConfigurationError("No reference resolver configured", key="resolver")
        return self.resolver

    def reference_rule_types(self) -> ConfigurationStatus:
        """Rule types a reference picker may offer.

        Never raises: a missing list is reported so the picker can show a
        message instead of its interactive state.
        """
        try:
            values = self.config.allowed_rule_types()
        except ConfigurationError as e:
            if self.settings.allowed_rule_types:
                return ConfigurationStatus(ok=True, values=list(self.settings.allowed_rule_types))
            logger.warning("Reference picker unavailable", key=e.key, error=str(e))
            return ConfigurationStatus(ok=False, message=str(e), key=e.key)
        return ConfigurationStatus(ok=True, values=values)

    async def search_references(self, query: str | None = None) -> list[RuleSummary]:
        """Search reference targets of the allowed rule types."""
        status = self.reference_rule_types()
        if not status.ok:
            return []
        try:
            return await self._require_resolver().search(status.values, query)
        except LoadError as e:
            logger.error("Reference search failed", error=str(e))
            return []

    async def resolve_reference(self, path: str, summary: RuleSummary) -> bool:
        """Select ``summary`` as the target of the reference at ``path``.

        Returns True if the resolution was applied, False if it failed, was
        superseded while loading, or the path no longer holds a reference.
        """
        resolver = self._require_resolver()
        token = self._issue_token(path)
        epoch = self._epoch

        with LoggingContext(session_id=self.session_id):
            logger.info(
                "Resolving rule reference",
                path=path,
                rule_uuid=summary.uuid,
                version=summary.version,
            )
            try:
                resolved = await resolver.load(summary.uuid, summary.version)
            except LoadError as e:
                logger.error(
                    "Rule reference resolution failed",
                    path=path,
                    rule_uuid=summary.uuid,
                    version=summary.version,
                    error=str(e),
                )
                return False

            if not self._is_current(path, token, epoch):
                logger.debug("Discarding stale rule reference resolution", path=path, rule_uuid=summary.uuid)
                return False

            version = resolved.version if resolved.version is not None else summary.version
            result = self.checker.check(summary.uuid, version, resolved)
            rule_ref = RuleRef(
                return_type=resolved.return_type or summary.return_type,
                rule_id=summary.rule_id or resolved.rule_id,
                rule_uuid=summary.uuid,
                version=version,
                rule_type=resolved.rule_type or summary.rule_type,
            )
            if not self._apply_reference(path, self._with_consistency(rule_ref, result)):
                logger.debug("Discarding rule reference for a node that is no reference", path=path)
                return False
            logger.info("Rule reference applied", path=path, rule_id=rule_ref.rule_id, version=version)
            return True

    @staticmethod
    def _with_consistency(rule_ref: RuleRef, result: ConsistencyResult) -> RuleRef:
        return replace(
            rule_ref,
            internal_mismatch=result.has_internal_mismatch,
            internal_declared_type=result.declared_type if result.has_internal_mismatch else None,
            internal_evaluated_type=result.evaluated_type if result.has_internal_mismatch else None,
        )

    @staticmethod
    def _node_or_none(definition: Definition, path: str) -> Any:
        try:
            return get_node(definition, path)
        except (KeyError, IndexError):
            return None

    def _apply_reference(self, path: str, rule_ref: RuleRef) -> bool:
        """Install ``rule_ref`` at ``path``; False when no reference is there."""
        node = self._node_or_none(self.definition, path)
        if isinstance(node, RuleRefCondition):
            self._set(path, condition_ops.select_reference(node, rule_ref, path, self.naming))
        elif isinstance(node, RuleRef):
            slot = self._slot(path) if isinstance(self.definition, Case) else None
            if slot is None:
                self._set(path, rule_ref)
            elif slot[0] == "then":
                self._commit(case_ops.set_then(self._case(), slot[1], rule_ref))
            else:
                self._commit(case_ops.set_else(self._case(), rule_ref))
        else:
            return False
        return True

    def clear_reference(self, path: str) -> None:
        """Drop the selected target at ``path``; labels revert to their defaults."""
        self._issue_token(path)
        node = self.node(path)
        if isinstance(node, RuleRefCondition):
            self._set(path, condition_ops.clear_reference(node, path, self.naming))
        elif isinstance(node, RuleRef):
            self.set_expression(path, RuleRef(return_type=node.return_type, version=1, rule_type=node.rule_type))
        else:
            raise RuleTreeError(f"No rule reference at '{path}'")
        with LoggingContext(session_id=self.session_id):
            logger.info("Rule reference cleared", path=path)

    async def refresh_references(self) -> int:
        """Run the consistency check for every resolved reference in the tree.

        Results are memoized per ``(uuid, version)``, so each target is loaded
        and checked once per session. All results are written in a single
        commit, and only onto paths that still hold the reference that was
        checked. Returns the number of references updated.
        """
        targets = [
            (path, node.rule_ref if isinstance(node, RuleRefCondition) else node)
            for path, node in iter_nodes(self.definition)
            if isinstance(node, (RuleRef, RuleRefCondition))
        ]
        targets = [(path, rule_ref) for path, rule_ref in targets if rule_ref.is_resolved]
        epoch = self._epoch
        tokens = {path: self._current_token(path) for path, _ in targets}

        checked: list[tuple[str, RuleRef, ConsistencyResult]] = []
        for path, rule_ref in targets:
            result = self.checker.cached(rule_ref.rule_uuid, rule_ref.version)
            if result is None:
                try:
                    resolved = await self._require_resolver().load(rule_ref.rule_uuid, rule_ref.version)
                except LoadError as e:
                    logger.error(
                        "Rule reference check failed",
                        path=path,
                        rule_uuid=rule_ref.rule_uuid,
                        version=rule_ref.version,
                        error=str(e),
                    )
                    continue
                result = self.checker.check(rule_ref.rule_uuid, rule_ref.version, resolved)
            checked.append((path, rule_ref, result))

        definition = self.definition
        updated = 0
        for path, rule_ref, result in checked:
            if not self._is_current(path, tokens[path], epoch):
                logger.debug("Discarding stale rule reference check", path=path)
                continue
            node = self._node_or_none(definition, path)
            live = node.rule_ref if isinstance(node, RuleRefCondition) else node
            if not isinstance(live, RuleRef) or live.target != rule_ref.target:
                logger.debug("Discarding rule reference check for a changed node", path=path)
                continue
            checked_ref = self._with_consistency(live, result)
            if isinstance(node, RuleRefCondition):
                checked_ref = replace(node, rule_ref=checked_ref)
            definition = set_node(definition, path, checked_ref)
            updated += 1

        if updated:
            self._commit(definition)
        return updated

    def _current_token(self, path: str) -> int:
        """Token of a pending resolution at ``path``, or a new one."""
        if path in self._tokens:
            return self._tokens[path]
        return self._issue_token(path)

    # =========================================================================
    # Warnings
    # =========================================================================

    def _required_type(self, path: str, node: Any) -> str | None:
        """Type a reference at ``path`` has to evaluate to, if any."""
        if isinstance(node, RuleRefCondition):
            return BOOLEAN
        steps = parse_path(path)
        if not steps:
            return self.document.return_type if self.document.structure == STRUCTURE_EXPRESSION else None
        if len(steps) == 1 and steps[0][0] in ("then", "else"):
            return self.document.return_type
        if steps[-1][0] == "right":
            predicate = get_node(self.definition, parent_path(path))
            return predicate.left.return_type
        return None

    def _collect_warnings(self) -> dict[str, list[ValidationWarning]]:
        warnings: dict[str, list[ValidationWarning]] = {}
        for path, node in iter_nodes(self.definition):
            rule_ref = node.rule_ref if isinstance(node, RuleRefCondition) else node
            if not isinstance(rule_ref, RuleRef) or not rule_ref.is_resolved:
                continue
            found: list[ValidationWarning] = []
            if rule_ref.internal_mismatch:
                found.append(
                    ValidationWarning(
                        code=INTERNAL_MISMATCH,
                        path=path,
                        message=internal_mismatch_message(
                            rule_ref.internal_declared_type, rule_ref.internal_evaluated_type
                        ),
                    )
                )
            required = self._required_type(path, node)
            if check_context_mismatch(rule_ref.return_type, required):
                found.append(
                    ValidationWarning(
                        code=CONTEXT_MISMATCH,
                        path=path,
                        message=context_mismatch_message(required, rule_ref.return_type),
                        blocking=True,
                    )
                )
            if found:
                warnings[path] = found
        return warnings

    def _refresh_warnings(self) -> None:
        self.warnings = self._collect_warnings()

    def warnings_for(self, path: str) -> list[ValidationWarning]:
        return list(self.warnings.get(path, []))

    @property
    def has_blocking_warnings(self) -> bool:
        return any(warning.blocking for found in self.warnings.values() for warning in found)

    # =========================================================================
    # Persistence
    # =========================================================================

    def to_output(self) -> dict[str, Any]:
        """The document as handed to persistence.

        Raises:
            StructuralInvariantError: If the tree is not well formed.
        """
        self.validator.assert_well_formed(self.definition)
        return self.document.to_dict()

    async def save(self, persistence: RulePersistence) -> SaveResult:
        """Create the rule, or store a new version of an existing one."""
        self.validator.assert_well_formed(self.definition)
        with LoggingContext(session_id=self.session_id):
            if self.document.is_persisted:
                result = await persistence.update(self.document.uuid, self.document)
            else:
                result = await persistence.create(self.document)
            self.document = replace(self.document, uuid=result.uuid, version=result.version)
            self.is_new = False
            logger.info("Rule saved", rule_uuid=result.uuid, version=result.version, rule_id=result.rule_id)
        return result

    async def restore(self, persistence: RulePersistence, version: int) -> SaveResult:
        """Restore ``version`` as a new version and load it.

        History is never rewritten: the restored content always gets a
        version number of its own.
        """
        if not self.document or not self.document.is_persisted:
            raise RuleTreeError("Only a saved rule can be restored")
        rule_uuid = self.document.uuid
        with LoggingContext(session_id=self.session_id):
            result = await persistence.restore(rule_uuid, version)
            logger.info("Rule version restored", rule_uuid=rule_uuid, restored=version, version=result.version)
        self.load_rule(await persistence.get_version(rule_uuid, result.version))
        return result
