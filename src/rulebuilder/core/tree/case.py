"""Case structure edits.

A case holds ordered when clauses and a mandatory else result. Result labels
resolve in priority order: a label the user typed, the identifier of a
referenced rule in the ``then``/``else`` slot, then the positional default
(``Result N`` / ``Default``).
"""

from dataclasses import replace

from .ast import (
    Case,
    Condition,
    Expression,
    LabelSource,
    NodeKind,
    RuleRef,
    WhenClause,
)
from .catalog import RuleBuilderConfig
from .conditions import change_kind
from .expressions import default_leaf
from .factories import default_predicate
from .naming import NamingSynchronizer, join_path

CASE_PATH = "case"


def when_path(index: int) -> str:
    return join_path(CASE_PATH, "when", index)


def then_path(index: int) -> str:
    return join_path(CASE_PATH, "then", index)


ELSE_PATH = join_path(CASE_PATH, "else")


def _target_of(result: Expression) -> tuple[str, int | None] | None:
    if isinstance(result, RuleRef) and result.is_resolved:
        return result.rule_uuid, result.version
    return None


def _label_for_new_result(
    label: str | None,
    source: LabelSource,
    modified: bool,
    old_result: Expression,
    new_result: Expression,
) -> tuple[str | None, LabelSource, bool]:
    """Label bookkeeping when a result slot receives a new expression.

    Returns the new ``(label, source, user_modified_since_ref)`` triple.
    """
    new_target = _target_of(new_result)
    if new_target is None:
        if source == LabelSource.REFERENCE:
            return None, LabelSource.DEFAULT, False
        return label, source, modified
    if new_target == _target_of(old_result):
        return label, source, modified
    # a reference change: a label typed since the last one survives it once
    if source == LabelSource.USER and modified:
        return label, source, False
    return new_result.rule_id, LabelSource.REFERENCE, False


def add_when_clause(
    case: Case,
    naming: NamingSynchronizer,
    config: RuleBuilderConfig,
) -> Case:
    """Append a clause with a default predicate and a default result."""
    name = naming.next_label(
        CASE_PATH, NodeKind.PREDICATE, [clause.when.name for clause in case.when_clauses]
    )
    clause = WhenClause(
        when=default_predicate(config, name),
        then=default_leaf(case.return_type),
    )
    return replace(case, when_clauses=list(case.when_clauses) + [clause])


def remove_when_clause(case: Case, index: int) -> Case:
    """Remove a clause; the other clauses keep their labels."""
    clauses = list(case.when_clauses)
    del clauses[index]
    return replace(case, when_clauses=clauses)


def update_when(case: Case, index: int, condition: Condition) -> Case:
    clauses = list(case.when_clauses)
    clauses[index] = replace(clauses[index], when=condition)
    return replace(case, when_clauses=clauses)


def change_when_kind(
    case: Case,
    index: int,
    new_kind: NodeKind,
    naming: NamingSynchronizer,
    config: RuleBuilderConfig,
) -> Case:
    """Switch a clause's condition between predicate, group and reference."""
    condition = change_kind(case.when_clauses[index].when, new_kind, when_path(index), naming, config)
    return update_when(case, index, condition)


def set_then(case: Case, index: int, result: Expression) -> Case:
    """Replace a clause's result.

    Acquiring a reference target takes over the label unless the user typed
    one since the previous reference change; moving away from a reference
    clears the reference-derived label.
    """
    clause = case.when_clauses[index]
    label, source, modified = _label_for_new_result(
        clause.result_label,
        clause.label_source,
        clause.user_modified_since_ref,
        clause.then,
        result,
    )
    clauses = list(case.when_clauses)
    clauses[index] = replace(
        clause,
        then=result,
        result_label=label,
        label_source=source,
        user_modified_since_ref=modified,
    )
    return replace(case, when_clauses=clauses)


def set_else(case: Case, result: Expression) -> Case:
    label, source, modified = _label_for_new_result(
        case.else_label,
        case.else_label_source,
        case.else_user_modified_since_ref,
        case.else_clause,
        result,
    )
    return replace(
        case,
        else_clause=result,
        else_label=label,
        else_label_source=source,
        else_user_modified_since_ref=modified,
    )


def _relabel_from_result(result: Expression) -> tuple[str | None, LabelSource]:
    if _target_of(result) is not None:
        return result.rule_id, LabelSource.REFERENCE
    return None, LabelSource.DEFAULT


def set_result_label(case: Case, index: int, label: str | None) -> Case:
    """Record a label typed by the user; an empty label restores the derived one."""
    clause = case.when_clauses[index]
    if label:
        clause = replace(
            clause, result_label=label, label_source=LabelSource.USER, user_modified_since_ref=True
        )
    else:
        derived, source = _relabel_from_result(clause.then)
        clause = replace(
            clause, result_label=derived, label_source=source, user_modified_since_ref=False
        )
    clauses = list(case.when_clauses)
    clauses[index] = clause
    return replace(case, when_clauses=clauses)


def set_else_label(case: Case, label: str | None) -> Case:
    if label:
        return replace(
            case,
            else_label=label,
            else_label_source=LabelSource.USER,
            else_user_modified_since_ref=True,
        )
    derived, source = _relabel_from_result(case.else_clause)
    return replace(
        case,
        else_label=derived,
        else_label_source=source,
        else_user_modified_since_ref=False,
    )


def resolve_result_label(case: Case, index: int, naming: NamingSynchronizer) -> str:
    """Effective label of clause ``index``: typed > referenced rule id > ``Result N``."""
    clause = case.when_clauses[index]
    if clause.label_source == LabelSource.USER and clause.result_label:
        return clause.result_label
    if _target_of(clause.then) is not None:
        return clause.then.rule_id
    return naming.default_label(then_path(index), NodeKind.EXPRESSION)


def resolve_else_label(case: Case, naming: NamingSynchronizer) -> str:
    if case.else_label_source == LabelSource.USER and case.else_label:
        return case.else_label
    if _target_of(case.else_clause) is not None:
        return case.else_clause.rule_id
    return naming.default_label(ELSE_PATH, NodeKind.EXPRESSION)
