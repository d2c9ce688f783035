"""Condition group normalizer.

Kind transitions between predicates, predicate groups and rule-reference
conditions, plus the structural edits a predicate group exposes.

Transitions are explicit user actions and every one of them asks the
``NamingSynchronizer`` for the label of the resulting node. Removing the last
child of a group never produces an empty group: ``remove_child`` returns a
``RemoveNode`` request that the parent has to honour.
"""

from dataclasses import dataclass, replace

from .ast import (
    Condition,
    Conjunction,
    NodeKind,
    Predicate,
    PredicateGroup,
    RuleRef,
    RuleRefCondition,
    condition_kind,
)
from .catalog import RuleBuilderConfig
from .factories import default_predicate, empty_rule_ref
from .naming import NamingSynchronizer, join_path


@dataclass(frozen=True)
class RemoveNode:
    """Request for the parent to remove the node at ``path``."""

    path: str
    reason: str = "empty group"


def child_path(path: str, index: int) -> str:
    return join_path(path, "condition", index)


def change_kind(
    condition: Condition,
    new_kind: NodeKind,
    path: str,
    naming: NamingSynchronizer,
    config: RuleBuilderConfig,
) -> Condition:
    """Transform ``condition`` into ``new_kind``.

    - group → predicate extracts a sole child, otherwise starts fresh;
    - predicate → group wraps the predicate as child 0 next to a new predicate;
    - anything → rule reference installs an empty reference;
    - rule reference → predicate or group synthesizes the default shape.
    """
    old_kind = condition_kind(condition)
    if old_kind == new_kind:
        return condition

    if new_kind == NodeKind.RULE_REF:
        name = naming.synchronize(path, old_kind, new_kind)
        return RuleRefCondition(name=name, rule_ref=empty_rule_ref())

    if new_kind == NodeKind.PREDICATE:
        if isinstance(condition, PredicateGroup) and len(condition.children) == 1:
            child = condition.children[0]
            name = naming.synchronize(path, old_kind, new_kind, carried_label=child.name)
            return replace(child, name=name)
        name = naming.synchronize(path, old_kind, new_kind)
        return default_predicate(config, name)

    if new_kind == NodeKind.PREDICATE_GROUP:
        name = naming.synchronize(path, old_kind, new_kind)
        if isinstance(condition, Predicate):
            sibling = naming.next_label(path, NodeKind.PREDICATE, [condition.name])
            return PredicateGroup(
                name=name,
                children=[condition, default_predicate(config, sibling)],
                conjunction=Conjunction.AND,
                negate=False,
            )
        first, second = naming.child_labels(path, 2)
        return PredicateGroup(
            name=name,
            children=[default_predicate(config, first), default_predicate(config, second)],
            conjunction=Conjunction.AND,
            negate=False,
        )

    raise ValueError(f"Unknown condition kind '{new_kind}'")


def set_conjunction(group: PredicateGroup, conjunction: Conjunction | str) -> PredicateGroup:
    return replace(group, conjunction=Conjunction(conjunction))


def toggle_negate(group: PredicateGroup) -> PredicateGroup:
    return replace(group, negate=not group.negate)


def reorder(group: PredicateGroup, from_index: int, to_index: int) -> PredicateGroup:
    """Move a child from ``from_index`` to ``to_index``."""
    children = list(group.children)
    child = children.pop(from_index)
    children.insert(to_index, child)
    return replace(group, children=children)


def add_child(
    group: PredicateGroup,
    path: str,
    naming: NamingSynchronizer,
    config: RuleBuilderConfig,
) -> PredicateGroup:
    """Append a default predicate."""
    name = naming.next_label(path, NodeKind.PREDICATE, [child.name for child in group.children])
    return replace(group, children=list(group.children) + [default_predicate(config, name)])


def add_child_group(
    group: PredicateGroup,
    path: str,
    naming: NamingSynchronizer,
    config: RuleBuilderConfig,
) -> PredicateGroup:
    """Append a default group holding two predicates."""
    name = naming.next_label(path, NodeKind.PREDICATE_GROUP, [child.name for child in group.children])
    new_path = child_path(path, len(group.children))
    first, second = naming.child_labels(new_path, 2)
    new_group = PredicateGroup(
        name=name,
        children=[default_predicate(config, first), default_predicate(config, second)],
    )
    return replace(group, children=list(group.children) + [new_group])


def update_child(group: PredicateGroup, index: int, child: Condition) -> PredicateGroup:
    children = list(group.children)
    children[index] = child
    return replace(group, children=children)


def remove_child(group: PredicateGroup, index: int, path: str) -> PredicateGroup | RemoveNode:
    """Remove a child; an emptied group asks its parent to remove it instead.

    Groups left with a single child stay groups.
    """
    children = list(group.children)
    del children[index]
    if not children:
        return RemoveNode(path=path)
    return replace(group, children=children)


def select_reference(
    condition: RuleRefCondition,
    rule_ref: RuleRef,
    path: str,
    naming: NamingSynchronizer,
) -> RuleRefCondition:
    """Install a resolved target; the label becomes the target's id.

    The reference keeps the target's own return type so a non-boolean rule
    used as a predicate can be reported as a context mismatch.
    """
    name = naming.synchronize(path, NodeKind.RULE_REF, NodeKind.RULE_REF, resolved_ref_id=rule_ref.rule_id)
    return RuleRefCondition(name=name, rule_ref=rule_ref)


def clear_reference(
    condition: RuleRefCondition,
    path: str,
    naming: NamingSynchronizer,
) -> RuleRefCondition:
    """Drop the selected target; the label reverts to its positional default."""
    rule_ref = replace(empty_rule_ref(), rule_type=condition.rule_ref.rule_type)
    name = naming.default_label(path, NodeKind.RULE_REF)
    return RuleRefCondition(name=name, rule_ref=rule_ref)
