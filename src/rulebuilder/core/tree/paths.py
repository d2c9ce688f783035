"""Node addressing by path.

A path starts at the definition root (``root`` for conditions and
expressions, ``case`` for a case) and descends through segments:

- ``condition-i``: child ``i`` of a predicate group
- ``when-i`` / ``then-i`` / ``else``: slots of a case
- ``left`` / ``right`` / ``right-i``: operands of a predicate
- ``operand-i``: operand of an expression group
- ``arg-i``: argument value of a function call

Paths double as keys for naming, expansion state and warnings.
"""

from dataclasses import replace
from typing import Any, Iterator

from .ast import (
    Case,
    Definition,
    ExpressionGroup,
    FunctionArg,
    FunctionCall,
    Predicate,
    PredicateGroup,
)
from .naming import join_path, split_path

ROOT_PATH = "root"
CASE_ROOT = "case"

_INDEXED = frozenset({"condition", "when", "then", "operand", "arg"})


def root_path_of(definition: Definition) -> str:
    return CASE_ROOT if isinstance(definition, Case) else ROOT_PATH


def parse_path(path: str) -> list[tuple[str, int | None]]:
    """Split a path into ``(segment, index)`` steps below the root."""
    segments = split_path(path)
    if not segments or segments[0] not in (ROOT_PATH, CASE_ROOT):
        raise KeyError(f"Path '{path}' does not start at a definition root")
    steps: list[tuple[str, int | None]] = []
    position = 1
    while position < len(segments):
        segment = segments[position]
        following = segments[position + 1] if position + 1 < len(segments) else None
        if segment in _INDEXED:
            if following is None or not following.isdigit():
                raise KeyError(f"Segment '{segment}' in '{path}' needs an index")
            steps.append((segment, int(following)))
            position += 2
        elif segment == "right" and following is not None and following.isdigit():
            steps.append((segment, int(following)))
            position += 2
        elif segment in ("left", "right", "else"):
            steps.append((segment, None))
            position += 1
        else:
            raise KeyError(f"Unknown segment '{segment}' in '{path}'")
    return steps


def _child(node: Any, segment: str, index: int | None) -> Any:
    match node, segment:
        case Case(), "when":
            return node.when_clauses[index].when
        case Case(), "then":
            return node.when_clauses[index].then
        case Case(), "else":
            return node.else_clause
        case PredicateGroup(), "condition":
            return node.children[index]
        case Predicate(), "left":
            return node.left
        case Predicate(), "right":
            if index is None:
                return node.right
            return node.right[index]
        case ExpressionGroup(), "operand":
            return node.operands[index]
        case FunctionCall(), "arg":
            return node.args[index].value
    raise KeyError(f"{type(node).__name__} has no '{segment}' child")


def _with_child(node: Any, segment: str, index: int | None, child: Any) -> Any:
    match node, segment:
        case Case(), "when" | "then":
            clauses = list(node.when_clauses)
            field = "when" if segment == "when" else "then"
            clauses[index] = replace(clauses[index], **{field: child})
            return replace(node, when_clauses=clauses)
        case Case(), "else":
            return replace(node, else_clause=child)
        case PredicateGroup(), "condition":
            children = list(node.children)
            children[index] = child
            return replace(node, children=children)
        case Predicate(), "left":
            return replace(node, left=child)
        case Predicate(), "right":
            if index is None:
                return replace(node, right=child)
            right = list(node.right)
            right[index] = child
            return replace(node, right=right)
        case ExpressionGroup(), "operand":
            operands = list(node.operands)
            operands[index] = child
            return replace(node, operands=operands)
        case FunctionCall(), "arg":
            args = list(node.args)
            args[index] = FunctionArg(name=args[index].name, value=child)
            return replace(node, args=args)
    raise KeyError(f"{type(node).__name__} has no '{segment}' child")


def get_node(definition: Definition, path: str) -> Any:
    """Return the node addressed by ``path``."""
    node: Any = definition
    for segment, index in parse_path(path):
        node = _child(node, segment, index)
    return node


def set_node(definition: Definition, path: str, new_node: Any) -> Definition:
    """Return a copy of ``definition`` with the node at ``path`` replaced.

    Only the containers along the path are rebuilt; every other subtree is
    reused as-is.
    """
    steps = parse_path(path)
    if not steps:
        return new_node

    def rebuild(node: Any, remaining: list[tuple[str, int | None]]) -> Any:
        segment, index = remaining[0]
        if len(remaining) == 1:
            return _with_child(node, segment, index, new_node)
        child = _child(node, segment, index)
        return _with_child(node, segment, index, rebuild(child, remaining[1:]))

    return rebuild(definition, steps)


def parent_path(path: str) -> str | None:
    """Path of the container one step up, or None for a root."""
    steps = parse_path(path)
    if not steps:
        return None
    segments = split_path(path)
    segment, index = steps[-1]
    drop = 1 if index is None else 2
    return join_path(*segments[:-drop])


def iter_nodes(definition: Definition, path: str | None = None) -> Iterator[tuple[str, Any]]:
    """Yield ``(path, node)`` for every node, parents before children."""
    path = path or root_path_of(definition)
    yield path, definition
    match definition:
        case Case(when_clauses=clauses, else_clause=else_clause):
            for index, clause in enumerate(clauses):
                yield from iter_nodes(clause.when, join_path(path, "when", index))
                yield from iter_nodes(clause.then, join_path(path, "then", index))
            yield from iter_nodes(else_clause, join_path(path, "else"))
        case PredicateGroup(children=children):
            for index, child in enumerate(children):
                yield from iter_nodes(child, join_path(path, "condition", index))
        case Predicate(left=left, right=right):
            yield from iter_nodes(left, join_path(path, "left"))
            if isinstance(right, list):
                for index, item in enumerate(right):
                    yield from iter_nodes(item, join_path(path, "right", index))
            elif right is not None:
                yield from iter_nodes(right, join_path(path, "right"))
        case ExpressionGroup(operands=operands):
            for index, operand in enumerate(operands):
                yield from iter_nodes(operand, join_path(path, "operand", index))
        case FunctionCall(args=args):
            for index, arg in enumerate(args):
                yield from iter_nodes(arg.value, join_path(path, "arg", index))
