"""Naming synchronizer.

Derives and preserves the user-facing labels of tree nodes across
structural-kind transitions and rule-reference (de)selection.

Paths are dash-joined segments such as ``root-condition-0-condition-2`` or
``case-then-1``; the last numeric segment is the node's sibling position.
Labels depend only on path, kind and resolved reference id, so two trees with
the same structure and edit history always carry the same labels.

One synchronizer belongs to one editing session and is passed explicitly into
every structural edit.
"""

import re
from typing import Iterable

from .ast import NodeKind

CONDITION_WORD = "Condition"
GROUP_WORD = "Group"
RESULT_WORD = "Result"
ELSE_LABEL = "Default"

_SUFFIX_RE = re.compile(r"^(?P<word>[A-Za-z]+) (?P<number>\d+)$")


def split_path(path: str) -> list[str]:
    return [segment for segment in path.split("-") if segment]


def join_path(*segments: object) -> str:
    return "-".join(str(segment) for segment in segments if segment != "")


def position_of(path: str) -> int:
    """1-based sibling position encoded in the path (1 for unindexed roots)."""
    segments = split_path(path)
    if segments and segments[-1].isdigit():
        return int(segments[-1]) + 1
    return 1


def role_of(path: str) -> str | None:
    """The slot a path addresses inside a case: ``then``, ``else`` or None."""
    segments = split_path(path)
    if segments and segments[-1] == "else":
        return "else"
    if len(segments) >= 2 and segments[-2] == "then" and segments[-1].isdigit():
        return "then"
    return None


def word_for(kind: NodeKind) -> str:
    if kind == NodeKind.PREDICATE_GROUP:
        return GROUP_WORD
    return CONDITION_WORD


def positional_label(path: str, kind: NodeKind) -> str:
    """Default label for ``kind`` at ``path``, derived from the path alone."""
    role = role_of(path)
    if role == "else":
        return ELSE_LABEL
    if role == "then":
        return f"{RESULT_WORD} {position_of(path)}"
    return f"{word_for(kind)} {position_of(path)}"


class NamingSynchronizer:
    """Per-session label authority.

    Keeps a sequence counter per (parent path, word) so numbering is scoped to
    a sibling list, never global.
    """

    def __init__(self) -> None:
        self._counters: dict[tuple[str, str], int] = {}

    def reset(self) -> None:
        """Forget all sequence counters (new rule or a different rule loaded)."""
        self._counters.clear()

    def default_label(self, path: str, kind: NodeKind) -> str:
        """Positional default for ``kind`` at ``path``."""
        return positional_label(path, kind)

    def next_label(self, parent_path: str, kind: NodeKind, sibling_labels: Iterable[str] = ()) -> str:
        """Label for a new child of ``parent_path``.

        The number is one past both the sequence counter for this sibling list
        and the highest number already used by a sibling of the same word.
        """
        word = word_for(kind)
        highest = self._counters.get((parent_path, word), 0)
        for label in sibling_labels:
            match = _SUFFIX_RE.match(label or "")
            if match and match.group("word") == word:
                highest = max(highest, int(match.group("number")))
        number = highest + 1
        self._counters[(parent_path, word)] = number
        return f"{word} {number}"

    def synchronize(
        self,
        path: str,
        old_kind: NodeKind,
        new_kind: NodeKind,
        resolved_ref_id: str | None = None,
        carried_label: str | None = None,
    ) -> str:
        """Label for the node at ``path`` after a kind transition.

        Args:
            path: Path of the node being transformed.
            old_kind: Kind before the transition.
            new_kind: Kind after the transition.
            resolved_ref_id: Identifier of the selected reference target, if any.
            carried_label: Label of a node carried through the transition
                unchanged (e.g. the sole child extracted from a group).

        Returns:
            The reference id when a target is resolved; otherwise the carried
            label, or the positional default for ``new_kind``.
        """
        if new_kind == NodeKind.RULE_REF and resolved_ref_id:
            return resolved_ref_id
        if carried_label:
            return carried_label
        return self.default_label(path, new_kind)

    def child_labels(self, parent_path: str, count: int, kind: NodeKind = NodeKind.PREDICATE) -> list[str]:
        """Labels for ``count`` freshly created children of ``parent_path``."""
        labels: list[str] = []
        for _ in range(count):
            labels.append(self.next_label(parent_path, kind, labels))
        return labels
