"""Expansion state for collapsible tree nodes.

Transient editor state keyed by node path, kept beside the tree and never
serialized. New rules start fully expanded; loaded rules start collapsed
except for the root of a condition rule.
"""

from rulebuilder.core.tree.consistency import STRUCTURE_CONDITION
from rulebuilder.core.tree.paths import ROOT_PATH


class ExpansionState:
    """Path-keyed expanded/collapsed flags with a per-rule default."""

    def __init__(self, structure: str | None = None, is_new: bool = True):
        self._expanded: dict[str, bool] = {}
        self.structure = structure
        self.default_expanded = True
        self.reset(structure, is_new)

    def reset(self, structure: str | None, is_new: bool) -> None:
        """Start over for a different rule."""
        self.structure = structure
        self.default_expanded = is_new
        self._expanded = {} if is_new else self._root_only()

    def _root_only(self) -> dict[str, bool]:
        if self.structure == STRUCTURE_CONDITION:
            return {ROOT_PATH: True}
        return {}

    def is_expanded(self, path: str) -> bool:
        return self._expanded.get(path, self.default_expanded)

    def toggle(self, path: str) -> bool:
        """Flip a node and return its new state."""
        expanded = not self.is_expanded(path)
        self._expanded[path] = expanded
        return expanded

    def set(self, path: str, expanded: bool) -> None:
        self._expanded[path] = expanded

    def expand_all(self) -> None:
        self._expanded = {}
        self.default_expanded = True

    def collapse_all(self) -> None:
        """Collapse everything but the root of a condition rule."""
        self._expanded = self._root_only()
        self.default_expanded = False

    def forget(self, path: str) -> None:
        """Drop the flags of ``path`` and everything below it."""
        prefix = f"{path}-"
        self._expanded = {
            key: value
            for key, value in self._expanded.items()
            if key != path and not key.startswith(prefix)
        }

    def snapshot(self) -> dict[str, bool]:
        return dict(self._expanded)
