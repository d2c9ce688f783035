"""Ports to the external collaborators of the editing engine.

The engine consumes rule search and loading, argument option lists and
persistence through these interfaces; the infrastructure layer provides
HTTP implementations.
"""

from abc import ABC, abstractmethod

from rulebuilder.domain.entities.rule import (
    OptionItem,
    RuleDocument,
    RuleSummary,
    SaveResult,
    VersionInfo,
)


class ReferenceResolver(ABC):
    """Finds and loads rules that references can target."""

    @abstractmethod
    async def search(
        self,
        rule_types: list[str] | None = None,
        query: str | None = None,
    ) -> list[RuleSummary]:
        """Search rules, optionally filtered by rule type and id substring."""
        ...

    @abstractmethod
    async def load(self, uuid: str, version: int | str | None = None) -> RuleDocument:
        """Load one version of a rule (the latest when ``version`` is None)."""
        ...


class OptionListProvider(ABC):
    """Supplies option lists for select/multiselect function arguments."""

    @abstractmethod
    async def get_options(self, options_ref: str) -> list[OptionItem]:
        """Return the options registered under ``options_ref``."""
        ...


class RulePersistence(ABC):
    """Versioned rule storage."""

    @abstractmethod
    async def create(self, document: RuleDocument) -> SaveResult:
        """Store a new rule at version 1."""
        ...

    @abstractmethod
    async def update(self, uuid: str, document: RuleDocument) -> SaveResult:
        """Store a new version of an existing rule."""
        ...

    @abstractmethod
    async def list_versions(self, uuid: str) -> list[VersionInfo]:
        """Version history, newest first."""
        ...

    @abstractmethod
    async def get_version(self, uuid: str, version: int | str) -> RuleDocument:
        """Load one stored version."""
        ...

    @abstractmethod
    async def restore(self, uuid: str, version: int) -> SaveResult:
        """Copy an old version forward as a new version."""
        ...
