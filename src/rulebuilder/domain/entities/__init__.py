"""Domain entities for the rule builder.

Entities are pure Python dataclasses that represent core business concepts.
They have no dependencies on infrastructure or external frameworks.
"""

from rulebuilder.domain.entities.rule import (
    OptionItem,
    RuleDocument,
    RuleSummary,
    SaveResult,
    VersionInfo,
)

__all__ = [
    "OptionItem",
    "RuleDocument",
    "RuleSummary",
    "SaveResult",
    "VersionInfo",
]
