"""Rule entities exchanged with the rule service.

A ``RuleDocument`` is the envelope around a rule definition tree: structure,
declared return type, rule type, identity (uuid, version) and metadata.
Its dictionary form is the only shape ever handed to persistence.
"""

from dataclasses import dataclass, field
from typing import Any

from rulebuilder.core.tree.ast import Definition
from rulebuilder.core.tree.catalog import RuleBuilderConfig
from rulebuilder.core.tree.consistency import STRUCTURE_CASE, STRUCTURE_CONDITION, STRUCTURE_EXPRESSION
from rulebuilder.core.tree.serializer import definition_from_dict, definition_to_dict

STRUCTURES = (STRUCTURE_CONDITION, STRUCTURE_CASE, STRUCTURE_EXPRESSION)


@dataclass
class RuleSummary:
    """Search result entry for a rule a reference can target.

    Attributes:
        rule_id: Human-readable rule identifier.
        uuid: Stable identifier shared by all versions.
        version: Version to reference (usually the latest).
        return_type: Declared return type of the rule.
        rule_type: Rule type used to filter reference targets.
        folder_path: Optional folder the rule is filed under.
    """

    rule_id: str
    uuid: str
    version: int | None = None
    return_type: str | None = None
    rule_type: str | None = None
    folder_path: str | None = None


@dataclass
class RuleDocument:
    """A complete rule: envelope plus definition tree."""

    structure: str
    return_type: str
    definition: Definition
    rule_type: str | None = None
    uuid: str | None = None
    version: int | None = None
    rule_id: str | None = None
    description: str | None = None

    def __post_init__(self) -> None:
        """Validate document data after initialization."""
        if self.structure not in STRUCTURES:
            raise ValueError(f"Unknown rule structure '{self.structure}'")
        if not self.return_type:
            raise ValueError("Rule return type is required")

    @property
    def is_persisted(self) -> bool:
        return bool(self.uuid)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the transport envelope."""
        return {
            "structure": self.structure,
            "returnType": self.return_type,
            "ruleType": self.rule_type,
            "uuId": self.uuid,
            "version": self.version,
            "metadata": {"id": self.rule_id, "description": self.description},
            "definition": definition_to_dict(self.definition),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any], config: RuleBuilderConfig | None = None) -> "RuleDocument":
        """Parse a stored rule, normalizing its definition.

        ``config`` supplies the default operator for stored groups missing one.
        """
        structure = data.get("structure")
        default_operator = config.default_expression_operator if config is not None else None
        metadata = data.get("metadata") or {}
        return cls(
            structure=structure,
            return_type=data.get("returnType"),
            definition=definition_from_dict(data.get("definition"), structure, default_operator),
            rule_type=data.get("ruleType"),
            uuid=data.get("uuId") or data.get("uuid"),
            version=data.get("version"),
            rule_id=metadata.get("id") or data.get("ruleId"),
            description=metadata.get("description"),
        )


@dataclass
class SaveResult:
    """Identity of the version written by a create, update or restore."""

    uuid: str
    version: int
    rule_id: str | None = None


@dataclass
class OptionItem:
    """One entry of a select/multiselect argument widget."""

    value: Any
    label: str


@dataclass
class VersionInfo:
    """One entry of a rule's version history."""

    version: int
    rule_id: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)
