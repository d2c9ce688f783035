"""Pydantic schemas for rule service responses."""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class _ServiceModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class RuleListItem(_ServiceModel):
    """One entry of the rule search results."""

    rule_id: str = Field(..., alias="ruleId")
    uuid: str
    latest_version: int | None = Field(None, alias="latestVersion")
    return_type: str | None = Field(None, alias="returnType")
    rule_type: str | None = Field(None, alias="ruleType")
    folder_path: str | None = Field(None, alias="folderPath")


class RulePage(_ServiceModel):
    """Paginated rule search response."""

    content: list[RuleListItem] = Field(default_factory=list)
    page: int = 0
    size: int = 20
    total_elements: int = Field(0, alias="totalElements")
    total_pages: int = Field(0, alias="totalPages")
    last: bool = True


class SaveResponse(_ServiceModel):
    """Response of rule create and update."""

    uuid: str
    version: int
    rule_id: str | None = Field(None, alias="ruleId")


class VersionEntry(_ServiceModel):
    """One entry of a rule's version history."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    version: int
    rule_id: str | None = Field(None, alias="ruleId")
    modified_on: str | None = Field(None, alias="modifiedOn")
    restored_from_version: int | None = Field(None, alias="restoredFromVersion")

    def extras(self) -> dict[str, Any]:
        """Fields the schema does not name."""
        return dict(self.model_extra or {})


class OptionEntry(_ServiceModel):
    """One option of a select/multiselect argument."""

    value: Any
    label: str | None = None
