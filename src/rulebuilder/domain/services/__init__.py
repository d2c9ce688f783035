"""Domain services for the rule builder.

Services contain editing logic that doesn't naturally fit within a single
entity. They reach external systems only through the ports in
``rulebuilder.domain.ports``.
"""

from rulebuilder.domain.services.custom_editors import CustomEditorRegistry
from rulebuilder.domain.services.editing_session import ConfigurationStatus, EditingSession
from rulebuilder.domain.services.expansion_state import ExpansionState

__all__ = [
    "ConfigurationStatus",
    "CustomEditorRegistry",
    "EditingSession",
    "ExpansionState",
]
