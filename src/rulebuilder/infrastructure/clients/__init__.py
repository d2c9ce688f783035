"""HTTP clients for the rule service."""

from rulebuilder.infrastructure.clients.options_client import OptionsClient
from rulebuilder.infrastructure.clients.rule_service_client import RuleServiceClient

__all__ = [
    "OptionsClient",
    "RuleServiceClient",
]
