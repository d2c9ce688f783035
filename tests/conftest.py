"""Pytest configuration for all tests."""

import copy
import os

import pytest

os.environ.setdefault("RULEBUILDER_ENVIRONMENT", "testing")

from rulebuilder.core.config import Settings, get_settings
from rulebuilder.core.logging import get_logger
from rulebuilder.core.tree.catalog import RuleBuilderConfig
from rulebuilder.core.tree.naming import NamingSynchronizer

logger = get_logger(__name__)


CONFIG_PAYLOAD = {
    "conditionOperators": {
        "equal": {"label": "=", "cardinality": 1},
        "not_equal": {"label": "!=", "cardinality": 1},
        "greater_than": {"label": ">", "cardinality": 1},
        "contains": {"label": "contains", "cardinality": 1},
        "between": {"label": "between", "cardinality": 2, "separator": "and"},
        "in": {
            "label": "in",
            "defaultCardinality": 3,
            "minCardinality": 1,
            "maxCardinality": 5,
        },
        "is_null": {"label": "is null", "cardinality": 0},
    },
    "expressionOperators": {
        "add": {"symbol": "+", "label": "+", "numeric": True},
        "subtract": {"symbol": "-", "label": "-", "numeric": True},
        "multiply": {"symbol": "*", "label": "*", "numeric": True},
        "divide": {"symbol": "/", "label": "/", "numeric": True},
        "concat": {"symbol": "||", "label": "concat", "numeric": False},
    },
    "types": {
        "number": {
            "defaultConditionOperator": "equal",
            "defaultExpressionOperator": "add",
            "validConditionOperators": ["equal", "not_equal", "greater_than", "between", "in", "is_null"],
        },
        "text": {
            "defaultConditionOperator": "equal",
            "defaultExpressionOperator": "concat",
            "validConditionOperators": ["equal", "not_equal", "contains", "in", "is_null"],
        },
        "boolean": {"defaultConditionOperator": "equal"},
        "date": {
            "defaultConditionOperator": "equal",
            "validConditionOperators": ["equal", "between", "is_null"],
        },
    },
    "functions": {
        "MATH.ROUND": {
            "returnType": "number",
            "args": [
                {"name": "value", "type": "number"},
                {"name": "digits", "type": "number"},
            ],
        },
        "DATE.IN_RANGE": {
            "returnType": "boolean",
            "customEditor": "dateRange",
            "args": [
                {"name": "from", "type": "date"},
                {"name": "to", "type": "date"},
            ],
        },
        "LOOKUP.STATUS": {
            "returnType": "text",
            "args": [
                {"name": "status", "type": "text", "widget": "select", "optionsRef": "statuses"},
            ],
        },
    },
    "ruleTypes": ["Reporting", "Validation"],
    "defaultField": "TABLE1.NUMBER_FIELD_01",
}


@pytest.fixture
def config_payload() -> dict:
    """A fresh copy of the editor catalogue payload."""
    return copy.deepcopy(CONFIG_PAYLOAD)


@pytest.fixture
def config(config_payload) -> RuleBuilderConfig:
    """Parsed editor catalogue."""
    return RuleBuilderConfig.from_payload(config_payload)


@pytest.fixture
def naming() -> NamingSynchronizer:
    """A naming synchronizer with no history."""
    return NamingSynchronizer()


@pytest.fixture
def settings() -> Settings:
    """Settings for tests, independent of the process environment cache."""
    get_settings.cache_clear()
    return Settings(environment="testing", api_base_url="http://rules.test/api/v1")
