"""
Rules Engine Package

Provides rule representation and evaluation. Rules are plain data
(conditions, condition groups and actions) run by a ``RuleEngine``
against a context dict.
"""

from .rule_engine import (
    RuleEngine,
    Rule,
    Condition,
    ConditionGroup,
    Action,
    ConditionOperator,
    LogicalOperator,
    ActionType,
    TriggerEvent,
)

__all__ = [
    "RuleEngine",
    "Rule",
    "Condition",
    "ConditionGroup",
    "Action",
    "ConditionOperator",
    "LogicalOperator",
    "ActionType",
    "TriggerEvent",
]
