import operator
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Union, Optional


class ConditionOperator(str, Enum):
    EQUALS = "equals"
    NOT_EQUALS = "not_equals"
    GREATER_THAN = "greater_than"
    LESS_THAN = "less_than"
    GREATER_THAN_OR_EQUAL = "greater_than_or_equal"
    LESS_THAN_OR_EQUAL = "less_than_or_equal"
    IS_TRUE = "is_true"
    IS_FALSE = "is_false"


COMPARISONS: dict[ConditionOperator, Callable[[Any, Any], bool]] = {
    ConditionOperator.EQUALS: operator.eq,
    ConditionOperator.NOT_EQUALS: operator.ne,
    ConditionOperator.GREATER_THAN: operator.gt,
    ConditionOperator.LESS_THAN: operator.lt,
    ConditionOperator.GREATER_THAN_OR_EQUAL: operator.ge,
    ConditionOperator.LESS_THAN_OR_EQUAL: operator.le,
}

ORDERING_OPERATORS = {
    ConditionOperator.GREATER_THAN,
    ConditionOperator.LESS_THAN,
    ConditionOperator.GREATER_THAN_OR_EQUAL,
    ConditionOperator.LESS_THAN_OR_EQUAL,
}


class LogicalOperator(str, Enum):
    AND = "AND"
    OR = "OR"


class ActionType(str, Enum):
    UNLOCK_FLAG = "unlock_flag"


class TriggerEvent(str, Enum):
    WAGER_SETTLED = "wager_settled"


def resolve_field(context: dict, path: str) -> Any:
    """Walk a dotted path through nested dicts; None once the path leaves them."""
    value: Any = context
    for key in path.split("."):
        if not isinstance(value, dict):
            return None
        value = value.get(key)
    return value


@dataclass
class Condition:
    field: str
    operator: ConditionOperator
    value: Any = None

    def evaluate(self, context: dict) -> bool:
        actual = resolve_field(context, self.field)
        if self.operator == ConditionOperator.IS_TRUE:
            return bool(actual)
        if self.operator == ConditionOperator.IS_FALSE:
            return not actual
        # a missing field never satisfies an ordering comparison
        if actual is None and self.operator in ORDERING_OPERATORS:
            return False
        return COMPARISONS[self.operator](actual, self.value)


@dataclass
class ConditionGroup:
    operator: LogicalOperator
    conditions: list[Union[Condition, "ConditionGroup"]]

    def evaluate(self, context: dict) -> bool:
        combine = all if self.operator == LogicalOperator.AND else any
        return combine(c.evaluate(context) for c in self.conditions) if self.conditions else True


@dataclass
class Action:
    type: ActionType
    params: dict = field(default_factory=dict)


@dataclass
class Rule:
    id: str
    name: str
    trigger: TriggerEvent
    conditions: Union[Condition, ConditionGroup]
    actions: list[Action]
    description: str = ""
    is_active: bool = True
    priority: int = 0

    def evaluate(self, context: dict) -> bool:
        return self.is_active and self.conditions.evaluate(context)


class RuleEngine:
    """Holds rules by id and runs the ones that match a trigger, highest priority first."""

    def __init__(self):
        self.rules: dict[str, Rule] = {}
        self.action_handlers: dict[ActionType, Callable[[dict, dict], dict]] = {
            ActionType.UNLOCK_FLAG: self._unlock_flag,
        }

    def add_rule(self, rule: Rule) -> None:
        self.rules[rule.id] = rule

    def list_rules(self, trigger: Optional[TriggerEvent] = None) -> list[Rule]:
        matching = [r for r in self.rules.values() if trigger is None or r.trigger == trigger]
        return sorted(matching, key=lambda r: r.priority, reverse=True)

    def evaluate(self, trigger: TriggerEvent, context: dict) -> list[Rule]:
        return [rule for rule in self.list_rules(trigger) if rule.evaluate(context)]

    def execute(self, trigger: TriggerEvent, context: dict) -> list[dict]:
        """Run the actions of every matching rule. Handler errors propagate."""
        results = []
        for rule in self.evaluate(trigger, context):
            executed = [
                {"type": action.type.value, "result": self.action_handlers[action.type](action.params, context)}
                for action in rule.actions
            ]
            results.append({"rule_id": rule.id, "rule_name": rule.name, "actions_executed": executed})
        return results

    def _unlock_flag(self, params: dict, context: dict) -> dict:
        return {"action": ActionType.UNLOCK_FLAG.value, "flag": params["flag"]}
