"""
Withdrawal gate: the unlock rules that decide when an account may withdraw.

An account can withdraw once either flag below is set. Rules only ever
set a flag, so the gate can open but never close again.

- ``welcome_bonus_unlocked``: lifetime winnings reached the bonus threshold.
- ``has_played_after_deposit``: first small-stake play after a deposit.
"""

import logging
from decimal import Decimal
from typing import Optional

from rules import (
    Action,
    ActionType,
    Condition,
    ConditionGroup,
    ConditionOperator,
    LogicalOperator,
    Rule,
    RuleEngine,
    TriggerEvent,
)

from .config import Settings
from .models import Account, WithdrawalStatus

logger = logging.getLogger(__name__)

WELCOME_BONUS_RULE = "welcome-bonus-unlock"
SMALL_PLAY_RULE = "first-small-play-after-deposit"
GATE_FLAGS = ("welcome_bonus_unlocked", "has_played_after_deposit")


def create_unlock_rules(settings: Settings) -> list[Rule]:
    return [
        Rule(
            id=WELCOME_BONUS_RULE, name="Welcome Bonus Unlock",
            description=f"Total winnings of {settings.bonus_unlock_threshold} {settings.currency} unlock withdrawals",
            trigger=TriggerEvent.WAGER_SETTLED,
            conditions=ConditionGroup(operator=LogicalOperator.AND, conditions=[
                Condition(field="account.total_winnings", operator=ConditionOperator.GREATER_THAN_OR_EQUAL,
                          value=settings.bonus_unlock_threshold),
                Condition(field="account.welcome_bonus_unlocked", operator=ConditionOperator.IS_FALSE),
            ]),
            actions=[Action(type=ActionType.UNLOCK_FLAG, params={"flag": "welcome_bonus_unlocked"})],
            priority=10
        ),
        Rule(
            id=SMALL_PLAY_RULE, name="First Small Play After Deposit",
            description=f"One play of at most {settings.small_play_max_stake} {settings.currency} after depositing",
            trigger=TriggerEvent.WAGER_SETTLED,
            conditions=ConditionGroup(operator=LogicalOperator.AND, conditions=[
                Condition(field="account.has_deposited", operator=ConditionOperator.IS_TRUE),
                Condition(field="account.has_played_after_deposit", operator=ConditionOperator.IS_FALSE),
                Condition(field="play.stake", operator=ConditionOperator.LESS_THAN_OR_EQUAL,
                          value=settings.small_play_max_stake),
            ]),
            actions=[Action(type=ActionType.UNLOCK_FLAG, params={"flag": "has_played_after_deposit"})],
            priority=5
        ),
    ]


class WithdrawalGate:
    def __init__(self, settings: Settings, engine: Optional[RuleEngine] = None):
        self.settings = settings
        self.engine = engine or RuleEngine()
        if engine is None:
            for rule in create_unlock_rules(settings):
                self.engine.add_rule(rule)

    def settle_wager(self, account: Account, stake: Decimal) -> tuple[Account, list[str]]:
        """Apply every unlock rule that fires for ``account`` after a play.

        ``account`` must already carry the post-play balance and winnings.
        Returns the updated account and the ids of the rules that fired.
        """
        context = {
            "account": account.model_dump(),
            "play": {"stake": stake},
        }
        results = self.engine.execute(TriggerEvent.WAGER_SETTLED, context)

        updates = {}
        fired = []
        for result in results:
            fired.append(result["rule_id"])
            for executed in result["actions_executed"]:
                flag = executed["result"]["flag"]
                if flag not in GATE_FLAGS:
                    raise ValueError(f"Rule {result['rule_id']} targets unknown gate flag {flag!r}")
                updates[flag] = True

        if not updates:
            return account, fired

        updated = account.model_copy(update=updates)
        logger.info(
            "Withdrawal gate rules %s fired for account %s (can_withdraw=%s)",
            fired, account.id, updated.can_withdraw,
        )
        return updated, fired

    def requirements(self, account: Account) -> list[str]:
        if account.can_withdraw:
            return []
        currency = self.settings.currency
        needed = []
        needed.append(
            f"Win {self.winnings_to_unlock(account)} {currency} more to unlock withdrawals"
        )
        if not account.has_deposited:
            needed.append(
                f"Deposit {self.settings.deposit_credit} {currency} and play once to unlock withdrawals"
            )
        else:
            needed.append(
                f"Play one game (max {self.settings.small_play_max_stake} {currency} stake) to unlock withdrawals"
            )
        return needed

    def winnings_to_unlock(self, account: Account) -> Decimal:
        remaining = self.settings.bonus_unlock_threshold - account.total_winnings
        return max(remaining, Decimal("0.00"))

    def status(self, account: Account) -> WithdrawalStatus:
        return WithdrawalStatus(
            account_id=account.id,
            can_withdraw=account.can_withdraw,
            welcome_bonus_unlocked=account.welcome_bonus_unlocked,
            has_deposited=account.has_deposited,
            has_played_after_deposit=account.has_played_after_deposit,
            winnings_to_unlock=self.winnings_to_unlock(account),
            requirements=self.requirements(account),
        )
