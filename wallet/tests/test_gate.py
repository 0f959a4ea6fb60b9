"""
Unit Tests for the withdrawal gate

Tests cover:
1. Welcome bonus unlock threshold
2. Small play after deposit
3. Rule priority and no re-firing
4. Status projection
"""

from datetime import datetime, timezone
from decimal import Decimal
from uuid import uuid4

from wallet.config import Settings
from wallet.gate import SMALL_PLAY_RULE, WELCOME_BONUS_RULE, WithdrawalGate
from wallet.models import Account


def new_account(**fields) -> Account:
    values = {
        "id": uuid4(),
        "phone_number": "254700000001",
        "balance": Decimal("150.00"),
        "referral_code": "ABC123",
        "created_at": datetime.now(timezone.utc),
    }
    values.update(fields)
    return Account(**values)


class TestWithdrawalGate:
    """Tests for the unlock rules."""

    def test_threshold_reached_unlocks_bonus(self):
        """Test winnings of exactly 300 unlock the welcome bonus."""
        gate = WithdrawalGate(Settings())

        account, fired = gate.settle_wager(new_account(total_winnings=Decimal("300.00")), Decimal("50"))

        assert fired == [WELCOME_BONUS_RULE]
        assert account.welcome_bonus_unlocked
        assert account.can_withdraw

    def test_below_threshold_stays_closed(self):
        """Test winnings under 300 change nothing."""
        gate = WithdrawalGate(Settings())
        before = new_account(total_winnings=Decimal("299.99"))

        account, fired = gate.settle_wager(before, Decimal("50"))

        assert fired == []
        assert account == before

    def test_both_rules_fire_by_priority(self):
        """Test a qualifying small win after deposit fires both rules, bonus first."""
        gate = WithdrawalGate(Settings())

        account, fired = gate.settle_wager(
            new_account(total_winnings=Decimal("500.00"), has_deposited=True), Decimal("5"),
        )

        assert fired == [WELCOME_BONUS_RULE, SMALL_PLAY_RULE]
        assert account.welcome_bonus_unlocked
        assert account.has_played_after_deposit

    def test_unlocked_rules_do_not_refire(self):
        """Test an already open flag is not reported again."""
        gate = WithdrawalGate(Settings())

        _, fired = gate.settle_wager(
            new_account(has_deposited=True, has_played_after_deposit=True), Decimal("5"),
        )

        assert fired == []

    def test_status_projection(self):
        """Test the status reports what is left to win."""
        gate = WithdrawalGate(Settings())

        status = gate.status(new_account(total_winnings=Decimal("120.00")))

        assert not status.can_withdraw
        assert status.winnings_to_unlock == Decimal("180.00")
        assert len(status.requirements) == 2
