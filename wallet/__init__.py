"""
BetPoa wallet: accounts, ledger and the spinning game

This module provides:
- Account registration with welcome and referral bonuses
- Unverified M-Pesa deposits credited at a fixed amount
- The spinning wager engine
- Withdrawals behind the withdrawal gate, recorded as pending
- Immutable, append-only ledger entries and history queries
"""

from .models import (
    Account,
    EntryKind,
    EntryStatus,
    GameOutcome,
    GameRecord,
    LedgerEntry,
    ReferralRecord,
)
from .service import WalletService

__all__ = [
    "Account",
    "EntryKind",
    "EntryStatus",
    "GameOutcome",
    "GameRecord",
    "LedgerEntry",
    "ReferralRecord",
    "WalletService",
]
