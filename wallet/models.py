from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import UUID
from pydantic import BaseModel, Field, ConfigDict, computed_field, field_serializer


CENTS = Decimal("0.01")


def to_money(value) -> Decimal:
    return Decimal(str(value)).quantize(CENTS)


class EntryKind(str, Enum):
    DEPOSIT = "deposit"
    WITHDRAWAL = "withdrawal"
    BONUS = "bonus"
    REFERRAL = "referral"
    GAME_WIN = "game_win"
    GAME_LOSS = "game_loss"


class EntryStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


class GameOutcome(str, Enum):
    WIN = "win"
    LOSS = "loss"


class Account(BaseModel):
    id: UUID
    phone_number: str
    balance: Decimal
    total_winnings: Decimal = Decimal("0.00")
    welcome_bonus_unlocked: bool = False
    has_deposited: bool = False
    has_played_after_deposit: bool = False
    referral_code: str
    referred_by: Optional[UUID] = None
    total_referrals: int = 0
    created_at: datetime
    version: int = 0

    model_config = ConfigDict(from_attributes=True)

    @computed_field
    @property
    def can_withdraw(self) -> bool:
        return self.welcome_bonus_unlocked or self.has_played_after_deposit

    @field_serializer("balance", "total_winnings", when_used="json")
    def _serialize_money(self, value: Decimal) -> str:
        return str(to_money(value))


class LedgerEntry(BaseModel):
    id: UUID
    account_id: UUID
    kind: EntryKind
    amount: Decimal
    status: EntryStatus
    balance_after: Decimal
    description: str
    payment_reference: Optional[str] = None
    gross_amount: Optional[Decimal] = None
    stake: Optional[Decimal] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True, frozen=True)

    @field_serializer("amount", "balance_after", "gross_amount", "stake", when_used="json")
    def _serialize_money(self, value: Optional[Decimal]) -> Optional[str]:
        return None if value is None else str(to_money(value))


class GameRecord(BaseModel):
    id: UUID
    account_id: UUID
    game_type: str
    stake: Decimal
    outcome: GameOutcome
    win_amount: Decimal
    multiplier: int
    ledger_entry_id: UUID
    created_at: datetime

    model_config = ConfigDict(from_attributes=True, frozen=True)

    @field_serializer("stake", "win_amount", when_used="json")
    def _serialize_money(self, value: Decimal) -> str:
        return str(to_money(value))


class ReferralRecord(BaseModel):
    id: UUID
    referrer_id: UUID
    referred_id: UUID
    bonus_awarded: bool = True
    created_at: datetime

    model_config = ConfigDict(from_attributes=True, frozen=True)


class RegisterRequest(BaseModel):
    phone_number: str = Field(..., description="Mobile number, 254XXXXXXXXX")
    referral_code: Optional[str] = None

    model_config = ConfigDict(json_schema_extra={
        "example": {
            "phone_number": "254712345678",
            "referral_code": "AB12CD"
        }
    })


class RegisterResponse(BaseModel):
    account_id: UUID
    referral_code: str
    referred_by: Optional[UUID] = None
    message: str


class DepositRequest(BaseModel):
    payment_reference: str = Field(..., description="M-Pesa transaction id supplied by the user")


class WagerRequest(BaseModel):
    stake: Decimal = Field(..., description="Amount wagered on one spin")


class WithdrawalRequest(BaseModel):
    amount: Decimal
    phone_number: str = Field(..., description="Destination mobile number, 254XXXXXXXXX")


class BalanceResponse(BaseModel):
    account_id: UUID
    balance: Decimal
    ledger_entry: LedgerEntry
    message: str

    @field_serializer("balance", when_used="json")
    def _serialize_money(self, value: Decimal) -> str:
        return str(to_money(value))


class WagerResponse(BaseModel):
    outcome: GameOutcome
    payout: Decimal
    multiplier: int
    balance: Decimal
    can_withdraw: bool
    unlocked: list[str] = Field(default_factory=list)
    game: GameRecord
    ledger_entry: LedgerEntry

    @field_serializer("payout", "balance", when_used="json")
    def _serialize_money(self, value: Decimal) -> str:
        return str(to_money(value))


class WithdrawalStatus(BaseModel):
    account_id: UUID
    can_withdraw: bool
    welcome_bonus_unlocked: bool
    has_deposited: bool
    has_played_after_deposit: bool
    winnings_to_unlock: Decimal
    requirements: list[str] = Field(default_factory=list)

    @field_serializer("winnings_to_unlock", when_used="json")
    def _serialize_money(self, value: Decimal) -> str:
        return str(to_money(value))


class Reconciliation(BaseModel):
    account_id: UUID
    balance: Decimal
    ledger_total: Decimal
    total_entries: int
    balanced: bool

    @field_serializer("balance", "ledger_total", when_used="json")
    def _serialize_money(self, value: Decimal) -> str:
        return str(to_money(value))


class TransactionHistoryResponse(BaseModel):
    account_id: UUID
    entries: list[LedgerEntry]
    balance: Decimal

    @field_serializer("balance", when_used="json")
    def _serialize_money(self, value: Decimal) -> str:
        return str(to_money(value))


class GameHistoryResponse(BaseModel):
    account_id: UUID
    games: list[GameRecord]


class ReferralHistoryResponse(BaseModel):
    account_id: UUID
    referral_code: str
    total_referrals: int
    referrals: list[ReferralRecord]
