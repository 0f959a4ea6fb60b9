import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional
from uuid import UUID, uuid4

from .config import Settings, get_settings
from .errors import (
    BelowMinimumError,
    DuplicatePhoneError,
    InsufficientBalanceError,
    InvalidAmountError,
    InvalidPaymentReferenceError,
    InvalidStakeError,
    WithdrawalNotAllowedError,
)
from .game import Draw, spin, system_draw
from .gate import WithdrawalGate
from .models import (
    Account,
    BalanceResponse,
    EntryKind,
    EntryStatus,
    GameHistoryResponse,
    GameRecord,
    LedgerEntry,
    Reconciliation,
    ReferralHistoryResponse,
    ReferralRecord,
    RegisterResponse,
    TransactionHistoryResponse,
    WagerResponse,
    WithdrawalStatus,
)
from .referrals import allocate_referral_code, normalize_referral_code
from .storage import InMemoryStorage
from .validation import mask_phone, parse_amount, validate_phone_number

logger = logging.getLogger(__name__)


class WalletService:
    def __init__(
        self,
        storage: Optional[InMemoryStorage] = None,
        settings: Optional[Settings] = None,
        draw: Optional[Draw] = None,
        gate: Optional[WithdrawalGate] = None,
    ):
        self.storage = storage or InMemoryStorage()
        self.settings = settings or get_settings()
        self.draw = draw or system_draw
        self.gate = gate or WithdrawalGate(self.settings)

    def register(self, phone_number: str, referral_code: Optional[str] = None) -> RegisterResponse:
        phone_number = validate_phone_number(phone_number, self.settings)
        code = normalize_referral_code(referral_code)
        now = datetime.now(timezone.utc)

        with self.storage.transaction(registry=True) as uow:
            if uow.accounts.find_by_phone(phone_number):
                raise DuplicatePhoneError("User with this phone number already exists.")

            referrer_id = uow.accounts.find_id_by_referral_code(code) if code else None
            new_code = allocate_referral_code(uow.accounts.referral_code_taken, self.settings)

            account = Account(
                id=uuid4(),
                phone_number=phone_number,
                balance=self.settings.welcome_bonus,
                referral_code=new_code,
                referred_by=referrer_id,
                created_at=now,
            )
            uow.ledger.append(self._entry(
                account.id, EntryKind.BONUS, self.settings.welcome_bonus,
                balance_after=account.balance, description="Welcome bonus", created_at=now,
            ))
            uow.accounts.add(account)

            if referrer_id:
                uow.lock_account(referrer_id)
                referrer = uow.accounts.get(referrer_id)
                bonus = self.settings.referral_bonus
                referrer = referrer.model_copy(update={
                    "balance": referrer.balance + bonus,
                    "total_referrals": referrer.total_referrals + 1,
                })
                uow.ledger.append(self._entry(
                    referrer.id, EntryKind.REFERRAL, bonus,
                    balance_after=referrer.balance,
                    description=f"Referral bonus from {phone_number}", created_at=now,
                ))
                uow.referrals.add(ReferralRecord(
                    id=uuid4(), referrer_id=referrer.id, referred_id=account.id,
                    bonus_awarded=True, created_at=now,
                ))
                uow.accounts.save(referrer)
            elif code:
                logger.info("Unknown referral code %s ignored for %s", code, mask_phone(phone_number))

        logger.info(
            "Registered account %s for %s (referral code %s, referred by %s)",
            account.id, mask_phone(phone_number), new_code, referrer_id,
        )
        return RegisterResponse(
            account_id=account.id,
            referral_code=new_code,
            referred_by=referrer_id,
            message="Account created successfully",
        )

    def lookup_by_phone(self, phone_number: str) -> Optional[Account]:
        return self.storage.read().accounts.find_by_phone((phone_number or "").strip())

    def get_account(self, account_id: UUID) -> Account:
        return self.storage.read().accounts.get(account_id)

    def deposit(self, account_id: UUID, payment_reference: str) -> BalanceResponse:
        now = datetime.now(timezone.utc)
        with self.storage.transaction(account_id) as uow:
            account = uow.accounts.get(account_id)
            reference = (payment_reference or "").strip()
            if not reference:
                raise InvalidPaymentReferenceError("Please enter M-Pesa transaction ID")

            credit = self.settings.deposit_credit
            account = account.model_copy(update={
                "balance": account.balance + credit,
                "has_deposited": True,
            })
            entry = uow.ledger.append(self._entry(
                account.id, EntryKind.DEPOSIT, credit,
                balance_after=account.balance, payment_reference=reference,
                description=f"Deposit (M-Pesa ID: {reference})", created_at=now,
            ))
            uow.accounts.save(account)

        logger.info("Deposit of %s %s credited to account %s (ref %s)",
                    credit, self.settings.currency, account.id, reference)
        return BalanceResponse(
            account_id=account.id,
            balance=account.balance,
            ledger_entry=entry,
            message=f"{credit} {self.settings.currency} added to your account",
        )

    def wager(self, account_id: UUID, stake) -> WagerResponse:
        now = datetime.now(timezone.utc)
        with self.storage.transaction(account_id) as uow:
            account = uow.accounts.get(account_id)
            stake = parse_amount(stake, "stake", error=InvalidStakeError)
            if stake <= 0:
                raise InvalidStakeError("Invalid stake amount")
            if stake > account.balance:
                raise InsufficientBalanceError("Insufficient balance")

            result = spin(stake, self.settings, self.draw)
            account = account.model_copy(update={
                "balance": account.balance - stake + result.payout,
                "total_winnings": account.total_winnings + result.payout,
            })
            account, unlocked = self.gate.settle_wager(account, stake)

            description = f"{self.settings.game_type.title()} game {result.outcome.value}"
            if result.won:
                entry = self._entry(
                    account.id, EntryKind.GAME_WIN, result.payout - stake,
                    balance_after=account.balance, description=description, created_at=now,
                    gross_amount=result.payout, stake=stake,
                )
            else:
                entry = self._entry(
                    account.id, EntryKind.GAME_LOSS, -stake,
                    balance_after=account.balance, description=description, created_at=now,
                    stake=stake,
                )
            game = GameRecord(
                id=uuid4(),
                account_id=account.id,
                game_type=self.settings.game_type,
                stake=stake,
                outcome=result.outcome,
                win_amount=result.payout,
                multiplier=result.multiplier,
                ledger_entry_id=entry.id,
                created_at=now,
            )
            uow.ledger.append(entry)
            uow.games.append(game)
            uow.accounts.save(account)

        logger.info(
            "Account %s staked %s: %s (payout %s, balance %s)",
            account.id, stake, result.outcome.value, result.payout, account.balance,
        )
        return WagerResponse(
            outcome=result.outcome,
            payout=result.payout,
            multiplier=result.multiplier,
            balance=account.balance,
            can_withdraw=account.can_withdraw,
            unlocked=unlocked,
            game=game,
            ledger_entry=entry,
        )

    def withdraw(self, account_id: UUID, amount, destination_phone: str) -> BalanceResponse:
        now = datetime.now(timezone.utc)
        currency = self.settings.currency
        with self.storage.transaction(account_id) as uow:
            account = uow.accounts.get(account_id)
            if not account.can_withdraw:
                raise WithdrawalNotAllowedError("Withdrawal not allowed. Complete requirements first.")
            amount = parse_amount(amount, "withdrawal amount", error=InvalidAmountError)
            if amount <= 0 or amount > account.balance:
                raise InvalidAmountError("Invalid withdrawal amount")
            if amount < self.settings.withdrawal_minimum:
                raise BelowMinimumError(
                    f"Minimum withdrawal amount is {self.settings.withdrawal_minimum} {currency}"
                )
            destination = validate_phone_number(destination_phone, self.settings)

            account = account.model_copy(update={"balance": account.balance - amount})
            entry = uow.ledger.append(self._entry(
                account.id, EntryKind.WITHDRAWAL, -amount,
                status=EntryStatus.PENDING, balance_after=account.balance,
                description=f"Withdrawal to {destination}", created_at=now,
            ))
            uow.accounts.save(account)

        logger.info("Withdrawal of %s %s requested by account %s to %s",
                    amount, currency, account.id, mask_phone(destination))
        return BalanceResponse(
            account_id=account.id,
            balance=account.balance,
            ledger_entry=entry,
            message="Withdrawal request submitted",
        )

    def withdrawal_status(self, account_id: UUID) -> WithdrawalStatus:
        return self.gate.status(self.get_account(account_id))

    def list_transactions(self, account_id: UUID) -> TransactionHistoryResponse:
        view = self.storage.read()
        account = view.accounts.get(account_id)
        return TransactionHistoryResponse(
            account_id=account.id,
            entries=view.ledger.list_for_account(account.id, self.settings.history_limit),
            balance=account.balance,
        )

    def list_games(self, account_id: UUID) -> GameHistoryResponse:
        view = self.storage.read()
        account = view.accounts.get(account_id)
        return GameHistoryResponse(
            account_id=account.id,
            games=view.games.list_for_account(account.id, self.settings.history_limit),
        )

    def list_referrals(self, account_id: UUID) -> ReferralHistoryResponse:
        view = self.storage.read()
        account = view.accounts.get(account_id)
        return ReferralHistoryResponse(
            account_id=account.id,
            referral_code=account.referral_code,
            total_referrals=account.total_referrals,
            referrals=view.referrals.list_for_referrer(account.id, self.settings.history_limit),
        )

    def reconcile(self, account_id: UUID) -> Reconciliation:
        with self.storage.transaction(account_id) as uow:
            account = uow.accounts.get(account_id)
            ledger_total, total_entries = uow.ledger.total_for_account(account.id)

        balanced = ledger_total == account.balance
        if not balanced:
            logger.error("Account %s balance %s does not match ledger total %s",
                         account.id, account.balance, ledger_total)
        return Reconciliation(
            account_id=account.id,
            balance=account.balance,
            ledger_total=ledger_total,
            total_entries=total_entries,
            balanced=balanced,
        )

    def _entry(
        self,
        account_id: UUID,
        kind: EntryKind,
        amount: Decimal,
        balance_after: Decimal,
        description: str,
        created_at: datetime,
        status: EntryStatus = EntryStatus.COMPLETED,
        payment_reference: Optional[str] = None,
        gross_amount: Optional[Decimal] = None,
        stake: Optional[Decimal] = None,
    ) -> LedgerEntry:
        return LedgerEntry(
            id=uuid4(),
            account_id=account_id,
            kind=kind,
            amount=amount,
            status=status,
            balance_after=balance_after,
            description=description,
            payment_reference=payment_reference,
            gross_amount=gross_amount,
            stake=stake,
            created_at=created_at,
        )
