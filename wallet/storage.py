"""
In-memory record store with per-account unit-of-work transactions.

Rows are kept as plain dicts and turned into models at the repository
boundary. A ``UnitOfWork`` holds the locks of every account it touches,
stages all writes and applies them together on commit; leaving the block
with an exception discards everything that was staged.

Lock order is fixed: the registry lock (phone and referral-code indexes)
first, then account locks in ascending id order.
"""

import logging
import threading
from contextlib import contextmanager
from decimal import Decimal
from typing import Iterator, Optional
from uuid import UUID

from .errors import AccountNotFoundError, ConcurrencyConflictError, ConflictError
from .models import Account, GameRecord, LedgerEntry, ReferralRecord

logger = logging.getLogger(__name__)


class InMemoryStorage:
    def __init__(self):
        self.accounts: dict[UUID, dict] = {}
        self.ledger_entries: dict[UUID, dict] = {}
        self.games: dict[UUID, dict] = {}
        self.referrals: dict[UUID, dict] = {}

        self.phone_index: dict[str, UUID] = {}
        self.referral_code_index: dict[str, UUID] = {}
        self.ledger_by_account: dict[UUID, list[UUID]] = {}
        self.games_by_account: dict[UUID, list[UUID]] = {}
        self.referrals_by_referrer: dict[UUID, list[UUID]] = {}
        self.referral_by_referred: dict[UUID, UUID] = {}

        self.registry_lock = threading.Lock()
        self._commit_lock = threading.Lock()
        self._locks_guard = threading.Lock()
        self._account_locks: dict[UUID, threading.Lock] = {}

    def account_lock(self, account_id: UUID) -> threading.Lock:
        """Lock for a committed account; unknown ids never get one."""
        with self._locks_guard:
            lock = self._account_locks.get(account_id)
            if lock is None:
                if account_id not in self.accounts:
                    raise AccountNotFoundError(account_id)
                lock = self._account_locks[account_id] = threading.Lock()
            return lock

    @contextmanager
    def transaction(self, *account_ids: UUID, registry: bool = False) -> Iterator["UnitOfWork"]:
        uow = UnitOfWork(self)
        try:
            if registry:
                self.registry_lock.acquire()
                uow.holds_registry = True
            for account_id in sorted(set(account_ids)):
                uow.lock_account(account_id)
            yield uow
            uow.commit()
        finally:
            uow.release()

    def read(self) -> "UnitOfWork":
        """Lock-free view over committed rows."""
        return UnitOfWork(self, read_only=True)

    def apply(self, uow: "UnitOfWork") -> None:
        with self._commit_lock:
            for account_id, row in uow.staged_accounts.items():
                stored = self.accounts.get(account_id)
                expected = uow.loaded_versions.get(account_id)
                if stored is not None and stored["version"] != expected:
                    raise ConcurrencyConflictError(
                        f"Account {account_id} changed since it was read "
                        f"(version {expected} -> {stored['version']})"
                    )
                if stored is None and row["phone_number"] in self.phone_index:
                    raise ConflictError(f"Phone {row['phone_number']} is already registered")
                if stored is None and row["referral_code"] in self.referral_code_index:
                    raise ConflictError(f"Referral code {row['referral_code']} is already taken")

            for account_id, row in uow.staged_accounts.items():
                row = dict(row, version=row["version"] + 1)
                if account_id not in self.accounts:
                    self.phone_index[row["phone_number"]] = account_id
                    self.referral_code_index[row["referral_code"]] = account_id
                    self.ledger_by_account[account_id] = []
                    self.games_by_account[account_id] = []
                    self.referrals_by_referrer[account_id] = []
                self.accounts[account_id] = row

            for row in uow.staged_entries:
                self.ledger_entries[row["id"]] = row
                self.ledger_by_account[row["account_id"]].append(row["id"])
            for row in uow.staged_games:
                self.games[row["id"]] = row
                self.games_by_account[row["account_id"]].append(row["id"])
            for row in uow.staged_referrals:
                self.referrals[row["id"]] = row
                self.referrals_by_referrer[row["referrer_id"]].append(row["id"])
                self.referral_by_referred[row["referred_id"]] = row["id"]

        logger.debug(
            "Committed %d account(s), %d ledger entries, %d games, %d referrals",
            len(uow.staged_accounts), len(uow.staged_entries),
            len(uow.staged_games), len(uow.staged_referrals),
        )


class UnitOfWork:
    def __init__(self, storage: InMemoryStorage, read_only: bool = False):
        self.storage = storage
        self.read_only = read_only
        self.holds_registry = False
        self.held_locks: dict[UUID, threading.Lock] = {}

        self.staged_accounts: dict[UUID, dict] = {}
        self.loaded_versions: dict[UUID, int] = {}
        self.staged_entries: list[dict] = []
        self.staged_games: list[dict] = []
        self.staged_referrals: list[dict] = []
        self.committed = False

        self.accounts = AccountRepository(self)
        self.ledger = LedgerRepository(self)
        self.games = GameRepository(self)
        self.referrals = ReferralRepository(self)

    def lock_account(self, account_id: UUID) -> None:
        if account_id in self.held_locks:
            return
        if self.held_locks and account_id < max(self.held_locks):
            raise RuntimeError(f"Lock for account {account_id} requested out of order")
        lock = self.storage.account_lock(account_id)
        lock.acquire()
        self.held_locks[account_id] = lock

    def commit(self) -> None:
        if self.read_only:
            raise RuntimeError("Cannot commit a read-only unit of work")
        self.storage.apply(self)
        self.committed = True

    def release(self) -> None:
        for lock in reversed(list(self.held_locks.values())):
            lock.release()
        self.held_locks.clear()
        if self.holds_registry:
            self.storage.registry_lock.release()
            self.holds_registry = False


class AccountRepository:
    def __init__(self, uow: UnitOfWork):
        self.uow = uow

    def find(self, account_id: UUID) -> Optional[Account]:
        row = self.uow.staged_accounts.get(account_id)
        if row is None:
            row = self.uow.storage.accounts.get(account_id)
            if row is not None:
                self.uow.loaded_versions.setdefault(account_id, row["version"])
        return Account(**row) if row else None

    def get(self, account_id: UUID) -> Account:
        account = self.find(account_id)
        if account is None:
            raise AccountNotFoundError(account_id)
        return account

    def find_by_phone(self, phone_number: str) -> Optional[Account]:
        for row in self.uow.staged_accounts.values():
            if row["phone_number"] == phone_number:
                return Account(**row)
        account_id = self.uow.storage.phone_index.get(phone_number)
        return self.find(account_id) if account_id else None

    def find_id_by_referral_code(self, referral_code: str) -> Optional[UUID]:
        for account_id, row in self.uow.staged_accounts.items():
            if row["referral_code"] == referral_code:
                return account_id
        return self.uow.storage.referral_code_index.get(referral_code)

    def referral_code_taken(self, referral_code: str) -> bool:
        return self.find_id_by_referral_code(referral_code) is not None

    def add(self, account: Account) -> None:
        if account.id in self.uow.staged_accounts or account.id in self.uow.storage.accounts:
            raise ConflictError(f"Account {account.id} already exists")
        self.uow.staged_accounts[account.id] = account.model_dump()

    def save(self, account: Account) -> None:
        if account.id not in self.uow.held_locks and account.id not in self.uow.staged_accounts:
            raise ConcurrencyConflictError(f"Account {account.id} is not locked by this transaction")
        self.uow.staged_accounts[account.id] = account.model_dump()


class LedgerRepository:
    def __init__(self, uow: UnitOfWork):
        self.uow = uow

    def append(self, entry: LedgerEntry) -> LedgerEntry:
        self.uow.staged_entries.append(entry.model_dump())
        return entry

    def list_for_account(self, account_id: UUID, limit: Optional[int] = None) -> list[LedgerEntry]:
        ids = self.uow.storage.ledger_by_account.get(account_id, [])
        newest_first = ids[::-1] if limit is None else ids[::-1][:limit]
        return [LedgerEntry(**self.uow.storage.ledger_entries[i]) for i in newest_first]

    def total_for_account(self, account_id: UUID) -> tuple[Decimal, int]:
        ids = self.uow.storage.ledger_by_account.get(account_id, [])
        total = sum((self.uow.storage.ledger_entries[i]["amount"] for i in ids), Decimal("0.00"))
        return total, len(ids)


class GameRepository:
    def __init__(self, uow: UnitOfWork):
        self.uow = uow

    def append(self, game: GameRecord) -> GameRecord:
        self.uow.staged_games.append(game.model_dump())
        return game

    def list_for_account(self, account_id: UUID, limit: Optional[int] = None) -> list[GameRecord]:
        ids = self.uow.storage.games_by_account.get(account_id, [])
        newest_first = ids[::-1] if limit is None else ids[::-1][:limit]
        return [GameRecord(**self.uow.storage.games[i]) for i in newest_first]


class ReferralRepository:
    def __init__(self, uow: UnitOfWork):
        self.uow = uow

    def add(self, referral: ReferralRecord) -> ReferralRecord:
        staged = any(r["referred_id"] == referral.referred_id for r in self.uow.staged_referrals)
        if staged or referral.referred_id in self.uow.storage.referral_by_referred:
            raise ConflictError(f"Account {referral.referred_id} already has a referral record")
        self.uow.staged_referrals.append(referral.model_dump())
        return referral

    def list_for_referrer(self, referrer_id: UUID, limit: Optional[int] = None) -> list[ReferralRecord]:
        ids = self.uow.storage.referrals_by_referrer.get(referrer_id, [])
        newest_first = ids[::-1] if limit is None else ids[::-1][:limit]
        return [ReferralRecord(**self.uow.storage.referrals[i]) for i in newest_first]

    def find_for_referred(self, referred_id: UUID) -> Optional[ReferralRecord]:
        referral_id = self.uow.storage.referral_by_referred.get(referred_id)
        return ReferralRecord(**self.uow.storage.referrals[referral_id]) if referral_id else None
