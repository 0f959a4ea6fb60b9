import logging
from typing import Optional
from uuid import UUID

from fastapi import FastAPI, HTTPException, status
from fastapi.middleware.cors import CORSMiddleware

from .errors import (
    ConflictError,
    DuplicatePhoneError,
    NotFoundError,
    PreconditionFailedError,
    ValidationError,
    WalletServiceError,
)
from .models import (
    Account,
    BalanceResponse,
    DepositRequest,
    GameHistoryResponse,
    Reconciliation,
    ReferralHistoryResponse,
    RegisterRequest,
    RegisterResponse,
    TransactionHistoryResponse,
    WagerRequest,
    WagerResponse,
    WithdrawalRequest,
    WithdrawalStatus,
)
from .service import WalletService

logger = logging.getLogger(__name__)


def to_http_error(e: WalletServiceError) -> HTTPException:
    if isinstance(e, NotFoundError):
        code = status.HTTP_404_NOT_FOUND
    elif isinstance(e, ValidationError):
        code = status.HTTP_400_BAD_REQUEST
    elif isinstance(e, (DuplicatePhoneError, ConflictError)):
        code = status.HTTP_409_CONFLICT
    elif isinstance(e, PreconditionFailedError):
        code = status.HTTP_403_FORBIDDEN
    else:
        code = status.HTTP_400_BAD_REQUEST
    logger.warning("Rejected request (%s): %s", type(e).__name__, e)
    return HTTPException(status_code=code, detail=str(e))


def create_app(wallet_service: Optional[WalletService] = None, **kwargs) -> FastAPI:
    app = FastAPI(
        title="BetPoa Wallet API",
        description="Accounts, deposits, spins and withdrawals with an append-only ledger",
        version="1.0.0",
        **kwargs,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    service = wallet_service or WalletService()
    app.state.wallet_service = service

    @app.get("/health", tags=["System"])
    def health_check():
        return {"status": "healthy", "service": "betpoa-wallet"}

    @app.post("/accounts", response_model=RegisterResponse, status_code=status.HTTP_201_CREATED, tags=["Accounts"])
    def register(request: RegisterRequest) -> RegisterResponse:
        try:
            return service.register(request.phone_number, request.referral_code)
        except WalletServiceError as e:
            raise to_http_error(e)

    @app.get("/accounts/by-phone/{phone_number}", response_model=Account, tags=["Accounts"])
    def lookup_by_phone(phone_number: str) -> Account:
        account = service.lookup_by_phone(phone_number)
        if account is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"No account for {phone_number}")
        return account

    @app.get("/accounts/{account_id}", response_model=Account, tags=["Accounts"])
    def get_account(account_id: UUID) -> Account:
        try:
            return service.get_account(account_id)
        except WalletServiceError as e:
            raise to_http_error(e)

    @app.get("/accounts/{account_id}/withdrawal-status", response_model=WithdrawalStatus, tags=["Accounts"])
    def withdrawal_status(account_id: UUID) -> WithdrawalStatus:
        try:
            return service.withdrawal_status(account_id)
        except WalletServiceError as e:
            raise to_http_error(e)

    @app.post("/accounts/{account_id}/deposits", response_model=BalanceResponse, tags=["Wallet"])
    def deposit(account_id: UUID, request: DepositRequest) -> BalanceResponse:
        try:
            return service.deposit(account_id, request.payment_reference)
        except WalletServiceError as e:
            raise to_http_error(e)

    @app.post("/accounts/{account_id}/wagers", response_model=WagerResponse, tags=["Game"])
    def wager(account_id: UUID, request: WagerRequest) -> WagerResponse:
        try:
            return service.wager(account_id, request.stake)
        except WalletServiceError as e:
            raise to_http_error(e)

    @app.post("/accounts/{account_id}/withdrawals", response_model=BalanceResponse, tags=["Wallet"])
    def withdraw(account_id: UUID, request: WithdrawalRequest) -> BalanceResponse:
        try:
            return service.withdraw(account_id, request.amount, request.phone_number)
        except WalletServiceError as e:
            raise to_http_error(e)

    @app.get("/accounts/{account_id}/transactions", response_model=TransactionHistoryResponse, tags=["History"])
    def list_transactions(account_id: UUID) -> TransactionHistoryResponse:
        try:
            return service.list_transactions(account_id)
        except WalletServiceError as e:
            raise to_http_error(e)

    @app.get("/accounts/{account_id}/games", response_model=GameHistoryResponse, tags=["History"])
    def list_games(account_id: UUID) -> GameHistoryResponse:
        try:
            return service.list_games(account_id)
        except WalletServiceError as e:
            raise to_http_error(e)

    @app.get("/accounts/{account_id}/referrals", response_model=ReferralHistoryResponse, tags=["History"])
    def list_referrals(account_id: UUID) -> ReferralHistoryResponse:
        try:
            return service.list_referrals(account_id)
        except WalletServiceError as e:
            raise to_http_error(e)

    @app.get("/accounts/{account_id}/reconciliation", response_model=Reconciliation, tags=["History"])
    def reconcile(account_id: UUID) -> Reconciliation:
        try:
            return service.reconcile(account_id)
        except WalletServiceError as e:
            raise to_http_error(e)

    return app


if __name__ == "__main__":
    import uvicorn
    logging.basicConfig(format="%(asctime)s - %(name)s - %(levelname)s - %(message)s", level=logging.INFO)
    uvicorn.run(create_app(), host="0.0.0.0", port=8000)
