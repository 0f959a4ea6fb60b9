class WalletServiceError(Exception):
    pass


class NotFoundError(WalletServiceError):
    pass


class ValidationError(WalletServiceError):
    pass


class PreconditionFailedError(WalletServiceError):
    pass


class ConflictError(WalletServiceError):
    pass


class AccountNotFoundError(NotFoundError):
    def __init__(self, account_id):
        self.account_id = account_id
        super().__init__(f"Account {account_id} not found")


class InvalidPhoneNumberError(ValidationError):
    pass


class InvalidStakeError(ValidationError):
    pass


class InsufficientBalanceError(ValidationError):
    pass


class InvalidAmountError(ValidationError):
    pass


class BelowMinimumError(ValidationError):
    pass


class InvalidPaymentReferenceError(ValidationError):
    pass


class DuplicatePhoneError(PreconditionFailedError):
    pass


class WithdrawalNotAllowedError(PreconditionFailedError):
    pass


class ConcurrencyConflictError(ConflictError):
    pass


class ReferralCodeExhaustedError(ConflictError):
    pass
