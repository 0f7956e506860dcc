from typing import Optional


class WalletServiceError(Exception):
    code = "WalletServiceError"

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.field = field


class ValidationError(WalletServiceError):
    code = "ValidationError"


class UserNotFoundError(WalletServiceError):
    code = "UserNotFound"


class NotFoundError(WalletServiceError):
    code = "NotFound"


class InsufficientBalanceError(WalletServiceError):
    code = "InsufficientBalance"


class BelowMinimumError(WalletServiceError):
    code = "BelowMinimum"


class PermissionDeniedError(WalletServiceError):
    code = "PermissionDenied"


class InvalidStateTransitionError(WalletServiceError):
    code = "InvalidStateTransition"


class PersistenceError(WalletServiceError):
    code = "PersistenceError"
