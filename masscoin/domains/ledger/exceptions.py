"""
Typed ledger failures. Every one of them reaches the caller; the HTTP layer
maps them through ``status_code`` and ``code``.
"""


class LedgerError(Exception):
    status_code = 400
    code = "ledger_error"

    def __init__(self, message: str = ""):
        super().__init__(message or self.__class__.__name__)
        self.message = message or self.__class__.__name__


class NotFound(LedgerError):
    status_code = 404
    code = "not_found"


class UserNotFound(NotFound):
    code = "user_not_found"

    def __init__(self, user_id: str):
        super().__init__(f"User {user_id} not found")
        self.user_id = user_id


class WalletNotFound(NotFound):
    code = "wallet_not_found"

    def __init__(self, user_id: str):
        super().__init__(f"Wallet for user {user_id} not found")
        self.user_id = user_id


class TransferRequestNotFound(NotFound):
    code = "transfer_request_not_found"

    def __init__(self, request_id: str):
        super().__init__(f"Transfer request {request_id} not found")
        self.request_id = request_id


class TransactionNotFound(NotFound):
    code = "transaction_not_found"

    def __init__(self, transaction_id: str):
        super().__init__(f"Transaction {transaction_id} not found")
        self.transaction_id = transaction_id


class ContentNotFound(NotFound):
    code = "content_not_found"

    def __init__(self, content_id: str):
        super().__init__(f"Content {content_id} not found")
        self.content_id = content_id


class InsufficientFunds(LedgerError):
    code = "insufficient_funds"


class InsufficientStake(LedgerError):
    code = "insufficient_stake"


class Unauthorized(LedgerError):
    status_code = 403
    code = "unauthorized"


class InvalidState(LedgerError):
    status_code = 409
    code = "invalid_state"


class Expired(LedgerError):
    status_code = 410
    code = "expired"

    def __init__(self, message: str = "", request=None):
        super().__init__(message or "Request has expired")
        # The request as expired by this call, when it performed the refund
        self.request = request


class DuplicateRequest(LedgerError):
    status_code = 409
    code = "duplicate_request"


class InvalidAmount(LedgerError):
    status_code = 422
    code = "invalid_amount"


class InvalidWithdrawal(LedgerError):
    status_code = 422
    code = "invalid_withdrawal"


class SelfTipNotAllowed(LedgerError):
    code = "self_tip_not_allowed"

    def __init__(self, message: str = "You cannot tip yourself"):
        super().__init__(message)
