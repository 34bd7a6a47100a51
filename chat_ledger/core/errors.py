# chat_ledger/core/errors.py


class LedgerError(Exception):
    """Base class for every failure the ledger reports to a user."""

    def user_message(self) -> str:
        return str(self)


class ValidationError(LedgerError):
    def __init__(self, field: str, message: str):
        super().__init__(message)
        self.field = field


class InvalidAmount(ValidationError):
    def __init__(self, message: str):
        super().__init__("amount", message)


class EmptyField(ValidationError):
    pass


class TooLong(ValidationError):
    pass


class UnknownCategory(ValidationError):
    def __init__(self, message: str):
        super().__init__("category", message)


class InvalidDate(ValidationError):
    def __init__(self, message: str):
        super().__init__("date", message)


class UnknownField(ValidationError):
    def __init__(self, message: str):
        super().__init__("field", message)


class TransactionNotFound(LedgerError):
    def __init__(self, transaction_id: str):
        super().__init__(f"Transaction with ID '{transaction_id}' not found.")
        self.transaction_id = transaction_id


class AccessDenied(LedgerError):
    pass


class DeleteVerificationFailed(LedgerError):
    pass


class ClassifierUnavailable(LedgerError):
    pass


class ClassifierMalformed(LedgerError):
    pass


class IdGenerationExhausted(LedgerError):
    pass
