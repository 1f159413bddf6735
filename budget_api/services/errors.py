from __future__ import annotations


class TransferMatchError(Exception):
    pass


class NotFoundError(TransferMatchError, LookupError):
    pass


class InvalidStateError(TransferMatchError, ValueError):
    pass


class LinkValidationError(TransferMatchError, ValueError):
    """A manual link request failed a precondition.

    ``reason`` is one of: same_transaction, same_account, zero_amount,
    amount_mismatch, already_linked.
    """

    def __init__(self, reason: str, message: str) -> None:
        super().__init__(message)
        self.reason = reason
        self.message = message
