"""Payment transaction state machine."""

from enum import Enum

from stowage.core.exceptions import ValidationError


class TransactionType(str, Enum):
    PAYMENT = "PAYMENT"
    REFUND = "REFUND"


class TransactionStatus(str, Enum):
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    REFUNDED = "REFUNDED"


TRANSACTION_TRANSITIONS: dict[TransactionStatus, set[TransactionStatus]] = {
    TransactionStatus.PENDING: {TransactionStatus.COMPLETED, TransactionStatus.FAILED},
    TransactionStatus.COMPLETED: {TransactionStatus.REFUNDED},
    TransactionStatus.FAILED: set(),
    TransactionStatus.REFUNDED: set(),
}


def can_transition(current: str | TransactionStatus, target: TransactionStatus) -> bool:
    return target in TRANSACTION_TRANSITIONS.get(TransactionStatus(current), set())


def assert_transaction_transition(current: str | TransactionStatus, target: TransactionStatus) -> None:
    if not can_transition(current, target):
        raise ValidationError(
            f"Invalid transaction transition: {TransactionStatus(current).value} → {target.value}"
        )
