"""Payments package - Payment batches and refunds."""

from coursereg.payments.exceptions import AlreadyPaidError
from coursereg.payments.ledger import PaymentLedger, generate_transaction_id
from coursereg.payments.models import PaymentHistory, PaymentOutcome, PaymentStatistics

__all__ = [
    "AlreadyPaidError",
    "PaymentHistory",
    "PaymentLedger",
    "PaymentOutcome",
    "PaymentStatistics",
    "generate_transaction_id",
]
