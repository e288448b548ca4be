"""Simulated payment gateways for the supported mobile-wallet and card methods."""

import logging
import time
from dataclasses import dataclass
from decimal import Decimal
from itertools import count

from telemed.core.errors import ValidationError

logger = logging.getLogger(__name__)

TRANSACTION_PREFIXES = {
    'bkash': 'BKS',
    'nagad': 'NGD',
    'rocket': 'RKT',
    'card': 'CRD',
}


@dataclass(frozen=True)
class PaymentResult:
    success: bool
    transaction_id: str | None = None
    error: str | None = None


class PaymentGateway:
    def process_payment(self, method: str, amount: Decimal) -> PaymentResult:
        raise NotImplementedError


class MockPaymentGateway(PaymentGateway):
    """Approves every payment unless its method has been told to decline."""

    def __init__(self, declined_methods: set[str] | None = None):
        self.declined_methods = set(declined_methods or ())
        self._sequence = count(1)

    def process_payment(self, method: str, amount: Decimal) -> PaymentResult:
        prefix = TRANSACTION_PREFIXES.get(method)
        if prefix is None:
            raise ValidationError('Invalid payment method.', operation='process_payment')
        if amount is None or Decimal(amount) <= 0:
            raise ValidationError('Payment amount must be positive.', operation='process_payment')

        if method in self.declined_methods:
            logger.info('Mock %s payment of %s declined', method, amount)
            return PaymentResult(success=False, error=f'{method} payment was declined')

        transaction_id = f'{prefix}{int(time.time() * 1000)}{next(self._sequence):04d}'
        logger.info('Mock %s payment of %s approved as %s', method, amount, transaction_id)
        return PaymentResult(success=True, transaction_id=transaction_id)
