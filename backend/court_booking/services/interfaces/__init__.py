"""
Service interfaces for dependency inversion.
Allows swapping implementations without changing business logic.
"""

from .payment import AccountStatus, PaymentAuthorization, PaymentProvider, PaymentReversal

__all__ = ['PaymentProvider', 'PaymentAuthorization', 'PaymentReversal', 'AccountStatus']
