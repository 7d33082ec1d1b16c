from .auth import User, AccountNotification, SessionToken, ROLES
from .security import SecurityEvent
from .loyalty import Referral, Loyalty
from .suppliers import Supplier, SupplierToken

__all__ = [
    'User', 'AccountNotification', 'SessionToken', 'ROLES',
    'SecurityEvent',
    'Referral', 'Loyalty',
    'Supplier', 'SupplierToken',
]
