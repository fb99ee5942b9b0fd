# newport/models/__init__.py
from .apartment_model import Apartment, UserProfile
from .payment_model import Payment, PaymentStatus
from .transaction_model import PaymeTransaction, TransactionState
from .notification_model import Notification, NotificationType
from .invite_model import Invite, InviteStatus

__all__ = [
    "Apartment", "UserProfile", "Payment", "PaymentStatus", "PaymeTransaction",
    "TransactionState", "Notification", "NotificationType", "Invite", "InviteStatus",
]
