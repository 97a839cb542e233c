from .user import User
from .phone_number import PhoneNumber
from .wallet import Wallet
from .budget import Budget
from .auto_topup_rule import AutoTopUpRule
from .scheduled_topup import ScheduledTopUp
from .transaction import Transaction
from .notification import Notification

__all__ = [
    "User",
    "PhoneNumber",
    "Wallet",
    "Budget",
    "AutoTopUpRule",
    "ScheduledTopUp",
    "Transaction",
    "Notification",
]
