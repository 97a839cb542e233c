from enum import Enum


class TopUpType(str, Enum):
    AIRTIME = "airtime"
    DATA = "data"


class Network(str, Enum):
    MTN = "MTN"
    AIRTEL = "Airtel"
    GLO = "Glo"
    NINE_MOBILE = "9mobile"


class ScheduleType(str, Enum):
    ONE_TIME = "one_time"
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


class ScheduleStatus(str, Enum):
    ACTIVE = "active"
    PAUSED = "paused"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (ScheduleStatus.COMPLETED, ScheduleStatus.CANCELLED)


class TransactionStatus(str, Enum):
    COMPLETED = "completed"
    PENDING = "pending"
    FAILED = "failed"


class PurchaseSource(str, Enum):
    MANUAL = "manual"
    SCHEDULED = "scheduled"
    AUTO_TOPUP = "auto_topup"


def enum_values(enum_cls):
    """Column values for ``db.Enum(..., values_callable=enum_values)``."""
    return [member.value for member in enum_cls]
