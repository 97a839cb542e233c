from datetime import datetime
from ..enums import Network, ScheduleStatus, ScheduleType, TopUpType, enum_values
from ..extensions import db
from ..recurrence import Daily, Monthly, OneTime, Weekly

# Exactly the descriptor columns of the schedule's kind are populated.
DESCRIPTOR_CHECK = (
    "(schedule_type = 'one_time' AND scheduled_at IS NOT NULL AND recurring_time IS NULL"
    " AND recurring_day_of_week IS NULL AND recurring_day_of_month IS NULL)"
    " OR (schedule_type = 'daily' AND scheduled_at IS NULL AND recurring_time IS NOT NULL"
    " AND recurring_day_of_week IS NULL AND recurring_day_of_month IS NULL)"
    " OR (schedule_type = 'weekly' AND scheduled_at IS NULL AND recurring_time IS NOT NULL"
    " AND recurring_day_of_week BETWEEN 0 AND 6 AND recurring_day_of_month IS NULL)"
    " OR (schedule_type = 'monthly' AND scheduled_at IS NULL AND recurring_time IS NOT NULL"
    " AND recurring_day_of_month BETWEEN 1 AND 31 AND recurring_day_of_week IS NULL)"
)


class ScheduledTopUp(db.Model):
    __tablename__ = "scheduled_topups"
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    phone_number_id = db.Column(db.Integer, db.ForeignKey("phone_numbers.id"), nullable=False)
    type = db.Column(
        db.Enum(TopUpType, name="topup_type", native_enum=False, values_callable=enum_values, length=10),
        nullable=False,
    )
    network = db.Column(
        db.Enum(Network, name="network", native_enum=False, values_callable=enum_values, length=10),
        nullable=False,
    )
    # False: network follows the phone number and is re-derived when it changes.
    network_is_explicit = db.Column(db.Boolean, nullable=False, default=False)
    amount = db.Column(db.Numeric(12, 2), nullable=False)
    plan_id = db.Column(db.String(64))  # data bundle code, if any

    schedule_type = db.Column(
        db.Enum(ScheduleType, name="schedule_type", native_enum=False, values_callable=enum_values, length=10),
        nullable=False,
    )
    scheduled_at = db.Column(db.DateTime)
    recurring_time = db.Column(db.Time)
    recurring_day_of_week = db.Column(db.Integer)
    recurring_day_of_month = db.Column(db.Integer)

    status = db.Column(
        db.Enum(ScheduleStatus, name="schedule_status", native_enum=False, values_callable=enum_values, length=10),
        nullable=False,
        default=ScheduleStatus.ACTIVE,
    )
    next_execution_at = db.Column(db.DateTime, index=True)
    total_executions = db.Column(db.Integer, nullable=False, default=0)
    max_executions = db.Column(db.Integer)  # NULL = unbounded
    last_executed_at = db.Column(db.DateTime)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    phone = db.relationship("PhoneNumber", lazy="joined")

    __table_args__ = (
        db.CheckConstraint(DESCRIPTOR_CHECK, name="ck_schedule_descriptor"),
        db.CheckConstraint("amount > 0", name="ck_schedule_amount"),
        db.CheckConstraint("max_executions IS NULL OR max_executions > 0", name="ck_schedule_max_executions"),
    )

    @property
    def recurrence(self):
        if self.schedule_type is ScheduleType.ONE_TIME:
            return OneTime(self.scheduled_at)
        if self.schedule_type is ScheduleType.DAILY:
            return Daily(self.recurring_time)
        if self.schedule_type is ScheduleType.WEEKLY:
            return Weekly(self.recurring_day_of_week, self.recurring_time)
        return Monthly(self.recurring_day_of_month, self.recurring_time)

    @recurrence.setter
    def recurrence(self, value):
        self.schedule_type = value.schedule_type
        self.scheduled_at = value.at if isinstance(value, OneTime) else None
        self.recurring_time = getattr(value, "time", None)
        self.recurring_day_of_week = getattr(value, "day_of_week", None)
        self.recurring_day_of_month = getattr(value, "day_of_month", None)

    def to_dict(self):
        return {
            "id": self.id,
            "type": self.type.value,
            "network": self.network.value,
            "network_is_explicit": bool(self.network_is_explicit),
            "amount": str(self.amount),
            "plan_id": self.plan_id,
            "phone_number_id": self.phone_number_id,
            "phone_number": self.phone.phone_number if self.phone else None,
            "schedule_type": self.schedule_type.value,
            "scheduled_at": self.scheduled_at.isoformat() if self.scheduled_at else None,
            "recurring_time": self.recurring_time.strftime("%H:%M") if self.recurring_time else None,
            "recurring_day_of_week": self.recurring_day_of_week,
            "recurring_day_of_month": self.recurring_day_of_month,
            "status": self.status.value,
            "next_execution_at": self.next_execution_at.isoformat() if self.next_execution_at else None,
            "total_executions": self.total_executions,
            "max_executions": self.max_executions,
            "last_executed_at": self.last_executed_at.isoformat() if self.last_executed_at else None,
        }
