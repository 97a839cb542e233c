from datetime import datetime
from ..enums import Network, PurchaseSource, TopUpType, TransactionStatus, enum_values
from ..extensions import db


class Transaction(db.Model):
    """A purchase attempt that reached the gateway; doubles as the execution log."""

    __tablename__ = "transactions"
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    reference = db.Column(db.String(64), unique=True, nullable=False)
    type = db.Column(
        db.Enum(TopUpType, name="topup_type", native_enum=False, values_callable=enum_values, length=10),
        nullable=False,
    )
    network = db.Column(
        db.Enum(Network, name="network", native_enum=False, values_callable=enum_values, length=10),
    )
    phone_number = db.Column(db.String(11), nullable=False)
    amount = db.Column(db.Numeric(12, 2), nullable=False)
    status = db.Column(
        db.Enum(TransactionStatus, name="transaction_status", native_enum=False, values_callable=enum_values, length=10),
        nullable=False,
    )
    source = db.Column(
        db.Enum(PurchaseSource, name="purchase_source", native_enum=False, values_callable=enum_values, length=12),
        nullable=False,
        default=PurchaseSource.MANUAL,
    )
    scheduled_topup_id = db.Column(db.Integer, db.ForeignKey("scheduled_topups.id"), nullable=True)
    auto_topup_rule_id = db.Column(db.Integer, db.ForeignKey("auto_topup_rules.id"), nullable=True)
    failure_reason = db.Column(db.String(255))
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    settled_at = db.Column(db.DateTime)  # when a pending purchase was resolved

    def to_dict(self):
        return {
            "id": self.id,
            "reference": self.reference,
            "type": self.type.value,
            "network": self.network.value if self.network else None,
            "phone_number": self.phone_number,
            "amount": str(self.amount),
            "status": self.status.value,
            "source": self.source.value,
            "failure_reason": self.failure_reason,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "settled_at": self.settled_at.isoformat() if self.settled_at else None,
        }
