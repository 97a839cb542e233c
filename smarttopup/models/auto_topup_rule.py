from datetime import datetime
from ..enums import TopUpType, enum_values
from ..extensions import db


class AutoTopUpRule(db.Model):
    __tablename__ = "auto_topup_rules"
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    type = db.Column(
        db.Enum(TopUpType, name="topup_type", native_enum=False, values_callable=enum_values, length=10),
        nullable=False,
    )
    threshold_percentage = db.Column(db.Integer, nullable=False, default=20)
    topup_amount = db.Column(db.Numeric(12, 2), nullable=False)
    is_enabled = db.Column(db.Boolean, nullable=False, default=True)
    # Resolved to the primary number's id when created without one
    phone_number_id = db.Column(db.Integer, db.ForeignKey("phone_numbers.id"), nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    phone = db.relationship("PhoneNumber", lazy="joined")

    __table_args__ = (
        db.UniqueConstraint("user_id", "type", "phone_number_id", name="uq_user_type_phone"),
        db.CheckConstraint("threshold_percentage BETWEEN 0 AND 100", name="ck_rule_threshold"),
        db.CheckConstraint("topup_amount > 0", name="ck_rule_amount"),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "type": self.type.value,
            "threshold_percentage": self.threshold_percentage,
            "topup_amount": str(self.topup_amount),
            "is_enabled": self.is_enabled,
            "phone_number_id": self.phone_number_id,
            "phone_number": self.phone.phone_number if self.phone else None,
        }
