from datetime import datetime
from ..enums import Network, enum_values
from ..extensions import db
from ..services.networks import format_phone_number


class PhoneNumber(db.Model):
    __tablename__ = "phone_numbers"
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    phone_number = db.Column(db.String(11), nullable=False)
    label = db.Column(db.String(50))  # e.g. "Work", "Family"
    is_primary = db.Column(db.Boolean, nullable=False, default=False)
    network = db.Column(
        db.Enum(Network, name="network", native_enum=False, values_callable=enum_values, length=10),
        nullable=True,
    )
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    __table_args__ = (
        db.UniqueConstraint("user_id", "phone_number", name="uq_user_phone_number"),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "phone_number": self.phone_number,
            "display": format_phone_number(self.phone_number),
            "label": self.label,
            "is_primary": self.is_primary,
            "network": self.network.value if self.network else None,
        }
