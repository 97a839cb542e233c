from datetime import datetime
from decimal import Decimal
from ..extensions import db


class Wallet(db.Model):
    __tablename__ = "wallets"
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), unique=True, nullable=False)
    balance = db.Column(db.Numeric(12, 2), nullable=False, default=Decimal("0"))
    currency = db.Column(db.String(3), nullable=False, default="NGN")
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        db.CheckConstraint("balance >= 0", name="ck_wallet_balance"),
    )
