from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from ..extensions import db

PERCENT_QUANT = Decimal("0.01")


class Budget(db.Model):
    __tablename__ = "budgets"
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    month_year = db.Column(db.String(7), nullable=False)  # e.g., '2026-10'
    budget_amount = db.Column(db.Numeric(12, 2), nullable=False, default=Decimal("0"))
    amount_spent = db.Column(db.Numeric(12, 2), nullable=False, default=Decimal("0"))
    last_alert_level = db.Column(db.Integer, nullable=False, default=0)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        db.UniqueConstraint("user_id", "month_year", name="uq_user_month"),
    )

    @property
    def remaining(self) -> Decimal:
        return Decimal(self.budget_amount) - Decimal(self.amount_spent)

    @property
    def percentage_used(self) -> Decimal:
        if not self.budget_amount:
            return Decimal("0")
        ratio = Decimal(self.amount_spent) / Decimal(self.budget_amount) * 100
        return ratio.quantize(PERCENT_QUANT, rounding=ROUND_HALF_UP)
