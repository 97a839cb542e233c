import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from ..clock import month_key, utc_now
from ..config import BUDGET_THRESHOLDS, MAX_BUDGET_AMOUNT
from ..errors import BudgetOutOfRange, InvalidInput
from ..extensions import db
from ..models import Budget
from .notifications import threshold_crossed
from .store import get_or_create_budget
from .validation import format_naira, to_money

logger = logging.getLogger("smarttopup.budget")


@dataclass(frozen=True)
class BudgetStatus:
    month_year: str
    budget_amount: Decimal
    amount_spent: Decimal
    remaining: Decimal
    percentage_used: Decimal
    last_alert_level: int

    @classmethod
    def from_budget(cls, budget: Budget) -> "BudgetStatus":
        return cls(
            month_year=budget.month_year,
            budget_amount=Decimal(budget.budget_amount),
            amount_spent=Decimal(budget.amount_spent),
            remaining=budget.remaining,
            percentage_used=budget.percentage_used,
            last_alert_level=budget.last_alert_level,
        )

    def to_dict(self):
        return {
            "month_year": self.month_year,
            "budget_amount": str(self.budget_amount),
            "amount_spent": str(self.amount_spent),
            "remaining": str(self.remaining),
            "percentage_used": str(self.percentage_used),
            "last_alert_level": self.last_alert_level,
        }


def crossed_thresholds(previous_spent: Decimal, new_spent: Decimal, budget_amount: Decimal) -> List[int]:
    """Thresholds passed on the way from ``previous_spent`` to ``new_spent``, ascending."""
    if budget_amount <= 0:
        return []
    return [
        threshold
        for threshold in BUDGET_THRESHOLDS
        if previous_spent * 100 < threshold * budget_amount <= new_spent * 100
    ]


class BudgetTracker:
    def __init__(self, user_id: int, notifier, tz):
        self.user_id = user_id
        self.notifier = notifier
        self.tz = tz

    def _month(self, now: Optional[datetime]) -> str:
        return month_key(now or utc_now(), self.tz)

    def set_budget(self, amount, now: Optional[datetime] = None) -> BudgetStatus:
        amount = to_money(amount)
        if amount is None or amount <= 0 or amount > MAX_BUDGET_AMOUNT:
            raise BudgetOutOfRange(
                f"Budget must be more than ₦0 and at most {format_naira(MAX_BUDGET_AMOUNT)}",
                maximum=str(MAX_BUDGET_AMOUNT),
            )
        budget = get_or_create_budget(self.user_id, self._month(now))
        # Only the limit changes; what was already spent this month stays.
        budget.budget_amount = amount
        db.session.commit()
        logger.info("user %s set %s budget to %s", self.user_id, budget.month_year, amount)
        return BudgetStatus.from_budget(budget)

    def record_spend(self, amount, now: Optional[datetime] = None) -> Decimal:
        amount = to_money(amount)
        if amount is None or amount <= 0:
            raise InvalidInput("Spend amount must be positive")

        budget = get_or_create_budget(self.user_id, self._month(now))
        db.session.execute(
            db.update(Budget)
            .where(Budget.id == budget.id)
            .values(amount_spent=Budget.amount_spent + amount)
            .execution_options(synchronize_session=False)
        )
        db.session.refresh(budget)

        new_spent = Decimal(budget.amount_spent)
        budget_amount = Decimal(budget.budget_amount)
        crossed = crossed_thresholds(new_spent - amount, new_spent, budget_amount)
        for threshold in crossed:
            self.notifier.notify(
                self.user_id,
                threshold_crossed(threshold, budget_amount, new_spent, budget.percentage_used),
            )
        if crossed and crossed[-1] > budget.last_alert_level:
            budget.last_alert_level = crossed[-1]
        percentage_used = budget.percentage_used
        db.session.commit()

        if crossed:
            logger.info("user %s budget %s crossed %s", self.user_id, budget.month_year, crossed)
        return percentage_used

    def get_status(self, now: Optional[datetime] = None) -> Optional[BudgetStatus]:
        budget = Budget.query.filter_by(user_id=self.user_id, month_year=self._month(now)).first()
        if budget is None:
            return None
        return BudgetStatus.from_budget(budget)

    def history(self, limit: int = 12) -> List[BudgetStatus]:
        budgets = (
            Budget.query.filter_by(user_id=self.user_id)
            .order_by(Budget.month_year.desc())
            .limit(limit)
            .all()
        )
        return [BudgetStatus.from_budget(b) for b in budgets]
