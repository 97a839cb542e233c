import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, Protocol

from ..extensions import db
from ..models import Notification
from .validation import format_naira

logger = logging.getLogger("smarttopup.notifications")


@dataclass(frozen=True)
class Event:
    category: str  # "budget" or "transaction"
    title: str
    message: str
    level: str = "info"
    details: Dict[str, Any] = field(default_factory=dict)


class Notifier(Protocol):
    def notify(self, user_id: int, event: Event) -> None:
        ...


def threshold_crossed(threshold: int, budget_amount: Decimal, amount_spent: Decimal, percentage_used: Decimal) -> Event:
    remaining = max(budget_amount - amount_spent, Decimal("0"))
    if threshold >= 100:
        title = "Monthly Budget Exceeded"
        message = f"You've exceeded your monthly budget of {format_naira(budget_amount)}."
        level = "warning"
    else:
        title = f"{threshold}% Budget Used"
        message = f"You've used {threshold}% of your monthly budget. {format_naira(remaining)} remaining."
        level = "info"
    return Event(
        category="budget",
        title=title,
        message=message,
        level=level,
        details={
            "threshold": threshold,
            "budget_amount": str(budget_amount),
            "amount_spent": str(amount_spent),
            "percentage_used": str(percentage_used),
            "remaining": str(remaining),
        },
    )


class DatabaseNotifier:
    """Stores notifications for the app to display; commits with the caller."""

    def notify(self, user_id: int, event: Event) -> None:
        logger.info("notify user=%s [%s] %s", user_id, event.category, event.title)
        db.session.add(Notification(
            user_id=user_id,
            category=event.category,
            level=event.level,
            title=event.title,
            message=event.message,
            details=event.details,
        ))
