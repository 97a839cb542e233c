from zoneinfo import ZoneInfo

from flask import current_app

from .services.budget import BudgetTracker
from .services.gateways import SandboxPurchaseGateway, SqlWalletLedger
from .services.notifications import DatabaseNotifier
from .services.phones import PhoneBook
from .services.purchases import PurchaseExecutor
from .services.reports import SpendingReport
from .services.rules import AutoTopUpRuleEngine
from .services.schedules import ScheduleManager
from .services.validation import PurchaseValidator


class Engine:
    """The collaborators one app instance runs with, and per-user service factories."""

    def __init__(self, ledger=None, gateway=None, notifier=None, validator=None, timezone="Africa/Lagos"):
        self.ledger = ledger or SqlWalletLedger()
        self.gateway = gateway or SandboxPurchaseGateway()
        self.notifier = notifier or DatabaseNotifier()
        self.validator = validator or PurchaseValidator()
        self.tz = ZoneInfo(timezone)

    def executor(self) -> PurchaseExecutor:
        return PurchaseExecutor(self.ledger, self.gateway, self.notifier, self.validator, self.tz)

    def budget_tracker(self, user_id: int) -> BudgetTracker:
        return BudgetTracker(user_id, self.notifier, self.tz)

    def rule_engine(self, user_id: int) -> AutoTopUpRuleEngine:
        return AutoTopUpRuleEngine(user_id, self.executor())

    def schedule_manager(self, user_id: int) -> ScheduleManager:
        return ScheduleManager(user_id, self.executor(), self.tz)

    def phone_book(self, user_id: int) -> PhoneBook:
        return PhoneBook(user_id)

    def spending_report(self, user_id: int) -> SpendingReport:
        return SpendingReport(user_id, self.tz)


def get_engine() -> Engine:
    return current_app.extensions["smarttopup"]
