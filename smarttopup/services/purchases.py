"""
The purchase pipeline shared by manual buys, scheduled top-ups and auto
top-up rules.

An intent is validated against the wallet balance, the wallet is debited,
the gateway is called, and the outcome is recorded as a Transaction. The
debit and the gateway call share one database transaction: if the gateway
raises or reports failure the debit is rolled back with it.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Optional

from ..clock import utc_now
from ..enums import Network, PurchaseSource, TopUpType, TransactionStatus
from ..errors import InsufficientFunds, InvalidInput, InvalidStateTransition, NotFound, TopUpError
from ..extensions import db
from ..models import Transaction
from .budget import BudgetTracker
from .notifications import Event
from .validation import format_naira

logger = logging.getLogger("smarttopup.purchases")

SOURCE_LABELS = {
    PurchaseSource.MANUAL: "Top-Up",
    PurchaseSource.SCHEDULED: "Scheduled Top-Up",
    PurchaseSource.AUTO_TOPUP: "Auto Top-Up",
}


@dataclass(frozen=True)
class PurchaseIntent:
    user_id: int
    type: TopUpType
    amount: Decimal
    phone_number: str
    phone_number_id: Optional[int] = None
    network: Optional[Network] = None
    plan_id: Optional[str] = None
    source: PurchaseSource = PurchaseSource.MANUAL
    scheduled_topup_id: Optional[int] = None
    auto_topup_rule_id: Optional[int] = None

    def to_dict(self):
        return {
            "type": self.type.value,
            "amount": str(self.amount),
            "phone_number": self.phone_number,
            "phone_number_id": self.phone_number_id,
            "network": self.network.value if self.network else None,
            "source": self.source.value,
        }


@dataclass(frozen=True)
class PurchaseOutcome:
    status: str  # completed, pending, failed or rejected
    intent: PurchaseIntent
    error: Optional[TopUpError] = None
    reference: Optional[str] = None
    message: str = ""

    @property
    def accepted(self) -> bool:
        return self.status in (TransactionStatus.COMPLETED.value, TransactionStatus.PENDING.value)

    def to_dict(self):
        payload = {
            "status": self.status,
            "reference": self.reference,
            "intent": self.intent.to_dict(),
        }
        if self.error is not None:
            payload["error"] = {"kind": self.error.kind, "message": self.error.message}
        elif self.message:
            payload["message"] = self.message
        return payload


class PurchaseExecutor:
    def __init__(self, ledger, gateway, notifier, validator, tz):
        self.ledger = ledger
        self.gateway = gateway
        self.notifier = notifier
        self.validator = validator
        self.tz = tz

    def submit(self, intent: PurchaseIntent, now: Optional[datetime] = None) -> PurchaseOutcome:
        now = now or utc_now()
        label = SOURCE_LABELS[intent.source]

        balance = self.ledger.get_balance(intent.user_id)
        result = self.validator.validate(intent.phone_number, intent.amount, intent.type, balance)
        if not result.valid:
            return self._reject(intent, result.error, label)

        network = intent.network or result.network
        try:
            self.ledger.debit(intent.user_id, intent.amount)
        except InsufficientFunds as exc:
            db.session.rollback()
            return self._reject(intent, exc, label)

        try:
            answer = self.gateway.purchase(intent.type, network, result.cleaned_number, intent.amount, intent.plan_id)
        except Exception:
            db.session.rollback()
            logger.exception("gateway call interrupted for %s of user %s", intent.source.value, intent.user_id)
            raise

        if answer.status is TransactionStatus.FAILED:
            db.session.rollback()  # undo the debit
            reason = answer.message or "Purchase could not be completed"
            self._record(intent, network, result.cleaned_number, answer.reference, answer.status, now, reason)
            self._notify(intent, Event(
                category="transaction",
                title=f"{label} Failed",
                message=(
                    f"Your {intent.type.value} top-up of {format_naira(intent.amount)} for "
                    f"{result.cleaned_number} failed. No funds were deducted."
                ),
                level="error",
                details={"reference": answer.reference, "reason": reason},
            ))
            db.session.commit()
            logger.warning("purchase %s failed at gateway: %s", answer.reference, reason)
            return PurchaseOutcome("failed", intent, reference=answer.reference, message=reason)

        self._record(intent, network, result.cleaned_number, answer.reference, answer.status, now)
        self._notify(intent, Event(
            category="transaction",
            title=f"{label} Successful" if answer.status is TransactionStatus.COMPLETED else f"{label} Pending",
            message=(
                f"Your {intent.type.value} top-up of {format_naira(intent.amount)} for "
                f"{result.cleaned_number} was {'successful' if answer.status is TransactionStatus.COMPLETED else 'submitted'}."
            ),
            level="success" if answer.status is TransactionStatus.COMPLETED else "info",
            details={"reference": answer.reference, "amount": str(intent.amount)},
        ))
        db.session.commit()
        logger.info("purchase %s %s for user %s", answer.reference, answer.status.value, intent.user_id)

        # Only completed purchases count towards the month's spend.
        if answer.status is TransactionStatus.COMPLETED:
            BudgetTracker(intent.user_id, self.notifier, self.tz).record_spend(intent.amount, now)
        return PurchaseOutcome(answer.status.value, intent, reference=answer.reference)

    def settle(self, user_id: int, reference: str, status, message: str = "", now: Optional[datetime] = None) -> Transaction:
        """Resolve a pending purchase once the gateway reports its final status.

        A completed purchase is counted against the budget of the month it was
        made in. A failed one is refunded to the wallet. Only pending
        transactions can be settled, and only once.
        """
        now = now or utc_now()
        try:
            status = TransactionStatus(status)
        except ValueError:
            raise InvalidInput("status must be completed or failed") from None
        if status is TransactionStatus.PENDING:
            raise InvalidInput("status must be completed or failed")

        txn = Transaction.query.filter_by(user_id=user_id, reference=reference).first()
        if txn is None:
            raise NotFound("Transaction not found", reference=reference)

        values = {"status": status, "settled_at": now}
        if status is TransactionStatus.FAILED:
            values["failure_reason"] = message or "Purchase could not be completed"
        # Claim the row: a second settlement of the same reference matches nothing.
        claimed = db.session.execute(
            db.update(Transaction)
            .where(Transaction.id == txn.id, Transaction.status == TransactionStatus.PENDING)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if claimed.rowcount != 1:
            db.session.rollback()
            db.session.refresh(txn)
            raise InvalidStateTransition(
                f"A {txn.status.value} transaction cannot be settled", status=txn.status.value
            )

        label = SOURCE_LABELS[txn.source]
        amount = Decimal(txn.amount)
        if status is TransactionStatus.FAILED:
            self.ledger.credit(user_id, amount)
            self.notifier.notify(user_id, Event(
                category="transaction",
                title=f"{label} Failed",
                message=(
                    f"Your {txn.type.value} top-up of {format_naira(amount)} for {txn.phone_number} "
                    f"failed. {format_naira(amount)} has been returned to your wallet."
                ),
                level="error",
                details={"reference": reference, "reason": values["failure_reason"]},
            ))
        else:
            self.notifier.notify(user_id, Event(
                category="transaction",
                title=f"{label} Successful",
                message=f"Your {txn.type.value} top-up of {format_naira(amount)} for {txn.phone_number} was successful.",
                level="success",
                details={"reference": reference, "amount": str(amount)},
            ))
        db.session.commit()
        logger.info("settled %s as %s for user %s", reference, status.value, user_id)

        if status is TransactionStatus.COMPLETED:
            BudgetTracker(user_id, self.notifier, self.tz).record_spend(amount, txn.created_at or now)
        db.session.refresh(txn)
        return txn

    def _reject(self, intent: PurchaseIntent, error: TopUpError, label: str) -> PurchaseOutcome:
        logger.info("rejected %s for user %s: %s", intent.source.value, intent.user_id, error.kind)
        self._notify(intent, Event(
            category="transaction",
            title=f"{label} Failed",
            message=f"Your {intent.type.value} top-up of {format_naira(intent.amount)} was not sent: {error.message}",
            level="error",
            details={"kind": error.kind},
        ))
        db.session.commit()
        return PurchaseOutcome("rejected", intent, error=error)

    def _notify(self, intent: PurchaseIntent, event: Event) -> None:
        # Manual buyers see the result directly; only unattended purchases notify.
        if intent.source is not PurchaseSource.MANUAL:
            self.notifier.notify(intent.user_id, event)

    def _record(self, intent, network, phone_number, reference, status, now, failure_reason=None) -> Transaction:
        txn = Transaction(
            user_id=intent.user_id,
            reference=reference,
            type=intent.type,
            network=network,
            phone_number=phone_number,
            amount=intent.amount,
            status=status,
            source=intent.source,
            scheduled_topup_id=intent.scheduled_topup_id,
            auto_topup_rule_id=intent.auto_topup_rule_id,
            failure_reason=failure_reason,
            created_at=now,
        )
        db.session.add(txn)
        return txn
