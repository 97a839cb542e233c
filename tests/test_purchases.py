from datetime import datetime
from decimal import Decimal

from smarttopup.enums import Network, PurchaseSource, TopUpType, TransactionStatus
from smarttopup.errors import InvalidInput, InvalidStateTransition, NotFound
from smarttopup.models import Budget, Notification, Transaction
from smarttopup.services.notifications import DatabaseNotifier, threshold_crossed
from smarttopup.services.purchases import PurchaseIntent
from smarttopup.extensions import db

from .support import AppTestCase

MADE_AT = datetime(2026, 3, 10, 12, 0)
SETTLED_AT = datetime(2026, 3, 10, 12, 5)


class ManualPurchaseTests(AppTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.user = self.make_user()
        self.executor = self.engine.executor()

    def intent(self, amount="500", phone="08021234567", **kwargs) -> PurchaseIntent:
        return PurchaseIntent(user_id=self.user.id, type=TopUpType.AIRTIME, amount=Decimal(amount), phone_number=phone, **kwargs)

    def test_purchase_debits_and_records(self) -> None:
        outcome = self.executor.submit(self.intent())
        self.assertTrue(outcome.accepted)
        self.assertEqual(self.balance(self.user), Decimal("49500"))
        txn = Transaction.query.one()
        self.assertIs(txn.network, Network.AIRTEL)
        self.assertIs(txn.source, PurchaseSource.MANUAL)
        self.assertEqual(self.gateway.calls[0][2], "08021234567")

    def test_manual_purchases_do_not_notify(self) -> None:
        self.executor.submit(self.intent())
        self.assertEqual(self.notifier.events, [])

    def test_invalid_number_never_reaches_gateway(self) -> None:
        outcome = self.executor.submit(self.intent(phone="0802"))
        self.assertEqual(outcome.status, "rejected")
        self.assertEqual(outcome.error.kind, "InvalidPhoneFormat")
        self.assertEqual(self.gateway.calls, [])
        self.assertEqual(Transaction.query.count(), 0)

    def test_explicit_network_is_passed_through(self) -> None:
        self.executor.submit(self.intent(network=Network.GLO))
        self.assertIs(self.gateway.calls[0][1], Network.GLO)



class SettlementTests(AppTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.user = self.make_user()
        self.executor = self.engine.executor()
        self.engine.budget_tracker(self.user.id).set_budget(Decimal("4000"), now=MADE_AT)
        self.gateway.statuses.append(TransactionStatus.PENDING)
        intent = PurchaseIntent(
            user_id=self.user.id, type=TopUpType.DATA, amount=Decimal("2000"), phone_number="08031234567"
        )
        self.reference = self.executor.submit(intent, now=MADE_AT).reference

    def spent(self) -> Decimal:
        return Budget.query.filter_by(user_id=self.user.id).one().amount_spent

    def test_pending_purchase_holds_funds_without_spend(self) -> None:
        self.assertEqual(self.balance(self.user), Decimal("48000"))
        self.assertEqual(self.spent(), Decimal("0"))
        self.assertIs(Transaction.query.one().status, TransactionStatus.PENDING)

    def test_completed_settlement_records_spend(self) -> None:
        txn = self.executor.settle(self.user.id, self.reference, "completed", now=SETTLED_AT)
        self.assertIs(txn.status, TransactionStatus.COMPLETED)
        self.assertEqual(txn.settled_at, SETTLED_AT)
        self.assertEqual(self.spent(), Decimal("2000"))
        self.assertEqual(self.balance(self.user), Decimal("48000"))
        self.assertIn("Top-Up Successful", self.notifier.titles())
        self.assertIn("50% Budget Used", self.notifier.titles())

    def test_failed_settlement_refunds(self) -> None:
        txn = self.executor.settle(self.user.id, self.reference, "failed", message="Carrier timeout")
        self.assertIs(txn.status, TransactionStatus.FAILED)
        self.assertEqual(txn.failure_reason, "Carrier timeout")
        self.assertEqual(self.balance(self.user), Decimal("50000"))
        self.assertEqual(self.spent(), Decimal("0"))
        self.assertIn("Top-Up Failed", self.notifier.titles())

    def test_settles_only_once(self) -> None:
        self.executor.settle(self.user.id, self.reference, "failed")
        with self.assertRaises(InvalidStateTransition):
            self.executor.settle(self.user.id, self.reference, "failed")
        with self.assertRaises(InvalidStateTransition):
            self.executor.settle(self.user.id, self.reference, "completed")
        self.assertEqual(self.balance(self.user), Decimal("50000"))
        self.assertEqual(self.spent(), Decimal("0"))

    def test_invalid_target_status(self) -> None:
        for status in ("pending", "done", None):
            with self.subTest(status=status):
                with self.assertRaises(InvalidInput):
                    self.executor.settle(self.user.id, self.reference, status)

    def test_other_users_reference_is_not_found(self) -> None:
        other = self.make_user(name="Bola", primary="08021234567")
        with self.assertRaises(NotFound):
            self.executor.settle(other.id, self.reference, "completed")
        with self.assertRaises(NotFound):
            self.executor.settle(self.user.id, "NO-SUCH-REF", "completed")

class DatabaseNotifierTests(AppTestCase):
    def test_events_are_stored_with_the_callers_commit(self) -> None:
        user = self.make_user()
        event = threshold_crossed(90, Decimal("10000"), Decimal("9000"), Decimal("90"))
        DatabaseNotifier().notify(user.id, event)
        db.session.commit()

        stored = Notification.query.one()
        self.assertEqual(stored.title, "90% Budget Used")
        self.assertEqual(stored.category, "budget")
        self.assertEqual(stored.details["remaining"], "1000")
        self.assertFalse(stored.is_read)
