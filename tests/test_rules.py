from decimal import Decimal
from unittest import mock

from smarttopup.enums import Network, PurchaseSource, TopUpType
from smarttopup.errors import AboveMaximum, DuplicateRule, InvalidInput, NotFound
from smarttopup.models import AutoTopUpRule, Transaction

from .support import AppTestCase


class AutoTopUpRuleTests(AppTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.user = self.make_user()
        self.rules = self.engine.rule_engine(self.user.id)
        self.primary = self.engine.phone_book(self.user.id).list()[0]

    def test_null_phone_resolves_to_primary(self) -> None:
        rule = self.rules.create("airtime", 80, 500)
        self.assertEqual(rule.phone_number_id, self.primary.id)

    def test_duplicate_type_and_phone_is_refused(self) -> None:
        self.rules.create("airtime", 80, 500)
        with self.assertRaises(DuplicateRule):
            self.rules.create("airtime", 50, 1000)
        with self.assertRaises(DuplicateRule):
            self.rules.create("airtime", 50, 1000, phone_number_id=self.primary.id)
        self.assertEqual(AutoTopUpRule.query.count(), 1)

    def test_duplicate_caught_by_unique_constraint(self) -> None:
        self.rules.create("airtime", 80, 500)
        # Two creates racing: both pass the lookup, the second insert collides.
        with mock.patch.object(self.rules, "_existing", return_value=None):
            with self.assertRaises(DuplicateRule) as ctx:
                self.rules.create("airtime", 50, 1000)
        self.assertIn(self.primary.phone_number, ctx.exception.message)
        self.assertEqual(AutoTopUpRule.query.count(), 1)
        self.assertEqual(self.rules.create("data", 50, 1000).type, TopUpType.DATA)

    def test_topup_amount_above_type_maximum(self) -> None:
        with self.assertRaises(AboveMaximum):
            self.rules.create("airtime", 80, 50001)
        rule = self.rules.create("data", 80, 100000)
        with self.assertRaises(AboveMaximum):
            self.rules.update(rule.id, topup_amount=100001)

    def test_other_type_or_phone_is_allowed(self) -> None:
        self.rules.create("airtime", 80, 500)
        self.rules.create("data", 80, 500)
        other = self.engine.phone_book(self.user.id).add("08021234567")
        self.rules.create("airtime", 80, 500, phone_number_id=other.id)
        self.assertEqual(len(self.rules.list()), 3)

    def test_input_ranges(self) -> None:
        with self.assertRaises(InvalidInput):
            self.rules.create("airtime", 101, 500)
        with self.assertRaises(InvalidInput):
            self.rules.create("airtime", 80, 0)
        with self.assertRaises(InvalidInput):
            self.rules.create("sms", 80, 500)

    def test_evaluate_fires_at_or_below_remaining_limit(self) -> None:
        rule = self.rules.create("data", 80, 1500)
        self.assertIsNone(self.rules.evaluate(rule, 21))
        intent = self.rules.evaluate(rule, 20)
        self.assertIsNotNone(intent)
        self.assertIs(intent.type, TopUpType.DATA)
        self.assertEqual(intent.amount, Decimal("1500"))
        self.assertEqual(intent.phone_number, self.primary.phone_number)
        self.assertIs(intent.network, Network.MTN)
        self.assertIs(intent.source, PurchaseSource.AUTO_TOPUP)
        self.assertEqual(intent.auto_topup_rule_id, rule.id)

    def test_disabled_rule_never_fires(self) -> None:
        rule = self.rules.create("airtime", 80, 500)
        rule = self.rules.toggle(rule.id)
        self.assertFalse(rule.is_enabled)
        self.assertIsNone(self.rules.evaluate(rule, 0))
        self.assertTrue(self.rules.toggle(rule.id).is_enabled)

    def test_trigger_purchases_and_records_spend(self) -> None:
        self.engine.budget_tracker(self.user.id).set_budget(Decimal("10000"))
        rule = self.rules.create("airtime", 80, 500)

        outcome = self.rules.trigger(rule.id, 5)

        self.assertEqual(outcome.status, "completed")
        self.assertEqual(self.balance(self.user), Decimal("49500"))
        txn = Transaction.query.one()
        self.assertIs(txn.source, PurchaseSource.AUTO_TOPUP)
        self.assertEqual(txn.auto_topup_rule_id, rule.id)
        self.assertEqual(self.engine.budget_tracker(self.user.id).get_status().amount_spent, Decimal("500"))
        self.assertIn("Auto Top-Up Successful", self.notifier.titles())

    def test_trigger_not_due_does_nothing(self) -> None:
        rule = self.rules.create("airtime", 80, 500)
        self.assertIsNone(self.rules.trigger(rule.id, 50))
        self.assertEqual(self.gateway.calls, [])

    def test_trigger_with_low_wallet_is_rejected(self) -> None:
        poor = self.make_user(name="Bola", balance="100", primary="08021234567")
        rules = self.engine.rule_engine(poor.id)
        rule = rules.create("airtime", 80, 500)
        outcome = rules.trigger(rule.id, 0)
        self.assertEqual(outcome.status, "rejected")
        self.assertEqual(outcome.error.kind, "InsufficientFunds")
        self.assertEqual(self.gateway.calls, [])
        self.assertEqual(self.balance(poor), Decimal("100"))

    def test_update_and_delete(self) -> None:
        rule = self.rules.create("airtime", 80, 500)
        rule = self.rules.update(rule.id, threshold_percentage=60, topup_amount="750")
        self.assertEqual(rule.threshold_percentage, 60)
        self.assertEqual(rule.topup_amount, Decimal("750"))
        rule_id = rule.id
        self.rules.delete(rule_id)
        with self.assertRaises(NotFound):
            self.rules.get(rule_id)
