import logging
from decimal import Decimal
from typing import List, Optional

from sqlalchemy.exc import IntegrityError

from ..enums import PurchaseSource, TopUpType
from ..errors import DuplicateRule, InvalidInput
from ..extensions import db
from ..locks import rule_locks
from ..models import AutoTopUpRule
from .purchases import PurchaseIntent, PurchaseOutcome
from .store import get_owned, resolve_phone
from .validation import check_purchase_maximum, to_money

logger = logging.getLogger("smarttopup.rules")


def _threshold(value) -> int:
    try:
        threshold = int(value)
    except (TypeError, ValueError):
        raise InvalidInput("threshold_percentage must be a whole number") from None
    if not 0 <= threshold <= 100:
        raise InvalidInput("threshold_percentage must be between 0 and 100")
    return threshold


def _topup_amount(value, topup_type) -> Decimal:
    amount = to_money(value)
    if amount is None or amount <= 0:
        raise InvalidInput("topup_amount must be a positive amount")
    error = check_purchase_maximum(amount, topup_type)
    if error is not None:
        raise error
    return amount


def _topup_type(value) -> TopUpType:
    try:
        return TopUpType(value)
    except ValueError:
        raise InvalidInput("type must be airtime or data") from None


class AutoTopUpRuleEngine:
    """Threshold rules: "top up X when remaining usage drops to Y%".

    The usage monitor decides when to ask; this class only answers whether a
    rule fires and, through ``trigger``, hands the intent to the executor.
    """

    def __init__(self, user_id: int, executor=None):
        self.user_id = user_id
        self.executor = executor

    def list(self) -> List[AutoTopUpRule]:
        return AutoTopUpRule.query.filter_by(user_id=self.user_id).order_by(AutoTopUpRule.id).all()

    def get(self, rule_id) -> AutoTopUpRule:
        return get_owned(AutoTopUpRule, self.user_id, rule_id, "Auto top-up rule")

    def create(self, type, threshold_percentage, topup_amount, phone_number_id=None, is_enabled=True) -> AutoTopUpRule:
        topup_type = _topup_type(type)
        threshold = _threshold(threshold_percentage)
        amount = _topup_amount(topup_amount, topup_type)
        phone = resolve_phone(self.user_id, phone_number_id)

        if self._existing(topup_type, phone) is not None:
            raise self._duplicate(topup_type, phone)

        rule = AutoTopUpRule(
            user_id=self.user_id,
            type=topup_type,
            threshold_percentage=threshold,
            topup_amount=amount,
            is_enabled=bool(is_enabled),
            phone_number_id=phone.id,
        )
        db.session.add(rule)
        try:
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            raise self._duplicate(topup_type, phone) from None
        logger.info("user %s created %s rule %s for phone %s", self.user_id, topup_type.value, rule.id, phone.id)
        return rule

    def update(self, rule_id, threshold_percentage=None, topup_amount=None) -> AutoTopUpRule:
        with rule_locks.hold(rule_id):
            rule = get_owned(AutoTopUpRule, self.user_id, rule_id, "Auto top-up rule", refresh=True)
            if threshold_percentage is not None:
                rule.threshold_percentage = _threshold(threshold_percentage)
            if topup_amount is not None:
                rule.topup_amount = _topup_amount(topup_amount, rule.type)
            db.session.commit()
            return rule

    def toggle(self, rule_id) -> AutoTopUpRule:
        with rule_locks.hold(rule_id):
            rule = get_owned(AutoTopUpRule, self.user_id, rule_id, "Auto top-up rule", refresh=True)
            rule.is_enabled = not rule.is_enabled
            db.session.commit()
            logger.info("rule %s %s", rule.id, "enabled" if rule.is_enabled else "disabled")
            return rule

    def delete(self, rule_id) -> None:
        with rule_locks.hold(rule_id):
            rule = get_owned(AutoTopUpRule, self.user_id, rule_id, "Auto top-up rule")
            db.session.delete(rule)
            db.session.commit()
            logger.info("rule %s deleted", rule_id)

    @staticmethod
    def should_fire(rule: AutoTopUpRule, remaining_percentage) -> bool:
        remaining = to_money(remaining_percentage)
        if remaining is None:
            raise InvalidInput("remaining_percentage must be a number")
        return bool(rule.is_enabled) and remaining <= 100 - rule.threshold_percentage

    def evaluate(self, rule: AutoTopUpRule, remaining_percentage) -> Optional[PurchaseIntent]:
        if not self.should_fire(rule, remaining_percentage):
            return None
        phone = rule.phone
        return PurchaseIntent(
            user_id=rule.user_id,
            type=rule.type,
            amount=Decimal(rule.topup_amount),
            phone_number=phone.phone_number,
            phone_number_id=phone.id,
            network=phone.network,
            source=PurchaseSource.AUTO_TOPUP,
            auto_topup_rule_id=rule.id,
        )

    def trigger(self, rule_id, remaining_percentage, now=None) -> Optional[PurchaseOutcome]:
        """Evaluate a rule and, if it fires, execute the purchase under the rule's lock."""
        with rule_locks.hold(rule_id):
            rule = get_owned(AutoTopUpRule, self.user_id, rule_id, "Auto top-up rule", refresh=True)
            intent = self.evaluate(rule, remaining_percentage)
            if intent is None:
                return None
            logger.info("rule %s fired at %s%% remaining", rule.id, remaining_percentage)
            return self.executor.submit(intent, now=now)

    def _existing(self, topup_type: TopUpType, phone) -> Optional[AutoTopUpRule]:
        return AutoTopUpRule.query.filter_by(
            user_id=self.user_id, type=topup_type, phone_number_id=phone.id
        ).first()

    def _duplicate(self, topup_type: TopUpType, phone) -> DuplicateRule:
        return DuplicateRule(
            f"Auto top-up rule for {topup_type.value} on {phone.phone_number} already exists",
            type=topup_type.value,
            phone_number_id=phone.id,
        )
