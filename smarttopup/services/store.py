"""
Persistence helpers shared by the engine services.

Owner-scoped lookups translate a miss into NotFound, and the multi-row
operations (budget get-or-create, phone cascade delete) are explicit here
rather than left to database triggers.
"""

import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy.exc import IntegrityError

from ..enums import ScheduleStatus
from ..errors import NotFound
from ..extensions import db
from ..locks import rule_locks, schedule_locks
from ..models import AutoTopUpRule, Budget, PhoneNumber, ScheduledTopUp, Transaction

logger = logging.getLogger("smarttopup.store")


def get_owned(model, user_id: int, record_id, label: str, *, refresh: bool = False):
    query = model.query.filter_by(id=record_id, user_id=user_id)
    if refresh:
        query = query.populate_existing()
    record = query.first()
    if record is None:
        raise NotFound(f"{label} not found", id=record_id)
    return record


def primary_phone(user_id: int) -> PhoneNumber:
    phone = PhoneNumber.query.filter_by(user_id=user_id, is_primary=True).first()
    if phone is None:
        raise NotFound("No primary phone number on file")
    return phone


def resolve_phone(user_id: int, phone_number_id: Optional[int]) -> PhoneNumber:
    """The referenced phone, or the user's primary phone when none is given."""
    if phone_number_id is None:
        return primary_phone(user_id)
    return get_owned(PhoneNumber, user_id, phone_number_id, "Phone number")


def due_schedules(now: datetime, limit: int = 50) -> List[ScheduledTopUp]:
    return (
        ScheduledTopUp.query.filter(
            ScheduledTopUp.status == ScheduleStatus.ACTIVE,
            ScheduledTopUp.next_execution_at.isnot(None),
            ScheduledTopUp.next_execution_at <= now,
        )
        .order_by(ScheduledTopUp.next_execution_at, ScheduledTopUp.id)
        .limit(limit)
        .all()
    )


def get_or_create_budget(user_id: int, month_year: str) -> Budget:
    budget = Budget.query.filter_by(user_id=user_id, month_year=month_year).first()
    if budget is not None:
        return budget
    budget = Budget(user_id=user_id, month_year=month_year)
    db.session.add(budget)
    try:
        db.session.commit()
    except IntegrityError:
        # Someone else created the month's row first (uq_user_month).
        db.session.rollback()
        budget = Budget.query.filter_by(user_id=user_id, month_year=month_year).one()
    return budget


def delete_phone_number(phone: PhoneNumber) -> dict:
    """Delete a phone and everything that targets it, in one transaction."""
    phone_id = phone.id
    rule_ids = [r.id for r in AutoTopUpRule.query.filter_by(phone_number_id=phone_id).all()]
    schedule_ids = [s.id for s in ScheduledTopUp.query.filter_by(phone_number_id=phone_id).all()]
    # Wait out any execution or edit in flight on the affected rows.
    with rule_locks.hold_all(rule_ids), schedule_locks.hold_all(schedule_ids):
        _cascade_delete(phone, rule_ids, schedule_ids)
    logger.info(
        "deleted phone %s with %d rule(s) and %d schedule(s)", phone_id, len(rule_ids), len(schedule_ids)
    )
    return {"rules_deleted": len(rule_ids), "schedules_deleted": len(schedule_ids)}


def _cascade_delete(phone: PhoneNumber, rule_ids, schedule_ids) -> None:
    try:
        if rule_ids:
            Transaction.query.filter(Transaction.auto_topup_rule_id.in_(rule_ids)).update(
                {Transaction.auto_topup_rule_id: None}, synchronize_session=False
            )
            AutoTopUpRule.query.filter(AutoTopUpRule.id.in_(rule_ids)).delete(synchronize_session=False)
        if schedule_ids:
            Transaction.query.filter(Transaction.scheduled_topup_id.in_(schedule_ids)).update(
                {Transaction.scheduled_topup_id: None}, synchronize_session=False
            )
            ScheduledTopUp.query.filter(ScheduledTopUp.id.in_(schedule_ids)).delete(synchronize_session=False)
        db.session.delete(phone)
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
