"""
Scheduled top-ups: one-time, daily, weekly and monthly purchases.

Lifecycle::

    active <-> paused
    active  -> completed   (one-time fired, or max_executions reached)
    active | paused -> cancelled

``completed`` and ``cancelled`` are terminal. Every mutation and every
execution of a schedule happens while holding that schedule's lock, and the
row is re-read inside the lock, so concurrent runners cannot fire it twice.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from ..clock import utc_now
from ..config import MIN_PURCHASE_AMOUNT
from ..enums import Network, PurchaseSource, ScheduleStatus, ScheduleType, TopUpType
from ..errors import BelowMinimum, InvalidInput, InvalidStateTransition, TopUpError
from ..extensions import db
from ..locks import schedule_locks
from ..models import ScheduledTopUp
from ..recurrence import OneTime, Recurrence, next_occurrence
from .gateways import PurchaseGatewayError
from .purchases import PurchaseIntent
from .store import due_schedules, get_owned, resolve_phone
from .validation import check_purchase_maximum, format_naira, to_money

logger = logging.getLogger("smarttopup.schedules")

_UNSET = object()


@dataclass(frozen=True)
class ExecutionOutcome:
    schedule_id: int
    status: str  # completed, pending, failed, rejected, skipped, interrupted or error
    error: Optional[TopUpError] = None
    reference: Optional[str] = None
    message: str = ""

    def to_dict(self):
        payload = {"schedule_id": self.schedule_id, "status": self.status, "reference": self.reference}
        if self.error is not None:
            payload["error"] = {"kind": self.error.kind, "message": self.error.message}
        if self.message:
            payload["message"] = self.message
        return payload


def _amount(value, topup_type) -> Decimal:
    amount = to_money(value)
    if amount is None or amount < MIN_PURCHASE_AMOUNT:
        raise BelowMinimum(
            f"Minimum scheduled amount is {format_naira(MIN_PURCHASE_AMOUNT)}",
            minimum=str(MIN_PURCHASE_AMOUNT),
        )
    error = check_purchase_maximum(amount, topup_type)
    if error is not None:
        raise error
    return amount


def _max_executions(value) -> Optional[int]:
    if value is None:
        return None
    try:
        limit = int(value)
    except (TypeError, ValueError):
        raise InvalidInput("max_executions must be a whole number") from None
    if limit <= 0:
        raise InvalidInput("max_executions must be at least 1")
    return limit


def _enum(enum_cls, value, field):
    try:
        return enum_cls(value)
    except ValueError:
        choices = ", ".join(member.value for member in enum_cls)
        raise InvalidInput(f"{field} must be one of: {choices}") from None


class ScheduleManager:
    def __init__(self, user_id: int, executor, tz):
        self.user_id = user_id
        self.executor = executor
        self.tz = tz

    def list(self, status=None) -> List[ScheduledTopUp]:
        query = ScheduledTopUp.query.filter_by(user_id=self.user_id)
        if status is not None:
            query = query.filter_by(status=_enum(ScheduleStatus, status, "status"))
        return query.order_by(ScheduledTopUp.id).all()

    def get(self, schedule_id) -> ScheduledTopUp:
        return get_owned(ScheduledTopUp, self.user_id, schedule_id, "Scheduled top-up")

    def create(
        self,
        type,
        amount,
        recurrence: Recurrence,
        phone_number_id=None,
        network=None,
        plan_id=None,
        max_executions=None,
        now: Optional[datetime] = None,
    ) -> ScheduledTopUp:
        now = now or utc_now()
        topup_type = _enum(TopUpType, type, "type")
        amount = _amount(amount, topup_type)
        limit = _max_executions(max_executions)
        phone = resolve_phone(self.user_id, phone_number_id)
        explicit_network = network is not None
        network = _enum(Network, network, "network") if explicit_network else phone.network
        if network is None:
            raise InvalidInput("network is required when it cannot be detected from the phone number")

        next_at = self._first_run(recurrence, now)
        schedule = ScheduledTopUp(
            user_id=self.user_id,
            phone_number_id=phone.id,
            type=topup_type,
            network=network,
            network_is_explicit=explicit_network,
            amount=amount,
            plan_id=plan_id,
            status=ScheduleStatus.ACTIVE,
            next_execution_at=next_at,
            total_executions=0,
            max_executions=limit,
        )
        schedule.recurrence = recurrence
        db.session.add(schedule)
        db.session.commit()
        logger.info(
            "user %s scheduled %s %s top-up %s, first run %s",
            self.user_id, schedule.schedule_type.value, topup_type.value, schedule.id, next_at,
        )
        return schedule

    def update(
        self,
        schedule_id,
        amount=None,
        network=None,
        phone_number_id=None,
        plan_id=_UNSET,
        max_executions=_UNSET,
        recurrence: Optional[Recurrence] = None,
        now: Optional[datetime] = None,
    ) -> ScheduledTopUp:
        now = now or utc_now()
        with schedule_locks.hold(schedule_id):
            schedule = self._locked(schedule_id)
            if schedule.status.is_terminal:
                raise InvalidStateTransition(
                    f"A {schedule.status.value} schedule cannot be changed", status=schedule.status.value
                )
            if amount is not None:
                schedule.amount = _amount(amount, schedule.type)
            if phone_number_id is not None:
                phone = resolve_phone(self.user_id, phone_number_id)
                schedule.phone_number_id = phone.id
                if network is None:
                    if phone.network is None:
                        raise InvalidInput("network is required when it cannot be detected from the phone number")
                    schedule.network = phone.network
                    schedule.network_is_explicit = False
            if network is not None:
                schedule.network = _enum(Network, network, "network")
                schedule.network_is_explicit = True
            if plan_id is not _UNSET:
                schedule.plan_id = plan_id
            if max_executions is not _UNSET:
                limit = _max_executions(max_executions)
                if limit is not None and limit <= schedule.total_executions:
                    raise InvalidInput(
                        f"max_executions must be more than the {schedule.total_executions} runs already made"
                    )
                schedule.max_executions = limit
            if recurrence is not None:
                schedule.next_execution_at = self._first_run(recurrence, now)
                schedule.recurrence = recurrence
            db.session.commit()
            return schedule

    def pause(self, schedule_id) -> ScheduledTopUp:
        with schedule_locks.hold(schedule_id):
            schedule = self._locked(schedule_id)
            self._require(schedule, ScheduleStatus.ACTIVE, "paused")
            schedule.status = ScheduleStatus.PAUSED
            db.session.commit()
            logger.info("schedule %s paused", schedule.id)
            return schedule

    def resume(self, schedule_id, now: Optional[datetime] = None) -> ScheduledTopUp:
        now = now or utc_now()
        with schedule_locks.hold(schedule_id):
            schedule = self._locked(schedule_id)
            self._require(schedule, ScheduleStatus.PAUSED, "resumed")
            if schedule.next_execution_at is None or schedule.next_execution_at <= now:
                if schedule.schedule_type is ScheduleType.ONE_TIME:
                    # Missed while paused: fire at the next run.
                    schedule.next_execution_at = now
                else:
                    schedule.next_execution_at = next_occurrence(schedule.recurrence, now, self.tz)
            schedule.status = ScheduleStatus.ACTIVE
            db.session.commit()
            logger.info("schedule %s resumed, next run %s", schedule.id, schedule.next_execution_at)
            return schedule

    def cancel(self, schedule_id) -> ScheduledTopUp:
        with schedule_locks.hold(schedule_id):
            schedule = self._locked(schedule_id)
            self._require(schedule, (ScheduleStatus.ACTIVE, ScheduleStatus.PAUSED), "cancelled")
            schedule.status = ScheduleStatus.CANCELLED
            schedule.next_execution_at = None
            db.session.commit()
            logger.info("schedule %s cancelled", schedule.id)
            return schedule

    def execute(self, schedule_id, now: Optional[datetime] = None) -> ExecutionOutcome:
        """Fire the schedule if it is active and due.

        A PurchaseGatewayError from the executor propagates with the session
        rolled back, leaving the schedule exactly as it was.
        """
        now = now or utc_now()
        with schedule_locks.hold(schedule_id):
            schedule = self._locked(schedule_id)
            if (
                schedule.status is not ScheduleStatus.ACTIVE
                or schedule.next_execution_at is None
                or schedule.next_execution_at > now
            ):
                return ExecutionOutcome(schedule.id, "skipped")

            recurrence = schedule.recurrence
            phone = schedule.phone
            intent = PurchaseIntent(
                user_id=schedule.user_id,
                type=schedule.type,
                amount=Decimal(schedule.amount),
                phone_number=phone.phone_number,
                phone_number_id=phone.id,
                network=schedule.network,
                plan_id=schedule.plan_id,
                source=PurchaseSource.SCHEDULED,
                scheduled_topup_id=schedule.id,
            )
            outcome = self.executor.submit(intent, now=now)

            if outcome.accepted:
                schedule.total_executions += 1
                schedule.last_executed_at = now
                if isinstance(recurrence, OneTime) or (
                    schedule.max_executions is not None
                    and schedule.total_executions >= schedule.max_executions
                ):
                    schedule.status = ScheduleStatus.COMPLETED
                    schedule.next_execution_at = None
                else:
                    schedule.next_execution_at = next_occurrence(recurrence, now, self.tz)
            else:
                # Not counted; try again at the next natural occurrence.
                schedule.next_execution_at = next_occurrence(recurrence, now, self.tz)
            db.session.commit()

            logger.info(
                "schedule %s ran: %s, status %s, next %s",
                schedule.id, outcome.status, schedule.status.value, schedule.next_execution_at,
            )
            return ExecutionOutcome(
                schedule.id, outcome.status, error=outcome.error, reference=outcome.reference, message=outcome.message
            )

    def _locked(self, schedule_id) -> ScheduledTopUp:
        return get_owned(ScheduledTopUp, self.user_id, schedule_id, "Scheduled top-up", refresh=True)

    def _first_run(self, recurrence: Recurrence, now: datetime) -> datetime:
        next_at = next_occurrence(recurrence, now, self.tz)
        if next_at is None:
            raise InvalidInput("scheduled_at must be in the future")
        return next_at

    @staticmethod
    def _require(schedule: ScheduledTopUp, allowed, action: str) -> None:
        allowed = allowed if isinstance(allowed, tuple) else (allowed,)
        if schedule.status not in allowed:
            raise InvalidStateTransition(
                f"A {schedule.status.value} schedule cannot be {action}", status=schedule.status.value
            )


def run_due_schedules(engine, now: Optional[datetime] = None, limit: int = 50) -> List[ExecutionOutcome]:
    """Execute every schedule due at ``now``, oldest first."""
    now = now or utc_now()
    due = [(s.id, s.user_id) for s in due_schedules(now, limit)]
    outcomes = []
    for schedule_id, user_id in due:
        manager = engine.schedule_manager(user_id)
        try:
            outcomes.append(manager.execute(schedule_id, now))
        except PurchaseGatewayError as exc:
            logger.warning("schedule %s interrupted: %s", schedule_id, exc)
            outcomes.append(ExecutionOutcome(schedule_id, "interrupted", message=str(exc)))
        except Exception as exc:
            # Carry on with the rest of the batch.
            db.session.rollback()
            logger.exception("schedule %s errored", schedule_id)
            outcomes.append(ExecutionOutcome(schedule_id, "error", message=str(exc)))
    if outcomes:
        logger.info("ran %d due schedule(s)", len(outcomes))
    return outcomes
