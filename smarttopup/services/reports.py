"""
Spending analytics over completed purchases.

Months are the local calendar months budgets use: bounds are computed in the
local zone and compared against the naive UTC ``created_at`` column.
"""

from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import func

from ..clock import month_key, to_local, to_utc_naive, utc_now
from ..enums import Network, TopUpType, TransactionStatus
from ..extensions import db
from ..models import Transaction

TREND_MONTHS = 6


def _money(value) -> Decimal:
    return Decimal(str(value or 0)).quantize(Decimal("0.01"))


def month_start(now: datetime, tz, months_back: int = 0) -> datetime:
    """Start of the local month ``months_back`` months before ``now``, as naive UTC."""
    local = to_local(now, tz)
    index = local.year * 12 + local.month - 1 - months_back
    return to_utc_naive(datetime(index // 12, index % 12 + 1, 1, tzinfo=tz))


class SpendingReport:
    def __init__(self, user_id: int, tz):
        self.user_id = user_id
        self.tz = tz

    def _conditions(self, network=None, start=None, end=None) -> List:
        conditions = [
            Transaction.user_id == self.user_id,
            Transaction.status == TransactionStatus.COMPLETED,
        ]
        if network is not None:
            conditions.append(Transaction.network == network)
        if start is not None:
            conditions.append(Transaction.created_at >= start)
        if end is not None:
            conditions.append(Transaction.created_at < end)
        return conditions

    def _total(self, conditions) -> Decimal:
        total = db.session.query(func.coalesce(func.sum(Transaction.amount), 0)).filter(*conditions).scalar()
        return _money(total)

    def summary(
        self,
        now: Optional[datetime] = None,
        network: Optional[Network] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> dict:
        now = now or utc_now()
        conditions = self._conditions(network, start, end)

        by_type = {topup_type: _money(0) for topup_type in TopUpType}
        rows = (
            db.session.query(Transaction.type, func.sum(Transaction.amount))
            .filter(*conditions)
            .group_by(Transaction.type)
            .all()
        )
        for topup_type, total in rows:
            by_type[topup_type] = _money(total)

        rows = (
            db.session.query(Transaction.network, func.sum(Transaction.amount))
            .filter(*conditions)
            .group_by(Transaction.network)
            .all()
        )
        by_network = {}
        for txn_network, total in rows:
            name = txn_network.value if txn_network is not None else "Unknown"
            by_network[name] = str(_money(total))

        count = db.session.query(func.count(Transaction.id)).filter(*conditions).scalar() or 0
        this_month = self._total(conditions + [Transaction.created_at >= month_start(now, self.tz)])

        return {
            "total_spend_all_time": str(sum(by_type.values(), _money(0))),
            "total_spend_this_month": str(this_month),
            "airtime_spend": str(by_type[TopUpType.AIRTIME]),
            "data_spend": str(by_type[TopUpType.DATA]),
            "spend_by_network": by_network,
            "monthly_trend": self.monthly_trend(now, conditions),
            "transaction_count": count,
            "last_updated": now.isoformat(),
        }

    def monthly_trend(self, now: datetime, conditions=None) -> List[dict]:
        """The last six local months, oldest first, zero-filled."""
        conditions = list(conditions or self._conditions())
        buckets = {}
        for months_back in range(TREND_MONTHS - 1, -1, -1):
            key = month_key(month_start(now, self.tz, months_back), self.tz)
            buckets[key] = {topup_type: _money(0) for topup_type in TopUpType}

        # Bucketed here: the local month of a UTC timestamp has no portable SQL form.
        rows = (
            db.session.query(Transaction.created_at, Transaction.type, Transaction.amount)
            .filter(*conditions, Transaction.created_at >= month_start(now, self.tz, TREND_MONTHS - 1))
            .all()
        )
        for created_at, topup_type, amount in rows:
            bucket = buckets.get(month_key(created_at, self.tz))
            if bucket is not None:
                bucket[topup_type] += _money(amount)

        return [
            {
                "month": key,
                "amount": str(sum(totals.values(), _money(0))),
                "airtime": str(totals[TopUpType.AIRTIME]),
                "data": str(totals[TopUpType.DATA]),
            }
            for key, totals in buckets.items()
        ]

    def transactions(self, limit: Optional[int] = None) -> List[Transaction]:
        query = Transaction.query.filter_by(user_id=self.user_id).order_by(
            Transaction.created_at.desc(), Transaction.id.desc()
        )
        if limit is not None:
            query = query.limit(limit)
        return query.all()
