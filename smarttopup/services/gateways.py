"""
Collaborators the engine calls out to: the wallet ledger and the airtime/data
purchase gateway. The engine depends only on the protocols; the concrete
classes are the defaults wired by ``create_app``.
"""

import logging
import uuid
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional, Protocol

from ..enums import Network, TopUpType, TransactionStatus
from ..errors import InsufficientFunds, NotFound
from ..extensions import db
from ..models import Wallet

logger = logging.getLogger("smarttopup.gateways")


class WalletLedger(Protocol):
    def debit(self, user_id: int, amount: Decimal) -> None:
        """Take ``amount`` from the wallet or raise InsufficientFunds."""

    def credit(self, user_id: int, amount: Decimal) -> None:
        """Return ``amount`` to the wallet, e.g. when a pending purchase fails."""

    def get_balance(self, user_id: int) -> Decimal:
        ...


@dataclass(frozen=True)
class GatewayResult:
    reference: str
    status: TransactionStatus
    message: str = ""


class PurchaseGatewayError(Exception):
    """The gateway call did not produce an answer (timeout, cancellation, transport)."""


class PurchaseGateway(Protocol):
    def purchase(
        self,
        type: TopUpType,
        network: Optional[Network],
        phone_number: str,
        amount: Decimal,
        plan_id: Optional[str] = None,
    ) -> GatewayResult:
        ...


class SqlWalletLedger:
    """Ledger over the ``wallets`` table. Joins the caller's transaction."""

    def get_balance(self, user_id: int) -> Decimal:
        wallet = Wallet.query.filter_by(user_id=user_id).first()
        return Decimal(wallet.balance) if wallet else Decimal("0")

    def debit(self, user_id: int, amount: Decimal) -> None:
        # Conditional UPDATE so two concurrent debits cannot overdraw.
        result = db.session.execute(
            db.update(Wallet)
            .where(Wallet.user_id == user_id, Wallet.balance >= amount)
            .values(balance=Wallet.balance - amount)
            .execution_options(synchronize_session="fetch")
        )
        if result.rowcount != 1:
            raise InsufficientFunds("Insufficient wallet balance", user_id=user_id)

    def credit(self, user_id: int, amount: Decimal) -> None:
        result = db.session.execute(
            db.update(Wallet)
            .where(Wallet.user_id == user_id)
            .values(balance=Wallet.balance + amount)
            .execution_options(synchronize_session="fetch")
        )
        if result.rowcount != 1:
            raise NotFound("Wallet not found", user_id=user_id)


class SandboxPurchaseGateway:
    """Accepts every purchase. Used in development and as the default."""

    def purchase(self, type, network, phone_number, amount, plan_id=None) -> GatewayResult:
        reference = f"SBX-{TopUpType(type).value.upper()}-{uuid.uuid4().hex[:12]}"
        logger.info("sandbox purchase %s %s %s for %s -> %s", type, network, amount, phone_number, reference)
        return GatewayResult(reference=reference, status=TransactionStatus.COMPLETED)
