"""
Purchase and wallet top-up validation.

Everything here is pure: no database, no clock, no side effects. The result
always says definitively whether the request is acceptable; whether to show
the error yet (field "touched" or not) is the caller's concern.
"""

import re
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Optional

from ..config import MAX_PURCHASE_AMOUNTS, MAX_WALLET_BALANCE, MIN_PURCHASE_AMOUNT, MIN_WALLET_TOPUP_AMOUNT
from ..enums import Network, TopUpType
from ..errors import (
    AboveMaximum,
    BelowMinimum,
    ExceedsWalletCap,
    InsufficientFunds,
    InvalidPhoneFormat,
    TopUpError,
)
from .networks import resolve_network

NON_DIGITS = re.compile(r"\D")
VALID_LEADING_GROUPS = ("070", "080", "081", "090", "091")


@dataclass(frozen=True)
class ValidationResult:
    valid: bool
    cleaned_number: str = ""
    network: Optional[Network] = None
    error: Optional[TopUpError] = None

    def raise_for_error(self) -> "ValidationResult":
        if self.error is not None:
            raise self.error
        return self


def format_naira(amount) -> str:
    amount = Decimal(amount)
    if amount == amount.to_integral_value():
        return f"₦{amount:,.0f}"
    return f"₦{amount:,.2f}"


def to_money(value) -> Optional[Decimal]:
    if value is None or isinstance(value, bool):
        return None
    try:
        amount = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return None
    if not amount.is_finite():
        return None
    return amount


def clean_phone_number(phone_input) -> str:
    cleaned = NON_DIGITS.sub("", str(phone_input or ""))
    if cleaned.startswith("234") and len(cleaned) == 13:
        cleaned = "0" + cleaned[3:]
    return cleaned


def validate_phone(phone_input) -> ValidationResult:
    cleaned = clean_phone_number(phone_input)
    if len(cleaned) != 11:
        return ValidationResult(False, cleaned, error=InvalidPhoneFormat("Phone number must be 11 digits"))
    if cleaned[:3] not in VALID_LEADING_GROUPS:
        return ValidationResult(False, cleaned, error=InvalidPhoneFormat("Invalid Nigerian phone number prefix"))
    # Network detection is advisory; an unknown carrier is still a valid number.
    return ValidationResult(True, cleaned, network=resolve_network(cleaned))


def check_purchase_maximum(amount, purchase_type) -> Optional[AboveMaximum]:
    try:
        topup_type = TopUpType(purchase_type)
    except ValueError:
        return None
    maximum = MAX_PURCHASE_AMOUNTS[topup_type]
    if amount > maximum:
        return AboveMaximum(
            f"Maximum {topup_type.value} purchase is {format_naira(maximum)}",
            maximum=str(maximum),
        )
    return None


def validate_purchase_amount(amount, purchase_type, wallet_balance) -> Optional[TopUpError]:
    amount = to_money(amount)
    if amount is None or amount <= 0:
        return BelowMinimum("Please enter a valid amount")
    label = purchase_type.value if isinstance(purchase_type, TopUpType) else purchase_type
    if amount < MIN_PURCHASE_AMOUNT:
        return BelowMinimum(
            f"Minimum {label} amount is {format_naira(MIN_PURCHASE_AMOUNT)}",
            minimum=str(MIN_PURCHASE_AMOUNT),
        )
    error = check_purchase_maximum(amount, purchase_type)
    if error is not None:
        return error
    balance = to_money(wallet_balance) or Decimal("0")
    if amount > balance:
        return InsufficientFunds(
            f"Insufficient balance. You have {format_naira(balance)}",
            balance=str(balance),
        )
    return None


class PurchaseValidator:
    """Validates a purchase request before it may reach the gateway."""

    def validate(self, phone_input, amount, purchase_type, wallet_balance) -> ValidationResult:
        phone = validate_phone(phone_input)
        if not phone.valid:
            return phone
        error = validate_purchase_amount(amount, purchase_type, wallet_balance)
        if error is not None:
            return ValidationResult(False, phone.cleaned_number, phone.network, error)
        return phone

    def validate_wallet_topup(self, amount, current_balance) -> ValidationResult:
        amount = to_money(amount)
        if amount is None or amount <= 0:
            return ValidationResult(False, error=BelowMinimum("Please enter a valid amount"))
        if amount < MIN_WALLET_TOPUP_AMOUNT:
            return ValidationResult(False, error=BelowMinimum(
                f"Minimum top-up amount is {format_naira(MIN_WALLET_TOPUP_AMOUNT)}",
                minimum=str(MIN_WALLET_TOPUP_AMOUNT),
            ))

        balance = to_money(current_balance) or Decimal("0")
        if balance + amount > MAX_WALLET_BALANCE:
            max_allowed = max(MAX_WALLET_BALANCE - balance, Decimal("0"))
            if max_allowed == 0:
                message = (
                    f"Your wallet has reached the maximum balance of {format_naira(MAX_WALLET_BALANCE)}; "
                    f"you can add {format_naira(max_allowed)} more"
                )
            else:
                message = (
                    f"Maximum top-up allowed is {format_naira(max_allowed)} to stay within "
                    f"the {format_naira(MAX_WALLET_BALANCE)} limit"
                )
            return ValidationResult(False, error=ExceedsWalletCap(message, max_allowed=str(max_allowed)))
        return ValidationResult(True)
