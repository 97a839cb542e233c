"""
Typed failures raised (or returned inside results) by the top-up engine.

Every failure carries a machine-checkable ``kind`` and a human-readable
``message``. The HTTP layer maps them onto JSON responses in one place.
"""

from typing import Any, Dict


class TopUpError(Exception):
    kind = "TopUpError"
    status_code = 400

    def __init__(self, message: str, **details: Any):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> Dict[str, Any]:
        payload = {"ok": False, "kind": self.kind, "message": self.message}
        if self.details:
            payload["details"] = self.details
        return payload

    def __repr__(self) -> str:
        return f"<{self.kind}: {self.message}>"


class InvalidPhoneFormat(TopUpError):
    kind = "InvalidPhoneFormat"


class BelowMinimum(TopUpError):
    kind = "BelowMinimum"


class AboveMaximum(TopUpError):
    kind = "AboveMaximum"


class InsufficientFunds(TopUpError):
    kind = "InsufficientFunds"


class ExceedsWalletCap(TopUpError):
    kind = "ExceedsWalletCap"

    @property
    def max_allowed(self):
        return self.details.get("max_allowed")


class BudgetOutOfRange(TopUpError):
    kind = "BudgetOutOfRange"


class DuplicateRule(TopUpError):
    kind = "DuplicateRule"
    status_code = 409


class DuplicatePhone(TopUpError):
    kind = "DuplicatePhone"
    status_code = 409


class PhoneLimitReached(TopUpError):
    kind = "PhoneLimitReached"
    status_code = 409


class PrimaryPhoneImmutable(TopUpError):
    kind = "PrimaryPhoneImmutable"
    status_code = 409


class NotFound(TopUpError):
    kind = "NotFound"
    status_code = 404


class InvalidStateTransition(TopUpError):
    kind = "InvalidStateTransition"
    status_code = 409


class InvalidInput(TopUpError):
    kind = "InvalidInput"
