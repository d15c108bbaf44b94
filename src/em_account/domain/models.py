"""Domain models for em_account — pure dataclasses, no SQLAlchemy dependency."""

from dataclasses import dataclass
from datetime import datetime


@dataclass
class LedgerEntry:
    id: int                          # BIGSERIAL
    user_id: str
    kind: str                        # LedgerEntryKind value
    amount: int                      # minor units, always positive; kind gives the sign
    status: str                      # LedgerEntryStatus value
    method: str                      # LedgerMethod value
    balance_after: int               # users.balance snapshot after the entry
    order_id: str | None = None
    hold_until: datetime | None = None
    description: str | None = None
    created_at: datetime | None = None

    @property
    def signed_amount(self) -> int:
        return self.amount if self.kind == "CREDIT" else -self.amount

    def is_held(self, now: datetime) -> bool:
        """Withdrawal consumers must skip credits still under a fund hold."""
        return self.hold_until is not None and self.hold_until > now


@dataclass
class BalanceSnapshot:
    user_id: str
    balance: int            # cached projection on users
    held: int               # COMPLETED credits whose hold_until is in the future

    @property
    def withdrawable(self) -> int:
        return max(0, self.balance - self.held)


@dataclass
class BalanceMismatch:
    """A user whose cached balance drifted from the ledger sum."""

    user_id: str
    cached_balance: int
    ledger_balance: int
