"""Global enums — must match DB CHECK constraints exactly."""

from enum import Enum


class UserRole(str, Enum):
    USER = "user"
    ADMIN = "admin"


class StockType(str, Enum):
    LIMITED = "limited"
    UNLIMITED = "unlimited"


class DeliveryType(str, Enum):
    INSTANT = "instant"
    MANUAL = "manual"


class OrderStatus(str, Enum):
    PENDING = "PENDING"
    PAID = "PAID"
    DELIVERED = "DELIVERED"
    COMPLETED = "COMPLETED"
    DISPUTED = "DISPUTED"
    REFUNDED = "REFUNDED"


class PaymentMethod(str, Enum):
    JAZZCASH = "jazzcash"
    EASYPAISA = "easypaisa"
    BANK_TRANSFER = "bank_transfer"
    MANUAL = "manual"


class LedgerEntryKind(str, Enum):
    CREDIT = "CREDIT"
    DEBIT = "DEBIT"


class LedgerEntryStatus(str, Enum):
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class LedgerMethod(str, Enum):
    ESCROW_RELEASE = "escrow_release"
    ADMIN_OVERRIDE = "admin_override"


class MessageType(str, Enum):
    TEXT = "text"
    SYSTEM = "system"
    DELIVERY = "delivery"
    DISPUTE = "dispute"
    COMPLETION = "completion"


class PaymentTransactionStatus(str, Enum):
    INITIATED = "INITIATED"
    SUCCEEDED = "SUCCEEDED"
    FAILED = "FAILED"
