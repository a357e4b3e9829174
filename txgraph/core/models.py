"""
Value records of the transaction network: accounts, transactions and the
aggregated edge that accumulates every transaction of one ordered account pair.
"""
from dataclasses import dataclass, field, replace
from datetime import datetime
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from txgraph.core.errors import ValidationError

ZERO = Decimal('0')

EdgeKey = Tuple[str, str]


def to_decimal(value: Any) -> Decimal:
    """Convert an amount to Decimal without going through binary floating point.

    Floats are converted through their shortest repr, so 10.1 becomes Decimal('10.1').
    """
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        raise ValidationError(f"Invalid amount: {value!r}")
    try:
        result = Decimal(str(value).strip())
    except (InvalidOperation, ValueError, TypeError):
        raise ValidationError(f"Invalid amount: {value!r}") from None
    if not result.is_finite():
        raise ValidationError(f"Amount must be finite, got {value!r}")
    return result


def is_aware(moment: datetime) -> bool:
    """True for timezone-aware datetimes."""
    return moment.tzinfo is not None and moment.utcoffset() is not None


class TransactionStatus(Enum):
    PENDING = 'PENDING'
    COMPLETED = 'COMPLETED'
    FAILED = 'FAILED'
    CANCELLED = 'CANCELLED'


@dataclass(frozen=True, eq=False)
class Account:
    """A bank account in the network.

    Identity is the account_id alone: two Account objects with the same id compare
    equal and hash the same even when their other attributes differ. Accounts are
    immutable; TransactionLedger.update_balance() swaps in a copy with the new
    balance, and the balance is never derived from transaction flow.
    """
    account_id: str
    account_number: str = ''
    owner_name: str = ''
    bank_name: str = ''
    balance: Decimal = ZERO
    created_at: datetime = field(default_factory=datetime.now)

    def __post_init__(self):
        if not self.account_id:
            raise ValidationError("account_id must be a non-empty string")
        object.__setattr__(self, 'balance', to_decimal(self.balance))

    def __eq__(self, other):
        if not isinstance(other, Account):
            return NotImplemented
        return self.account_id == other.account_id

    def __hash__(self):
        return hash(self.account_id)

    def as_record(self) -> Dict[str, Any]:
        return {
            'account_id': self.account_id,
            'account_number': self.account_number,
            'owner_name': self.owner_name,
            'bank_name': self.bank_name,
            'balance': self.balance,
            'created_at': self.created_at,
        }


@dataclass(frozen=True, eq=False)
class Transaction:
    """A directed, timestamped transfer between two accounts.

    Transactions are immutable. The status is always COMPLETED at creation;
    no transition logic exists.
    """
    transaction_id: str
    source: Account
    destination: Account
    amount: Decimal
    timestamp: datetime = field(default_factory=datetime.now)
    description: str = ''
    category: str = ''
    status: TransactionStatus = field(default=TransactionStatus.COMPLETED, init=False)

    def __post_init__(self):
        if not self.transaction_id:
            raise ValidationError("transaction_id must be a non-empty string")
        if not isinstance(self.timestamp, datetime):
            raise ValidationError(
                f"Transaction {self.transaction_id}: timestamp must be a datetime, got {type(self.timestamp).__name__}")
        # frozen dataclass, so bypass __setattr__ for the normalised amount
        object.__setattr__(self, 'amount', to_decimal(self.amount))

    def __eq__(self, other):
        if not isinstance(other, Transaction):
            return NotImplemented
        return self.transaction_id == other.transaction_id

    def __hash__(self):
        return hash(self.transaction_id)

    @property
    def source_id(self) -> str:
        return self.source.account_id

    @property
    def destination_id(self) -> str:
        return self.destination.account_id

    @property
    def key(self) -> EdgeKey:
        return (self.source.account_id, self.destination.account_id)

    def as_record(self) -> Dict[str, Any]:
        return {
            'transaction_id': self.transaction_id,
            'source_account_id': self.source_id,
            'destination_account_id': self.destination_id,
            'amount': self.amount,
            'timestamp': self.timestamp,
            'description': self.description,
            'category': self.category,
            'status': self.status.value,
        }


@dataclass(frozen=True)
class AggregatedEdge:
    """Running totals of all transactions sent from source_id to destination_id.

    Instances are immutable: the ledger swaps in the value returned by add(), so a
    reader holding an edge never sees its amount, count and timestamp out of step.
    """
    source_id: str
    destination_id: str
    total_amount: Decimal = ZERO
    transaction_count: int = 0
    last_timestamp: Optional[datetime] = None

    @property
    def key(self) -> EdgeKey:
        return (self.source_id, self.destination_id)

    def add(self, transaction: Transaction) -> 'AggregatedEdge':
        """Return a new edge that also accounts for transaction."""
        if transaction.key != self.key:
            raise ValidationError(
                f"Transaction {transaction.transaction_id} {transaction.key} does not belong to edge {self.key}")
        last = transaction.timestamp
        if self.last_timestamp is not None and is_aware(self.last_timestamp) != is_aware(last):
            raise ValidationError(
                f"Transaction {transaction.transaction_id}: cannot mix naive and timezone-aware timestamps on edge {self.key}")
        if self.last_timestamp is not None and self.last_timestamp > last:
            last = self.last_timestamp
        return replace(
            self,
            total_amount=self.total_amount + transaction.amount,
            transaction_count=self.transaction_count + 1,
            last_timestamp=last,
        )
