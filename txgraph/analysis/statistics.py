"""
Descriptive statistics over a TransactionLedger.

Every aggregate works on one LedgerSnapshot, so the numbers it returns are mutually
consistent even while other threads keep recording transactions. net_flow() of a
single account reads its incident edges under the ledger lock instead.
"""
from collections import Counter
from dataclasses import asdict, dataclass
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, Iterable, List

from txgraph.core.errors import ValidationError
from txgraph.core.ledger import LedgerSnapshot, TransactionLedger, check_period
from txgraph.core.models import ZERO, Account, Transaction
from txgraph.utils.logging import get_logger

logger = get_logger(__name__)

CENT = Decimal('0.01')

# Bank statistics counting modes
PER_TRANSACTION = 'per_transaction'
PER_ACCOUNT = 'per_account'
BANK_COUNTING_MODES = (PER_TRANSACTION, PER_ACCOUNT)


@dataclass(frozen=True)
class TransactionStatistics:
    account_count: int
    transaction_count: int
    total_amount: Decimal
    average_amount: Decimal
    average_transactions_per_account: float

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class AccountActivity:
    account: Account
    transaction_count: int
    total_volume: Decimal


@dataclass(frozen=True)
class BankStatistics:
    bank_name: str
    account_count: int
    transaction_count: int
    total_volume: Decimal


def average_amount(total: Decimal, count: int) -> Decimal:
    """total / count rounded half-up to cents, or 0.00 when count is zero."""
    if count == 0:
        return ZERO.quantize(CENT)
    return (total / count).quantize(CENT, rounding=ROUND_HALF_UP)


def _check_limit(n: int):
    if isinstance(n, bool) or not isinstance(n, int) or n < 0:
        raise ValidationError(f"n must be a non-negative integer, got {n!r}")


def _summarize(account_count: int, transactions: Iterable[Transaction]) -> TransactionStatistics:
    transactions = list(transactions)
    total = sum((tx.amount for tx in transactions), ZERO)
    return TransactionStatistics(
        account_count=account_count,
        transaction_count=len(transactions),
        total_amount=total,
        average_amount=average_amount(total, len(transactions)),
        average_transactions_per_account=len(transactions) / account_count if account_count else 0.0,
    )


class StatisticsEngine:
    """
    Args:
        ledger: Ledger to read from.
        bank_counting: PER_TRANSACTION counts a transaction once per bank even when
            both accounts belong to it; PER_ACCOUNT sums each member account's history,
            so such a transaction is counted twice.
    """

    def __init__(self, ledger: TransactionLedger, bank_counting: str = PER_TRANSACTION):
        if bank_counting not in BANK_COUNTING_MODES:
            raise ValueError(f"bank_counting must be one of {BANK_COUNTING_MODES}, got {bank_counting!r}")
        self.ledger = ledger
        self.bank_counting = bank_counting

    def general_statistics(self) -> TransactionStatistics:
        snapshot = self.ledger.snapshot()
        return _summarize(len(snapshot.accounts), snapshot.transactions)

    def statistics_for_period(self, start: datetime, end: datetime) -> TransactionStatistics:
        """Statistics over transactions in [start, end].

        account_count is the number of distinct accounts touched in the period.
        """
        snapshot = self.ledger.snapshot()
        check_period(start, end, snapshot.timestamps_aware)
        transactions = [tx for tx in snapshot.transactions if start <= tx.timestamp <= end]
        active = {account_id for tx in transactions for account_id in tx.key}
        return _summarize(len(active), transactions)

    # Rankings

    def _activities(self, snapshot: LedgerSnapshot) -> List[AccountActivity]:
        activities = []
        for account_id, account in snapshot.accounts.items():
            history = snapshot.history(account_id)
            activities.append(AccountActivity(
                account=account,
                transaction_count=len(history),
                total_volume=sum((tx.amount for tx in history), ZERO),
            ))
        return activities

    def top_by_activity(self, n: int) -> List[AccountActivity]:
        """Top n accounts by number of transactions, ties broken by account_id."""
        _check_limit(n)
        activities = self._activities(self.ledger.snapshot())
        activities.sort(key=lambda a: (-a.transaction_count, a.account.account_id))
        return activities[:n]

    def top_by_volume(self, n: int) -> List[AccountActivity]:
        """Top n accounts by amount sent plus received, ties broken by account_id."""
        _check_limit(n)
        activities = self._activities(self.ledger.snapshot())
        activities.sort(key=lambda a: (-a.total_volume, a.account.account_id))
        return activities[:n]

    # Breakdowns

    def category_distribution(self) -> Dict[str, int]:
        """Transactions per category label, most frequent first."""
        counts = Counter(tx.category for tx in self.ledger.snapshot().transactions)
        return dict(sorted(counts.items(), key=lambda item: (-item[1], item[0])))

    def bank_statistics(self) -> Dict[str, BankStatistics]:
        snapshot = self.ledger.snapshot()
        members: Dict[str, List[str]] = {}
        for account_id in snapshot.account_ids():
            members.setdefault(snapshot.accounts[account_id].bank_name, []).append(account_id)

        result = {}
        for bank_name in sorted(members):
            histories = [snapshot.history(account_id) for account_id in members[bank_name]]
            if self.bank_counting == PER_ACCOUNT:
                transactions = [tx for history in histories for tx in history]
            else:
                unique = {}
                for history in histories:
                    for tx in history:
                        unique.setdefault(tx.transaction_id, tx)
                transactions = list(unique.values())
            result[bank_name] = BankStatistics(
                bank_name=bank_name,
                account_count=len(members[bank_name]),
                transaction_count=len(transactions),
                total_volume=sum((tx.amount for tx in transactions), ZERO),
            )
        return result

    # Flows

    @staticmethod
    def _net_flow(snapshot: LedgerSnapshot, account_id: str) -> Decimal:
        inflow = sum((snapshot.edges[(p, account_id)].total_amount
                      for p in snapshot.predecessors(account_id)), ZERO)
        outflow = sum((snapshot.edges[(account_id, s)].total_amount
                       for s in snapshot.successors(account_id)), ZERO)
        return inflow - outflow

    def net_flow(self, account_id: str) -> Decimal:
        """Inflow minus outflow over the account's aggregated edges; zero for unknown ids."""
        incoming, outgoing = self.ledger.incident_edges(account_id)
        return sum((e.total_amount for e in incoming), ZERO) - sum((e.total_amount for e in outgoing), ZERO)

    def net_flow_all(self) -> Dict[str, Decimal]:
        snapshot = self.ledger.snapshot(with_history=False)
        return {account_id: self._net_flow(snapshot, account_id) for account_id in snapshot.account_ids()}
