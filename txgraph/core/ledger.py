"""
Transaction ledger: the single mutation point of the transaction network.

The ledger keeps one authoritative, append-only list of transactions. Per-account
and per-edge histories are indices of positions into that list, and each ordered
account pair has one AggregatedEdge holding its running totals. All state changes
happen under one re-entrant lock, so a recorded transaction becomes visible in the
edge map, the indices and the adjacency sets at the same time.
"""
import threading
from dataclasses import replace
from datetime import datetime
from decimal import Decimal
from types import MappingProxyType
from typing import Dict, FrozenSet, List, Mapping, Optional, Set, Tuple

from txgraph.core.errors import ConsistencyError, LedgerError, NotFoundError, ValidationError
from txgraph.core.models import ZERO, Account, AggregatedEdge, EdgeKey, Transaction, is_aware, to_decimal
from txgraph.utils.logging import get_logger

logger = get_logger(__name__)


def check_moment(moment: datetime, aware: Optional[bool] = None):
    """Raise ValidationError unless moment is a datetime matching the ledger's timezone awareness.

    Args:
        moment: Bound of a time window.
        aware: Awareness of the recorded timestamps, or None while the ledger is empty.
    """
    if not isinstance(moment, datetime):
        raise ValidationError(f"Expected a datetime, got {type(moment).__name__}")
    if aware is not None and is_aware(moment) != aware:
        kind = 'timezone-aware' if aware else 'naive'
        raise ValidationError(f"{moment.isoformat()} cannot be compared with the ledger's {kind} timestamps")


def check_period(start: datetime, end: datetime, aware: Optional[bool] = None):
    """Raise ValidationError unless start <= end."""
    if start is None or end is None:
        raise ValidationError("Both start and end of the period are required")
    check_moment(start, aware)
    check_moment(end, aware)
    if is_aware(start) != is_aware(end):
        raise ValidationError("Period bounds mix naive and timezone-aware datetimes")
    if start > end:
        raise ValidationError(f"Invalid period: start {start.isoformat()} is after end {end.isoformat()}")


class LedgerSnapshot:
    """Immutable point-in-time copy of the ledger, used by the analytic layers.

    Built under the ledger lock, so every view of it (edges, histories, adjacency)
    reflects exactly the same set of recorded transactions. A snapshot taken with
    with_history=False holds only accounts, edges and adjacency; its transactions
    attribute is None and the history accessors raise LedgerError.
    """

    def __init__(self, accounts: Dict[str, Account], edges: Dict[EdgeKey, AggregatedEdge],
                 successors: Dict[str, FrozenSet[str]], predecessors: Dict[str, FrozenSet[str]],
                 transactions: Optional[Tuple[Transaction, ...]] = None,
                 account_index: Optional[Dict[str, Tuple[int, ...]]] = None,
                 edge_index: Optional[Dict[EdgeKey, Tuple[int, ...]]] = None,
                 timestamps_aware: Optional[bool] = None):
        self.accounts: Mapping[str, Account] = MappingProxyType(accounts)
        self.edges: Mapping[EdgeKey, AggregatedEdge] = MappingProxyType(edges)
        self.transactions = transactions
        self.timestamps_aware = timestamps_aware
        self._account_index = account_index
        self._edge_index = edge_index
        self._successors = successors
        self._predecessors = predecessors

    def _require_history(self):
        if self.transactions is None:
            raise LedgerError("Snapshot was taken without transaction history")

    def account_ids(self) -> List[str]:
        return sorted(self.accounts)

    def history(self, account_id: str) -> Tuple[Transaction, ...]:
        self._require_history()
        return tuple(self.transactions[i] for i in self._account_index.get(account_id, ()))

    def history_length(self, account_id: str) -> int:
        self._require_history()
        return len(self._account_index.get(account_id, ()))

    def edge_history(self, source_id: str, destination_id: str) -> Tuple[Transaction, ...]:
        self._require_history()
        return tuple(self.transactions[i] for i in self._edge_index.get((source_id, destination_id), ()))

    def successors(self, account_id: str) -> FrozenSet[str]:
        return self._successors.get(account_id, frozenset())

    def predecessors(self, account_id: str) -> FrozenSet[str]:
        return self._predecessors.get(account_id, frozenset())

    def neighbours(self, account_id: str) -> FrozenSet[str]:
        """Adjacent accounts ignoring edge direction."""
        return self.successors(account_id) | self.predecessors(account_id)


class TransactionLedger:
    """Owns the account registry and the aggregated-edge graph.

    Args:
        allow_self_transfers: When False (the default) a transaction whose source and
            destination are the same account is rejected with ValidationError. When True
            it is recorded on the (a, a) edge and appears once in that account's history.
    """

    def __init__(self, allow_self_transfers: bool = False):
        self.allow_self_transfers = allow_self_transfers
        self._lock = threading.RLock()

        self._accounts: Dict[str, Account] = {}
        self._transactions: List[Transaction] = []  # source of truth, append-only
        self._transaction_ids: Set[str] = set()
        self._timestamps_aware: Optional[bool] = None  # fixed by the first transaction

        # Derived indices (positions into self._transactions)
        self._account_index: Dict[str, List[int]] = {}
        self._edge_index: Dict[EdgeKey, List[int]] = {}

        self._edges: Dict[EdgeKey, AggregatedEdge] = {}
        self._successors: Dict[str, Set[str]] = {}
        self._predecessors: Dict[str, Set[str]] = {}

    # Ingestion

    def register_account(self, account: Account):
        """Insert or overwrite the account stored under account.account_id."""
        if not isinstance(account, Account):
            raise ValidationError(f"Expected an Account, got {type(account).__name__}")
        with self._lock:
            self._register(account)
        logger.debug(f"Registered account {account.account_id}")

    def _register(self, account: Account):
        self._accounts[account.account_id] = account
        self._account_index.setdefault(account.account_id, [])
        self._successors.setdefault(account.account_id, set())
        self._predecessors.setdefault(account.account_id, set())

    def record_transaction(self, transaction: Transaction) -> AggregatedEdge:
        """Record a transaction and update its aggregated edge.

        Unknown source or destination accounts are registered once every check has
        passed. The edge update and the three index appends happen as one unit under
        the ledger lock, so a rejected transaction leaves the ledger unchanged.

        Returns:
            The aggregated edge of the transaction's account pair after the update.

        Raises:
            ValidationError: non-positive amount, disallowed self transfer, a
                transaction_id that was already recorded, or a timestamp whose timezone
                awareness differs from the transactions already recorded.
        """
        if not isinstance(transaction, Transaction):
            raise ValidationError(f"Expected a Transaction, got {type(transaction).__name__}")
        if transaction.amount <= ZERO:
            logger.warning(f"Rejected transaction {transaction.transaction_id}: amount {transaction.amount}")
            raise ValidationError(
                f"Transaction {transaction.transaction_id}: amount must be positive, got {transaction.amount}")
        if transaction.source_id == transaction.destination_id and not self.allow_self_transfers:
            logger.warning(f"Rejected transaction {transaction.transaction_id}: self transfer")
            raise ValidationError(
                f"Transaction {transaction.transaction_id}: self transfers on {transaction.source_id} are not allowed")

        key = transaction.key
        aware = is_aware(transaction.timestamp)
        with self._lock:
            if transaction.transaction_id in self._transaction_ids:
                logger.warning(f"Rejected transaction {transaction.transaction_id}: duplicate id")
                raise ValidationError(f"Transaction {transaction.transaction_id} was already recorded")
            if self._timestamps_aware is not None and aware != self._timestamps_aware:
                logger.warning(f"Rejected transaction {transaction.transaction_id}: timestamp timezone awareness")
                kind = 'timezone-aware' if self._timestamps_aware else 'naive'
                raise ValidationError(
                    f"Transaction {transaction.transaction_id}: the ledger holds {kind} timestamps, "
                    f"got {transaction.timestamp.isoformat()}")

            # Nothing is changed until the new edge value has been computed
            edge = self._edges.get(key)
            if edge is None:
                edge = AggregatedEdge(source_id=key[0], destination_id=key[1])
            edge = edge.add(transaction)

            for account in (transaction.source, transaction.destination):
                if account.account_id not in self._accounts:
                    self._register(account)

            position = len(self._transactions)
            self._transactions.append(transaction)
            self._transaction_ids.add(transaction.transaction_id)
            self._timestamps_aware = aware
            self._account_index[key[0]].append(position)
            if key[1] != key[0]:
                self._account_index[key[1]].append(position)
            self._edge_index.setdefault(key, []).append(position)
            self._edges[key] = edge
            self._successors[key[0]].add(key[1])
            self._predecessors[key[1]].add(key[0])

        logger.debug(f"Recorded transaction {transaction.transaction_id} {key[0]} -> {key[1]} "
                     f"amount={transaction.amount}")
        return edge

    def update_balance(self, account_id: str, balance) -> Account:
        """Replace the stored account with a copy carrying the new balance.

        Edges and histories are untouched. Returns the updated account.
        """
        balance = to_decimal(balance)
        with self._lock:
            account = replace(self.get_account(account_id), balance=balance)
            self._accounts[account_id] = account
        return account

    # Accounts

    def get_account(self, account_id: str) -> Account:
        """Return the account or raise NotFoundError."""
        with self._lock:
            account = self._accounts.get(account_id)
        if account is None:
            raise NotFoundError(f"Account {account_id} is not registered")
        return account

    def find_account(self, account_id: str) -> Optional[Account]:
        with self._lock:
            return self._accounts.get(account_id)

    def accounts(self) -> List[Account]:
        with self._lock:
            return [self._accounts[account_id] for account_id in sorted(self._accounts)]

    def account_count(self) -> int:
        with self._lock:
            return len(self._accounts)

    # Transactions and edges

    def transactions(self) -> List[Transaction]:
        """All recorded transactions in insertion order."""
        with self._lock:
            return list(self._transactions)

    def transaction_count(self) -> int:
        with self._lock:
            return len(self._transactions)

    def transactions_between(self, source_id: str, destination_id: str) -> List[Transaction]:
        """Transactions sent from source_id to destination_id, in insertion order."""
        with self._lock:
            return [self._transactions[i] for i in self._edge_index.get((source_id, destination_id), ())]

    def total_transferred(self, source_id: str, destination_id: str) -> Decimal:
        with self._lock:
            edge = self._edges.get((source_id, destination_id))
        return edge.total_amount if edge is not None else ZERO

    def transactions_for_account(self, account_id: str) -> List[Transaction]:
        """Transactions where the account is source or destination, in insertion order."""
        with self._lock:
            return [self._transactions[i] for i in self._account_index.get(account_id, ())]

    def transactions_in_period(self, start: datetime, end: datetime) -> List[Transaction]:
        """Transactions with start <= timestamp <= end, each reported once."""
        with self._lock:
            check_period(start, end, self._timestamps_aware)
            return [tx for tx in self._transactions if start <= tx.timestamp <= end]

    def timestamps_aware(self) -> Optional[bool]:
        """Whether recorded timestamps are timezone-aware; None before the first transaction."""
        with self._lock:
            return self._timestamps_aware

    def edge(self, source_id: str, destination_id: str) -> Optional[AggregatedEdge]:
        with self._lock:
            return self._edges.get((source_id, destination_id))

    def edges(self) -> List[AggregatedEdge]:
        with self._lock:
            return [self._edges[key] for key in sorted(self._edges)]

    def incident_edges(self, account_id: str) -> Tuple[List[AggregatedEdge], List[AggregatedEdge]]:
        """(incoming, outgoing) edges of one account, read together under the lock."""
        with self._lock:
            incoming = [self._edges[(p, account_id)] for p in sorted(self._predecessors.get(account_id, ()))]
            outgoing = [self._edges[(account_id, s)] for s in sorted(self._successors.get(account_id, ()))]
        return incoming, outgoing

    def most_active_account(self) -> Optional[Account]:
        """Account with the longest history; ties go to the smallest account_id."""
        with self._lock:
            if not self._accounts:
                return None
            account_id = min(self._accounts, key=lambda a: (-len(self._account_index[a]), a))
            return self._accounts[account_id]

    def total_amount_transferred(self) -> Decimal:
        with self._lock:
            return sum((edge.total_amount for edge in self._edges.values()), ZERO)

    # Consistency

    def snapshot(self, with_history: bool = True) -> LedgerSnapshot:
        """Point-in-time copy of the ledger.

        Args:
            with_history: Also copy the transaction list and its indices. Graph
                traversals only need accounts, edges and adjacency and pass False.
        """
        with self._lock:
            history = {}
            if with_history:
                history = dict(
                    transactions=tuple(self._transactions),
                    account_index={a: tuple(positions) for a, positions in self._account_index.items()},
                    edge_index={k: tuple(positions) for k, positions in self._edge_index.items()},
                )
            return LedgerSnapshot(
                accounts=dict(self._accounts),
                edges=dict(self._edges),
                successors={a: frozenset(s) for a, s in self._successors.items()},
                predecessors={a: frozenset(p) for a, p in self._predecessors.items()},
                timestamps_aware=self._timestamps_aware,
                **history,
            )

    def check_consistency(self):
        """Verify the ledger invariants, raising ConsistencyError on the first violation."""
        with self._lock:
            if len(self._transaction_ids) != len(self._transactions):
                raise ConsistencyError("Transaction id set and transaction list differ in size")
            if any(is_aware(tx.timestamp) != self._timestamps_aware for tx in self._transactions):
                raise ConsistencyError("Recorded timestamps mix naive and timezone-aware datetimes")

            for tx in self._transactions:
                for account_id in (tx.source_id, tx.destination_id):
                    if account_id not in self._accounts:
                        raise ConsistencyError(f"Transaction {tx.transaction_id} references unknown account {account_id}")

            for key, edge in self._edges.items():
                history = [self._transactions[i] for i in self._edge_index.get(key, ())]
                if edge.transaction_count <= 0:
                    raise ConsistencyError(f"Edge {key} has transaction count {edge.transaction_count}")
                if edge.transaction_count != len(history):
                    raise ConsistencyError(
                        f"Edge {key} counts {edge.transaction_count} transactions, history holds {len(history)}")
                total = sum((tx.amount for tx in history), ZERO)
                if edge.total_amount != total:
                    raise ConsistencyError(f"Edge {key} total {edge.total_amount} != history sum {total}")
                if key[1] not in self._successors[key[0]] or key[0] not in self._predecessors[key[1]]:
                    raise ConsistencyError(f"Edge {key} is missing from the adjacency index")

            if sum(len(p) for p in self._edge_index.values()) != len(self._transactions):
                raise ConsistencyError("Edge histories do not cover every transaction exactly once")

            seen = {}
            for account_id, positions in self._account_index.items():
                for i in positions:
                    tx = self._transactions[i]
                    if account_id not in tx.key:
                        raise ConsistencyError(f"Transaction {tx.transaction_id} indexed under unrelated account {account_id}")
                    seen[i] = seen.get(i, 0) + 1
            for i, tx in enumerate(self._transactions):
                expected = 1 if tx.source_id == tx.destination_id else 2
                if seen.get(i, 0) != expected:
                    raise ConsistencyError(
                        f"Transaction {tx.transaction_id} appears in {seen.get(i, 0)} account histories, expected {expected}")
