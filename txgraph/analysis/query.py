"""
Read-only filtering over a TransactionLedger.

Each filter class (account pair, category, amount range, free-text account search)
is a separate method. find_transactions() is the single dispatching entry point:
exactly one filter class may be supplied per call, and combining classes is
rejected rather than silently intersected.
"""
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from txgraph.core.errors import ValidationError
from txgraph.core.ledger import TransactionLedger, check_moment, check_period
from txgraph.core.models import ZERO, Account, Transaction, to_decimal
from txgraph.utils.logging import get_logger

logger = get_logger(__name__)


class QueryEngine:

    def __init__(self, ledger: TransactionLedger):
        self.ledger = ledger

    # Account pair

    def transactions_between_accounts(self, source_id: str, destination_id: str,
                                      start: Optional[datetime] = None,
                                      end: Optional[datetime] = None) -> List[Transaction]:
        """Transactions from source_id to destination_id, optionally within [start, end].

        Either bound may be omitted for an open-ended window. Unknown account ids
        give an empty list.
        """
        aware = self.ledger.timestamps_aware()
        if start is not None and end is not None:
            check_period(start, end, aware)
        else:
            for bound in (start, end):
                if bound is not None:
                    check_moment(bound, aware)
        transactions = self.ledger.transactions_between(source_id, destination_id)
        return [
            tx for tx in transactions
            if (start is None or tx.timestamp >= start) and (end is None or tx.timestamp <= end)
        ]

    def total_transferred_between(self, source_id: str, destination_id: str) -> Decimal:
        return self.ledger.total_transferred(source_id, destination_id)

    def transaction_count_between(self, source_id: str, destination_id: str) -> int:
        edge = self.ledger.edge(source_id, destination_id)
        return edge.transaction_count if edge is not None else 0

    # Category and amount

    def transactions_by_category(self, category: str) -> List[Transaction]:
        """Transactions whose category equals the label, ignoring case."""
        wanted = category.casefold()
        return [tx for tx in self.ledger.transactions() if tx.category.casefold() == wanted]

    def transactions_by_amount_range(self, min_amount=None, max_amount=None) -> List[Transaction]:
        """Transactions with min_amount <= amount <= max_amount.

        A missing bound leaves that side of the range open.
        """
        low = to_decimal(min_amount) if min_amount is not None else None
        high = to_decimal(max_amount) if max_amount is not None else None
        if low is not None and high is not None and low > high:
            raise ValidationError(f"Invalid amount range: min {low} is greater than max {high}")
        return [
            tx for tx in self.ledger.transactions()
            if (low is None or tx.amount >= low) and (high is None or tx.amount <= high)
        ]

    # Accounts

    def find_accounts_by_owner(self, text: str) -> List[Account]:
        needle = text.casefold()
        return [a for a in self.ledger.accounts() if needle in a.owner_name.casefold()]

    def find_accounts_by_bank(self, text: str) -> List[Account]:
        needle = text.casefold()
        return [a for a in self.ledger.accounts() if needle in a.bank_name.casefold()]

    def search_accounts(self, text: str) -> List[Account]:
        """Accounts whose owner name or bank name contains text, ignoring case."""
        needle = text.casefold()
        return [
            a for a in self.ledger.accounts()
            if needle in a.owner_name.casefold() or needle in a.bank_name.casefold()
        ]

    def account_with_highest_outflow(self) -> Optional[Account]:
        """Account that sent the largest cumulative amount; ties go to the smallest id."""
        snapshot = self.ledger.snapshot(with_history=False)
        if not snapshot.accounts:
            return None
        outflow = {account_id: ZERO for account_id in snapshot.accounts}
        for (source_id, _), edge in snapshot.edges.items():
            outflow[source_id] += edge.total_amount
        best = min(outflow, key=lambda account_id: (-outflow[account_id], account_id))
        return snapshot.accounts[best]

    # Dispatch

    def find_transactions(self, source_id: Optional[str] = None, destination_id: Optional[str] = None,
                          start: Optional[datetime] = None, end: Optional[datetime] = None,
                          category: Optional[str] = None,
                          min_amount=None, max_amount=None) -> List[Transaction]:
        """Run the one filter selected by the supplied arguments.

        - source_id and destination_id (with optional start/end): account pair lookup
        - category: case-insensitive category match
        - min_amount and/or max_amount: inclusive amount range
        - nothing: every transaction

        Raises:
            ValidationError: more than one filter class supplied, an incomplete
                account pair, or a time window without an account pair.
        """
        uses_pair = source_id is not None or destination_id is not None
        uses_window = start is not None or end is not None
        uses_category = category is not None
        uses_amount = min_amount is not None or max_amount is not None

        selected = [name for name, used in (('account pair', uses_pair),
                                            ('category', uses_category),
                                            ('amount range', uses_amount)) if used]
        if len(selected) > 1:
            raise ValidationError(f"Filters are mutually exclusive, got: {', '.join(selected)}")
        if uses_window and not uses_pair:
            raise ValidationError("A time window can only bound an account pair lookup")

        if uses_pair:
            if source_id is None or destination_id is None:
                raise ValidationError("Account pair lookup needs both source_id and destination_id")
            logger.debug(f"Query: account pair {source_id} -> {destination_id}")
            return self.transactions_between_accounts(source_id, destination_id, start, end)
        if uses_category:
            logger.debug(f"Query: category {category!r}")
            return self.transactions_by_category(category)
        if uses_amount:
            logger.debug(f"Query: amount range [{min_amount}, {max_amount}]")
            return self.transactions_by_amount_range(min_amount, max_amount)
        return self.ledger.transactions()
