"""
Synthetic accounts and transactions for demos and tests.
"""
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Dict, List, Optional

import numpy as np

from txgraph.core.ledger import TransactionLedger
from txgraph.core.models import Account, Transaction
from txgraph.utils.logging import get_logger

logger = get_logger(__name__)

BANK_NAMES = [
    "Banco Pichincha", "Banco del Pacifico", "Banco de Guayaquil",
    "Banco Internacional", "Banco Bolivariano", "Banco del Austro",
    "Banco ProCredit", "Banco Solidario", "Banco Machala",
]

FIRST_NAMES = [
    "Maria", "Juan", "Ana", "Carlos", "Lucia", "Miguel", "Carmen", "Jose",
    "Patricia", "Francisco", "Isabel", "Antonio", "Rosa", "Manuel", "Elena",
    "Luis", "Dolores", "Jesus", "Pilar", "Javier", "Teresa", "Fernando",
]

LAST_NAMES = [
    "Garcia", "Rodriguez", "Gonzalez", "Fernandez", "Lopez", "Martinez",
    "Sanchez", "Perez", "Gomez", "Martin", "Jimenez", "Ruiz", "Hernandez",
    "Diaz", "Moreno", "Alvarez", "Munoz", "Romero", "Alonso", "Gutierrez",
]

# Category label -> description
CATEGORIES = {
    "TRANSFER": "Bank transfer",
    "UTILITY_PAYMENT": "Utility bill payment",
    "PAYROLL": "Payroll payment",
    "DEPOSIT": "Account deposit",
    "WITHDRAWAL": "Cash withdrawal",
    "PURCHASE": "Purchase payment",
    "LOAN": "Loan repayment",
    "INVESTMENT": "Financial investment",
}

# (probability, low, high) amount tiers
AMOUNT_TIERS = [
    (0.50, 1, 100),
    (0.30, 100, 1000),
    (0.15, 1000, 10000),
    (0.05, 10000, 50000),
]

FREQUENT_RATIO = 0.7  # Share of transfers sent to one of the source's frequent counterparties
MAX_FREQUENT = 5


def _cents(value: float) -> Decimal:
    return Decimal(f"{value:.2f}")


class SampleDataGenerator:
    """Reproducible generator of accounts and transactions.

    Args:
        seed: Seed for numpy's default_rng. Same seed, same data.
    """

    def __init__(self, seed: Optional[int] = None):
        self.seed = seed
        self.rng = np.random.default_rng(seed)

    def generate_accounts(self, count: int) -> List[Account]:
        if count < 0:
            raise ValueError(f"count must be non-negative, got {count}")
        accounts = []
        used_numbers = set()
        for i in range(count):
            number = self._account_number()
            while number in used_numbers:
                number = self._account_number()
            used_numbers.add(number)

            owner = " ".join([
                self.rng.choice(FIRST_NAMES),
                self.rng.choice(LAST_NAMES),
                self.rng.choice(LAST_NAMES),
            ])
            accounts.append(Account(
                account_id=f"ACC{i + 1:06d}",
                account_number=number,
                owner_name=owner,
                bank_name=str(self.rng.choice(BANK_NAMES)),
                balance=_cents(self.rng.uniform(100, 50000)),
            ))
        return accounts

    def generate_transactions(self, accounts: List[Account], count: int, days_back: int = 365,
                              end: Optional[datetime] = None) -> List[Transaction]:
        """Generate transfers between distinct accounts.

        Args:
            accounts: Accounts to draw sources and destinations from (at least two).
            count: Number of transactions.
            days_back: Length of the time window in days.
            end: End of the time window. Defaults to now.
        """
        if count < 0:
            raise ValueError(f"count must be non-negative, got {count}")
        if count > 0 and len(accounts) < 2:
            raise ValueError("At least two accounts are needed to generate transactions")
        if days_back < 1:
            raise ValueError(f"days_back must be at least 1, got {days_back}")
        end = end or datetime.now()
        window_start = end - timedelta(days=days_back)
        window_seconds = int(timedelta(days=days_back).total_seconds())

        frequent = self._frequent_connections(accounts) if count else {}
        categories = list(CATEGORIES)
        transactions = []
        for i in range(count):
            source_idx = int(self.rng.integers(len(accounts)))
            if self.rng.random() < FREQUENT_RATIO:
                destination_idx = int(self.rng.choice(frequent[source_idx]))
            else:
                destination_idx = self._other_index(source_idx, len(accounts))

            category = categories[int(self.rng.integers(len(categories)))]
            transactions.append(Transaction(
                transaction_id=f"TXN{i + 1:08d}",
                source=accounts[source_idx],
                destination=accounts[destination_idx],
                amount=self._amount(),
                timestamp=window_start + timedelta(seconds=int(self.rng.integers(window_seconds + 1))),
                description=CATEGORIES[category],
                category=category,
            ))
        return transactions

    def populate(self, ledger: TransactionLedger, n_accounts: int, n_transactions: int,
                 days_back: int = 365, end: Optional[datetime] = None) -> TransactionLedger:
        """Generate accounts and transactions and ingest them into ledger."""
        accounts = self.generate_accounts(n_accounts)
        for account in accounts:
            ledger.register_account(account)
        for tx in self.generate_transactions(accounts, n_transactions, days_back=days_back, end=end):
            ledger.record_transaction(tx)
        logger.info(f"Generated {n_accounts} accounts and {n_transactions} transactions (seed={self.seed})")
        return ledger

    def _account_number(self) -> str:
        return "".join(str(d) for d in self.rng.integers(0, 10, size=10))

    def _amount(self) -> Decimal:
        probabilities = [tier[0] for tier in AMOUNT_TIERS]
        _, low, high = AMOUNT_TIERS[int(self.rng.choice(len(AMOUNT_TIERS), p=probabilities))]
        return _cents(self.rng.uniform(low, high))

    def _other_index(self, idx: int, n: int) -> int:
        other = int(self.rng.integers(n - 1))
        return other if other < idx else other + 1

    def _frequent_connections(self, accounts: List[Account]) -> Dict[int, np.ndarray]:
        """Each account gets 1 to MAX_FREQUENT distinct counterparties other than itself."""
        n = len(accounts)
        connections = {}
        for idx in range(n):
            others = np.delete(np.arange(n), idx)
            size = min(int(self.rng.integers(1, MAX_FREQUENT + 1)), n - 1)
            connections[idx] = self.rng.choice(others, size=size, replace=False)
        return connections
