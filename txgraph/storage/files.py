"""
CSV persistence for accounts and transactions.

Amounts are stored as decimal strings and read back with every column typed as
str, so a save/load round trip keeps Decimal values exact. Timestamps are stored
as ISO-8601 with microseconds.
"""
import os
from datetime import datetime
from pathlib import Path
from typing import Iterable, Optional

import pandas as pd

from txgraph.core.errors import ValidationError
from txgraph.core.ledger import TransactionLedger
from txgraph.core.models import Account, AggregatedEdge, Transaction, TransactionStatus, to_decimal
from txgraph.utils.logging import get_logger

logger = get_logger(__name__)

ACCOUNTS_FILE = 'accounts.csv'
TRANSACTIONS_FILE = 'transactions.csv'

ACCOUNT_COLUMNS = ['account_id', 'account_number', 'owner_name', 'bank_name', 'balance', 'created_at']
TRANSACTION_COLUMNS = ['transaction_id', 'source_account_id', 'destination_account_id', 'amount',
                       'timestamp', 'description', 'category', 'status']
EDGE_COLUMNS = ['src', 'dst', 'total_amount', 'transaction_count', 'last_timestamp']


def accounts_to_frame(accounts: Iterable[Account]) -> pd.DataFrame:
    rows = []
    for account in accounts:
        record = account.as_record()
        record['balance'] = str(record['balance'])
        record['created_at'] = record['created_at'].isoformat()
        rows.append(record)
    return pd.DataFrame(rows, columns=ACCOUNT_COLUMNS)


def transactions_to_frame(transactions: Iterable[Transaction]) -> pd.DataFrame:
    rows = []
    for tx in transactions:
        record = tx.as_record()
        record['amount'] = str(record['amount'])
        record['timestamp'] = record['timestamp'].isoformat()
        rows.append(record)
    return pd.DataFrame(rows, columns=TRANSACTION_COLUMNS)


def edges_to_frame(edges: Iterable[AggregatedEdge]) -> pd.DataFrame:
    """Edge list for plotting and export; amounts become floats here."""
    rows = [{
        'src': edge.source_id,
        'dst': edge.destination_id,
        'total_amount': float(edge.total_amount),
        'transaction_count': edge.transaction_count,
        'last_timestamp': pd.Timestamp(edge.last_timestamp),
    } for edge in edges]
    return pd.DataFrame(rows, columns=EDGE_COLUMNS)


def save_ledger(ledger: TransactionLedger, directory: str):
    """Write accounts.csv and transactions.csv into directory.

    Returns:
        Tuple of (accounts file path, transactions file path)
    """
    snapshot = ledger.snapshot()
    os.makedirs(directory, exist_ok=True)
    accounts_file = os.path.join(directory, ACCOUNTS_FILE)
    transactions_file = os.path.join(directory, TRANSACTIONS_FILE)

    accounts_to_frame(snapshot.accounts[a] for a in snapshot.account_ids()).to_csv(accounts_file, index=False)
    transactions_to_frame(snapshot.transactions).to_csv(transactions_file, index=False)

    logger.info(f"Saved {len(snapshot.accounts)} accounts to {accounts_file}")
    logger.info(f"Saved {len(snapshot.transactions)} transactions to {transactions_file}")
    return accounts_file, transactions_file


def _read_csv(path: Path, columns) -> pd.DataFrame:
    if not path.exists():
        raise FileNotFoundError(f'File not found: {path}')
    df = pd.read_csv(path, dtype=str, keep_default_na=False)
    missing = [c for c in columns if c not in df.columns]
    if missing:
        raise ValidationError(f"{path} is missing columns: {missing}")
    return df


def _parse_timestamp(value: str, where: str) -> datetime:
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        raise ValidationError(f"{where}: invalid timestamp {value!r}") from None


def load_ledger(directory: str, ledger: Optional[TransactionLedger] = None) -> TransactionLedger:
    """Load accounts.csv and transactions.csv from directory into a ledger.

    Accounts are registered first, then transactions are replayed in file order
    through record_transaction(). Recorded transactions are always COMPLETED, so a
    row with any other status is rejected rather than silently upgraded.

    Args:
        directory: Directory holding the two CSV files.
        ledger: Ledger to load into. A new one is created if None.

    Returns:
        The populated ledger
    """
    directory = Path(directory)
    accounts_df = _read_csv(directory / ACCOUNTS_FILE, ACCOUNT_COLUMNS)
    transactions_df = _read_csv(directory / TRANSACTIONS_FILE, TRANSACTION_COLUMNS)

    if ledger is None:
        ledger = TransactionLedger()

    for row in accounts_df.to_dict('records'):
        ledger.register_account(Account(
            account_id=row['account_id'],
            account_number=row['account_number'],
            owner_name=row['owner_name'],
            bank_name=row['bank_name'],
            balance=to_decimal(row['balance']),
            created_at=_parse_timestamp(row['created_at'], f"account {row['account_id']}"),
        ))

    for row in transactions_df.to_dict('records'):
        where = f"transaction {row['transaction_id']}"
        source = ledger.find_account(row['source_account_id'])
        destination = ledger.find_account(row['destination_account_id'])
        if source is None or destination is None:
            raise ValidationError(f"{where} references an account missing from {ACCOUNTS_FILE}")
        if row['status'] != TransactionStatus.COMPLETED.value:
            raise ValidationError(f"{where}: only {TransactionStatus.COMPLETED.value} transactions can be loaded, "
                                  f"got status {row['status']!r}")
        ledger.record_transaction(Transaction(
            transaction_id=row['transaction_id'],
            source=source,
            destination=destination,
            amount=to_decimal(row['amount']),
            timestamp=_parse_timestamp(row['timestamp'], where),
            description=row['description'],
            category=row['category'],
        ))

    logger.info(f"Loaded {len(accounts_df)} accounts and {len(transactions_df)} transactions from {directory}")
    return ledger
