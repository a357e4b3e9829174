"""
Shared pytest fixtures for txgraph tests
"""
import itertools
from datetime import datetime, timedelta
from decimal import Decimal

import pytest

from txgraph.core.ledger import TransactionLedger
from txgraph.core.models import Account, Transaction


BASE_TIME = datetime(2024, 3, 1, 9, 30)


@pytest.fixture
def base_time():
    return BASE_TIME


@pytest.fixture
def accounts():
    """Four accounts over two banks; D never transacts in the fixtures below"""
    return {
        'A': Account('A', account_number='1000000001', owner_name='Maria Garcia Lopez',
                     bank_name='Banco Pichincha', balance=Decimal('1500.00'), created_at=BASE_TIME),
        'B': Account('B', account_number='1000000002', owner_name='Juan Perez Ruiz',
                     bank_name='Banco Pichincha', balance=Decimal('250.50'), created_at=BASE_TIME),
        'C': Account('C', account_number='1000000003', owner_name='Ana Moreno Diaz',
                     bank_name='Banco Machala', balance=Decimal('0'), created_at=BASE_TIME),
        'D': Account('D', account_number='1000000004', owner_name='Carlos Diaz Romero',
                     bank_name='Banco Machala', balance=Decimal('99.99'), created_at=BASE_TIME),
    }


@pytest.fixture
def make_tx(accounts):
    """Factory for transactions with unique ids; timestamps default to BASE_TIME + day"""
    counter = itertools.count(1)

    def _make(source, destination, amount, day=0, category='TRANSFER', description='', tx_id=None):
        src = accounts[source] if isinstance(source, str) else source
        dst = accounts[destination] if isinstance(destination, str) else destination
        return Transaction(
            transaction_id=tx_id or f"T{next(counter):04d}",
            source=src,
            destination=dst,
            amount=Decimal(str(amount)),
            timestamp=BASE_TIME + timedelta(days=day),
            description=description,
            category=category,
        )

    return _make


@pytest.fixture
def ledger(accounts):
    """Ledger with A, B, C and D registered and no transactions"""
    ledger = TransactionLedger()
    for account in accounts.values():
        ledger.register_account(account)
    return ledger


@pytest.fixture
def populated_ledger(ledger, make_tx):
    """
    A -> B: 100 (day 0, TRANSFER), 50 (day 1, payroll)
    B -> C: 5 (day 2, PURCHASE)
    A -> C: 30 (day 3, TRANSFER)
    C -> A: 20 (day 4, LOAN)
    D is isolated.
    """
    ledger.record_transaction(make_tx('A', 'B', 100, day=0, category='TRANSFER'))
    ledger.record_transaction(make_tx('A', 'B', 50, day=1, category='payroll'))
    ledger.record_transaction(make_tx('B', 'C', 5, day=2, category='PURCHASE'))
    ledger.record_transaction(make_tx('A', 'C', 30, day=3, category='TRANSFER'))
    ledger.record_transaction(make_tx('C', 'A', 20, day=4, category='LOAN'))
    return ledger
