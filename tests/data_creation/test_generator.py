"""
Unit tests for SampleDataGenerator
"""
from datetime import datetime, timedelta
from decimal import Decimal

import pytest

from txgraph.core.ledger import TransactionLedger
from txgraph.data_creation.generator import BANK_NAMES, CATEGORIES, SampleDataGenerator


END = datetime(2024, 6, 30, 12, 0)


@pytest.mark.unit
class TestGenerateAccounts:
    """Tests for generate_accounts"""

    def test_ids_and_uniqueness(self):
        """Test account ids and unique account numbers"""
        accounts = SampleDataGenerator(seed=1).generate_accounts(25)
        assert [a.account_id for a in accounts[:3]] == ['ACC000001', 'ACC000002', 'ACC000003']
        numbers = [a.account_number for a in accounts]
        assert len(set(numbers)) == 25
        assert all(len(n) == 10 and n.isdigit() for n in numbers)

    def test_attributes_in_range(self):
        """Test banks, owner names and balances"""
        for account in SampleDataGenerator(seed=2).generate_accounts(50):
            assert account.bank_name in BANK_NAMES
            assert len(account.owner_name.split()) == 3
            assert Decimal('100') <= account.balance <= Decimal('50000')
            assert account.balance == account.balance.quantize(Decimal('0.01'))

    def test_same_seed_same_accounts(self):
        """Test that a seed reproduces the same accounts"""
        first = [a.as_record() for a in SampleDataGenerator(seed=5).generate_accounts(10)]
        second = [a.as_record() for a in SampleDataGenerator(seed=5).generate_accounts(10)]
        for r in first + second:
            r.pop('created_at')
        assert first == second

    def test_negative_count_rejected(self):
        """Test that a negative count is rejected"""
        with pytest.raises(ValueError):
            SampleDataGenerator(seed=0).generate_accounts(-1)


@pytest.mark.unit
class TestGenerateTransactions:
    """Tests for generate_transactions"""

    @pytest.fixture
    def generated(self):
        generator = SampleDataGenerator(seed=11)
        accounts = generator.generate_accounts(20)
        return accounts, generator.generate_transactions(accounts, 300, days_back=30, end=END)

    def test_no_self_transfers(self, generated):
        """Test that source and destination always differ"""
        _, transactions = generated
        assert all(tx.source_id != tx.destination_id for tx in transactions)

    def test_fields(self, generated):
        """Test ids, amounts, categories and the time window"""
        accounts, transactions = generated
        assert len(transactions) == 300
        assert transactions[0].transaction_id == 'TXN00000001'
        ids = {a.account_id for a in accounts}
        for tx in transactions:
            assert tx.source_id in ids and tx.destination_id in ids
            assert Decimal('1') <= tx.amount <= Decimal('50000')
            assert CATEGORIES[tx.category] == tx.description
            assert END - timedelta(days=30) <= tx.timestamp <= END

    def test_reproducible(self):
        """Test that a seed reproduces the same transactions"""
        def run():
            generator = SampleDataGenerator(seed=4)
            accounts = generator.generate_accounts(8)
            return [t.as_record() for t in generator.generate_transactions(accounts, 40, end=END)]
        assert run() == run()

    def test_needs_two_accounts(self):
        """Test that transactions need at least two accounts"""
        generator = SampleDataGenerator(seed=0)
        with pytest.raises(ValueError):
            generator.generate_transactions(generator.generate_accounts(1), 5)
        assert generator.generate_transactions(generator.generate_accounts(1), 0) == []

    def test_two_accounts_always_pair_up(self):
        """Test that two accounts only ever transact with each other"""
        generator = SampleDataGenerator(seed=9)
        a, b = generator.generate_accounts(2)
        for tx in generator.generate_transactions([a, b], 50, end=END):
            assert {tx.source_id, tx.destination_id} == {a.account_id, b.account_id}


@pytest.mark.integration
class TestPopulate:
    """Tests for populate"""

    def test_populates_consistent_ledger(self):
        """Test that a populated ledger has the requested size and is consistent"""
        ledger = SampleDataGenerator(seed=21).populate(TransactionLedger(), 15, 200, end=END)
        assert ledger.account_count() == 15
        assert ledger.transaction_count() == 200
        ledger.check_consistency()
