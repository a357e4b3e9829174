from txgraph.core.errors import ConsistencyError, LedgerError, NotFoundError, ValidationError
from txgraph.core.models import Account, AggregatedEdge, Transaction, TransactionStatus
from txgraph.core.ledger import LedgerSnapshot, TransactionLedger
