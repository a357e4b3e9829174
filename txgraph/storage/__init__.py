from txgraph.storage.files import (
    accounts_to_frame,
    edges_to_frame,
    load_ledger,
    save_ledger,
    transactions_to_frame,
)
