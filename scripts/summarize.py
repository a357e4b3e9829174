"""
Load a saved transaction network and log its statistics.

Usage examples:
    python scripts/summarize.py --data data
    python scripts/summarize.py --data data --top 5 --path ACC000001 ACC000042
"""
import argparse

from txgraph.storage.files import load_ledger
from txgraph.utils.config import build_services, load_config
from txgraph.utils.logging import configure_logging, get_logger, log_mapping

logger = get_logger(__name__)


def main(data_dir: str, config_path=None, top: int = 10, path=None):
    services = build_services(load_config(config_path))
    load_ledger(data_dir, services.ledger)
    services.ledger.check_consistency()

    log_mapping(logger, "General statistics", services.statistics.general_statistics().to_dict())

    log_mapping(logger, f"Top {top} accounts by activity", {
        a.account.account_id: f"{a.transaction_count} transactions, volume {a.total_volume}"
        for a in services.statistics.top_by_activity(top)
    })
    log_mapping(logger, f"Top {top} accounts by volume", {
        a.account.account_id: a.total_volume for a in services.statistics.top_by_volume(top)
    })
    log_mapping(logger, f"Top {top} most connected accounts", {
        d.account.account_id: f"degree {d.degree} (in {d.in_degree}, out {d.out_degree})"
        for d in services.graph.most_connected(top)
    })
    log_mapping(logger, "Transactions per category", services.statistics.category_distribution())
    log_mapping(logger, "Banks", {
        name: f"{s.account_count} accounts, {s.transaction_count} transactions, volume {s.total_volume}"
        for name, s in services.statistics.bank_statistics().items()
    })

    components = services.graph.connected_components()
    logger.info(f"Connected components: {len(components)} (largest has {max((len(c) for c in components), default=0)} accounts)")

    if path:
        source_id, destination_id = path
        route = services.graph.shortest_path(source_id, destination_id)
        if route:
            logger.info(f"Cheapest path {source_id} -> {destination_id}: {' -> '.join(route)} "
                        f"(total {services.graph.path_weight(route)})")
        else:
            logger.info(f"No directed path from {source_id} to {destination_id}")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(
        description='Summarize a saved transaction network',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__
    )
    parser.add_argument('--data', type=str, required=True, help='Directory with accounts.csv and transactions.csv')
    parser.add_argument('--config', type=str, default=None, help='Path to a YAML config file')
    parser.add_argument('--top', type=int, default=10, help='Length of the ranking tables')
    parser.add_argument('--path', nargs=2, metavar=('SOURCE', 'DESTINATION'), default=None,
                        help='Also report the cheapest path between two accounts')
    parser.add_argument('--log_file', type=str, default=None, help='Also write the log to this file')
    args = parser.parse_args()

    configure_logging(verbose=True, log_file=args.log_file)
    main(args.data, args.config, args.top, args.path)
