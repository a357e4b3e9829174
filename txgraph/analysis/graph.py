"""
Network analytics over the aggregated edges of a TransactionLedger.

Each public method takes one LedgerSnapshot without transaction history and runs
entirely on it, so a traversal never mixes edges from before and after a concurrent
ingestion.
"""
import heapq
from collections import deque
from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, FrozenSet, List, Optional, Sequence

from txgraph.core.errors import ValidationError
from txgraph.core.ledger import LedgerSnapshot, TransactionLedger
from txgraph.core.models import ZERO, Account
from txgraph.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class AccountDegree:
    account: Account
    in_degree: int
    out_degree: int

    @property
    def degree(self) -> int:
        return self.in_degree + self.out_degree


def _component(snapshot: LedgerSnapshot, start: str) -> FrozenSet[str]:
    """Accounts reachable from start when edge direction is ignored (BFS)."""
    seen = {start}
    queue = deque([start])
    while queue:
        node = queue.popleft()
        for neighbour in snapshot.neighbours(node):
            if neighbour not in seen:
                seen.add(neighbour)
                queue.append(neighbour)
    return frozenset(seen)


class GraphAnalytics:

    def __init__(self, ledger: TransactionLedger):
        self.ledger = ledger

    def connected(self, source_id: str, destination_id: str) -> bool:
        """True if the two accounts are linked by some path, ignoring edge direction."""
        snapshot = self.ledger.snapshot(with_history=False)
        if source_id not in snapshot.accounts or destination_id not in snapshot.accounts:
            return False
        if source_id == destination_id:
            return True
        return destination_id in _component(snapshot, source_id)

    def shortest_path(self, source_id: str, destination_id: str) -> List[str]:
        """Directed path from source_id to destination_id with the least total edge weight.

        An edge weighs its cumulative transferred amount, not one hop. Dijkstra's
        algorithm settles accounts in (distance, account_id) order and only replaces a
        tentative distance with a strictly smaller one, so ties between equal-weight
        paths go to whichever predecessor was settled first.

        Returns:
            Account ids from source to destination, [source_id] when both are the same
            account, or an empty list when no directed path exists or an id is unknown.
        """
        snapshot = self.ledger.snapshot(with_history=False)
        if source_id not in snapshot.accounts or destination_id not in snapshot.accounts:
            return []

        distances: Dict[str, Decimal] = {source_id: ZERO}
        previous: Dict[str, Optional[str]] = {source_id: None}
        settled = set()
        heap = [(ZERO, source_id)]

        while heap:
            distance, node = heapq.heappop(heap)
            if node in settled:
                continue
            settled.add(node)
            if node == destination_id:
                break
            for successor in sorted(snapshot.successors(node)):
                if successor in settled:
                    continue
                candidate = distance + snapshot.edges[(node, successor)].total_amount
                if successor not in distances or candidate < distances[successor]:
                    distances[successor] = candidate
                    previous[successor] = node
                    heapq.heappush(heap, (candidate, successor))

        if destination_id not in settled:
            return []

        path = []
        node = destination_id
        while node is not None:
            path.append(node)
            node = previous[node]
        path.reverse()
        logger.debug(f"Shortest path {source_id} -> {destination_id}: {path} weight={distances[destination_id]}")
        return path

    def path_weight(self, path: Sequence[str]) -> Decimal:
        """Sum of edge weights along consecutive accounts of path."""
        snapshot = self.ledger.snapshot(with_history=False)
        total = ZERO
        for source_id, destination_id in zip(path, path[1:]):
            edge = snapshot.edges.get((source_id, destination_id))
            if edge is None:
                raise ValidationError(f"No edge {source_id} -> {destination_id} on path {list(path)}")
            total += edge.total_amount
        return total

    def most_connected(self, n: int) -> List[AccountDegree]:
        """Top n accounts by distinct incoming plus outgoing edges, ties broken by account_id."""
        if isinstance(n, bool) or not isinstance(n, int) or n < 0:
            raise ValidationError(f"n must be a non-negative integer, got {n!r}")
        snapshot = self.ledger.snapshot(with_history=False)
        degrees = [
            AccountDegree(
                account=account,
                in_degree=len(snapshot.predecessors(account_id)),
                out_degree=len(snapshot.successors(account_id)),
            )
            for account_id, account in snapshot.accounts.items()
        ]
        degrees.sort(key=lambda d: (-d.degree, d.account.account_id))
        return degrees[:n]

    def connected_components(self) -> List[FrozenSet[str]]:
        """Weakly connected components covering every account.

        Accounts without transactions form singleton components. Components are
        ordered by their smallest account_id.
        """
        snapshot = self.ledger.snapshot(with_history=False)
        components = []
        assigned = set()
        for account_id in snapshot.account_ids():
            if account_id in assigned:
                continue
            component = _component(snapshot, account_id)
            assigned |= component
            components.append(component)
        logger.debug(f"Found {len(components)} connected components over {len(snapshot.accounts)} accounts")
        return components
