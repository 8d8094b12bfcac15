"""
Directed transfer graph built once per detection call.

Nodes are accounts, an edge sender -> receiver exists when at least one
supplied transaction moved funds that way. Successors keep first-seen order
and each edge remembers the first transaction that created it, so DFS paths
can be mapped back to signatures. The DFS helpers carry their own visited set
per call; a graph instance is read-only after construction and safe to share
between detectors.
"""

from __future__ import annotations

from typing import Iterable, Iterator

import networkx as nx

from backend_riskcore.patterns.models import Transaction

# Hard bound on DFS depth regardless of graph size
MAX_DFS_DEPTH = 10


class TransactionGraph:
    """Adjacency view of a transaction set (networkx DiGraph underneath)."""

    def __init__(self, transactions: Iterable[Transaction] = ()) -> None:
        self._graph = nx.DiGraph()
        for tx in transactions:
            self.add(tx)

    def add(self, tx: Transaction) -> None:
        if not tx.sender or not tx.receiver:
            return
        if self._graph.has_edge(tx.sender, tx.receiver):
            self._graph[tx.sender][tx.receiver]["transactions"].append(tx)
            return
        self._graph.add_edge(tx.sender, tx.receiver, transactions=[tx])

    def __contains__(self, node: str) -> bool:
        return node in self._graph

    @property
    def node_count(self) -> int:
        return self._graph.number_of_nodes()

    @property
    def edge_count(self) -> int:
        return self._graph.number_of_edges()

    def successors(self, node: str) -> list[str]:
        if node not in self._graph:
            return []
        return list(self._graph.successors(node))

    def has_outgoing(self, node: str) -> bool:
        return node in self._graph and self._graph.out_degree(node) > 0

    def edge_transaction(self, sender: str, receiver: str) -> Transaction | None:
        """First transaction seen on sender -> receiver, or None."""
        if not self._graph.has_edge(sender, receiver):
            return None
        return self._graph[sender][receiver]["transactions"][0]

    def path_transactions(self, path: list[str]) -> list[Transaction]:
        """Map consecutive node pairs of a path to their edge transactions."""
        out: list[Transaction] = []
        for sender, receiver in zip(path, path[1:]):
            tx = self.edge_transaction(sender, receiver)
            if tx is not None:
                out.append(tx)
        return out

    def cycles_from(
        self,
        start: str,
        *,
        min_nodes: int,
        max_depth: int = MAX_DFS_DEPTH,
    ) -> Iterator[list[str]]:
        """
        Yield closed paths [start, ..., start] found by depth-limited DFS.

        A cycle closes when a neighbor equals start and the open path holds at
        least min_nodes nodes. A closed path never has more than max_depth edges.
        """
        if not self.has_outgoing(start):
            return
        path: list[str] = []
        visited: set[str] = set()

        def dfs(current: str, depth: int) -> Iterator[list[str]]:
            path.append(current)
            visited.add(current)
            # depth counts edges from start; the next edge makes depth + 1
            for neighbor in self.successors(current):
                if neighbor == start:
                    if len(path) >= min_nodes and depth + 1 <= max_depth:
                        yield [*path, start]
                elif neighbor not in visited and depth + 1 < max_depth:
                    yield from dfs(neighbor, depth + 1)
            path.pop()
            visited.discard(current)

        yield from dfs(start, 0)

    def chains_from(
        self,
        start: str,
        *,
        min_nodes: int,
        max_depth: int = MAX_DFS_DEPTH,
    ) -> Iterator[list[str]]:
        """
        Yield simple paths from start that end at a dead end (no outgoing edges)
        and hold at least min_nodes nodes, by depth-limited DFS.
        """
        if not self.has_outgoing(start):
            return
        path: list[str] = []
        visited: set[str] = set()

        def dfs(current: str, depth: int) -> Iterator[list[str]]:
            if depth > max_depth:
                return
            path.append(current)
            visited.add(current)
            neighbors = self.successors(current)
            if not neighbors:
                if len(path) >= min_nodes:
                    yield list(path)
            else:
                for neighbor in neighbors:
                    if neighbor not in visited:
                        yield from dfs(neighbor, depth + 1)
            path.pop()
            visited.discard(current)

        yield from dfs(start, 0)
