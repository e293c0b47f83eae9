"""
Negative-cycle detection on the market graph.

A hop-bounded Bellman-Ford: from each start token the graph is relaxed layer
by layer, at most ``max_hops`` times. Each layer keeps, per token, the best
distance reached with exactly that many hops and the edge path that got
there. Relaxations that revisit a token or reuse a pool already on the path
are not taken, so every reported cycle is simple.
"""

from typing import Dict, Iterable, List, Optional, Set, Tuple

import networkx as nx

from .types import Cycle, Edge
from .utils import get_logger

logger = get_logger(__name__)

MIN_HOPS = 2

_Layer = Dict[str, Tuple[float, Tuple[Edge, ...]]]


def find_best_cycle(
    graph: nx.MultiDiGraph, start: str, max_hops: int
) -> Optional[Cycle]:
    """
    Most negative simple cycle through ``start`` with at most ``max_hops`` edges.

    Args:
        graph: Graph produced by ``market_graph.build_graph``
        start: Address of the start token
        max_hops: Upper bound on cycle length

    Returns:
        The cycle with the lowest negative total weight, or None
    """
    if start not in graph or max_hops < MIN_HOPS:
        return None

    layer: _Layer = {start: (0.0, ())}
    best: Optional[Tuple[Edge, ...]] = None
    best_weight = 0.0

    for hop in range(1, max_hops + 1):
        next_layer: _Layer = {}
        for node, (dist, path) in layer.items():
            visited: Set[str] = {start}
            visited.update(e.token_out.address for e in path)
            used_pools = {e.pool_id for e in path}

            for _, target, data in graph.out_edges(node, data=True):
                edge: Edge = data["edge"]
                if edge.pool_id in used_pools:
                    continue
                total = dist + data["weight"]

                if target == start:
                    if hop >= MIN_HOPS and total < best_weight:
                        best, best_weight = path + (edge,), total
                    continue
                if target in visited or hop == max_hops:
                    continue

                current = next_layer.get(target)
                if current is None or total < current[0]:
                    next_layer[target] = (total, path + (edge,))

        if not next_layer:
            break
        layer = next_layer

    if best is None:
        return None
    return Cycle(edges=best)


def resolve_start_tokens(
    graph: nx.MultiDiGraph, start_tokens: Optional[Iterable[str]] = None
) -> List[str]:
    """
    Map configured start tokens (addresses or symbols) to graph nodes.

    An empty or missing list means every node in the graph.
    """
    if not start_tokens:
        return sorted(graph.nodes)

    by_symbol: Dict[str, str] = {}
    for node, data in graph.nodes(data=True):
        token = data.get("token")
        if token is not None:
            by_symbol.setdefault(token.symbol.upper(), node)

    resolved: List[str] = []
    for wanted in start_tokens:
        if wanted in graph:
            node = wanted
        else:
            node = by_symbol.get(str(wanted).upper())
        if node is None:
            logger.debug("Start token %s not present in graph", wanted)
            continue
        if node not in resolved:
            resolved.append(node)
    return resolved


def find_cycles(
    graph: nx.MultiDiGraph,
    max_hops: int,
    start_tokens: Optional[Iterable[str]] = None,
) -> List[Cycle]:
    """
    Find the best negative cycle through each start token.

    Cycles that are rotations of one another (same pools in the same order)
    are reported once. The result is sorted by total weight, most negative
    first.
    """
    cycles = merge_cycles(
        find_best_cycle(graph, start, max_hops)
        for start in resolve_start_tokens(graph, start_tokens)
    )
    logger.debug("Detected %d candidate cycles", len(cycles))
    return cycles


def merge_cycles(results: Iterable[Optional[Cycle]]) -> List[Cycle]:
    """Deduplicate and order per-start results gathered elsewhere (e.g. workers)."""
    merged: Dict[Tuple[str, ...], Cycle] = {}
    for cycle in results:
        if cycle is not None and cycle.key not in merged:
            merged[cycle.key] = cycle
    return sorted(merged.values(), key=lambda c: c.total_weight)
