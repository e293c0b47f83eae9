"""
Market graph construction from AMM pool states.

Tokens are nodes keyed by address, every pool contributes one directed edge per
direction. Edge weights are ``-ln(rate after fee)`` so a cycle whose weights sum
to a negative number multiplies value when traded around.
"""

from typing import Iterable, List, Sequence

import networkx as nx

from .amm import quoting
from .exceptions import InvalidPool, OptimizerError, Overflow
from .types import Cycle, Edge, Pool, Token
from .utils import get_logger

logger = get_logger(__name__)


def make_edge(pool: Pool, token_in: Token) -> Edge:
    """
    Build the directed edge selling ``token_in`` into ``pool``.

    Raises:
        InvalidPool: If the pool is empty or does not trade ``token_in``
    """
    token_out = pool.other_token(token_in)
    return Edge(
        token_in=token_in,
        token_out=token_out,
        pool=pool,
        weight=quoting.edge_weight(pool, token_in),
    )


def build_graph(pools: Iterable[Pool]) -> nx.MultiDiGraph:
    """
    Build a directed multigraph with log-space edge weights.

    Parallel pools between the same pair stay separate edges keyed by
    ``pool_id``. Pools with an empty side are left out entirely. A pool whose
    validation or spot quote fails (invalid state, overflow, a solver that does
    not converge) is skipped with a warning and counted in
    ``graph.graph["skipped"]``.

    Args:
        pools: Pool states of one snapshot

    Returns:
        MultiDiGraph with node attribute ``token`` and edge attributes
        ``weight`` and ``edge``
    """
    graph = nx.MultiDiGraph()
    skipped = 0

    for pool in pools:
        try:
            quoting.validate_pool(pool)
            if quoting.is_empty(pool):
                logger.debug("Omitting empty pool %s (%s)", pool.pool_id, pool.pair_name)
                continue
            forward = make_edge(pool, pool.token0)
            backward = make_edge(pool, pool.token1)
        except (InvalidPool, Overflow, OptimizerError) as e:
            skipped += 1
            logger.warning(
                "Skipping pool %s: %s: %s", pool.pool_id, type(e).__name__, e
            )
            continue

        for edge in (forward, backward):
            graph.add_node(edge.token_in.address, token=edge.token_in)
            graph.add_node(edge.token_out.address, token=edge.token_out)
            graph.add_edge(
                edge.token_in.address,
                edge.token_out.address,
                key=pool.pool_id,
                weight=edge.weight,
                edge=edge,
            )

    logger.debug(
        "Graph built with %d tokens and %d directed edges (%d pools skipped)",
        graph.number_of_nodes(),
        graph.number_of_edges(),
        skipped,
    )
    graph.graph["skipped"] = skipped
    return graph


def cycle_from_pools(tokens: Sequence[Token], pools: Sequence[Pool]) -> Cycle:
    """
    Assemble a cycle explicitly.

    ``tokens[i]`` is sold into ``pools[i]``; the last pool must lead back to
    ``tokens[0]``.

    Example:
        cycle_from_pools([usdc, weth], [usdc_weth_v2, weth_usdc_v3])
    """
    if len(tokens) != len(pools):
        raise ValueError(
            f"Need one pool per hop: {len(tokens)} tokens, {len(pools)} pools"
        )
    edges: List[Edge] = [make_edge(pool, token) for token, pool in zip(tokens, pools)]
    return Cycle(edges=tuple(edges))
