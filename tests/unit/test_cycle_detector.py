"""
Tests for hop-bounded negative cycle detection.
"""

from conftest import TOKEN_A, TOKEN_B, TOKEN_C, cp_pool
from amm_arbitrage.detector import (
    find_best_cycle,
    find_cycles,
    merge_cycles,
    resolve_start_tokens,
)
from amm_arbitrage.market_graph import build_graph, cycle_from_pools
from amm_arbitrage.types import Token

TOKEN_D = Token(address="0x000000000000000000000000000000000000000d", symbol="D")


class TestFindBestCycle:
    def test_triangle(self, triangle_pools):
        graph = build_graph(triangle_pools)

        cycle = find_best_cycle(graph, TOKEN_A.address, max_hops=3)

        assert cycle is not None
        assert cycle.path == ["A", "B", "C", "A"]
        assert cycle.pool_ids == ("ab", "bc", "ca")
        assert cycle.total_weight < 0

    def test_hop_bound_excludes_longer_cycles(self, triangle_pools):
        graph = build_graph(triangle_pools)
        assert find_best_cycle(graph, TOKEN_A.address, max_hops=2) is None

    def test_no_pool_reuse(self):
        # A single pool can never form a 2-hop cycle on its own
        graph = build_graph([cp_pool("ab", TOKEN_A, TOKEN_B, 1000, 5000, fee_bps=0)])
        assert find_best_cycle(graph, TOKEN_A.address, max_hops=4) is None

    def test_parallel_pools_form_two_hop_cycle(self, profitable_pair):
        graph = build_graph(profitable_pair)

        cycle = find_best_cycle(graph, TOKEN_A.address, max_hops=3)

        assert cycle.pool_ids == ("ab-1", "ba-2")
        assert cycle.start_token == TOKEN_A

    def test_balanced_market_has_no_cycle(self, balanced_pair):
        graph = build_graph(balanced_pair)
        assert find_best_cycle(graph, TOKEN_A.address, max_hops=4) is None

    def test_unknown_start(self, triangle_pools):
        graph = build_graph(triangle_pools)
        assert find_best_cycle(graph, TOKEN_D.address, max_hops=3) is None

    def test_picks_most_negative_cycle(self):
        pools = [
            cp_pool("ab", TOKEN_A, TOKEN_B, 1000, 1000),
            cp_pool("ba-small", TOKEN_B, TOKEN_A, 1000, 1050),
            cp_pool("ba-large", TOKEN_B, TOKEN_A, 1000, 1300),
        ]
        graph = build_graph(pools)

        cycle = find_best_cycle(graph, TOKEN_A.address, max_hops=2)

        assert cycle.pool_ids == ("ab", "ba-large")

    def test_cycles_are_simple(self):
        pools = [
            cp_pool("ab", TOKEN_A, TOKEN_B, 1000, 1000),
            cp_pool("bc", TOKEN_B, TOKEN_C, 1000, 1000),
            cp_pool("cd", TOKEN_C, TOKEN_D, 1000, 1000),
            cp_pool("db", TOKEN_D, TOKEN_B, 800, 1200),
            cp_pool("ca", TOKEN_C, TOKEN_A, 1000, 1000),
        ]
        graph = build_graph(pools)

        for start in graph.nodes:
            cycle = find_best_cycle(graph, start, max_hops=5)
            if cycle is None:
                continue
            tokens = [edge.token_in.address for edge in cycle.edges]
            assert len(tokens) == len(set(tokens))
            assert len(cycle.pool_ids) == len(set(cycle.pool_ids))


class TestFindCycles:
    def test_rotations_reported_once(self, triangle_pools):
        graph = build_graph(triangle_pools)

        cycles = find_cycles(graph, max_hops=3)

        assert len(cycles) == 1
        assert set(cycles[0].pool_ids) == {"ab", "bc", "ca"}

    def test_restricted_start_tokens(self, triangle_pools):
        graph = build_graph(triangle_pools)

        cycles = find_cycles(graph, max_hops=3, start_tokens=["B"])

        assert len(cycles) == 1
        assert cycles[0].start_token == TOKEN_B

    def test_sorted_most_negative_first(self, triangle_pools, profitable_pair):
        graph = build_graph(list(triangle_pools) + list(profitable_pair))

        cycles = find_cycles(graph, max_hops=3)

        weights = [cycle.total_weight for cycle in cycles]
        assert weights == sorted(weights)
        assert all(weight < 0 for weight in weights)

    def test_empty_graph(self):
        assert find_cycles(build_graph([]), max_hops=3) == []


class TestResolveStartTokens:
    def test_empty_means_all_nodes(self, triangle_pools):
        graph = build_graph(triangle_pools)
        assert resolve_start_tokens(graph, []) == sorted(graph.nodes)
        assert resolve_start_tokens(graph, None) == sorted(graph.nodes)

    def test_symbols_and_addresses(self, triangle_pools):
        graph = build_graph(triangle_pools)

        resolved = resolve_start_tokens(graph, ["b", TOKEN_C.address, "B", "ZZZ"])

        assert resolved == [TOKEN_B.address, TOKEN_C.address]


def test_merge_cycles_dedupes_and_skips_none(triangle_pools):
    ab, bc, ca = triangle_pools
    first = cycle_from_pools([TOKEN_A, TOKEN_B, TOKEN_C], [ab, bc, ca])
    rotated = cycle_from_pools([TOKEN_C, TOKEN_A, TOKEN_B], [ca, ab, bc])

    merged = merge_cycles([None, first, rotated, None])

    assert merged == [first]
