"""
Tests for the fixed-topology graph builder.
"""

from collections import Counter

import numpy as np
import pytest

from network_graph import (
    DEFAULT_LAYER_SIZES,
    apply_activation,
    build_graph,
    build_graph_payload,
    parse_layer_sizes,
    relu,
    sigmoid,
)


class TestBuildGraph:

    @pytest.mark.parametrize(
        "sizes", [[4, 6, 6, 2], [1], [3, 1], [2, 5, 1, 7], [1, 1, 1]]
    )
    def test_node_and_link_counts(self, sizes):
        nodes, links = build_graph(sizes, rng=np.random.default_rng(0))
        assert len(nodes) == sum(sizes)
        assert len(links) == sum(a * b for a, b in zip(sizes, sizes[1:]))

    def test_default_topology(self):
        nodes, links = build_graph(DEFAULT_LAYER_SIZES)
        assert len(nodes) == 18
        assert len(links) == 72

    def test_ids_unique_and_endpoints_exist(self):
        nodes, links = build_graph([4, 6, 6, 2])
        ids = [n["id"] for n in nodes]
        assert len(ids) == len(set(ids))
        assert ids[0] == "node-0-0"
        assert ids[-1] == "node-3-1"
        known = set(ids)
        for link in links:
            assert link["source"] in known
            assert link["target"] in known

    def test_degrees(self):
        sizes = [4, 6, 6, 2]
        nodes, links = build_graph(sizes)
        outgoing = Counter(link["source"] for link in links)
        incoming = Counter(link["target"] for link in links)
        for node in nodes:
            layer = node["layer"]
            if layer < len(sizes) - 1:
                assert outgoing[node["id"]] == sizes[layer + 1]
            if layer > 0:
                assert incoming[node["id"]] == sizes[layer - 1]

    def test_value_and_weight_ranges(self):
        nodes, links = build_graph([8, 8, 8], rng=np.random.default_rng(5))
        assert all(0.0 <= n["value"] < 1.0 for n in nodes)
        assert all(-1.0 <= link["weight"] < 1.0 for link in links)
        assert all(n["gradient"] == 0 for n in nodes)
        assert all(link["gradient"] == 0 for link in links)

    def test_seeded_source_is_reproducible(self):
        first = build_graph([3, 4], rng=np.random.default_rng(11))
        second = build_graph([3, 4], rng=np.random.default_rng(11))
        assert first == second

    @pytest.mark.parametrize("sizes", [[], [3, 0, 2], [2, -1], [2.5, 3], None])
    def test_invalid_topology_is_empty(self, sizes):
        assert build_graph(sizes) == ([], [])

    def test_payload_generation_changes(self):
        a = build_graph_payload([2, 2])
        b = build_graph_payload([2, 2])
        assert a["generation"] != b["generation"]
        assert a["layer_sizes"] == [2, 2]
        assert build_graph_payload([])["layer_sizes"] == []


class TestParseLayerSizes:

    def test_parses_comma_list(self):
        assert parse_layer_sizes("4, 6, 6, 2") == [4, 6, 6, 2]
        assert parse_layer_sizes("3;5") == [3, 5]

    @pytest.mark.parametrize("value", ["", "a,b", "4,0", "-1", None, "4,,x"])
    def test_malformed_is_empty(self, value):
        assert parse_layer_sizes(value) == []


class TestActivations:

    def test_relu(self):
        assert relu(-2.0) == 0.0
        assert relu(1.5) == 1.5

    def test_sigmoid(self):
        assert sigmoid(0.0) == pytest.approx(0.5)
        assert apply_activation("sigmoid", 0.0) == pytest.approx(0.5)
        assert apply_activation("relu", -1.0) == 0.0
