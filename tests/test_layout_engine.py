"""
Tests for the 2D layered layout and the 3D embedding projection.
"""

import numpy as np
import pytest

from layout_engine import (
    DEFAULT_PADDING,
    compute_layered_layout,
    embedding_arrow,
    project_embedding,
    project_tokens,
    scale_linear,
)
from network_graph import build_graph

WIDTH = 900
HEIGHT = 420


class TestScaleLinear:

    def test_maps_domain_to_range(self):
        scale = scale_linear([0, 3], [80, 820])
        assert scale(0) == pytest.approx(80)
        assert scale(3) == pytest.approx(820)
        assert scale(1.5) == pytest.approx(450)

    def test_degenerate_domain_is_midpoint(self):
        scale = scale_linear([0, 0], [40, 380])
        assert scale(0) == pytest.approx(210)
        assert np.allclose(scale(np.array([0, 0])), [210, 210])


class TestLayeredLayout:

    def test_default_topology_positions(self):
        nodes, _ = build_graph([4, 6, 6, 2])
        positions = compute_layered_layout(nodes, WIDTH, HEIGHT, DEFAULT_PADDING)
        assert len(positions) == 18
        assert positions["node-0-0"] == pytest.approx((80.0, 40.0))
        assert positions["node-3-1"] == pytest.approx((820.0, 380.0))
        assert positions["node-1-5"][1] == pytest.approx(380.0)
        xs = sorted({round(x, 6) for x, _ in positions.values()})
        assert len(xs) == 4

    def test_even_vertical_spacing(self):
        nodes, _ = build_graph([5])
        positions = compute_layered_layout(nodes, WIDTH, HEIGHT)
        ys = [positions[f"node-0-{i}"][1] for i in range(5)]
        assert np.allclose(np.diff(ys), 85.0)

    def test_single_node_layer_sits_at_midpoint(self):
        nodes, _ = build_graph([3, 1, 2])
        positions = compute_layered_layout(nodes, WIDTH, HEIGHT)
        pad = DEFAULT_PADDING
        midpoint = (pad["top"] + HEIGHT - pad["bottom"]) / 2
        assert positions["node-1-0"][1] == pytest.approx(midpoint)
        assert np.isfinite(positions["node-1-0"]).all()

    def test_single_layer_sits_at_horizontal_midpoint(self):
        nodes, _ = build_graph([1])
        positions = compute_layered_layout(nodes, WIDTH, HEIGHT)
        assert positions["node-0-0"] == pytest.approx((450.0, 210.0))

    def test_node_order_does_not_move_positions(self):
        nodes, _ = build_graph([4, 6, 6, 2])
        expected = compute_layered_layout(nodes, WIDTH, HEIGHT)
        shuffled = [nodes[i] for i in np.random.default_rng(3).permutation(len(nodes))]
        positions = compute_layered_layout(shuffled, WIDTH, HEIGHT)
        assert positions.keys() == expected.keys()
        for key, point in expected.items():
            assert positions[key] == pytest.approx(point)

    def test_index_is_numeric_not_lexical(self):
        nodes, _ = build_graph([12])
        positions = compute_layered_layout(list(reversed(nodes)), WIDTH, HEIGHT)
        ys = [positions[f"node-0-{i}"][1] for i in range(12)]
        assert ys == sorted(ys)
        assert ys[0] == pytest.approx(DEFAULT_PADDING["top"])

    def test_custom_padding_and_empty(self):
        nodes, _ = build_graph([2, 2])
        positions = compute_layered_layout(
            nodes, 100, 100, dict(left=10, right=10, top=0, bottom=0)
        )
        assert positions["node-0-0"] == pytest.approx((10.0, 0.0))
        assert positions["node-1-1"] == pytest.approx((90.0, 100.0))
        assert compute_layered_layout([], WIDTH, HEIGHT) == {}


class TestProjection:

    def test_scales_first_three_components(self):
        point = project_embedding([1.0, -2.0, 0.5, 9.0, 9.0])
        assert np.allclose(point, [3.0, -6.0, 1.5])

    @pytest.mark.parametrize("embedding", [[], [1.0], [1.0, 2.0], None])
    def test_missing_components_are_zero(self, embedding):
        point = project_embedding(embedding, scale=2.0)
        assert point.shape == (3,)
        padded = (list(embedding or []) + [0.0, 0.0, 0.0])[:3]
        assert np.allclose(point, np.array(padded) * 2.0)

    def test_direction_is_unit_length(self):
        rng = np.random.default_rng(2)
        for _ in range(20):
            point = project_embedding(rng.standard_normal(8))
            direction, length = embedding_arrow(point)
            assert np.linalg.norm(direction) == pytest.approx(1.0)
            assert length == pytest.approx(np.linalg.norm(point))
            assert np.allclose(direction * length, point)

    def test_origin_has_zero_direction(self):
        direction, length = embedding_arrow(project_embedding([0.0, 0.0, 0.0, 4.0]))
        assert length == 0.0
        assert np.allclose(direction, 0.0)

    def test_project_tokens(self):
        tokens = [
            {"id": "a-0", "text": "a", "embedding": [1.0, 0.0, 0.0]},
            {"id": "b-1", "text": "b", "embedding": [0.0, 0.0]},
        ]
        projected = project_tokens(tokens)
        assert projected[0]["length"] == pytest.approx(3.0)
        assert np.allclose(projected[0]["direction"], [1.0, 0.0, 0.0])
        assert projected[1]["length"] == 0.0
