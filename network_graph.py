import logging
import uuid

import numpy as np

logger = logging.getLogger(__name__)

DEFAULT_LAYER_SIZES = [4, 6, 6, 2]
ACTIVATIONS = ("relu", "sigmoid")


def node_id(layer, index):
    return f"node-{layer}-{index}"


def link_id(source, target):
    return f"{source}->{target}"


def is_valid_topology(layer_sizes):
    if not layer_sizes:
        return False
    for size in layer_sizes:
        if isinstance(size, bool) or not isinstance(size, (int, np.integer)):
            return False
        if size <= 0:
            return False
    return True


def parse_layer_sizes(value):
    if value is None:
        return []
    if isinstance(value, str):
        parts = [part.strip() for part in value.replace(";", ",").split(",")]
        try:
            sizes = [int(part) for part in parts if part]
        except ValueError:
            return []
    else:
        sizes = list(value)
    return sizes if is_valid_topology(sizes) else []


def build_graph(layer_sizes, rng=None):
    """Fully connected layered graph for ``layer_sizes``.

    Returns ``(nodes, links)``. An invalid topology degrades to an empty graph.
    """
    if not is_valid_topology(layer_sizes):
        return [], []
    rng = rng if rng is not None else np.random.default_rng()

    nodes = []
    for layer, size in enumerate(layer_sizes):
        for i in range(int(size)):
            nodes.append(
                {
                    "id": node_id(layer, i),
                    "layer": layer,
                    "value": float(rng.random()),
                    "gradient": 0.0,
                }
            )

    links = []
    for layer in range(len(layer_sizes) - 1):
        for i in range(int(layer_sizes[layer])):
            for j in range(int(layer_sizes[layer + 1])):
                source = node_id(layer, i)
                target = node_id(layer + 1, j)
                links.append(
                    {
                        "id": link_id(source, target),
                        "source": source,
                        "target": target,
                        "weight": float(rng.uniform(-1.0, 1.0)),
                        "gradient": 0.0,
                    }
                )
    return nodes, links


def build_graph_payload(layer_sizes, rng=None):
    nodes, links = build_graph(layer_sizes, rng=rng)
    payload = {
        "generation": uuid.uuid4().hex,
        "layer_sizes": [int(s) for s in layer_sizes] if nodes else [],
        "nodes": nodes,
        "links": links,
    }
    logger.info(
        "Built graph %s: %d nodes, %d links",
        payload["generation"][:8],
        len(nodes),
        len(links),
    )
    return payload


def relu(x):
    return np.maximum(0.0, x)


def sigmoid(x):
    return 1.0 / (1.0 + np.exp(-np.asarray(x, dtype=float)))


def apply_activation(name, x):
    if name == "sigmoid":
        return sigmoid(x)
    return relu(x)
