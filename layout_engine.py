import numpy as np
import pandas as pd

DEFAULT_PADDING = dict(left=80, right=80, top=40, bottom=40)
PROJECTION_SCALE = 3.0


def scale_linear(domain, range_):
    """Linear map from ``domain`` onto ``range_``, d3 style.

    A degenerate domain maps every input to the middle of the range.
    """
    d0, d1 = (float(v) for v in domain)
    r0, r1 = (float(v) for v in range_)
    if d0 == d1:
        mid = (r0 + r1) / 2.0

        def scale(value):
            return np.full(np.shape(value), mid) if np.ndim(value) else mid

        return scale

    def scale(value):
        return r0 + (np.asarray(value, dtype=float) - d0) / (d1 - d0) * (r1 - r0)

    return scale


def compute_layered_layout(nodes, width, height, padding=None):
    """Screen positions for the layered network diagram.

    x follows the layer index across the padded width, y spreads the nodes of
    one layer across the padded height by their index within the layer, so
    the order of ``nodes`` does not matter.
    """
    if not nodes:
        return {}
    pad = dict(DEFAULT_PADDING)
    pad.update(padding or {})

    df = pd.DataFrame(nodes, columns=["id", "layer"])
    df["order"] = pd.to_numeric(df["id"].str.rsplit("-", n=1).str[-1], errors="coerce")
    df = df.sort_values(["layer", "order"], kind="stable", na_position="last").reset_index(drop=True)
    df["index"] = df.groupby("layer").cumcount()
    df["size"] = df.groupby("layer")["id"].transform("size")

    last_layer = int(df["layer"].max())
    x_scale = scale_linear([0, last_layer], [pad["left"], width - pad["right"]])
    df["x"] = x_scale(df["layer"].to_numpy())

    y_range = [pad["top"], height - pad["bottom"]]
    df["y"] = 0.0
    for size, group in df.groupby("size"):
        y_scale = scale_linear([0, int(size) - 1], y_range)
        df.loc[group.index, "y"] = y_scale(group["index"].to_numpy())

    return {
        row.id: (float(row.x), float(row.y))
        for row in df.itertuples(index=False)
    }


def project_embedding(embedding, scale=PROJECTION_SCALE):
    coords = np.zeros(3)
    if embedding is None:
        embedding = []
    values = np.asarray(list(embedding)[:3], dtype=float)
    coords[: values.size] = values
    return coords * float(scale)


def embedding_arrow(point):
    """Unit direction and length from the origin to ``point``.

    The origin has no direction; it comes back as the zero vector with length 0.
    """
    point = np.asarray(point, dtype=float)
    length = float(np.linalg.norm(point))
    if length == 0.0 or not np.isfinite(length):
        return np.zeros(3), 0.0
    return point / length, length


def project_tokens(tokens, scale=PROJECTION_SCALE):
    projected = []
    for token in tokens or []:
        point = project_embedding(token.get("embedding"), scale=scale)
        direction, length = embedding_arrow(point)
        projected.append(
            {
                "id": token["id"],
                "text": token["text"],
                "point": point,
                "direction": direction,
                "length": length,
            }
        )
    return projected
