import argparse
import logging
import time

import numpy as np
import plotly.graph_objects as go
import plotly.io as pio
from plotly.colors import diverging, make_colorscale, sample_colorscale
import dash
from dash import Dash, Input, Output, State, dcc, html

from chat_bridge import ChatBridge, GeminiClient
from embeddings import count_words, token_index, tokenize
from layout_engine import (
    DEFAULT_PADDING,
    PROJECTION_SCALE,
    compute_layered_layout,
    project_tokens,
)
from network_graph import (
    ACTIVATIONS,
    DEFAULT_LAYER_SIZES,
    apply_activation,
    build_graph_payload,
    node_id,
    parse_layer_sizes,
)
from phase_driver import (
    BACKPROP,
    FORWARD,
    IDLE,
    PhaseDriver,
    phase_description,
)

LENS_BG = "#0a0a0b"
LENS_TEXT = "#e4e4e7"
LENS_MUTED = "#71717a"
LENS_GRID = "#27272a"
LENS_ACCENT = "#3b82f6"
LENS_ERROR = "#ef4444"
LENS_WARNING = "#f59e0b"
LENS_NODE_FILL = "#161618"
FONT_FAMILY = "'JetBrains Mono', monospace"

pio.templates["lens"] = go.layout.Template(
    layout=go.Layout(
        font=dict(family=FONT_FAMILY, color=LENS_TEXT),
        paper_bgcolor=LENS_BG,
        plot_bgcolor=LENS_BG,
    )
)
pio.templates.default = "lens"

DEFAULT_TEXT = "The quick brown fox jumps over the lazy dog"
NETWORK_WIDTH = 900
NETWORK_HEIGHT = 420
VECTOR_HEIGHT = 350
TICK_MS = 50
WEIGHT_BINS = [0.25, 0.5, 0.75]
RDBU_SCALE = make_colorscale(diverging.RdBu)

CUSTOM_CSS = """
<style>
@import url('https://fonts.googleapis.com/css2?family=Inter:wght@400;600;700&family=JetBrains+Mono:wght@400;600&display=swap');

body {
    margin: 0;
    background: #0a0a0b;
    color: #e4e4e7;
    font-family: 'Inter', sans-serif;
    -webkit-font-smoothing: antialiased;
}
.lens-app {
    max-width: 1280px;
    margin: 0 auto;
    padding: 2rem;
    display: flex;
    flex-direction: column;
    gap: 24px;
}
.lens-header {
    display: flex;
    justify-content: space-between;
    align-items: center;
    flex-wrap: wrap;
    gap: 16px;
}
.lens-title {
    margin: 0;
    font-size: 28px;
    font-weight: 700;
    letter-spacing: -0.02em;
}
.lens-subtitle {
    margin: 4px 0 0 0;
    color: #71717a;
    font-size: 13px;
}
.glass-panel {
    background: rgba(22, 22, 24, 0.7);
    border: 1px solid #27272a;
    border-radius: 12px;
    padding: 20px;
    backdrop-filter: blur(12px);
}
.mono-label {
    font-family: 'JetBrains Mono', monospace;
    font-size: 11px;
    text-transform: uppercase;
    letter-spacing: 1px;
    color: #71717a;
    display: block;
    margin-bottom: 12px;
}
.lens-grid {
    display: grid;
    grid-template-columns: minmax(0, 4fr) minmax(0, 8fr);
    gap: 24px;
}
.lens-column {
    display: flex;
    flex-direction: column;
    gap: 24px;
}
.lens-row {
    display: grid;
    grid-template-columns: minmax(0, 1fr) minmax(0, 1fr);
    gap: 24px;
}
.lens-button {
    background: #3b82f6;
    color: #fff;
    border: none;
    border-radius: 8px;
    padding: 10px 18px;
    font-family: inherit;
    font-weight: 600;
    cursor: pointer;
}
.lens-button:disabled {
    opacity: 0.5;
    cursor: not-allowed;
}
.lens-input, .lens-textarea {
    width: 100%;
    box-sizing: border-box;
    background: rgba(0, 0, 0, 0.4);
    color: #e4e4e7;
    border: 1px solid #27272a;
    border-radius: 8px;
    padding: 10px;
    font-family: 'JetBrains Mono', monospace;
    font-size: 13px;
}
.lens-textarea {
    min-height: 110px;
    resize: vertical;
}
.token-chip {
    display: inline-block;
    padding: 6px 12px;
    margin: 0 8px 8px 0;
    background: rgba(59, 130, 246, 0.1);
    border: 1px solid rgba(59, 130, 246, 0.3);
    border-radius: 4px;
    color: #3b82f6;
    font-family: 'JetBrains Mono', monospace;
    font-size: 13px;
}
.math-block {
    background: rgba(0, 0, 0, 0.4);
    border: 1px solid #27272a;
    border-radius: 6px;
    padding: 12px;
    font-family: 'JetBrains Mono', monospace;
    font-size: 12px;
    margin-bottom: 16px;
}
.math-block h4 {
    margin: 0 0 8px 0;
    font-size: 11px;
    text-transform: uppercase;
    letter-spacing: 1px;
    color: #3b82f6;
}
.math-formula {
    text-align: center;
    padding: 8px 0;
    font-size: 14px;
}
.math-note {
    color: #71717a;
    font-size: 10px;
    font-style: italic;
}
.phase-dot {
    display: inline-block;
    width: 8px;
    height: 8px;
    border-radius: 50%;
    margin: 0 6px 0 14px;
    background: #27272a;
}
.lens-radio .lens-radio-item {
    display: inline-block;
    padding: 4px 12px;
    margin-right: 4px;
    border-radius: 6px;
    cursor: pointer;
    color: #71717a;
    font-family: 'JetBrains Mono', monospace;
    font-size: 12px;
    text-transform: uppercase;
}
.lens-radio input:checked + label, .lens-radio input:checked {
    color: #fff;
}
.lens-footer {
    display: flex;
    justify-content: space-between;
    color: #71717a;
    font-size: 11px;
}
</style>
"""

INDEX_STRING = """
<!DOCTYPE html>
<html>
    <head>
        {%metas%}
        <title>{%title%}</title>
        {%favicon%}
        {%css%}
        __CUSTOM_CSS__
    </head>
    <body>
        {%app_entry%}
        <footer>
            {%config%}
            {%scripts%}
            {%renderer%}
        </footer>
    </body>
</html>
"""


def apply_lens_layout(fig, height=420, showlegend=False):
    fig.update_layout(
        paper_bgcolor=LENS_BG,
        plot_bgcolor=LENS_BG,
        font=dict(color=LENS_TEXT, family=FONT_FAMILY, size=12),
        margin=dict(l=10, r=10, t=10, b=10),
        height=height,
        showlegend=showlegend,
        uirevision="lens",
    )
    return fig


def empty_figure(message, height=420):
    fig = go.Figure()
    fig.add_annotation(
        text=message,
        xref="paper",
        yref="paper",
        x=0.5,
        y=0.5,
        showarrow=False,
        font=dict(color=LENS_MUTED, size=14, family=FONT_FAMILY),
    )
    fig.update_xaxes(visible=False)
    fig.update_yaxes(visible=False)
    return apply_lens_layout(fig, height=height)


def node_color(node, activation):
    if activation == "relu":
        return LENS_ACCENT if node["value"] > 0 else LENS_NODE_FILL
    return sample_colorscale(RDBU_SCALE, [float(np.clip(node["value"], 0.0, 1.0))])[0]


def bucket_links(links, positions):
    """Group link segments by polarity and weight magnitude.

    Returns ``{(positive, level): (xs, ys)}`` with ``None`` separators so each
    bucket can be drawn as a single line trace.
    """
    buckets = {}
    for link in links:
        source = positions.get(link["source"])
        target = positions.get(link["target"])
        if source is None or target is None:
            continue
        level = int(np.digitize(abs(link["weight"]), WEIGHT_BINS))
        xs, ys = buckets.setdefault((link["weight"] > 0, level), ([], []))
        xs.extend([source[0], target[0], None])
        ys.extend([source[1], target[1], None])
    return buckets


def build_network_figure(graph, driver, activation, now_ms, width=NETWORK_WIDTH, height=NETWORK_HEIGHT):
    nodes = (graph or {}).get("nodes") or []
    links = (graph or {}).get("links") or []
    if not nodes:
        return empty_figure("Topology is empty. Enter positive layer sizes.", height=height)

    positions = compute_layered_layout(nodes, width, height, DEFAULT_PADDING)
    active = not driver.is_idle

    fig = go.Figure()
    for (positive, level), (xs, ys) in sorted(bucket_links(links, positions).items()):
        fig.add_trace(
            go.Scatter(
                x=xs,
                y=ys,
                mode="lines",
                line=dict(
                    color=LENS_ACCENT if positive else LENS_ERROR,
                    width=(level + 0.5) / (len(WEIGHT_BINS) + 1) * 2,
                ),
                opacity=0.4 if active else 0.1,
                hoverinfo="skip",
            )
        )

    fig.add_trace(
        go.Scatter(
            x=[positions[n["id"]][0] for n in nodes],
            y=[positions[n["id"]][1] for n in nodes],
            mode="markers",
            marker=dict(
                size=14,
                color=[node_color(n, activation) for n in nodes],
                opacity=0.9,
                line=dict(color=LENS_ACCENT if active else LENS_GRID, width=2),
            ),
            text=[f"{n['id']}<br>value={n['value']:.3f}" for n in nodes],
            hoverinfo="text",
        )
    )

    frame = driver.particle_frame(now_ms)
    for direction, color in (("forward", LENS_ACCENT), ("backward", LENS_ERROR)):
        xs, ys = frame[direction]
        fig.add_trace(
            go.Scatter(
                x=xs,
                y=ys,
                mode="markers",
                marker=dict(size=7, color=color, line=dict(color=color, width=4)),
                hoverinfo="skip",
            )
        )

    fig.update_xaxes(visible=False, range=[0, width], fixedrange=True)
    fig.update_yaxes(visible=False, range=[height, 0], fixedrange=True)
    return apply_lens_layout(fig, height=height)


def build_vector_figure(tokens, scale=PROJECTION_SCALE, height=VECTOR_HEIGHT):
    projected = project_tokens(tokens, scale=scale)
    fig = go.Figure()
    if projected:
        points = np.array([p["point"] for p in projected])
        arrow_x, arrow_y, arrow_z = [], [], []
        for p in projected:
            arrow_x.extend([0.0, p["point"][0], None])
            arrow_y.extend([0.0, p["point"][1], None])
            arrow_z.extend([0.0, p["point"][2], None])
        fig.add_trace(
            go.Scatter3d(
                x=arrow_x,
                y=arrow_y,
                z=arrow_z,
                mode="lines",
                line=dict(color=LENS_ACCENT, width=3),
                hoverinfo="skip",
            )
        )
        heads = [p for p in projected if p["length"] > 0]
        if heads:
            fig.add_trace(
                go.Cone(
                    x=[p["point"][0] for p in heads],
                    y=[p["point"][1] for p in heads],
                    z=[p["point"][2] for p in heads],
                    u=[p["direction"][0] for p in heads],
                    v=[p["direction"][1] for p in heads],
                    w=[p["direction"][2] for p in heads],
                    anchor="tip",
                    sizemode="absolute",
                    sizeref=0.4,
                    colorscale=[[0, LENS_ACCENT], [1, LENS_ACCENT]],
                    showscale=False,
                    hoverinfo="skip",
                )
            )
        fig.add_trace(
            go.Scatter3d(
                x=points[:, 0],
                y=points[:, 1],
                z=points[:, 2],
                mode="markers+text",
                marker=dict(size=4, color=LENS_ACCENT),
                text=[p["text"] for p in projected],
                textposition="top center",
                textfont=dict(color=LENS_ACCENT, size=10, family=FONT_FAMILY),
                hovertext=[f"{p['text']} |v|={p['length']:.2f}" for p in projected],
                hoverinfo="text",
            )
        )
    else:
        fig.add_trace(go.Scatter3d(x=[0], y=[0], z=[0], mode="markers", marker=dict(size=2, color=LENS_GRID)))

    axis = dict(
        backgroundcolor=LENS_BG,
        gridcolor=LENS_GRID,
        zerolinecolor=LENS_GRID,
        showticklabels=False,
        title="",
    )
    fig.update_layout(
        scene=dict(
            xaxis=axis,
            yaxis=axis,
            zaxis=axis,
            camera=dict(eye=dict(x=1.25, y=1.25, z=1.25)),
            aspectmode="cube",
        )
    )
    return apply_lens_layout(fig, height=height)


def concrete_trace(token, graph, activation):
    """Layer-1 pre-activation for the first hidden unit, fed by ``token``.

    The input layer reads the leading embedding dimensions (zero padded).
    Returns None when the graph has no second layer.
    """
    layer_sizes = (graph or {}).get("layer_sizes") or []
    if len(layer_sizes) < 2:
        return None
    inputs = np.zeros(layer_sizes[0])
    values = np.asarray(token["embedding"][: layer_sizes[0]], dtype=float)
    inputs[: values.size] = values

    target = node_id(1, 0)
    weights = np.zeros(layer_sizes[0])
    for link in graph.get("links") or []:
        if link["target"] == target:
            weights[int(link["source"].rsplit("-", 1)[1])] = link["weight"]
    z = float(weights @ inputs)
    return {"target": target, "z": z, "a": float(apply_activation(activation, z))}


def build_math_panel(activation, tokens, graph):
    sections = []
    if tokens:
        first = tokens[0]
        dims = ", ".join(f"{v:.3f}" for v in first["embedding"][:3])
        trace = concrete_trace(first, graph, activation)
        lines = [
            html.Div(f"1. Token ID: {token_index(first)}"),
            html.Div(f"2. Embedding (first 3 dims): [{dims}...]"),
            html.Div("3. Forward Pass (Layer 1):"),
            html.Div("z = Σ(w · a) + b", className="math-note"),
            html.Div(f"a = {activation}(z)", className="math-note"),
        ]
        if trace:
            lines.append(
                html.Div(
                    f"{trace['target']}: z = {trace['z']:.3f}, a = {trace['a']:.3f}",
                    style={"color": LENS_ACCENT},
                )
            )
        sections.append(
            html.Div(
                className="math-block",
                children=[html.H4(f'Concrete Trace: "{first["text"]}"', style={"color": LENS_WARNING})] + lines,
            )
        )

    if activation == "relu":
        act_formula = "f(z) = max(0, z)"
        act_derivative = "Derivative: f'(z) = 1 if z > 0 else 0"
    else:
        act_formula = "f(z) = 1 / (1 + e^-z)"
        act_derivative = "Derivative: f'(z) = f(z)(1 - f(z))"

    blocks = [
        (
            "1. Embedding Lookup",
            "v = Wₑ · x",
            "Where x is a one-hot encoded token and Wₑ is the embedding weight matrix.",
        ),
        (
            f"2. Activation: {activation.upper()}",
            act_formula,
            act_derivative + ". Non-linearity allows the network to approximate complex functions.",
        ),
        (
            "3. Softmax",
            "σ(z)ᵢ = e^zᵢ / Σ e^zⱼ",
            "Converts raw scores (logits) into a probability distribution.",
        ),
        (
            "4. Cross-Entropy Loss",
            "L = -Σ yᵢ log(ŷᵢ)",
            "Measures the distance between predicted probability ŷ and true label y.",
        ),
        (
            "5. Gradient Descent",
            "wₜ₊₁ = wₜ - η ∇w L",
            "Weights move against the gradient ∇L with learning rate η.",
        ),
        (
            "6. Chain Rule",
            "∂L/∂w = (∂L/∂a) · (∂a/∂z) · (∂z/∂w)",
            "The engine of backpropagation: decomposing the gradient into local derivatives.",
        ),
    ]
    for title, formula, note in blocks:
        sections.append(
            html.Div(
                className="math-block",
                children=[
                    html.H4(title),
                    html.Div(formula, className="math-formula"),
                    html.Div(note, className="math-note"),
                ],
            )
        )
    return sections


def build_concept_panel(activation):
    if activation == "relu":
        activation_text = (
            "ReLU (Rectified Linear Unit) is simple: it outputs the input if positive, else zero. "
            "It helps the network learn non-linear patterns efficiently."
        )
    else:
        activation_text = (
            "Sigmoid squashes values between 0 and 1. It's historically significant but can "
            "suffer from 'vanishing gradients' in deep networks."
        )
    return [
        html.H4("Embeddings"),
        html.P(
            "Words are mapped to high-dimensional vectors. Similar words are placed closer together "
            'in this space, allowing the model to "understand" semantic relationships.',
            className="math-note",
        ),
        html.H4("Activation Functions"),
        html.P(activation_text, className="math-note"),
    ]


def build_token_chips(tokens, text):
    if not (text or ""):
        return html.Div("Start typing to see tokens...", className="math-note")
    return [html.Span(token["text"], className="token-chip") for token in tokens]


def build_phase_indicators(phase):
    forward_color = LENS_ACCENT if phase == FORWARD else LENS_GRID
    backprop_color = LENS_ERROR if phase == BACKPROP else LENS_GRID
    return [
        html.Span(className="phase-dot", style={"background": forward_color}),
        html.Span("FORWARD", className="math-note"),
        html.Span(className="phase-dot", style={"background": backprop_color}),
        html.Span("BACKPROP", className="math-note"),
    ]


def run_button_label(phase):
    if phase == FORWARD:
        return "Forward Pass..."
    if phase == BACKPROP:
        return "Backpropagating..."
    return "Run Simulation"


def graph_positions(graph, width=NETWORK_WIDTH, height=NETWORK_HEIGHT):
    return compute_layered_layout((graph or {}).get("nodes") or [], width, height, DEFAULT_PADDING)


def advance_simulation(state, graph, trigger_id, now_ms, rng=None, chat_actions=None,
                       width=NETWORK_WIDTH, height=NETWORK_HEIGHT):
    """One controller step for the phase store.

    Rebinds to the current graph generation, applies a run request coming from
    the button or the chat bridge, then lets the timers move the phase on.
    """
    driver = PhaseDriver.from_dict(state, rng=rng)
    graph = graph or {}
    driver.rebind(graph.get("generation"))
    links = graph.get("links") or []
    positions = graph_positions(graph, width, height)

    run_requested = trigger_id == "run-button" or (
        trigger_id == "chat-actions" and "run" in ((chat_actions or {}).get("actions") or [])
    )
    if run_requested:
        driver.run(links, positions, now_ms)
    driver.advance(links, positions, now_ms)
    return driver


def chat_outputs(reply, actions_state):
    """Response text, run request and activation change for one chat reply.

    Each control action fires at most once per reply; a busy or failed
    request leaves the phase and activation untouched.
    """
    if reply is None:
        return dash.no_update, dash.no_update, dash.no_update
    chat_actions = dash.no_update
    if "run" in reply.actions:
        nonce = int((actions_state or {}).get("nonce", 0)) + 1
        chat_actions = {"actions": ["run"], "nonce": nonce}
    activations = [a for a in reply.actions if a in ACTIVATIONS]
    activation = activations[-1] if activations else dash.no_update
    return reply.text, chat_actions, activation


def build_layout(config):
    return html.Div(
        className="lens-app",
        children=[
            dcc.Store(id="graph-store", data=build_graph_payload(config["layers"], rng=config["rng"])),
            dcc.Store(id="sim-store", data=PhaseDriver().to_dict()),
            dcc.Store(id="tokens-store", data=[]),
            dcc.Store(id="chat-actions", data={"actions": [], "nonce": 0}),
            dcc.Interval(id="anim-interval", interval=TICK_MS, disabled=True),
            html.Div(
                className="lens-header",
                children=[
                    html.Div(
                        children=[
                            html.H1("Neural Lens", className="lens-title"),
                            html.P("An interactive visualization of LLM Models", className="lens-subtitle"),
                        ]
                    ),
                    html.Div(
                        style={"display": "flex", "alignItems": "center", "gap": "16px"},
                        children=[
                            html.Span("Activation", className="mono-label", style={"margin": "0"}),
                            dcc.RadioItems(
                                id="activation-select",
                                options=[{"label": name.upper(), "value": name} for name in ACTIVATIONS],
                                value="relu",
                                inline=True,
                                className="lens-radio",
                                labelClassName="lens-radio-item",
                            ),
                            html.Button("Run Simulation", id="run-button", className="lens-button"),
                        ],
                    ),
                ],
            ),
            html.Div(
                className="glass-panel",
                style={"borderLeft": f"4px solid {LENS_ACCENT}", "padding": "12px 20px"},
                children=[html.Span(phase_description(IDLE), id="status-text")],
            ),
            html.Div(
                className="lens-grid",
                children=[
                    html.Div(
                        className="lens-column",
                        children=[
                            html.Div(
                                className="glass-panel",
                                children=[
                                    html.Span("Input Configuration", className="mono-label"),
                                    dcc.Textarea(
                                        id="input-text",
                                        value=config["text"],
                                        placeholder="Enter text to tokenize...",
                                        className="lens-textarea",
                                    ),
                                    html.Div(id="input-counts", className="math-note"),
                                    html.Span("Topology", className="mono-label", style={"marginTop": "16px"}),
                                    html.Div(
                                        style={"display": "flex", "gap": "8px"},
                                        children=[
                                            dcc.Input(
                                                id="topology-input",
                                                type="text",
                                                value=", ".join(str(s) for s in config["layers"]),
                                                className="lens-input",
                                            ),
                                            html.Button("Rebuild", id="rebuild-button", className="lens-button"),
                                        ],
                                    ),
                                    html.Div(id="topology-status", className="math-note"),
                                ],
                            ),
                            html.Div(
                                className="glass-panel",
                                style={"maxHeight": "520px", "overflowY": "auto"},
                                children=[
                                    html.Span("Σ Related Math", className="mono-label"),
                                    html.Div(id="math-panel"),
                                ],
                            ),
                        ],
                    ),
                    html.Div(
                        className="lens-column",
                        children=[
                            html.Div(
                                className="lens-row",
                                children=[
                                    html.Div(
                                        className="glass-panel",
                                        children=[
                                            html.Span("Step 01: Tokenization", className="mono-label"),
                                            html.Div(id="token-chips"),
                                        ],
                                    ),
                                    html.Div(
                                        className="glass-panel",
                                        children=[
                                            html.Span(
                                                "Step 02: Embedding Space (3D Projection)",
                                                className="mono-label",
                                            ),
                                            dcc.Graph(id="vector-graph", config={"displayModeBar": False}),
                                        ],
                                    ),
                                ],
                            ),
                            html.Div(
                                className="glass-panel",
                                children=[
                                    html.Div(
                                        style={"display": "flex", "justifyContent": "space-between"},
                                        children=[
                                            html.Span("Step 03: Forward & Backprop", className="mono-label"),
                                            html.Div(id="phase-indicators", children=build_phase_indicators(IDLE)),
                                        ],
                                    ),
                                    dcc.Graph(
                                        id="network-graph",
                                        config={"displayModeBar": False},
                                    ),
                                ],
                            ),
                            html.Div(
                                className="lens-row",
                                children=[
                                    html.Div(
                                        className="glass-panel",
                                        children=[
                                            html.Span("Neural Oracle (AI Chat)", className="mono-label"),
                                            dcc.Loading(
                                                type="dot",
                                                color=LENS_ACCENT,
                                                children=dcc.Markdown(
                                                    "Ask me anything about how this network learns...",
                                                    id="chat-response",
                                                ),
                                            ),
                                            html.Div(
                                                style={"display": "flex", "gap": "8px", "marginTop": "12px"},
                                                children=[
                                                    dcc.Input(
                                                        id="chat-input",
                                                        type="text",
                                                        placeholder="e.g. How does the gradient flow backwards?",
                                                        className="lens-input",
                                                    ),
                                                    html.Button("Send", id="chat-send", className="lens-button"),
                                                ],
                                            ),
                                        ],
                                    ),
                                    html.Div(
                                        className="glass-panel",
                                        children=[
                                            html.Span("Concept Deep Dive", className="mono-label"),
                                            html.Div(id="concept-panel"),
                                        ],
                                    ),
                                ],
                            ),
                        ],
                    ),
                ],
            ),
            html.Div(
                className="lens-footer",
                children=[
                    html.Span("Engine: Dash + Plotly"),
                    html.Span("Neural Lens v1.0.0"),
                ],
            ),
        ],
    )


def create_app(config, bridge=None):
    config = dict(config)
    seed = config.get("seed")
    config["rng"] = np.random.default_rng(seed)
    config.setdefault("text", DEFAULT_TEXT)
    config.setdefault("layers", list(DEFAULT_LAYER_SIZES))
    width = config.get("width") or NETWORK_WIDTH
    height = config.get("height") or NETWORK_HEIGHT
    bridge = bridge or ChatBridge(GeminiClient(model=config.get("model")))

    app = Dash(__name__)
    app.title = "Neural Lens"
    app.index_string = INDEX_STRING.replace("__CUSTOM_CSS__", CUSTOM_CSS)
    app.layout = build_layout(config)

    @app.callback(
        Output("tokens-store", "data"),
        Output("token-chips", "children"),
        Output("input-counts", "children"),
        Input("input-text", "value"),
    )
    def update_tokens(text):
        text = text or ""
        tokens = tokenize(text, rng=config["rng"])
        counts = f"CHARS: {len(text)}    WORDS: {count_words(text)}"
        return tokens, build_token_chips(tokens, text), counts

    @app.callback(
        Output("vector-graph", "figure"),
        Input("tokens-store", "data"),
    )
    def update_vector_space(tokens):
        return build_vector_figure(tokens or [])

    @app.callback(
        Output("graph-store", "data"),
        Output("topology-status", "children"),
        Input("rebuild-button", "n_clicks"),
        State("topology-input", "value"),
        prevent_initial_call=True,
    )
    def rebuild_graph(_n_clicks, topology):
        sizes = parse_layer_sizes(topology)
        payload = build_graph_payload(sizes, rng=config["rng"])
        if not sizes:
            return payload, "Invalid topology; showing an empty graph."
        return payload, f"{len(payload['nodes'])} nodes, {len(payload['links'])} links."

    @app.callback(
        Output("sim-store", "data"),
        Output("anim-interval", "disabled"),
        Output("run-button", "disabled"),
        Output("run-button", "children"),
        Output("status-text", "children"),
        Output("phase-indicators", "children"),
        Input("run-button", "n_clicks"),
        Input("chat-actions", "data"),
        Input("anim-interval", "n_intervals"),
        Input("graph-store", "data"),
        State("sim-store", "data"),
    )
    def update_simulation(_run_clicks, chat_actions, _n_intervals, graph, state):
        ctx = dash.callback_context
        trigger_id = ctx.triggered[0]["prop_id"].split(".")[0] if ctx.triggered else None
        driver = advance_simulation(
            state,
            graph,
            trigger_id,
            time.time() * 1000.0,
            rng=config["rng"],
            chat_actions=chat_actions,
            width=width,
            height=height,
        )
        phase = driver.phase
        return (
            driver.to_dict(),
            not driver.has_activity(),
            not driver.is_idle,
            run_button_label(phase),
            phase_description(phase),
            build_phase_indicators(phase),
        )

    @app.callback(
        Output("network-graph", "figure"),
        Input("sim-store", "data"),
        Input("graph-store", "data"),
        Input("activation-select", "value"),
    )
    def update_network(state, graph, activation):
        driver = PhaseDriver.from_dict(state)
        driver.rebind((graph or {}).get("generation"))
        return build_network_figure(
            graph, driver, activation or "relu", time.time() * 1000.0, width=width, height=height
        )

    @app.callback(
        Output("math-panel", "children"),
        Output("concept-panel", "children"),
        Input("activation-select", "value"),
        Input("tokens-store", "data"),
        Input("graph-store", "data"),
    )
    def update_math(activation, tokens, graph):
        activation = activation or "relu"
        return build_math_panel(activation, tokens or [], graph), build_concept_panel(activation)

    @app.callback(
        Output("chat-response", "children"),
        Output("chat-actions", "data"),
        Output("activation-select", "value"),
        Input("chat-send", "n_clicks"),
        Input("chat-input", "n_submit"),
        State("chat-input", "value"),
        State("chat-actions", "data"),
        running=[(Output("chat-send", "disabled"), True, False)],
        prevent_initial_call=True,
    )
    def ask_oracle(_n_clicks, _n_submit, query, actions_state):
        return chat_outputs(bridge.ask(query), actions_state)

    return app


def topology_arg(value):
    sizes = parse_layer_sizes(value)
    if not sizes:
        raise argparse.ArgumentTypeError(f"invalid topology: {value!r}")
    return sizes


def main():
    parser = argparse.ArgumentParser(description="Neural Lens visualizer.")
    parser.add_argument("--host", default="0.0.0.0")
    parser.add_argument("--port", type=int, default=8050)
    parser.add_argument("--debug", action="store_true", help="Enable Dash debug + hot reload.")
    parser.add_argument("--layers", type=topology_arg, default=list(DEFAULT_LAYER_SIZES),
                        help="Comma separated layer sizes, e.g. 4,6,6,2.")
    parser.add_argument("--text", default=DEFAULT_TEXT, help="Initial input text.")
    parser.add_argument("--model", default=None, help="Text generation model (default: GEMINI_MODEL or built-in).")
    parser.add_argument("--seed", type=int, default=None, help="Seed for weights, positions and particles.")
    parser.add_argument("--width", type=int, default=NETWORK_WIDTH)
    parser.add_argument("--height", type=int, default=NETWORK_HEIGHT)
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    # Suppress verbose werkzeug logging (GET / POST requests)
    log = logging.getLogger("werkzeug")
    log.setLevel(logging.ERROR)
    log.propagate = False

    app = create_app(
        {
            "layers": args.layers,
            "text": args.text,
            "model": args.model,
            "seed": args.seed,
            "width": args.width,
            "height": args.height,
        }
    )
    app.server.logger.setLevel(logging.ERROR)

    app.run(
        host=args.host,
        port=args.port,
        debug=args.debug,
        dev_tools_hot_reload=args.debug,
        dev_tools_ui=args.debug,
        dev_tools_silence_routes_logging=True,
        use_reloader=False,
    )


if __name__ == "__main__":
    main()
