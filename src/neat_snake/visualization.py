from __future__ import annotations

from pathlib import Path
from typing import Any

import matplotlib.pyplot as plt
import numpy as np

from .genes import Layer, LayerKind, NodeKind
from .genome import Genome


def plot_history(history: list[dict[str, Any]], path: Path) -> None:
    if not history:
        return

    g = np.array([h["generation"] for h in history], dtype=float)
    best = np.array([h["best_fitness"] for h in history], dtype=float)
    mean = np.array([h["mean_fitness"] for h in history], dtype=float)
    all_time = np.array([h["all_time_best"] for h in history], dtype=float)
    mean_hidden = np.array([h["mean_hidden_nodes"] for h in history], dtype=float)
    mean_conn = np.array([h["mean_enabled_connections"] for h in history], dtype=float)
    era = np.array([h["era"] for h in history], dtype=float)
    multiplier = np.array([h["multiplier"] for h in history], dtype=float)

    fig, axes = plt.subplots(3, 1, figsize=(10, 12), sharex=True)

    axes[0].plot(g, best, label="best fitness", linewidth=2)
    axes[0].plot(g, mean, label="mean fitness", linewidth=1.6)
    axes[0].plot(g, all_time, label="all-time best", linewidth=1.2, linestyle="--")
    for h in history:
        if h["event"] != "none":
            axes[0].axvline(h["generation"], color="#7f7f7f", alpha=0.4, linewidth=0.8)
    axes[0].set_ylabel("fitness")
    axes[0].grid(True, alpha=0.3)
    axes[0].legend()

    axes[1].plot(g, mean_hidden, label="mean hidden nodes", linewidth=2)
    axes[1].plot(g, mean_conn, label="mean enabled connections", linewidth=2)
    axes[1].set_ylabel("complexity")
    axes[1].grid(True, alpha=0.3)
    axes[1].legend()

    axes[2].step(g, era, label="era", linewidth=2, where="post")
    axes[2].step(g, multiplier, label="mutation multiplier", linewidth=1.6, where="post")
    axes[2].set_ylabel("stagnation")
    axes[2].set_xlabel("generation")
    axes[2].grid(True, alpha=0.3)
    axes[2].legend()

    path.parent.mkdir(parents=True, exist_ok=True)
    fig.tight_layout()
    fig.savefig(path, dpi=180)
    plt.close(fig)


def _column_of(layer: Layer, output_column: int) -> int:
    if layer.kind is LayerKind.INPUT:
        return 0
    if layer.kind is LayerKind.HIDDEN:
        return layer.depth
    if layer.kind is LayerKind.OUTPUT:
        return output_column
    return output_column + 1


def plot_genome(genome: Genome, path: Path, title: str = "Genome Topology") -> None:
    genome.build_evaluation_order()

    deepest = max([0] + [n.layer.depth for n in genome.nodes if n.layer.kind is LayerKind.HIDDEN])
    output_column = deepest + 1
    columns: dict[int, list[int]] = {}
    for node in genome.nodes:
        columns.setdefault(_column_of(node.layer, output_column), []).append(node.index.position)

    pos: dict[int, tuple[float, float]] = {}
    for x, members in columns.items():
        ys = np.linspace(0.1, 0.9, max(2, len(members)))
        if len(members) == 1:
            ys = np.array([0.5])
        for i, p in enumerate(members):
            pos[p] = (float(x), float(ys[i]))

    fig, ax = plt.subplots(figsize=(11, 6))

    for conn in genome.connections:
        x1, y1 = pos[conn.src.position]
        x2, y2 = pos[conn.dst.position]
        color = "#1f77b4" if conn.weight >= 0 else "#d62728"
        alpha = 0.65 if conn.enabled else 0.18
        lw = 0.7 + min(2.5, abs(conn.weight))
        ls = "-" if conn.enabled else "--"
        ax.plot([x1, x2], [y1, y2], color=color, alpha=alpha, linewidth=lw, linestyle=ls)

    kind_color = {NodeKind.INPUT: "#2ca02c", NodeKind.HIDDEN: "#9467bd", NodeKind.OUTPUT: "#ff7f0e"}
    for node in genome.nodes:
        x, y = pos[node.index.position]
        color = "#7f7f7f" if node.layer.is_unreachable else kind_color[node.kind]
        ax.scatter([x], [y], s=160, color=color, edgecolors="black", zorder=3)
        ax.text(x, y + 0.03, f"{node.node_id}:{node.activation.value}", ha="center", va="bottom", fontsize=8)

    labels = ["input"] + [f"hidden {d}" for d in range(1, output_column)] + ["output"]
    if output_column + 1 in columns:
        labels.append("unreachable")
    ax.set_xticks(range(len(labels)))
    ax.set_xticklabels(labels)
    ax.set_title(title)
    ax.set_xlabel("layer")
    ax.set_ylabel("node position")
    ax.set_xlim(-0.5, len(labels) - 0.5)
    ax.set_ylim(0.0, 1.0)
    ax.grid(True, alpha=0.2)

    path.parent.mkdir(parents=True, exist_ok=True)
    fig.tight_layout()
    fig.savefig(path, dpi=180)
    plt.close(fig)


def plot_activation_usage(activation_counts: dict[str, int], path: Path) -> None:
    if not activation_counts:
        return
    names = sorted(activation_counts)
    values = [activation_counts[k] for k in names]

    fig, ax = plt.subplots(figsize=(8, 4.5))
    ax.bar(names, values)
    ax.set_ylabel("hidden node count")
    ax.set_title("Activation Function Usage (Population)")
    ax.grid(True, axis="y", alpha=0.3)

    path.parent.mkdir(parents=True, exist_ok=True)
    fig.tight_layout()
    fig.savefig(path, dpi=180)
    plt.close(fig)
