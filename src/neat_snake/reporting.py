from __future__ import annotations

from pathlib import Path
from typing import Any

from .genome import Genome


def _safe_delta(start: float, end: float) -> str:
    return f"{start:.2f} -> {end:.2f} (delta {end - start:+.2f})"


def build_complexification_commentary(history: list[dict[str, Any]], champion: Genome) -> str:
    if not history:
        return "No generation history was recorded."

    start = history[0]
    end = history[-1]

    lines = []
    lines.append("### Complexification Notes")
    lines.append("")
    lines.append(
        f"- Mean hidden nodes: {_safe_delta(start['mean_hidden_nodes'], end['mean_hidden_nodes'])}."
    )
    lines.append(
        f"- Mean enabled connections: {_safe_delta(start['mean_enabled_connections'], end['mean_enabled_connections'])}."
    )
    lines.append(f"- Best fitness: {_safe_delta(start['best_fitness'], end['best_fitness'])}.")

    activation_counts: dict[str, int] = {}
    for node in champion.hidden_nodes:
        activation_counts[node.activation.value] = activation_counts.get(node.activation.value, 0) + 1

    if activation_counts:
        act_desc = ", ".join(f"{k}: {v}" for k, v in sorted(activation_counts.items()))
        lines.append(f"- Champion hidden activations: {act_desc}.")
    else:
        lines.append("- Champion has no hidden nodes (no topology complexification observed).")

    unreachable = sum(1 for n in champion.nodes if n.layer.is_unreachable)
    if unreachable:
        lines.append(f"- Champion carries {unreachable} unreachable hidden node(s) left behind by crossover exclusions.")

    return "\n".join(lines)


def build_era_commentary(history: list[dict[str, Any]], events: list[dict[str, Any]]) -> str:
    lines = ["### Stagnation and Events", ""]
    if not history:
        lines.append("No generation history was recorded.")
        return "\n".join(lines)

    max_era = max(h["era"] for h in history)
    stalled = max(h["gens_since_max"] for h in history)
    lines.append(f"- Longest stretch without a new all-time best: {stalled} generations (era {max_era}).")
    lines.append(f"- All-time bests stashed: {history[-1]['stash_size']}.")
    if not events:
        lines.append("- No era events were dispatched.")
    for e in events:
        detail = ", ".join(f"{k}={v}" for k, v in e.items() if k not in {"generation", "era", "event"})
        lines.append(f"- Generation {e['generation']}: {e['event']} (era {e['era']}; {detail}).")
    return "\n".join(lines)


def write_markdown_report(
    path: Path,
    history: list[dict[str, Any]],
    champion: Genome,
    artifacts: dict[str, Path],
    events: list[dict[str, Any]] | None = None,
) -> None:
    hidden, enabled = champion.complexity()
    lines = [
        "# NEAT Snake Run Report",
        "",
        "## Champion",
        "",
        f"- Genome: `{champion.genome_id}`",
        f"- Fitness: {champion.fitness if champion.fitness is not None else 'not evaluated'}",
        f"- Hidden nodes: {hidden}, enabled connections: {enabled}",
        "",
        "## Artifacts",
        "",
    ]

    for name, p in sorted(artifacts.items()):
        lines.append(f"- {name}: `{p}`")

    lines.extend(
        [
            "",
            build_complexification_commentary(history, champion),
            "",
            build_era_commentary(history, events or []),
        ]
    )

    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text("\n".join(lines), encoding="utf-8")
