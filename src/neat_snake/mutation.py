from __future__ import annotations

import numpy as np

from .activations import Activation
from .config import MutationConfig
from .genes import ConnectionGene, LayerKind, NodeGene, NodeKind
from .genome import Genome
from .innovation import GENE_IDS, GeneIdAllocator


def scaled_probability(p: float, multiplier: float) -> float:
    return min(1.0, p * multiplier)


def mutate(
    genome: Genome,
    rng: np.random.Generator,
    params: MutationConfig,
    multiplier: float = 1.0,
    ids: GeneIdAllocator = GENE_IDS,
) -> None:
    """Roll every mutation operator once, each independently.

    The evaluation order is rebuilt before the structural operators (they
    read node layers) and again before returning.
    """
    genome.build_evaluation_order()

    if rng.random() < scaled_probability(params.prob_mutate_activation, multiplier):
        node = genome.nodes[rng.integers(len(genome.nodes))]
        if node.kind is not NodeKind.INPUT:
            node.activation = Activation.random(rng)

    if genome.connections and rng.random() < scaled_probability(params.prob_mutate_weight, multiplier):
        conn = genome.connections[rng.integers(len(genome.connections))]
        conn.weight += float(rng.uniform(-1.0, 1.0)) * params.max_weight_change

    if genome.connections and rng.random() < scaled_probability(params.prob_toggle_enabled, multiplier):
        conn = genome.connections[rng.integers(len(genome.connections))]
        conn.enabled = not conn.enabled
        genome.invalidate()

    if rng.random() < scaled_probability(params.prob_add_connection, multiplier):
        add_random_connection(genome, rng, ids)
        genome.build_evaluation_order()

    if genome.connections and rng.random() < scaled_probability(params.prob_add_node, multiplier):
        conn = genome.connections[rng.integers(len(genome.connections))]
        add_node(genome, conn, ids)

    genome.build_evaluation_order()
    if __debug__:
        genome.verify_invariants()


def add_random_connection(
    genome: Genome,
    rng: np.random.Generator,
    ids: GeneIdAllocator = GENE_IDS,
) -> ConnectionGene | None:
    """Connect a random source to a random later node. Returns None if nothing was added."""
    genome.build_evaluation_order()

    sources = [n for n in genome.nodes if n.layer.kind in (LayerKind.INPUT, LayerKind.HIDDEN)]
    if not sources:
        return None
    src = sources[rng.integers(len(sources))]
    targets = [
        n
        for n in genome.nodes
        if n.layer.kind in (LayerKind.HIDDEN, LayerKind.OUTPUT) and n.node_id != src.node_id
    ]
    if not targets:
        return None
    dst = targets[rng.integers(len(targets))]

    if src.layer.kind is LayerKind.HIDDEN and dst.layer.kind is LayerKind.HIDDEN:
        if src.layer.depth > dst.layer.depth:
            src, dst = dst, src
    elif not src.layer.comes_before(dst.layer):
        return None

    if _connected(genome, src, dst):
        return None

    weight = float(rng.uniform(-1.0, 1.0))
    return genome.add_connection(src.index, dst.index, weight, ids=ids)


def _connected(genome: Genome, src: NodeGene, dst: NodeGene) -> bool:
    return any(genome.connection(c).src == src.index for c in dst.incoming)


def add_node(genome: Genome, connection: ConnectionGene, ids: GeneIdAllocator = GENE_IDS) -> NodeGene:
    """Split ``connection`` with a new hidden node.

    The node copies the activation of the connection's target, and its
    outgoing weight is that activation's neutral value, so the split leaves
    the network's outputs nearly unchanged.
    """
    target = genome.node(connection.dst)
    connection.enabled = False
    node = genome.add_hidden_node(target.activation, ids)
    genome.add_connection(connection.src, node.index, connection.weight, ids=ids)
    genome.add_connection(node.index, connection.dst, target.activation.neutral_value, ids=ids)
    return node
