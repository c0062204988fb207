from __future__ import annotations

import numpy as np

from .config import MutationConfig
from .fitness import fitness_value
from .genome import Genome
from .innovation import GENE_IDS, GeneIdAllocator
from .mutation import mutate, scaled_probability


def crossover(
    rng: np.random.Generator,
    parent_a: Genome,
    parent_b: Genome,
    params: MutationConfig,
    multiplier: float = 1.0,
    ids: GeneIdAllocator = GENE_IDS,
    swap_prob: float = 0.2,
) -> Genome:
    """Build a mutated child from two parents by matching gene IDs.

    Every gene of the winner is inherited: matched genes come from either
    parent with equal chance, disjoint genes from the winner. A connection's
    enabled flag is always the winner's. At most one hidden node and one
    connection of the winner may be left out.
    """
    if fitness_value(parent_b.fitness) > fitness_value(parent_a.fitness):
        winner, loser = parent_b, parent_a
    else:
        winner, loser = parent_a, parent_b
    if rng.random() < swap_prob:
        winner, loser = loser, winner

    excluded_node: int | None = None
    hidden = winner.hidden_nodes
    if hidden and rng.random() < scaled_probability(params.prob_remove_node, multiplier):
        excluded_node = hidden[rng.integers(len(hidden))].node_id

    excluded_connection: int | None = None
    if winner.connections and rng.random() < scaled_probability(params.prob_remove_connection, multiplier):
        excluded_connection = winner.connections[rng.integers(len(winner.connections))].connection_id

    child = Genome(
        genome_id=ids.new_genome_id(),
        input_count=winner.input_count,
        output_count=winner.output_count,
    )

    for node in winner.nodes:
        if node.node_id == excluded_node:
            continue
        source = node
        match = loser.node_by_id(node.node_id)
        if match is not None and match.kind is node.kind and rng.random() < 0.5:
            source = match
        child.append_node(node.node_id, node.kind, source.activation)

    for conn in winner.connections:
        if conn.connection_id == excluded_connection:
            continue
        src_id = winner.node(conn.src).node_id
        dst_id = winner.node(conn.dst).node_id
        if excluded_node in (src_id, dst_id):
            continue
        weight = conn.weight
        match = loser.connection_by_id(conn.connection_id)
        if match is not None and rng.random() < 0.5:
            weight = match.weight
        src = child.node_by_id(src_id)
        dst = child.node_by_id(dst_id)
        child.add_connection(
            src.index,
            dst.index,
            weight,
            enabled=conn.enabled,
            connection_id=conn.connection_id,
        )

    child.build_evaluation_order()
    if __debug__:
        child.verify_invariants()

    mutate(child, rng, params, multiplier, ids)
    return child
