from __future__ import annotations

import numpy as np
import pytest

from neat_snake.activations import Activation
from neat_snake.config import MutationConfig
from neat_snake.genome import Genome
from neat_snake.innovation import GeneIdAllocator


@pytest.fixture
def ids() -> GeneIdAllocator:
    return GeneIdAllocator()


@pytest.fixture
def rng() -> np.random.Generator:
    return np.random.default_rng(1234)


@pytest.fixture
def quiet_mutation() -> MutationConfig:
    """Mutation settings that never change a genome."""
    return MutationConfig(
        prob_mutate_activation=0.0,
        prob_mutate_weight=0.0,
        prob_toggle_enabled=0.0,
        prob_add_connection=0.0,
        prob_add_node=0.0,
        prob_remove_connection=0.0,
        prob_remove_node=0.0,
    )


def _chain(ids: GeneIdAllocator, output_activation: Activation) -> Genome:
    # 2 inputs, 1 hidden tanh node, 1 output: in0 -> h -> out, in1 -> out.
    genome = Genome.new(2, 1, ids, output_activation=output_activation)
    in0, in1 = genome.input_nodes
    out = genome.output_nodes[0]
    hidden = genome.add_hidden_node(Activation.TANH, ids)
    genome.add_connection(in0.index, hidden.index, 0.7, ids=ids)
    genome.add_connection(hidden.index, out.index, -1.3, ids=ids)
    genome.add_connection(in1.index, out.index, 0.4, ids=ids)
    genome.build_evaluation_order()
    return genome


@pytest.fixture
def chain(ids: GeneIdAllocator) -> Genome:
    return _chain(ids, Activation.SIGMOID)


@pytest.fixture
def identity_chain(ids: GeneIdAllocator) -> Genome:
    return _chain(ids, Activation.IDENTITY)
