from __future__ import annotations

import math
from enum import Enum

import numpy as np


class Activation(str, Enum):
    IDENTITY = "identity"
    SIGMOID = "sigmoid"
    RELU = "relu"
    LEAKY_RELU = "leaky_relu"
    TANH = "tanh"

    def apply(self, x: float) -> float:
        return _APPLY[self](x)

    @property
    def neutral_value(self) -> float:
        """Input v* with apply(v*) close to 1.0."""
        return _NEUTRAL_VALUES[self]

    @classmethod
    def random(cls, rng: np.random.Generator) -> "Activation":
        members = list(cls)
        return members[rng.integers(len(members))]


def identity(x: float) -> float:
    return x


def sigmoid(x: float) -> float:
    if x >= 0.0:
        return 1.0 / (1.0 + math.exp(-x))
    z = math.exp(x)
    return z / (1.0 + z)


def relu(x: float) -> float:
    return x if x > 0.0 else 0.0


def leaky_relu(x: float) -> float:
    return x if x >= 0.0 else 0.1 * x


def tanh(x: float) -> float:
    return math.tanh(x)


_APPLY = {
    Activation.IDENTITY: identity,
    Activation.SIGMOID: sigmoid,
    Activation.RELU: relu,
    Activation.LEAKY_RELU: leaky_relu,
    Activation.TANH: tanh,
}

# sigmoid(4.0) = 0.98201, tanh(2.37) = 0.98267
_NEUTRAL_VALUES = {
    Activation.IDENTITY: 1.0,
    Activation.SIGMOID: 4.0,
    Activation.RELU: 1.0,
    Activation.LEAKY_RELU: 1.0,
    Activation.TANH: 2.37,
}
