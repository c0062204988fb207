from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import NamedTuple

from .activations import Activation


class NodeIndex(NamedTuple):
    genome_id: int
    position: int


class ConnectionIndex(NamedTuple):
    genome_id: int
    position: int


class NodeKind(str, Enum):
    INPUT = "input"
    HIDDEN = "hidden"
    OUTPUT = "output"


class LayerKind(str, Enum):
    INPUT = "input"
    HIDDEN = "hidden"
    OUTPUT = "output"
    UNREACHABLE = "unreachable"


@dataclass(frozen=True)
class Layer:
    kind: LayerKind
    depth: int = 0

    @classmethod
    def input(cls) -> "Layer":
        return cls(LayerKind.INPUT, 0)

    @classmethod
    def hidden(cls, depth: int) -> "Layer":
        return cls(LayerKind.HIDDEN, depth)

    @classmethod
    def output(cls, depth: int = 1) -> "Layer":
        return cls(LayerKind.OUTPUT, depth)

    @classmethod
    def unreachable(cls) -> "Layer":
        return cls(LayerKind.UNREACHABLE, 0)

    @property
    def is_unreachable(self) -> bool:
        return self.kind is LayerKind.UNREACHABLE

    def sort_key(self) -> tuple[int, int]:
        if self.kind is LayerKind.INPUT:
            return (0, 0)
        if self.kind is LayerKind.HIDDEN:
            return (1, self.depth)
        if self.kind is LayerKind.OUTPUT:
            return (2, 0)
        raise ValueError("Unreachable layers have no position in the layer order")

    def comes_before(self, other: "Layer") -> bool:
        return self.sort_key() < other.sort_key()

    def same_hidden_depth(self, other: "Layer") -> bool:
        return (
            self.kind is LayerKind.HIDDEN
            and other.kind is LayerKind.HIDDEN
            and self.depth == other.depth
        )

    def __str__(self) -> str:
        if self.kind in (LayerKind.HIDDEN, LayerKind.OUTPUT):
            return f"{self.kind.value}({self.depth})"
        return self.kind.value


def initial_layer(kind: NodeKind) -> Layer:
    if kind is NodeKind.INPUT:
        return Layer.input()
    if kind is NodeKind.OUTPUT:
        return Layer.output()
    # Recomputed on the next order rebuild.
    return Layer.hidden(1)


@dataclass
class NodeGene:
    index: NodeIndex
    node_id: int
    kind: NodeKind
    activation: Activation
    layer: Layer
    incoming: list[ConnectionIndex] = field(default_factory=list)
    value: float = 0.0


@dataclass
class ConnectionGene:
    index: ConnectionIndex
    connection_id: int
    src: NodeIndex
    dst: NodeIndex
    weight: float
    enabled: bool = True
